"""Tests for retry classification and backoff."""

from __future__ import annotations

import httpx
import pytest

from micropay.payments import RetryPolicy
from micropay.payments.retry import is_retryable


@pytest.mark.parametrize("status", [429, 502, 503, 504])
def test_transient_statuses_are_retryable(status):
    assert is_retryable(status)


@pytest.mark.parametrize("status", [200, 400, 401, 404, 409, 422, 500, 501])
def test_other_statuses_are_terminal(status):
    assert not is_retryable(status)


def test_transport_errors_are_retryable():
    request = httpx.Request("POST", "https://circle.test")

    assert is_retryable(httpx.ConnectError("refused", request=request))
    assert is_retryable(httpx.ReadTimeout("slow", request=request))
    assert is_retryable(ConnectionResetError())
    assert not is_retryable(ValueError("nope"))


def test_default_schedule_doubles_from_200ms():
    policy = RetryPolicy()

    assert policy.schedule() == [0.2, 0.4]
    assert policy.has_attempts_left(0)
    assert policy.has_attempts_left(1)
    assert not policy.has_attempts_left(2)


def test_custom_policy():
    policy = RetryPolicy(max_attempts=4, base_delay_ms=100, retryable_statuses=frozenset({500}))

    assert policy.schedule() == [0.1, 0.2, 0.4]
    assert policy.is_retryable(500)
    assert not policy.is_retryable(503)
    assert is_retryable(500, policy)
