"""Tests for the transfer executor in demo and live modes."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

import httpx
import pytest

from micropay.observability import Observability
from micropay.payments import (
    AliasTable,
    AuditLogger,
    CircleTransferClient,
    PaymentErrorCode,
    PaymentFailure,
    PaymentSuccess,
    RecipientResolver,
    RetryPolicy,
    TransferContext,
    TransferExecutor,
)
from micropay.payments.idempotency import derive_idempotency_key
from micropay.settings import get_settings

ALICE = "0x" + "11" * 20
RAW = "0x" + "Ab" * 20
TRANSFER_URL = "https://circle.test/transfer"


class _RecordingAudit(AuditLogger):
    def __init__(self) -> None:
        super().__init__(observability=Observability(settings=get_settings(), component="audit"), background=False)
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class _FakeMetrics:
    def __init__(self) -> None:
        self.calls: list[tuple[str, float, str, dict | None]] = []

    def send(self, metric, value, *, metric_type, tags):
        self.calls.append((metric, value, metric_type, dict(tags) if tags else None))


def _executor(handler=None, *, audit=None, sleeps=None, **kwargs) -> TransferExecutor:
    client = None
    if handler is not None:
        client = CircleTransferClient(
            api_key="secret",
            transfer_url=TRANSFER_URL,
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
    recorded = sleeps if sleeps is not None else []
    return TransferExecutor(
        resolver=RecipientResolver(AliasTable({"@alice": ALICE})),
        audit=audit or _RecordingAudit(),
        circle_client=client,
        sleep=recorded.append,
        **kwargs,
    )


def _ctx() -> TransferContext:
    return TransferContext(user_id="u1", trace_id="t1")


# Demo mode -----------------------------------------------------------------


def test_demo_mode_returns_deterministic_success():
    audit = _RecordingAudit()
    executor = _executor(audit=audit)

    first = executor.execute("5", "USDC", "@alice", _ctx())
    second = executor.execute("5.00", "usdc", "@alice", _ctx())

    key = derive_idempotency_key(
        user_id="u1", recipient_address=ALICE, amount=Decimal("5"), currency="USDC", trace_id="t1"
    )
    assert isinstance(first, PaymentSuccess)
    assert first.tx_id == f"demo-{key[:12]}"
    assert first.explorer_url == f"https://explorer.arc.network/tx/demo-{key[:12]}"
    assert second == first
    assert executor.demo_mode
    assert audit.names == ["simulated_transfer", "simulated_transfer"]
    assert audit.events[0][1]["recipientAddress"] == ALICE


def test_demo_mode_passes_raw_addresses_through():
    result = _executor().execute(1, "USDC", RAW)

    assert isinstance(result, PaymentSuccess)
    assert result.tx_id.startswith("demo-")


@pytest.mark.parametrize("amount", ["abc", "", None, "0", "-5", "NaN", "Infinity", True])
def test_invalid_amounts(amount):
    result = _executor().execute(amount, "USDC", "@alice")

    assert isinstance(result, PaymentFailure)
    assert result.code is PaymentErrorCode.INVALID_AMOUNT
    assert result.error == "invalid_amount"


def test_unsupported_currency():
    result = _executor().execute("5", "EUR", "@alice")

    assert result.code is PaymentErrorCode.UNSUPPORTED_CURRENCY


def test_unknown_recipient():
    result = _executor().execute("5", "USDC", "@carol")

    assert result.code is PaymentErrorCode.RECIPIENT_UNKNOWN
    assert result.error == "unknown_recipient"


def test_limit_is_inclusive():
    executor = _executor(max_single_amount=Decimal("100"))

    assert isinstance(executor.execute("100", "USDC", "@alice"), PaymentSuccess)
    over = executor.execute("100.01", "USDC", "@alice")
    assert over.code is PaymentErrorCode.AMOUNT_LIMIT


def test_validation_order_amount_before_currency_before_recipient():
    executor = _executor(max_single_amount=Decimal("1"))

    assert executor.execute("x", "EUR", "@nobody").code is PaymentErrorCode.INVALID_AMOUNT
    assert executor.execute("5", "EUR", "@nobody").code is PaymentErrorCode.UNSUPPORTED_CURRENCY
    assert executor.execute("5", "USDC", "@nobody").code is PaymentErrorCode.RECIPIENT_UNKNOWN
    assert executor.execute("5", "USDC", "@alice").code is PaymentErrorCode.AMOUNT_LIMIT


def test_validation_failures_make_no_network_call():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"id": "tx"})

    executor = _executor(handler)
    executor.execute("0", "USDC", "@alice")
    executor.execute("5", "USDC", "@carol")

    assert calls == []


# Live mode -----------------------------------------------------------------


def test_live_success_on_first_attempt():
    requests: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return httpx.Response(201, json={"data": {"id": "tx-123"}})

    audit = _RecordingAudit()
    sleeps: list[float] = []
    result = _executor(handler, audit=audit, sleeps=sleeps).execute("2.5", "USDC", "@alice", _ctx())

    assert result == PaymentSuccess(tx_id="tx-123", explorer_url="https://explorer.arc.network/tx/tx-123")
    assert len(requests) == 1
    assert requests[0]["amount"] == {"amount": "2.5", "currency": "USDC"}
    assert requests[0]["to"]["address"] == ALICE
    assert sleeps == []
    assert audit.names == ["transfer_success"]


def test_live_retries_transient_statuses_with_same_key():
    keys: list[str] = []
    statuses = iter([503, 429, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        keys.append(json.loads(request.content)["idempotencyKey"])
        return httpx.Response(next(statuses), json={"transactionId": "tx-9"})

    sleeps: list[float] = []
    result = _executor(handler, sleeps=sleeps).execute("1", "USDC", "@alice", _ctx())

    assert isinstance(result, PaymentSuccess)
    assert result.tx_id == "tx-9"
    assert len(keys) == 3
    assert len(set(keys)) == 1
    assert sleeps == [0.2, 0.4]


def test_live_exhausted_retries_report_circle_error():
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503, json={"message": "unavailable"})

    audit = _RecordingAudit()
    sleeps: list[float] = []
    result = _executor(handler, audit=audit, sleeps=sleeps).execute("1", "USDC", "@alice")

    assert result.code is PaymentErrorCode.CIRCLE_ERROR
    assert result.details == {"message": "unavailable"}
    assert len(calls) == 3
    assert sleeps == [0.2, 0.4]
    assert audit.names == ["circle_error"]
    assert audit.events[0][1]["status"] == 503


def test_live_terminal_status_is_not_retried():
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(400, text="bad request")

    sleeps: list[float] = []
    result = _executor(handler, sleeps=sleeps).execute("1", "USDC", "@alice")

    assert result.code is PaymentErrorCode.CIRCLE_ERROR
    assert result.details == {"raw": "bad request"}
    assert len(calls) == 1
    assert sleeps == []


def test_live_transport_errors_become_network_error():
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        raise httpx.ConnectError("connection refused", request=request)

    audit = _RecordingAudit()
    sleeps: list[float] = []
    result = _executor(handler, audit=audit, sleeps=sleeps).execute("1", "USDC", "@alice")

    assert result.code is PaymentErrorCode.NETWORK_ERROR
    assert "connection refused" in result.details
    assert len(calls) == 3
    assert sleeps == [0.2, 0.4]
    assert audit.names == ["network_error"]


def test_live_transport_error_then_success():
    outcomes = iter(["raise", "ok"])

    def handler(request: httpx.Request) -> httpx.Response:
        if next(outcomes) == "raise":
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json={"id": "tx-2"})

    sleeps: list[float] = []
    result = _executor(handler, sleeps=sleeps).execute("1", "USDC", "@alice")

    assert result.tx_id == "tx-2"
    assert sleeps == [0.2]


def test_live_success_without_id_synthesizes_one():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"state": "INITIATED"})

    result = _executor(handler).execute("1", "USDC", "@alice")

    assert isinstance(result, PaymentSuccess)
    assert result.tx_id == '{"state":"INITIATED"}'
    assert result.explorer_url is None


def test_custom_retry_policy_is_honored():
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(502)

    sleeps: list[float] = []
    executor = _executor(handler, sleeps=sleeps, retry_policy=RetryPolicy(max_attempts=1))
    result = executor.execute("1", "USDC", "@alice")

    assert result.code is PaymentErrorCode.CIRCLE_ERROR
    assert len(calls) == 1
    assert sleeps == []


def test_outcome_metrics_are_recorded():
    metrics = _FakeMetrics()
    observability = Observability(settings=get_settings(), component="payments", metrics_backend=metrics)
    executor = _executor(observability=observability)

    executor.execute("5", "USDC", "@alice")
    executor.execute("5", "USDC", "@nobody")

    counters = [call for call in metrics.calls if call[2] == "c"]
    assert [call[3]["outcome"] for call in counters] == ["success", "RECIPIENT_UNKNOWN"]
    assert all(call[3]["mode"] == "demo" for call in counters)
    assert any(call[0] == "payments.transfer.duration" and call[2] == "ms" for call in metrics.calls)


def test_each_live_attempt_is_counted():
    statuses = iter([502, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses), json={"id": "tx-3"})

    metrics = _FakeMetrics()
    observability = Observability(settings=get_settings(), component="payments", metrics_backend=metrics)
    _executor(handler, observability=observability).execute("1", "USDC", "@alice")

    attempts = [call[3]["attempt"] for call in metrics.calls if call[0] == "payments.transfer.attempt"]
    assert attempts == ["1", "2"]


@pytest.mark.parametrize("amount", ["1e-99999999", "5e99999999"])
def test_unbounded_amounts_are_invalid(amount):
    assert _executor().execute(amount, "USDC", "@alice").code is PaymentErrorCode.INVALID_AMOUNT


class _MisconfiguredClient(CircleTransferClient):
    def __init__(self) -> None:
        super().__init__(api_key="secret", transfer_url="not a url")
        self.calls = 0

    def post_transfer(self, payload):
        self.calls += 1
        raise httpx.InvalidURL("Request URL is missing an 'http://' or 'https://' protocol.")


def test_unexpected_client_errors_become_network_error_without_retry():
    client = _MisconfiguredClient()
    audit = _RecordingAudit()
    sleeps: list[float] = []
    executor = TransferExecutor(
        resolver=RecipientResolver(AliasTable({"@alice": ALICE})),
        audit=audit,
        circle_client=client,
        sleep=sleeps.append,
    )

    result = executor.execute("1", "USDC", "@alice")

    assert result.code is PaymentErrorCode.NETWORK_ERROR
    assert "protocol" in result.details
    assert client.calls == 1
    assert sleeps == []
    assert audit.names == ["network_error"]
