"""Shared fixtures keeping unit tests independent of the host environment."""

from __future__ import annotations

import pytest

from micropay.observability import reset_observability_cache
from micropay.settings import get_settings

_LEAKY_ENV_VARS = (
    "CIRCLE_API_KEY",
    "CIRCLE__API_KEY",
    "MICROPAY_CIRCLE__API_KEY",
    "RECIPIENT_MAP",
    "MICROPAY_PAYMENTS__RECIPIENT_MAP",
    "EVENT_LOG_URL",
    "MICROPAY_AUDIT__EVENT_LOG_URL",
    "ELEVENLABS_API_KEY",
    "LLM_PROVIDER",
    "LLM__PROVIDER",
    "MICROPAY_LLM__PROVIDER",
    "MICROPAY_LLM_PROVIDER",
    "MICROPAY_ENV",
    "MICROPAY_SETTINGS_FILE",
    "OBS_STATSD_HOST",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    for name in _LEAKY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    reset_observability_cache()
    yield
    get_settings.cache_clear()
    reset_observability_cache()
