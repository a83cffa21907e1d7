"""Best-effort audit events for transfer outcomes."""

from __future__ import annotations

import logging
import threading
from typing import Any

import httpx

from micropay.observability import Observability

LOGGER = logging.getLogger(__name__)


class AuditLogger:
    """Deliver structured audit events without ever affecting the caller.

    With ``event_log_url`` set, events are POSTed as JSON; otherwise they are
    written through :class:`~micropay.observability.Observability`. In
    background mode delivery runs on a daemon thread that the executor never
    waits for; :meth:`flush` joins outstanding deliveries (tests, shutdown).
    """

    def __init__(
        self,
        *,
        observability: Observability,
        event_log_url: str | None = None,
        timeout_seconds: float = 5.0,
        background: bool = True,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.observability = observability
        self.event_log_url = event_log_url
        self.timeout_seconds = timeout_seconds
        self.background = background
        self._client = http_client
        self._pending: set[threading.Thread] = set()
        self._lock = threading.Lock()

    def emit(self, event: str, **fields: Any) -> None:
        """Record ``event``; any failure is logged and discarded."""

        try:
            payload = self.observability.build_event(event, **fields)
            if not self.background:
                self._deliver(payload)
                return
            thread = threading.Thread(target=self._run, args=(payload,), name=f"audit-{event}", daemon=True)
            with self._lock:
                self._pending.add(thread)
            thread.start()
        except Exception:
            LOGGER.warning("Audit event %s could not be scheduled", event, exc_info=True)

    def flush(self, timeout: float | None = None) -> None:
        """Wait for background deliveries started so far."""

        with self._lock:
            pending = list(self._pending)
        for thread in pending:
            thread.join(timeout)

    def _run(self, payload: dict[str, Any]) -> None:
        try:
            self._deliver(payload)
        finally:
            with self._lock:
                self._pending.discard(threading.current_thread())

    def _deliver(self, payload: dict[str, Any]) -> None:
        try:
            if not self.event_log_url:
                fields = {key: value for key, value in payload.items() if key not in {"event", "component", "ts"}}
                self.observability.emit_event(payload["event"], **fields)
                return
            if self._client is not None:
                response = self._client.post(self.event_log_url, json=payload, timeout=self.timeout_seconds)
            else:
                response = httpx.post(self.event_log_url, json=payload, timeout=self.timeout_seconds)
            response.raise_for_status()
        except Exception:
            LOGGER.warning("Audit event %s delivery failed", payload.get("event"), exc_info=True)
