"""HTTP client for the Circle developer-transfer endpoint."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from .idempotency import format_amount
from .models import SendRequest

LOGGER = logging.getLogger(__name__)
TRANSFER_NOTE = "voice-micropayment"
SYNTHETIC_TX_ID_LENGTH = 64

# Response shapes seen from the provider, most specific first.
_TX_ID_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "id"),
    ("data", "transactionId"),
    ("transactionId",),
    ("id",),
    ("transferId",),
)


class CircleTransferClient:
    """Thin wrapper that POSTs transfer payloads with bearer auth and a timeout."""

    def __init__(
        self,
        *,
        api_key: str,
        transfer_url: str,
        timeout_seconds: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Circle API key is required for live transfers")
        self.transfer_url = transfer_url
        self.timeout_seconds = timeout_seconds
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._client = http_client or httpx.Client(timeout=timeout_seconds)

    def post_transfer(self, payload: Mapping[str, Any]) -> httpx.Response:
        """Send one transfer attempt; transport failures propagate as ``httpx`` errors."""

        return self._client.post(
            self.transfer_url,
            json=dict(payload),
            headers=self._headers,
            timeout=self.timeout_seconds,
        )

    def close(self) -> None:
        self._client.close()


def build_transfer_payload(
    request: SendRequest,
    idempotency_key: str,
    *,
    blockchain: str,
    wallet_id: str | None = None,
    token_address: str | None = None,
) -> dict[str, Any]:
    """Assemble the developer-transfer body for ``request``.

    A ``wallet_id`` that looks like an address is sent as ``walletAddress``
    (paired with ``blockchain``); anything else is sent as ``walletId``.
    """

    payload: dict[str, Any] = {
        "idempotencyKey": idempotency_key,
        "amount": {"amount": format_amount(request.amount), "currency": request.currency},
        "blockchain": blockchain,
        "to": {"address": request.recipient_address, "chain": blockchain},
        "metadata": {"traceId": request.trace_id or "", "note": TRANSFER_NOTE},
    }
    if wallet_id:
        if wallet_id.startswith("0x"):
            payload["walletAddress"] = wallet_id
        else:
            payload["walletId"] = wallet_id
    if token_address:
        payload["tokenAddress"] = token_address
    return payload


def parse_response_body(response: httpx.Response) -> Any:
    """Decode the JSON body, keeping non-JSON text under ``raw``."""

    text = response.text
    if not text:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}


def extract_transaction_id(body: Any) -> str | None:
    """Return the first transaction identifier found in ``body``."""

    for path in _TX_ID_PATHS:
        value: Any = body
        for key in path:
            if not isinstance(value, Mapping):
                value = None
                break
            value = value.get(key)
        if value:
            return str(value)
    return None


def synthesize_transaction_id(body: Any) -> str:
    """Bounded stand-in id built from the serialized body."""

    serialized = json.dumps(body, separators=(",", ":"), default=str)
    return serialized[:SYNTHETIC_TX_ID_LENGTH] or "{}"
