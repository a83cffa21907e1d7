"""Idempotency keys and deterministic demo transaction ids."""

from __future__ import annotations

import hashlib
from decimal import Decimal

DEMO_TX_PREFIX = "demo-"


def format_amount(amount: Decimal) -> str:
    """Render ``amount`` without exponent or trailing fractional zeros."""

    if amount == amount.to_integral_value():
        return format(amount.to_integral_value(), "f")
    return format(amount, "f").rstrip("0").rstrip(".")


def derive_idempotency_key(
    *,
    user_id: str,
    recipient_address: str,
    amount: Decimal,
    currency: str,
    trace_id: str | None,
) -> str:
    """SHA-256 over the five components that identify one logical transfer."""

    seed = "|".join([user_id, recipient_address, format_amount(amount), currency, trace_id or ""])
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()


def demo_transaction_id(idempotency_key: str) -> str:
    return f"{DEMO_TX_PREFIX}{idempotency_key[:12]}"
