"""
Rule-based payment intent extraction.

Used whenever the language model is unavailable or returns something that
cannot be reduced to an intent. Everything here is a pure function of the
input text so results are reproducible without a model.
"""

import re
from decimal import Decimal, InvalidOperation

from .models import MAX_AMOUNT_DIGITS, MISSING_AMOUNT, SUPPORTED_CURRENCY, IntentAction, PaymentIntent

AMOUNT_PATTERN = re.compile(r"([0-9]+(?:\.[0-9]+)?)")
ALIAS_PATTERN = re.compile(r"@[\w-]{1,64}")
ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
STRICT_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
TRANSFER_VERBS = re.compile(r"send|transfer|pay", re.IGNORECASE)


def canonical_amount(raw: object) -> str:
    """Return ``raw`` as a canonical numeric string, or ``"null"``.

    Thousands separators, currency symbols and whitespace are stripped and
    trailing fractional zeros removed, so ``"1,000.50"`` becomes ``"1000.5"``.
    Non-numeric, non-finite or absurdly long input (more than
    ``MAX_AMOUNT_DIGITS`` digits either side of the point, exponent notation
    included) maps to ``"null"``; sign is preserved so downstream validation
    can reject it.
    """
    if raw is None or isinstance(raw, bool):
        return MISSING_AMOUNT
    text = str(raw).strip().replace(",", "").lstrip("$")
    if not text:
        return MISSING_AMOUNT
    try:
        value = Decimal(text)
    except InvalidOperation:
        return MISSING_AMOUNT
    if not is_bounded_amount(value):
        return MISSING_AMOUNT
    if value == value.to_integral_value():
        return format(value.to_integral_value(), "f")
    return format(value, "f").rstrip("0").rstrip(".")


def is_bounded_amount(value: Decimal) -> bool:
    """True for finite values whose plain rendering stays short."""
    if not value.is_finite():
        return False
    return value.adjusted() < MAX_AMOUNT_DIGITS and value.as_tuple().exponent >= -MAX_AMOUNT_DIGITS


def extract_amount(text: str) -> str:
    """First decimal number in ``text``."""
    match = AMOUNT_PATTERN.search(text)
    return canonical_amount(match.group(1)) if match else MISSING_AMOUNT


def extract_recipient(text: str) -> str:
    """First ``@alias``, else first 0x address, else empty string."""
    alias = ALIAS_PATTERN.search(text)
    if alias:
        return alias.group(0)
    address = ADDRESS_PATTERN.search(text)
    return address.group(0) if address else ""


def extract_action(text: str) -> IntentAction:
    return IntentAction.SEND if TRANSFER_VERBS.search(text) else IntentAction.UNKNOWN


def is_address(token: str) -> bool:
    return bool(STRICT_ADDRESS_PATTERN.match(token or ""))


def fallback_extract(text: str) -> PaymentIntent:
    """
    Build a :class:`PaymentIntent` from ``text`` using regex heuristics only.

    Never raises: anything unmatched comes back as ``unknown`` / ``"null"`` / ``""``.
    """
    if not isinstance(text, str):
        text = ""
    return PaymentIntent(
        action=extract_action(text),
        amount=extract_amount(text),
        currency=SUPPORTED_CURRENCY,
        recipient=extract_recipient(text),
    )
