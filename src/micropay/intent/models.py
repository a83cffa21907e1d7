"""Pydantic models describing a parsed payment instruction."""

from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict

SUPPORTED_CURRENCY = "USDC"
MISSING_AMOUNT = "null"
# Integer or fractional digits beyond this are not an amount anyone meant.
MAX_AMOUNT_DIGITS = 30


class EmptyInputError(ValueError):
    """Raised when no transcription or text was supplied for extraction."""


class IntentAction(str, Enum):
    """Actions an instruction can resolve to."""

    SEND = "send"
    UNKNOWN = "unknown"


class PaymentIntent(BaseModel):
    """Normalized "who gets how much of what" extracted from free text."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    action: IntentAction = IntentAction.UNKNOWN
    amount: str = MISSING_AMOUNT
    currency: str = SUPPORTED_CURRENCY
    recipient: str = ""

    def amount_value(self) -> float | None:
        """Return the amount as a float, or ``None`` when absent or malformed."""

        if not self.amount or self.amount == MISSING_AMOUNT:
            return None
        try:
            value = float(self.amount)
        except ValueError:
            return None
        if not math.isfinite(value):
            return None
        return value

    def is_actionable(self) -> bool:
        """True when the intent carries everything a transfer needs."""

        amount = self.amount_value()
        return (
            self.action is IntentAction.SEND
            and amount is not None
            and amount > 0
            and self.currency == SUPPORTED_CURRENCY
            and bool(self.recipient)
        )

    def to_payload(self) -> dict[str, str]:
        return {
            "action": self.action.value,
            "amount": self.amount,
            "currency": self.currency,
            "recipient": self.recipient,
        }
