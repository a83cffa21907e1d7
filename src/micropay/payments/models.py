"""Pydantic models for transfer requests and their outcomes."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

ANONYMOUS_USER_ID = "anonymous"


class PaymentErrorCode(str, Enum):
    """Machine-readable failure codes surfaced to callers."""

    INVALID_AMOUNT = "INVALID_AMOUNT"
    UNSUPPORTED_CURRENCY = "UNSUPPORTED_CURRENCY"
    RECIPIENT_UNKNOWN = "RECIPIENT_UNKNOWN"
    AMOUNT_LIMIT = "AMOUNT_LIMIT"
    CIRCLE_ERROR = "CIRCLE_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN = "UNKNOWN"


# Short error names paired with each code, as returned in API bodies.
ERROR_NAMES: dict[PaymentErrorCode, str] = {
    PaymentErrorCode.INVALID_AMOUNT: "invalid_amount",
    PaymentErrorCode.UNSUPPORTED_CURRENCY: "unsupported_currency",
    PaymentErrorCode.RECIPIENT_UNKNOWN: "unknown_recipient",
    PaymentErrorCode.AMOUNT_LIMIT: "amount_exceeds_limit",
    PaymentErrorCode.CIRCLE_ERROR: "circle_error",
    PaymentErrorCode.NETWORK_ERROR: "network_error",
    PaymentErrorCode.UNKNOWN: "unexpected_failure",
}


class TransferContext(BaseModel):
    """Caller-supplied identity for one transfer.

    ``trace_id`` must come from the client; generating one server-side would
    defeat idempotency across client retries.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = ANONYMOUS_USER_ID
    trace_id: str | None = None


class SendRequest(BaseModel):
    """Validated transfer request built by the executor."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(gt=0)
    currency: str
    recipient_token: str
    recipient_address: str
    user_id: str = ANONYMOUS_USER_ID
    trace_id: str | None = None


class PaymentSuccess(BaseModel):
    """Transfer accepted by the provider (or simulated in demo mode)."""

    success: Literal[True] = True
    tx_id: str
    explorer_url: str | None = None


class PaymentFailure(BaseModel):
    """Terminal transfer failure; never raised, always returned."""

    success: Literal[False] = False
    error: str
    code: PaymentErrorCode
    details: Any = None

    @classmethod
    def of(cls, code: PaymentErrorCode, details: Any = None) -> "PaymentFailure":
        return cls(error=ERROR_NAMES[code], code=code, details=details)


PaymentResult = Union[PaymentSuccess, PaymentFailure]
