"""High-level orchestration from a spoken or typed instruction to a transfer."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from micropay.intent import EmptyInputError, IntentExtractor, PaymentIntent
from micropay.payments import PaymentErrorCode, PaymentSuccess, TransferContext, TransferExecutor
from micropay.payments.models import ANONYMOUS_USER_ID

LOGGER = logging.getLogger(__name__)

MISSING_TEXT_ERROR = "Missing transcription or text field in request body"
NOT_UNDERSTOOD_ERROR = "Could not understand payment intent"

_SPOKEN_FAILURES: dict[str, str] = {
    PaymentErrorCode.INVALID_AMOUNT.value: "the amount was not valid",
    PaymentErrorCode.UNSUPPORTED_CURRENCY.value: "only USDC is supported",
    PaymentErrorCode.RECIPIENT_UNKNOWN.value: "I don't know that recipient",
    PaymentErrorCode.AMOUNT_LIMIT.value: "the amount is over the transfer limit",
    PaymentErrorCode.CIRCLE_ERROR.value: "the payment provider rejected it",
    PaymentErrorCode.NETWORK_ERROR.value: "the payment provider could not be reached",
}


class PaymentOutcome(BaseModel):
    """Response envelope shared by the JSON and voice endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    status_code: int = Field(default=200, exclude=True)
    message: str | None = None
    error: str | None = None
    code: str | None = None
    tx_id: str | None = Field(default=None, serialization_alias="txId")
    explorer: str | None = None
    details: Any = None
    intent: dict[str, Any] | None = None

    def to_response(self) -> dict[str, Any]:
        body = self.model_dump(by_alias=True, exclude_none=True)
        if not self.success and self.code:
            body.setdefault("details", None)
        return body

    def spoken_text(self) -> str:
        """Short sentence for text-to-speech replies."""

        if self.success:
            return f"{self.message}."
        if self.code in _SPOKEN_FAILURES:
            return f"Sorry, the payment failed because {_SPOKEN_FAILURES[self.code]}."
        if self.error == NOT_UNDERSTOOD_ERROR:
            return "Sorry, I could not understand that payment request."
        if self.error == MISSING_TEXT_ERROR:
            return "Sorry, I did not hear a payment request."
        return "Sorry, something went wrong with that payment."


class PaymentFlowService:
    """Coordinates intent extraction, actionability checks, and execution."""

    def __init__(
        self,
        *,
        extractor: IntentExtractor,
        executor: TransferExecutor,
        anonymous_user_id: str = ANONYMOUS_USER_ID,
    ) -> None:
        self.extractor = extractor
        self.executor = executor
        self.anonymous_user_id = anonymous_user_id

    def handle_text(self, text: str | None, *, user_id: str | None = None, trace_id: str | None = None) -> PaymentOutcome:
        """Parse ``text`` and execute the transfer it describes."""

        try:
            intent = self.extractor.extract(text or "")
        except EmptyInputError:
            return PaymentOutcome(success=False, status_code=400, error=MISSING_TEXT_ERROR)

        if not intent.is_actionable():
            LOGGER.info("Rejected non-actionable intent: %s", intent.to_payload())
            return PaymentOutcome(
                success=False,
                status_code=400,
                error=NOT_UNDERSTOOD_ERROR,
                intent=intent.to_payload(),
            )
        return self.execute_intent(intent, user_id=user_id, trace_id=trace_id)

    def execute_intent(
        self,
        intent: PaymentIntent,
        *,
        user_id: str | None = None,
        trace_id: str | None = None,
    ) -> PaymentOutcome:
        context = TransferContext(user_id=user_id or self.anonymous_user_id, trace_id=trace_id or None)
        result = self.executor.execute(intent.amount, intent.currency, intent.recipient, context)
        if isinstance(result, PaymentSuccess):
            return PaymentOutcome(
                success=True,
                message=f"Sent {intent.amount} {intent.currency} to {intent.recipient}",
                tx_id=result.tx_id,
                explorer=result.explorer_url,
            )
        LOGGER.warning("Transfer failed for user %s: %s", context.user_id, result.code.value)
        return PaymentOutcome(
            success=False,
            status_code=500,
            error=result.error,
            code=result.code.value,
            details=result.details,
        )
