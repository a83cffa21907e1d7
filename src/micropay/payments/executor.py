"""Transfer execution: validation, idempotency, dispatch with bounded retries."""

from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

import httpx

from micropay.intent.models import SUPPORTED_CURRENCY
from micropay.intent.patterns import is_bounded_amount
from micropay.observability import Observability

from .audit import AuditLogger
from .circle import (
    CircleTransferClient,
    build_transfer_payload,
    extract_transaction_id,
    parse_response_body,
    synthesize_transaction_id,
)
from .idempotency import demo_transaction_id, derive_idempotency_key
from .models import PaymentErrorCode, PaymentFailure, PaymentResult, PaymentSuccess, SendRequest, TransferContext
from .recipients import RecipientResolver
from .retry import RetryPolicy

LOGGER = logging.getLogger(__name__)
DEFAULT_MAX_SINGLE_AMOUNT = Decimal(10000)
DEFAULT_EXPLORER_BASE_URL = "https://explorer.arc.network/tx/"


class TransferExecutor:
    """Run one transfer through validation, resolution, and dispatch.

    Stages short-circuit on the first failure with a specific
    :class:`PaymentErrorCode`. Without a ``circle_client`` the executor runs in
    demo mode and never touches the network.
    """

    def __init__(
        self,
        *,
        resolver: RecipientResolver,
        audit: AuditLogger,
        circle_client: CircleTransferClient | None = None,
        retry_policy: RetryPolicy | None = None,
        max_single_amount: Decimal = DEFAULT_MAX_SINGLE_AMOUNT,
        blockchain: str = "ARC-T",
        wallet_id: str | None = None,
        token_address: str | None = None,
        explorer_base_url: str = DEFAULT_EXPLORER_BASE_URL,
        observability: Observability | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.resolver = resolver
        self.audit = audit
        self.circle_client = circle_client
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_single_amount = Decimal(max_single_amount)
        self.blockchain = blockchain
        self.wallet_id = wallet_id
        self.token_address = token_address
        self.explorer_base_url = explorer_base_url
        self.observability = observability
        self._sleep = sleep

    @property
    def demo_mode(self) -> bool:
        return self.circle_client is None

    def execute(
        self,
        amount: Any,
        currency: str,
        recipient_token: str,
        context: TransferContext | None = None,
    ) -> PaymentResult:
        """Validate and dispatch a transfer, returning a success or failure value."""

        started = time.perf_counter()
        result = self._execute(amount, currency, recipient_token, context or TransferContext())
        if self.observability is not None:
            outcome = "success" if result.success else result.code.value
            tags = {"outcome": outcome, "mode": "demo" if self.demo_mode else "live"}
            self.observability.increment("payments.transfer.outcome", tags=tags)
            self.observability.record_timing(
                "payments.transfer.duration", (time.perf_counter() - started) * 1000.0, tags=tags
            )
        return result

    def _execute(
        self,
        amount: Any,
        currency: str,
        recipient_token: str,
        context: TransferContext,
    ) -> PaymentResult:
        amount_value = _parse_amount(amount)
        if amount_value is None:
            return PaymentFailure.of(PaymentErrorCode.INVALID_AMOUNT)
        if (currency or "").upper() != SUPPORTED_CURRENCY:
            return PaymentFailure.of(PaymentErrorCode.UNSUPPORTED_CURRENCY)

        recipient_address = self.resolver.resolve(recipient_token)
        if not recipient_address:
            return PaymentFailure.of(PaymentErrorCode.RECIPIENT_UNKNOWN)
        if amount_value > self.max_single_amount:
            return PaymentFailure.of(PaymentErrorCode.AMOUNT_LIMIT)

        request = SendRequest(
            amount=amount_value,
            currency=SUPPORTED_CURRENCY,
            recipient_token=recipient_token,
            recipient_address=recipient_address,
            user_id=context.user_id,
            trace_id=context.trace_id,
        )
        idempotency_key = derive_idempotency_key(
            user_id=request.user_id,
            recipient_address=request.recipient_address,
            amount=request.amount,
            currency=request.currency,
            trace_id=request.trace_id,
        )

        if self.circle_client is None:
            return self._simulate(request, idempotency_key)
        return self._dispatch(self.circle_client, request, idempotency_key)

    def explorer_url(self, tx_id: str) -> str:
        return f"{self.explorer_base_url}{tx_id}"

    def _simulate(self, request: SendRequest, idempotency_key: str) -> PaymentResult:
        tx_id = demo_transaction_id(idempotency_key)
        self.audit.emit(
            "simulated_transfer",
            userId=request.user_id,
            recipientAddress=request.recipient_address,
            amount=str(request.amount),
            txId=tx_id,
        )
        return PaymentSuccess(tx_id=tx_id, explorer_url=self.explorer_url(tx_id))

    def _dispatch(self, client: CircleTransferClient, request: SendRequest, idempotency_key: str) -> PaymentResult:
        payload = build_transfer_payload(
            request,
            idempotency_key,
            blockchain=self.blockchain,
            wallet_id=self.wallet_id,
            token_address=self.token_address,
        )
        policy = self.retry_policy

        for attempt in range(policy.max_attempts):
            if self.observability is not None:
                self.observability.increment("payments.transfer.attempt", tags={"attempt": str(attempt + 1)})
            try:
                response = client.post_transfer(payload)
            except (httpx.RequestError, OSError) as exc:
                if policy.is_retryable(exc) and policy.has_attempts_left(attempt):
                    self._backoff(attempt, reason=repr(exc))
                    continue
                LOGGER.error("Circle transfer failed after %s attempt(s): %s", attempt + 1, exc)
                self.audit.emit("network_error", err=str(exc), userId=request.user_id)
                return PaymentFailure.of(PaymentErrorCode.NETWORK_ERROR, details=str(exc))
            except Exception as exc:
                # Misconfiguration (e.g. an invalid transfer URL); retrying cannot help.
                LOGGER.exception("Circle transfer could not be sent")
                self.audit.emit("network_error", err=str(exc), userId=request.user_id)
                return PaymentFailure.of(PaymentErrorCode.NETWORK_ERROR, details=str(exc))

            body = parse_response_body(response)
            if not response.is_success:
                if policy.is_retryable(response.status_code) and policy.has_attempts_left(attempt):
                    self._backoff(attempt, reason=f"HTTP {response.status_code}")
                    continue
                LOGGER.error("Circle rejected transfer with HTTP %s", response.status_code)
                self.audit.emit("circle_error", status=response.status_code, body=body, userId=request.user_id)
                return PaymentFailure.of(PaymentErrorCode.CIRCLE_ERROR, details=body)

            tx_id = extract_transaction_id(body)
            self.audit.emit("transfer_success", userId=request.user_id, txId=tx_id, payload=payload)
            LOGGER.info("Circle transfer accepted: tx_id=%s attempt=%s", tx_id, attempt + 1)
            return PaymentSuccess(
                tx_id=tx_id or synthesize_transaction_id(body),
                explorer_url=self.explorer_url(tx_id) if tx_id else None,
            )

        return PaymentFailure.of(PaymentErrorCode.UNKNOWN)  # pragma: no cover - loop always returns

    def _backoff(self, attempt: int, *, reason: str) -> None:
        delay = self.retry_policy.delay_seconds(attempt)
        LOGGER.warning("Retrying Circle transfer in %.1fs after %s (attempt %s)", delay, reason, attempt + 1)
        self._sleep(delay)


def _parse_amount(raw: Any) -> Decimal | None:
    """Positive bounded amount, or ``None``."""

    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    if not is_bounded_amount(value) or value <= 0:
        return None
    return value
