"""Transfer execution against the Circle developer-transfer API."""

from .audit import AuditLogger
from .circle import CircleTransferClient
from .executor import TransferExecutor
from .idempotency import derive_idempotency_key
from .models import (
    PaymentErrorCode,
    PaymentFailure,
    PaymentResult,
    PaymentSuccess,
    SendRequest,
    TransferContext,
)
from .recipients import AliasTable, RecipientResolver
from .retry import RetryPolicy, is_retryable

__all__ = [
    "AliasTable",
    "AuditLogger",
    "CircleTransferClient",
    "PaymentErrorCode",
    "PaymentFailure",
    "PaymentResult",
    "PaymentSuccess",
    "RecipientResolver",
    "RetryPolicy",
    "SendRequest",
    "TransferContext",
    "TransferExecutor",
    "derive_idempotency_key",
    "is_retryable",
]
