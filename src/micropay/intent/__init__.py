"""Payment intent extraction primitives."""

from .extractor import (
    IntentExtractor,
    ModelIntentExtractor,
    PatternIntentExtractor,
    extract_intent,
    extract_response_text,
)
from .models import EmptyInputError, IntentAction, PaymentIntent
from .patterns import fallback_extract

__all__ = [
    "EmptyInputError",
    "IntentAction",
    "IntentExtractor",
    "ModelIntentExtractor",
    "PatternIntentExtractor",
    "PaymentIntent",
    "extract_intent",
    "extract_response_text",
    "fallback_extract",
]
