"""Model-backed and rule-based payment intent extraction."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Protocol

from langchain_core.messages import HumanMessage, SystemMessage

from .models import MISSING_AMOUNT, SUPPORTED_CURRENCY, EmptyInputError, IntentAction, PaymentIntent
from .patterns import canonical_amount, fallback_extract

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a strict parser. Given a plain user instruction about sending money, return ONLY a single JSON object and nothing else.

Schema:
{"action":"send"|"unknown", "amount":"<numeric string or null>", "currency":"USDC"|"null", "recipient":"<alias starting with @ or hex address or empty>"}

Rules:
- Normalize currency to "USDC" where implied.
- Amount: return as numeric string without commas or symbols (e.g. "10", "5.50"). If you cannot find an amount, set "amount":"null".
- recipient: return the alias exactly (e.g., "@CoolStreamer") or a hex address (0x...). If not present, set to empty string "".
- If ambiguous or you can't confidently parse, set action to "unknown".
"""

_JSON_OBJECT = re.compile(r"(\{[\s\S]*\})")


class IntentExtractor(Protocol):
    """Capability shared by every extraction strategy."""

    name: str

    def extract(self, text: str) -> PaymentIntent:  # pragma: no cover - protocol
        ...


class PatternIntentExtractor:
    """Deterministic regex extraction; always available."""

    name = "pattern"

    def extract(self, text: str) -> PaymentIntent:
        _require_text(text)
        return fallback_extract(text)


class ModelIntentExtractor:
    """Ask a chat model for a JSON intent, delegating to patterns on any failure.

    ``model`` is anything with an ``invoke(messages)`` method, which covers
    LangChain chat models. Output length limits (``num_predict`` for Ollama)
    are configured on the model itself. Model-specific response shapes are
    reduced to plain text here and never leak to callers.
    """

    name = "model"

    def __init__(
        self,
        model: Any,
        *,
        fallback: PatternIntentExtractor | None = None,
    ) -> None:
        self.model = model
        self.fallback = fallback or PatternIntentExtractor()

    def extract(self, text: str) -> PaymentIntent:
        _require_text(text)
        try:
            response = self.model.invoke(
                [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=text)]
            )
        except Exception:
            LOGGER.exception("LLM intent extraction failed; using pattern fallback")
            return self.fallback.extract(text)

        content = extract_response_text(response)
        if not content:
            LOGGER.warning("LLM response had no usable text; using pattern fallback")
            return self.fallback.extract(text)

        parsed = _parse_json_object(content)
        if parsed is None:
            # Salvage what we can from the model's own wording.
            return fallback_extract(content)
        return normalize_intent_payload(parsed)


def extract_response_text(response: Any) -> str | None:
    """Return the text carried by a model response, whatever its shape."""

    if response is None:
        return None
    if isinstance(response, str):
        return response

    content = getattr(response, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return _text_from_blocks(content)

    if not isinstance(response, Mapping):
        return None
    if isinstance(response.get("response"), str):
        return response["response"]
    output = response.get("output")
    if isinstance(output, list) and output:
        first = output[0]
        if isinstance(first, Mapping) and isinstance(first.get("content"), str):
            return first["content"]
        if isinstance(first, str):
            return first
    if isinstance(response.get("output_text"), str):
        return response["output_text"]
    return None


def normalize_intent_payload(parsed: Mapping[str, Any]) -> PaymentIntent:
    """Coerce a decoded model payload into a :class:`PaymentIntent`."""

    action = IntentAction.SEND if parsed.get("action") == IntentAction.SEND.value else IntentAction.UNKNOWN
    recipient = parsed.get("recipient")
    return PaymentIntent(
        action=action,
        amount=canonical_amount(parsed.get("amount")) if parsed.get("amount") else MISSING_AMOUNT,
        currency=SUPPORTED_CURRENCY,
        recipient=str(recipient) if recipient else "",
    )


def extract_intent(model: Any | None, text: str) -> PaymentIntent:
    """Parse ``text`` with ``model`` when given, otherwise with patterns only.

    Raises:
        EmptyInputError: If ``text`` is empty or not a string.
    """

    extractor: IntentExtractor = ModelIntentExtractor(model) if model is not None else PatternIntentExtractor()
    return extractor.extract(text)


def _require_text(text: Any) -> None:
    if not text or not isinstance(text, str):
        raise EmptyInputError("No transcription provided")


def _text_from_blocks(blocks: list[Any]) -> str | None:
    parts: list[str] = []
    for block in blocks:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, Mapping) and isinstance(block.get("text"), str):
            parts.append(block["text"])
    return "".join(parts) or None


def _parse_json_object(content: str) -> Mapping[str, Any] | None:
    match = _JSON_OBJECT.search(content.strip())
    if not match:
        return None
    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError:
        LOGGER.warning("LLM returned unparseable intent payload")
        return None
    if not isinstance(data, Mapping):
        return None
    return data
