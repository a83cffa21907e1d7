"""Factory helpers that instantiate core services based on configuration.

These helpers centralize the logic for honoring the environment-specific
settings declared in :mod:`micropay.settings`. Without a Circle API key the
transfer executor is built in demo mode; with the ``mock`` LLM provider the
intent extractor is pattern-only.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from micropay.intent import IntentExtractor, ModelIntentExtractor, PatternIntentExtractor
from micropay.observability import get_observability
from micropay.payments import (
    AliasTable,
    AuditLogger,
    CircleTransferClient,
    RecipientResolver,
    RetryPolicy,
    TransferExecutor,
)
from micropay.services.payment_flow import PaymentFlowService
from micropay.settings import Settings, get_settings
from micropay.voice import ElevenLabsClient


def build_chat_model(settings: Settings | None = None) -> Any | None:
    """Return the configured LangChain chat model, or ``None`` for ``mock``."""

    settings = settings or get_settings()
    provider = settings.llm.provider
    if provider == "mock":
        return None

    if provider == "ollama":
        from langchain_ollama import ChatOllama

        return ChatOllama(
            model=settings.llm.chat_model,
            base_url=settings.llm.ollama_base_url,
            temperature=settings.llm.temperature,
            num_predict=settings.llm.max_tokens,
        )
    raise NotImplementedError(f"Unsupported LLM provider '{provider}'")


def build_intent_extractor(settings: Settings | None = None) -> IntentExtractor:
    """Model-backed extractor when a model is configured, else pattern-only."""

    model = build_chat_model(settings)
    if model is None:
        return PatternIntentExtractor()
    return ModelIntentExtractor(model)


def build_audit_logger(settings: Settings | None = None) -> AuditLogger:
    settings = settings or get_settings()
    return AuditLogger(
        observability=get_observability(component="audit", settings=settings),
        event_log_url=settings.audit.event_log_url,
        timeout_seconds=settings.audit.timeout_seconds,
        background=settings.audit.background,
    )


def build_transfer_executor(
    settings: Settings | None = None,
    *,
    audit: AuditLogger | None = None,
) -> TransferExecutor:
    """Return a :class:`TransferExecutor` wired from settings.

    The alias table is parsed once here and shared read-only by every call.
    """

    settings = settings or get_settings()
    circle = settings.circle
    payments = settings.payments
    client = None
    if circle.api_key:
        client = CircleTransferClient(
            api_key=circle.api_key,
            transfer_url=circle.transfer_url,
            timeout_seconds=circle.timeout_seconds,
        )
    return TransferExecutor(
        resolver=RecipientResolver(AliasTable.from_config(payments.recipient_map)),
        audit=audit or build_audit_logger(settings),
        circle_client=client,
        retry_policy=RetryPolicy(
            max_attempts=payments.max_attempts,
            base_delay_ms=payments.backoff_base_ms,
            retryable_statuses=frozenset(payments.retryable_statuses),
        ),
        max_single_amount=Decimal(str(payments.max_single_amount)),
        blockchain=circle.blockchain,
        wallet_id=circle.wallet_id,
        token_address=circle.token_address,
        explorer_base_url=circle.explorer_base_url,
        observability=get_observability(component="payments", settings=settings),
    )


def build_voice_client(settings: Settings | None = None) -> ElevenLabsClient:
    settings = settings or get_settings()
    voice = settings.voice
    return ElevenLabsClient(
        api_key=voice.elevenlabs_api_key,
        base_url=voice.base_url,
        model_id=voice.model_id,
        timeout_seconds=voice.timeout_seconds,
    )


def build_payment_flow(settings: Settings | None = None) -> PaymentFlowService:
    settings = settings or get_settings()
    return PaymentFlowService(
        extractor=build_intent_extractor(settings),
        executor=build_transfer_executor(settings),
        anonymous_user_id=settings.payments.anonymous_user_id,
    )
