"""Voice payment API router."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from micropay.services.factories import build_payment_flow, build_voice_client
from micropay.services.payment_flow import PaymentFlowService, PaymentOutcome
from micropay.settings import Settings, get_settings
from micropay.voice import ElevenLabsClient, VoiceProviderError

router = APIRouter(prefix="/voice", tags=["voice"])
LOGGER = logging.getLogger(__name__)
AUDIO_MEDIA_TYPE = "audio/mpeg"


@dataclass(slots=True)
class VoiceSubmission:
    """Text plus caller identity pulled from a JSON or multipart request."""

    text: str | None
    user_id: str | None = None
    trace_id: str | None = None


@lru_cache(maxsize=1)
def get_payment_flow() -> PaymentFlowService:
    """Dependency provider returning the shared PaymentFlowService instance."""

    return build_payment_flow()


@lru_cache(maxsize=1)
def get_voice_client() -> ElevenLabsClient:
    """Dependency provider returning the shared ElevenLabs client."""

    return build_voice_client()


def shutdown_services() -> None:
    """Let in-flight audit deliveries finish before the process exits."""

    if get_payment_flow.cache_info().currsize:
        get_payment_flow().executor.audit.flush(timeout=5.0)


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


async def read_submission(request: Request, voice_client: ElevenLabsClient) -> VoiceSubmission:
    """Extract the instruction text from JSON or multipart form data.

    Multipart requests may carry an ``audio`` file, which is transcribed. Both
    forms accept an ``audioUrl`` the speech provider fetches itself. Audio wins
    over the ``text`` field when both are present.
    """

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        text = _optional_str(form.get("text")) or _optional_str(form.get("transcription"))
        audio = form.get("audio")
        audio_url = _optional_str(form.get("audioUrl"))
        if isinstance(audio, UploadFile):
            data = await audio.read()
            if data:
                text = await run_in_threadpool(
                    voice_client.transcribe,
                    data,
                    filename=audio.filename or "audio.webm",
                    content_type=audio.content_type,
                )
        elif audio_url:
            text = await run_in_threadpool(voice_client.transcribe, audio_url)
        return VoiceSubmission(
            text=text,
            user_id=_optional_str(form.get("userId")),
            trace_id=_optional_str(form.get("traceId")),
        )

    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    text = _optional_str(body.get("transcription")) or _optional_str(body.get("text"))
    audio_url = _optional_str(body.get("audioUrl"))
    if audio_url:
        text = await run_in_threadpool(voice_client.transcribe, audio_url)
    return VoiceSubmission(
        text=text,
        user_id=_optional_str(body.get("userId")),
        # Client-supplied only: a server-generated trace id would break idempotency.
        trace_id=_optional_str(body.get("traceId")),
    )


async def _run_flow(request: Request, flow: PaymentFlowService, voice_client: ElevenLabsClient) -> PaymentOutcome:
    submission = await read_submission(request, voice_client)
    return await run_in_threadpool(
        flow.handle_text,
        submission.text,
        user_id=submission.user_id,
        trace_id=submission.trace_id,
    )


@router.post("", summary="Parse a payment instruction and execute the transfer")
async def voice_payment(
    request: Request,
    flow: PaymentFlowService = Depends(get_payment_flow),
    voice_client: ElevenLabsClient = Depends(get_voice_client),
) -> JSONResponse:
    """Return a JSON confirmation or a structured failure."""

    try:
        outcome = await _run_flow(request, flow, voice_client)
    except Exception as exc:
        LOGGER.exception("Voice route error")
        return JSONResponse({"success": False, "error": str(exc)}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(outcome.to_response(), status_code=outcome.status_code)


@router.post("/speak", summary="Same as /voice but answers with synthesized speech")
async def voice_payment_speech(
    request: Request,
    flow: PaymentFlowService = Depends(get_payment_flow),
    voice_client: ElevenLabsClient = Depends(get_voice_client),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Speak the outcome so the caller always hears something."""

    try:
        outcome = await _run_flow(request, flow, voice_client)
    except VoiceProviderError as exc:
        LOGGER.error("Speech-to-text failed: %s", exc)
        outcome = PaymentOutcome(success=False, status_code=500, error=str(exc))
    except Exception as exc:
        LOGGER.exception("Voice route error")
        outcome = PaymentOutcome(success=False, status_code=500, error=str(exc))

    try:
        audio = await run_in_threadpool(voice_client.synthesize, outcome.spoken_text(), settings.voice.voice_id)
    except VoiceProviderError as exc:
        LOGGER.error("Text-to-speech failed: %s", exc)
        body = outcome.to_response()
        body["speechError"] = str(exc)
        return JSONResponse(body, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(content=audio, media_type=AUDIO_MEDIA_TYPE, status_code=outcome.status_code)
