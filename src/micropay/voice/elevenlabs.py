"""ElevenLabs speech-to-text and text-to-speech wrappers."""

from __future__ import annotations

import logging

import httpx

LOGGER = logging.getLogger(__name__)


class VoiceProviderError(RuntimeError):
    """Raised when the speech provider is unconfigured or answers non-2xx."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ElevenLabsClient:
    """Transcribe uploaded audio and synthesize spoken replies."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.elevenlabs.io",
        model_id: str = "eleven_multilingual_v2",
        timeout_seconds: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id
        self.timeout_seconds = timeout_seconds
        self._client = http_client or httpx.Client(timeout=timeout_seconds)

    def transcribe(self, audio: bytes | str, *, filename: str = "audio.webm", content_type: str | None = None) -> str:
        """Return the transcript for ``audio``.

        ``audio`` is either the raw recording or an https URL the provider
        fetches itself (sent as ``cloud_storage_url``).
        """

        headers = self._auth_headers()
        if isinstance(audio, str):
            # Sent as a filename-less part so the body stays multipart.
            files = {"cloud_storage_url": (None, audio)}
        else:
            files = {"file": (filename, audio, content_type or "application/octet-stream")}
        response = self._client.post(
            f"{self.base_url}/v1/speech-to-text",
            headers=headers,
            files=files,
            data={"model_id": self.model_id},
            timeout=self.timeout_seconds,
        )
        self._raise_for_status(response, "STT")
        text = response.json().get("text")
        return text if isinstance(text, str) else ""

    def synthesize(self, text: str, voice_id: str) -> bytes:
        """Return audio bytes speaking ``text`` with ``voice_id``."""

        headers = {**self._auth_headers(), "Content-Type": "application/json"}
        response = self._client.post(
            f"{self.base_url}/v1/text-to-speech/{voice_id}",
            headers=headers,
            json={"text": text, "model_id": self.model_id},
            timeout=self.timeout_seconds,
        )
        self._raise_for_status(response, "TTS")
        return response.content

    def close(self) -> None:
        self._client.close()

    def _auth_headers(self) -> dict[str, str]:
        if not self.api_key:
            raise VoiceProviderError("Missing ElevenLabs API key")
        return {"xi-api-key": self.api_key}

    @staticmethod
    def _raise_for_status(response: httpx.Response, label: str) -> None:
        if response.is_success:
            return
        LOGGER.error("ElevenLabs %s error: %s", label, response.status_code)
        raise VoiceProviderError(
            f"ElevenLabs {label} error: {response.status_code} - {response.text}",
            status_code=response.status_code,
            body=response.text,
        )
