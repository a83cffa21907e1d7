"""Speech integrations used by the voice endpoint."""

from .elevenlabs import ElevenLabsClient, VoiceProviderError

__all__ = ["ElevenLabsClient", "VoiceProviderError"]
