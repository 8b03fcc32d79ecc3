"""ElevenLabs text-to-speech over HTTP."""

from __future__ import annotations

import logging

import httpx

from receptionist.config import settings
from receptionist.models import Language

log = logging.getLogger("receptionist.tts")

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"


class TTSError(Exception):
    pass


class ElevenLabsSynthesizer:
    """``synthesize(text, language_tag) -> mp3 bytes``."""

    def __init__(self, api_key: str | None = None, timeout: float = 30.0) -> None:
        self.api_key = settings.elevenlabs_api_key if api_key is None else api_key
        self._timeout = timeout

    def voice_for(self, language_tag: str) -> str:
        if language_tag == Language.HINDI.value:
            return settings.eleven_voice_id_hi or settings.eleven_voice_id
        return settings.eleven_voice_id_en or settings.eleven_voice_id

    async def synthesize(self, text: str, language_tag: str = Language.ENGLISH.value) -> bytes:
        voice_id = self.voice_for(language_tag)
        if not self.api_key or not voice_id:
            raise TTSError("ElevenLabs API key or voice id not configured")

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(
                ELEVENLABS_URL.format(voice_id=voice_id),
                headers={
                    "xi-api-key": self.api_key,
                    "Content-Type": "application/json",
                    "Accept": "audio/mpeg",
                },
                json={
                    "text": text,
                    "model_id": settings.eleven_model_id,
                    "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
                },
            )
            resp.raise_for_status()
        log.debug("TTS %d chars (%s) → %d bytes", len(text), language_tag, len(resp.content))
        return resp.content
