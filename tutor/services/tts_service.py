# tutor/services/tts_service.py
import logging
from typing import Optional

import httpx

from tutor.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}/stream"

VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.0,
    "use_speaker_boost": True,
}


class TTSClient:
    """Text-to-speech over the ElevenLabs streaming endpoint."""

    def __init__(self, api_key: str, model_id: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.model_id = model_id
        self._client = httpx.AsyncClient(
            headers={"xi-api-key": api_key, "Accept": "audio/mpeg"},
            timeout=30.0,
            transport=transport,
        )

    async def open_stream(self, text: str, voice_id: str) -> httpx.Response:
        """
        Starts synthesis and returns the open upstream response.
        The caller streams `aiter_bytes()` and must `aclose()` the response.
        """
        body = {"text": text, "model_id": self.model_id, "voice_settings": VOICE_SETTINGS}
        request = self._client.build_request("POST", ELEVENLABS_URL.format(voice_id=voice_id), json=body)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"ElevenLabs request error: {e}")
            raise UpstreamUnavailable("TTS service error") from e

        if response.status_code != 200:
            detail = await response.aread()
            await response.aclose()
            logger.error(f"ElevenLabs error {response.status_code}: {detail.decode(errors='replace')}")
            raise UpstreamUnavailable("TTS service unavailable")
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
