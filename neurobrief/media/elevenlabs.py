"""ElevenLabs text-to-speech client for the two podcast hosts."""

import httpx

from neurobrief.llm import LLMError

ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"
MODEL_ID = "eleven_monolingual_v1"
VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}


class ElevenLabsClient:
    """Synthesizes speech with one configured voice id per speaker."""

    def __init__(
        self,
        api_key: str,
        voices: dict[str, str],
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.voices = voices
        self._client = client or httpx.AsyncClient(base_url=ELEVENLABS_API_BASE, timeout=timeout)

    async def synthesize(self, text: str, voice: str) -> bytes:
        """Audio for ``text`` spoken by ``voice`` (a speaker name or raw voice id)."""
        voice_id = self.voices.get(voice, voice)
        response = await self._client.post(
            f"/text-to-speech/{voice_id}",
            headers={"xi-api-key": self.api_key, "Content-Type": "application/json"},
            json={"text": text, "model_id": MODEL_ID, "voice_settings": VOICE_SETTINGS},
        )
        if response.status_code >= 400:
            raise LLMError(f"ElevenLabs API error: {response.status_code} {response.text[:200]}")
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()
