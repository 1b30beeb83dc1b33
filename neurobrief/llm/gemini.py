"""Google Gemini implementation of the completion client."""

from google import genai
from google.genai import types

from .base import LLMError


class GeminiClient:
    """Google Gemini provider."""

    def __init__(self, api_key: str, model: str, timeout_ms: int = 120_000):
        self.client = genai.Client(api_key=api_key)
        self.model = model
        self.timeout_ms = timeout_ms

    async def complete(
        self,
        prompt: str,
        system: str,
        *,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> str | None:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system,
                    max_output_tokens=max_tokens,
                    temperature=temperature,
                    http_options=types.HttpOptions(timeout=self.timeout_ms),
                ),
            )
        except Exception as exc:  # pragma: no cover - provider SDK behavior
            raise LLMError(f"Gemini API call failed: {exc}") from exc

        return getattr(response, "text", None) or None
