"""OpenAI implementation of the completion, moderation, embedding and speech clients."""

from typing import Any

from openai import AsyncOpenAI

from neurobrief.models import ModerationResult

from .base import LLMError

MODERATION_MODEL = "omni-moderation-latest"
EMBEDDING_MODEL = "text-embedding-3-small"
SPEECH_MODEL = "tts-1"


class OpenAIClient:
    """OpenAI provider."""

    def __init__(self, api_key: str, model: str, timeout: float = 120.0):
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model

    async def complete(
        self,
        prompt: str,
        system: str,
        *,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> str | None:
        """Chat completion returning the raw message text."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as exc:  # pragma: no cover - provider SDK behavior
            raise LLMError(f"OpenAI API call failed: {exc}") from exc

        message = response.choices[0].message if response.choices else None
        return _extract_openai_text(message)

    async def moderate(self, text: str) -> ModerationResult:
        try:
            response = await self.client.moderations.create(
                model=MODERATION_MODEL, input=text
            )
        except Exception as exc:  # pragma: no cover - provider SDK behavior
            raise LLMError(f"OpenAI moderation call failed: {exc}") from exc

        if not response.results:
            raise LLMError("Empty moderation response")
        result = response.results[0]
        categories = result.categories.model_dump(by_alias=True)
        return ModerationResult(
            flagged=bool(result.flagged),
            categories={name: bool(hit) for name, hit in categories.items()},
        )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self.client.embeddings.create(
                model=EMBEDDING_MODEL, input=texts
            )
        except Exception as exc:  # pragma: no cover - provider SDK behavior
            raise LLMError(f"OpenAI embedding call failed: {exc}") from exc

        ordered = sorted(response.data, key=lambda item: item.index)
        if len(ordered) != len(texts):
            raise LLMError(
                f"Embedding count mismatch: sent {len(texts)}, got {len(ordered)}"
            )
        return [list(item.embedding) for item in ordered]

    async def synthesize(self, text: str, voice: str = "nova") -> bytes:
        try:
            response = await self.client.audio.speech.create(
                model=SPEECH_MODEL, voice=voice, input=text
            )
        except Exception as exc:  # pragma: no cover - provider SDK behavior
            raise LLMError(f"OpenAI speech call failed: {exc}") from exc
        return response.content


def _extract_openai_text(message: Any) -> str | None:
    """Extract text content from an OpenAI response message."""
    if message is None:
        return None

    content = getattr(message, "content", None)
    if content is None or isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts: list[str] = []
        for part in content:
            if isinstance(part, dict):
                if part.get("type") == "text" and isinstance(part.get("text"), str):
                    text_parts.append(part["text"])
            else:
                text_value = getattr(part, "text", None)
                if isinstance(text_value, str):
                    text_parts.append(text_value)
        return "\n".join(text_parts)

    return str(content)
