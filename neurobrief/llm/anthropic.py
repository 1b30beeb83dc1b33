"""Anthropic implementation of the completion client."""

from typing import Any

from anthropic import AsyncAnthropic

from .base import LLMError


class AnthropicClient:
    """Anthropic provider."""

    def __init__(self, api_key: str, model: str, timeout: float = 120.0):
        self.client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model

    async def complete(
        self,
        prompt: str,
        system: str,
        *,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> str | None:
        try:
            response = await self.client.messages.create(
                model=self.model,
                system=system,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as exc:  # pragma: no cover - provider SDK behavior
            raise LLMError(f"Anthropic API call failed: {exc}") from exc

        return _extract_anthropic_text(response.content) or None


def _extract_anthropic_text(blocks: Any) -> str:
    """Extract text content from Anthropic response blocks."""
    if not blocks:
        return ""

    text_parts: list[str] = []
    for block in blocks:
        if isinstance(block, dict):
            if block.get("type") == "text" and isinstance(block.get("text"), str):
                text_parts.append(block["text"])
            continue

        block_type = getattr(block, "type", None)
        block_text = getattr(block, "text", None)
        if block_type == "text" and isinstance(block_text, str):
            text_parts.append(block_text)

    return "\n".join(text_parts)
