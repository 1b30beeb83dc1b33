"""Provider-agnostic collaborator interfaces and shared types."""

from typing import Protocol

from neurobrief.models import ModerationResult


class LLMError(Exception):
    """Raised when an AI provider call fails."""


class CompletionClient(Protocol):
    """Free-form text completion. The text may be empty or malformed."""

    async def complete(
        self,
        prompt: str,
        system: str,
        *,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> str | None:
        ...


class ModerationClient(Protocol):
    async def moderate(self, text: str) -> ModerationResult:
        ...


class EmbeddingClient(Protocol):
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """One vector per input, in input order."""
        ...


class SpeechClient(Protocol):
    async def synthesize(self, text: str, voice: str) -> bytes:
        """Return encoded audio (mp3) for ``text``."""
        ...
