"""AI provider factory and shared exports."""

from typing import Literal

from neurobrief.errors import ConfigurationError

from .base import CompletionClient, EmbeddingClient, LLMError, ModerationClient, SpeechClient

Provider = Literal["gemini", "openai", "anthropic"]

PROVIDER_DEFAULTS: dict[Provider, str] = {
    "gemini": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
}


def create_client(
    provider: Provider,
    api_key: str | None,
    model: str | None = None,
) -> CompletionClient:
    """Create a completion client for the given provider."""
    if provider not in PROVIDER_DEFAULTS:
        raise LLMError(f"Unknown LLM provider: {provider}")
    if not api_key:
        raise ConfigurationError(f"No API key configured for provider '{provider}'")

    resolved_model = model or PROVIDER_DEFAULTS[provider]

    try:
        match provider:
            case "gemini":
                from .gemini import GeminiClient

                return GeminiClient(api_key=api_key, model=resolved_model)
            case "openai":
                from .openai import OpenAIClient

                return OpenAIClient(api_key=api_key, model=resolved_model)
            case "anthropic":
                from .anthropic import AnthropicClient

                return AnthropicClient(api_key=api_key, model=resolved_model)
    except ImportError as exc:
        raise LLMError(
            f"Missing dependency for provider '{provider}'. "
            f"Install the '{provider}' SDK to continue."
        ) from exc

    raise LLMError(f"Unknown LLM provider: {provider}")


__all__ = [
    "CompletionClient",
    "EmbeddingClient",
    "LLMError",
    "ModerationClient",
    "PROVIDER_DEFAULTS",
    "Provider",
    "SpeechClient",
    "create_client",
]
