"""Spoken output: per-article audio and the daily podcast."""

from .audio import generate_article_audio
from .elevenlabs import ElevenLabsClient
from .podcast import concatenate_audio, generate_script, produce_episode

__all__ = [
    "ElevenLabsClient",
    "concatenate_audio",
    "generate_article_audio",
    "generate_script",
    "produce_episode",
]
