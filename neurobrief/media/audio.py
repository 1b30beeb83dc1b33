"""Spoken summaries for the top articles (the audio phase)."""

import math
from pathlib import Path

from neurobrief.llm import SpeechClient
from neurobrief.logging_config import get_logger
from neurobrief.models import Article
from neurobrief.resilience import CallPolicy, Err, Ok

logger = get_logger("audio")

MAX_TTS_CHARS = 4_000
WORDS_PER_MINUTE = 150
DEFAULT_VOICE = "nova"
AUDIO_URL_PREFIX = "/audio/"


def build_tts_text(article: Article) -> str:
    """Title plus summary, kept under the speech API input limit."""
    summary = article.summary or article.description
    prefix = f"{article.title}. "
    max_len = MAX_TTS_CHARS - len(prefix)
    if len(summary) > max_len:
        summary = summary[:max_len] + "..."
    return prefix + summary


def estimate_duration(text: str) -> int:
    """Seconds of speech at roughly 150 words per minute."""
    return math.ceil(len(text.split()) / WORDS_PER_MINUTE * 60)


def audio_file_name(article_id: str) -> str:
    return f"article_{article_id}.mp3"


async def generate_article_audio(
    articles: list[Article],
    *,
    client: SpeechClient | None,
    policy: CallPolicy,
    audio_dir: Path,
    limit: int = 5,
    dry_run: bool = False,
) -> list[Article]:
    """
    Voice the ``limit`` most relevant summarised articles that have no audio yet.

    An existing file is reused without a call. Failures are logged and skipped.
    """
    audio_dir.mkdir(parents=True, exist_ok=True)
    candidates = sorted(
        (a for a in articles if a.summary and not a.audio_url),
        key=lambda a: a.relevance_score,
        reverse=True,
    )[:limit]

    if not candidates:
        logger.info("No candidates for audio generation")
        return articles

    logger.info(f"Generating audio for {len(candidates)} articles")
    audio_urls: dict[str, str] = {}

    for index, article in enumerate(candidates):
        file_name = audio_file_name(article.id)
        output_path = audio_dir / file_name

        if output_path.exists():
            audio_urls[article.id] = AUDIO_URL_PREFIX + file_name
            continue

        if dry_run or client is None:
            logger.info(f"DRY RUN: would generate audio for {article.title[:50]}")
            continue

        text = build_tts_text(article)
        match await policy.call(
            lambda: client.synthesize(text, DEFAULT_VOICE), label=f"speech {article.id}"
        ):
            case Ok(audio):
                output_path.write_bytes(audio)
                audio_urls[article.id] = AUDIO_URL_PREFIX + file_name
                logger.info(
                    f"Audio generated for {article.title[:50]} (~{estimate_duration(text)}s)"
                )
            case Err(error):
                logger.error(
                    f"Audio generation failed for {article.title[:50]}: {error}",
                    extra={"context": {"article": article.id, "error": type(error).__name__}},
                )

        if index < len(candidates) - 1:
            await policy.pause()

    return [
        article.evolve(audio_url=audio_urls.get(article.id)) for article in articles
    ]
