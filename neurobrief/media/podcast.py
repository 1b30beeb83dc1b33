"""
Daily two-host podcast: script from the top stories, voiced per speaker.

Steps:
1. The completion service writes a dialogue script from the top 5 summarised articles
2. Each segment is voiced with the speaker's configured voice
3. Segments are concatenated with ffmpeg when it is installed
4. Episode metadata is written next to the audio
"""

import json
import math
import shutil
import subprocess
from datetime import date
from pathlib import Path

from pydantic import ValidationError

from neurobrief.analyze.prompts import PODCAST_STORY, PODCAST_SYSTEM, PODCAST_USER
from neurobrief.analyze.validator import extract_array, strip_markdown_fence
from neurobrief.errors import InsufficientInputError, MalformedResponseError
from neurobrief.llm import CompletionClient, SpeechClient
from neurobrief.logging_config import get_logger
from neurobrief.models import Article, PodcastEpisode, PodcastScript, PodcastSegment
from neurobrief.resilience import CallPolicy, Err, Ok

logger = get_logger("podcast")

SHOW_NAME = "Neurotech Brief"
MAX_STORIES = 5
MIN_STORIES = 2
WORDS_PER_MINUTE = 150
PODCAST_URL_PREFIX = "/podcast/"


def podcast_url(path: Path, output_dir: Path) -> str:
    """Served location of a file under the podcast directory."""
    return PODCAST_URL_PREFIX + path.relative_to(output_dir).as_posix()


def select_stories(articles: list[Article], limit: int = MAX_STORIES) -> list[Article]:
    summarised = [a for a in articles if a.summary]
    return sorted(summarised, key=lambda a: a.relevance_score, reverse=True)[:limit]


def build_script_prompt(stories: list[Article], run_date: date) -> str:
    rendered = "\n\n".join(
        PODCAST_STORY.format(
            number=number,
            title=story.title,
            source=story.source,
            summary=story.summary,
            tags=", ".join(story.tags),
        )
        for number, story in enumerate(stories, start=1)
    )
    return PODCAST_USER.format(date=run_date.strftime("%B %d, %Y"), stories=rendered)


def parse_script(raw: str | None) -> list[PodcastSegment]:
    """Segments from a script response, dropping any malformed ones."""
    if raw is None or not raw.strip():
        raise MalformedResponseError("null_response", "empty script response")
    try:
        parsed = json.loads(strip_markdown_fence(raw))
    except json.JSONDecodeError as exc:
        raise MalformedResponseError("parse_error", f"script is not valid JSON: {exc}") from exc

    items = extract_array(parsed)
    if items is None:
        raise MalformedResponseError("invalid_structure", "script does not contain an array")

    segments: list[PodcastSegment] = []
    for item in items:
        try:
            segments.append(PodcastSegment.model_validate(item))
        except ValidationError:
            continue
    if not segments:
        raise MalformedResponseError(
            "no_valid_items", f"none of {len(items)} script segments were valid"
        )
    return segments


async def generate_script(
    articles: list[Article],
    *,
    client: CompletionClient,
    policy: CallPolicy,
    run_date: date,
) -> PodcastScript:
    """
    Write the episode script.

    Raises:
        InsufficientInputError: fewer than two summarised articles
        MalformedResponseError: the script response is unusable
        Exception: the provider call failed after retries
    """
    stories = select_stories(articles)
    if len(stories) < MIN_STORIES:
        raise InsufficientInputError(
            f"Need at least {MIN_STORIES} summarised articles for a podcast, got {len(stories)}"
        )

    prompt = build_script_prompt(stories, run_date)
    result = await policy.call(
        lambda: client.complete(prompt, PODCAST_SYSTEM, max_tokens=4000, temperature=0.7),
        label="podcast script",
    )
    if isinstance(result, Err):
        raise result.error
    segments = parse_script(result.value)

    return PodcastScript(
        title=f"{SHOW_NAME} - {run_date.strftime('%b %d')}",
        description="Today's top neurotech stories: " + "; ".join(s.title for s in stories),
        segments=segments,
        article_ids=[s.id for s in stories],
    )


def estimate_duration(segments: list[PodcastSegment]) -> int:
    return sum(
        math.ceil(len(segment.text.split()) / WORDS_PER_MINUTE) * 60 for segment in segments
    )


def concatenate_audio(segment_files: list[Path], output_path: Path) -> Path:
    """
    Join MP3 segments with ffmpeg's concat demuxer.

    Raises:
        FileNotFoundError: ffmpeg is not installed
        subprocess.CalledProcessError: ffmpeg failed
    """
    ffmpeg = shutil.which("ffmpeg")
    if ffmpeg is None:
        raise FileNotFoundError("ffmpeg not found; install it to concatenate audio segments")

    list_path = output_path.with_suffix(".txt")
    list_path.write_text("\n".join(f"file '{path.resolve()}'" for path in segment_files))
    try:
        subprocess.run(
            [ffmpeg, "-y", "-f", "concat", "-safe", "0", "-i", str(list_path)]
            + ["-c", "copy", str(output_path)],
            check=True,
            capture_output=True,
        )
    finally:
        list_path.unlink(missing_ok=True)
    return output_path


async def produce_episode(
    script: PodcastScript,
    *,
    voices: SpeechClient | None,
    policy: CallPolicy,
    output_dir: Path,
    run_date: date,
    max_segments: int | None = None,
) -> PodcastEpisode:
    """
    Save the script, voice its segments and write episode metadata.

    Without a voice client the episode is script-only (no audio url).
    """
    episode_id = f"ep-{run_date.isoformat()}"
    segment_dir = output_dir / "segments"
    segment_dir.mkdir(parents=True, exist_ok=True)

    script_path = output_dir / f"{episode_id}-script.json"
    script_path.write_text(json.dumps(script.to_json_dict(), indent=2))
    logger.info(
        f"Script saved: {script_path} "
        f"({len(script.segments)} segments, {script.char_count} chars)"
    )

    segment_files: list[Path] = []
    if voices is not None:
        segments = script.segments[:max_segments] if max_segments else script.segments
        for index, segment in enumerate(segments):
            match await policy.call(
                lambda: voices.synthesize(segment.text, segment.speaker),
                label=f"voice segment {index + 1}",
            ):
                case Ok(audio):
                    path = segment_dir / f"{episode_id}-{index:03d}-{segment.speaker}.mp3"
                    path.write_bytes(audio)
                    segment_files.append(path)
                case Err(error):
                    logger.warning(f"Segment {index + 1}/{len(segments)} failed: {error}")

            if index < len(segments) - 1:
                await policy.pause()
    else:
        logger.info("No voice credentials; writing script-only episode")

    audio_path: Path | None = segment_files[0] if segment_files else None
    if len(segment_files) > 1:
        try:
            audio_path = concatenate_audio(segment_files, output_dir / f"{episode_id}.mp3")
        except (FileNotFoundError, subprocess.CalledProcessError) as exc:
            logger.warning(f"Concatenation failed, using first segment: {exc}")

    episode = PodcastEpisode(
        id=episode_id,
        title=script.title,
        description=script.description,
        audio_url=podcast_url(audio_path, output_dir) if audio_path else "",
        segment_files=[str(path) for path in segment_files],
        duration=estimate_duration(script.segments) if segment_files else 0,
        date=run_date.isoformat(),
        article_ids=script.article_ids,
        char_count=script.char_count,
    )

    metadata_path = output_dir / f"{episode_id}.json"
    metadata_path.write_text(json.dumps(episode.to_json_dict(), indent=2))
    logger.info(f"Episode metadata saved: {metadata_path}")
    return episode
