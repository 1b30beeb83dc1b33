"""
Wire collaborators, call policies and phase handlers into a runnable pipeline.

Every external call class (page fetch, completion, moderation, embedding,
speech, voice) gets its own circuit breaker so one failing provider cannot
trip calls to another. Phase outputs are plain JSON so a resumed phase sees
exactly what a fresh one would.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from typing import Any

import httpx

from neurobrief.analyze import (
    Enricher,
    build_corpus,
    embed_articles,
    enrich_top_articles,
    extract_articles,
    mark_all_passed,
    moderate_articles,
)
from neurobrief.config import Settings
from neurobrief.errors import ConfigurationError, InsufficientInputError, MalformedResponseError
from neurobrief.ingest import HttpPageRenderer, PageRenderer
from neurobrief.ingest.collector import collect_documents
from neurobrief.llm import (
    PROVIDER_DEFAULTS,
    CompletionClient,
    EmbeddingClient,
    ModerationClient,
    SpeechClient,
    create_client,
)
from neurobrief.logging_config import get_logger
from neurobrief.media import (
    ElevenLabsClient,
    generate_article_audio,
    generate_script,
    produce_episode,
)
from neurobrief.models import Article, RawDocument
from neurobrief.resilience import CallPolicy, CircuitBreaker, Result
from neurobrief.resilience.retry import Sleep
from neurobrief.storage import open_checkpoints

from .phases import PipelinePhase
from .sequencer import PhaseContext, PhaseFailure, PhaseHandler, PhaseSequencer, PipelineRun

logger = get_logger("runner")


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class PipelineServices:
    """External collaborators for one run. Missing clients are None."""

    renderer: PageRenderer
    http: httpx.AsyncClient
    completion: CompletionClient | None = None
    moderation: ModerationClient | None = None
    embeddings: EmbeddingClient | None = None
    speech: SpeechClient | None = None
    voices: SpeechClient | None = None
    sleep: Sleep = asyncio.sleep
    clock: Callable[[], datetime] = utc_now
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    def require(self, name: str) -> Any:
        """The named client, or ConfigurationError when it was not configured."""
        client = getattr(self, name)
        if client is None:
            raise ConfigurationError(f"No {name} client configured; check API keys")
        return client

    async def aclose(self) -> None:
        for close in self.closers:
            await close()


def build_services(settings: Settings) -> PipelineServices:
    """Create real clients from settings. Clients whose keys are missing stay None."""
    timeout = settings.request_timeout_seconds
    http = httpx.AsyncClient(follow_redirects=True, timeout=timeout)
    renderer = HttpPageRenderer(timeout=timeout)
    services = PipelineServices(renderer=renderer, http=http)
    services.closers.extend([http.aclose, renderer.aclose])

    if settings.llm_api_key:
        services.completion = create_client(
            provider=settings.llm_provider,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
        )

    if openai_key := settings.auxiliary_openai_key:
        from neurobrief.llm.openai import OpenAIClient

        model = settings.llm_model if settings.llm_provider == "openai" else None
        auxiliary = OpenAIClient(api_key=openai_key, model=model or PROVIDER_DEFAULTS["openai"])
        services.moderation = auxiliary
        services.embeddings = auxiliary
        services.speech = auxiliary

    if settings.elevenlabs_api_key:
        voices = ElevenLabsClient(
            api_key=settings.elevenlabs_api_key,
            voices={
                "nova": settings.elevenlabs_voice_nova,
                "dr-renn": settings.elevenlabs_voice_renn,
            },
        )
        services.voices = voices
        services.closers.append(voices.aclose)

    return services


def load_articles(payload: dict[str, Any]) -> list[Article]:
    return [Article.model_validate(item) for item in payload["articles"]]


def dump_articles(articles: list[Article]) -> dict[str, Any]:
    return {"articles": [article.to_json_dict() for article in articles]}


def build_phase_handlers(
    services: PipelineServices,
    settings: Settings,
    sources: dict[str, dict],
) -> dict[PipelinePhase, PhaseHandler]:
    """One async handler per phase, each reading earlier outputs from its context."""
    request_delay_s = settings.request_delay_ms / 1000

    def policy(name: str, delay_s: float = request_delay_s) -> CallPolicy:
        return CallPolicy(
            breaker=CircuitBreaker(name, settings.breaker_config),
            retry=settings.retry_config,
            timeout_s=settings.request_timeout_seconds,
            delay_s=delay_s,
            sleep=services.sleep,
        )

    fetch_policy = policy("fetch", delay_s=settings.source_delay_ms / 1000)
    content_policy = replace(fetch_policy, delay_s=request_delay_s)
    completion_policy = policy("completion")
    moderation_policy = policy("moderation")
    embedding_policy = policy("embedding")
    speech_policy = policy("speech")
    voice_policy = policy("voice")

    async def scrape(context: PhaseContext) -> dict[str, Any]:
        documents = await collect_documents(
            sources,
            renderer=services.renderer,
            http=services.http,
            policy=fetch_policy,
            now=services.clock,
            search_api_key=settings.newsapi_key,
        )
        return {"documents": [document.to_json_dict() for document in documents]}

    async def gpt(context: PhaseContext) -> dict[str, Any]:
        documents = [RawDocument.model_validate(item) for item in context.previous["documents"]]
        articles = await extract_articles(
            documents,
            client=services.require("completion"),
            policy=completion_policy,
            now=services.clock,
            min_valid_items=settings.min_valid_items,
        )
        return dump_articles(articles)

    async def enrich(context: PhaseContext) -> dict[str, Any]:
        enricher = Enricher(
            renderer=services.renderer,
            client=services.require("completion"),
            fetch_policy=content_policy,
            summary_policy=completion_policy,
        )
        articles = await enrich_top_articles(
            load_articles(context.previous), enricher, limit=settings.enrich_limit
        )
        return dump_articles(articles)

    async def moderate(context: PhaseContext) -> dict[str, Any]:
        articles = load_articles(context.previous)
        if settings.dry_run:
            logger.info("DRY RUN: marking all articles as passed moderation")
            return dump_articles(mark_all_passed(articles))
        moderated = await moderate_articles(
            articles, client=services.require("moderation"), policy=moderation_policy
        )
        return dump_articles(moderated)

    async def embed(context: PhaseContext) -> dict[str, Any]:
        articles = load_articles(context.previous)
        if settings.dry_run:
            logger.info("DRY RUN: skipping embeddings")
            return dump_articles(articles)
        embedded = await embed_articles(
            articles,
            client=services.require("embeddings"),
            policy=embedding_policy,
            batch_size=settings.embedding_batch_size,
        )
        return dump_articles(embedded)

    async def audio(context: PhaseContext) -> dict[str, Any]:
        voiced = await generate_article_audio(
            load_articles(context.previous),
            client=None if settings.dry_run else services.require("speech"),
            policy=speech_policy,
            audio_dir=settings.audio_dir,
            limit=settings.audio_limit,
            dry_run=settings.dry_run,
        )
        return dump_articles(voiced)

    async def podcast(context: PhaseContext) -> dict[str, Any]:
        if settings.dry_run:
            logger.info("DRY RUN: skipping podcast")
            return {"episode": None, "skipped": "dry run"}

        run_date = date.fromisoformat(context.run_date)
        try:
            script = await generate_script(
                load_articles(context.previous),
                client=services.require("completion"),
                policy=completion_policy,
                run_date=run_date,
            )
        except (InsufficientInputError, MalformedResponseError) as exc:
            logger.warning(
                f"Podcast skipped: {exc}",
                extra={
                    "context": {
                        "phase": context.phase.value,
                        "code": getattr(exc, "code", None),
                    }
                },
            )
            return {"episode": None, "skipped": str(exc)}

        episode = await produce_episode(
            script,
            voices=services.voices,
            policy=voice_policy,
            output_dir=settings.podcast_dir,
            run_date=run_date,
            max_segments=settings.podcast_max_segments,
        )
        return {"episode": episode.to_json_dict(), "skipped": None}

    async def final(context: PhaseContext) -> dict[str, Any]:
        # The podcast output holds no articles; rank what the audio phase produced
        articles = load_articles(context.outputs[PipelinePhase.AUDIO])
        corpus = build_corpus(articles, context.run_date, services.clock())
        logger.info(f"Final corpus: {corpus.metadata.total_articles} articles")
        return corpus.to_json_dict()

    return {
        PipelinePhase.SCRAPE: scrape,
        PipelinePhase.GPT: gpt,
        PipelinePhase.ENRICH: enrich,
        PipelinePhase.MODERATE: moderate,
        PipelinePhase.EMBED: embed,
        PipelinePhase.AUDIO: audio,
        PipelinePhase.PODCAST: podcast,
        PipelinePhase.FINAL: final,
    }


def build_sequencer(
    settings: Settings,
    services: PipelineServices,
    sources: dict[str, dict],
) -> PhaseSequencer:
    if settings.checkpoint_dir is None:
        raise ConfigurationError("Checkpoint directory is not configured")
    checkpoints = open_checkpoints(settings.checkpoint_backend, settings.checkpoint_dir)
    return PhaseSequencer(checkpoints, build_phase_handlers(services, settings, sources))


async def run_pipeline(
    settings: Settings,
    run_date: str,
    sources: dict[str, dict],
    *,
    services: PipelineServices | None = None,
    rerun_from: PipelinePhase | None = None,
    stop_after: PipelinePhase | None = None,
) -> Result[PipelineRun, PhaseFailure]:
    """Run (or resume) the pipeline for ``run_date``, closing any clients it created."""
    owned = services is None
    active = services if services is not None else build_services(settings)
    try:
        sequencer = build_sequencer(settings, active, sources)
        return await sequencer.run(run_date, rerun_from=rerun_from, stop_after=stop_after)
    finally:
        if owned:
            await active.aclose()
