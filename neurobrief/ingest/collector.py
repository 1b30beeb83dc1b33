"""Collect readable text from every configured source (the scrape phase)."""

from collections.abc import Callable
from datetime import datetime

import httpx

from neurobrief.errors import PipelineError
from neurobrief.logging_config import get_logger
from neurobrief.models import RawDocument, SourceType
from neurobrief.resilience import CallPolicy, Err, Ok

from .feeds import fetch_feed, render_feed_listing
from .pages import PageRenderer
from .reddit import fetch_subreddit, render_subreddit_listing
from .search import fetch_search_results, render_search_listing, search_window

logger = get_logger("collector")

SOURCE_TYPES: dict[str, SourceType] = {"search": "newsapi", "reddit": "reddit"}


async def collect_documents(
    sources: dict[str, dict],
    *,
    renderer: PageRenderer,
    http: httpx.AsyncClient,
    policy: CallPolicy,
    now: Callable[[], datetime],
    search_api_key: str | None = None,
) -> list[RawDocument]:
    """
    Fetch each source sequentially.

    Page sources are rendered to text; feed, search and subreddit sources are
    condensed to an entry listing. A failing source is logged and skipped, as
    is a search source when no search API key is configured.

    Raises:
        PipelineError: sources were configured but none produced text
    """
    documents: list[RawDocument] = []
    window = search_window(now())

    for index, (name, entry) in enumerate(sources.items()):
        url = entry["url"]
        kind = entry.get("kind", "page")
        if kind == "search" and not search_api_key:
            logger.warning(
                f"{name}: NEWSAPI_KEY not set, skipping search source",
                extra={"context": {"source": name}},
            )
            continue

        logger.info(f"Collecting {name} ({kind})")

        if kind == "feed":

            async def fetch(url: str = url) -> str:
                return render_feed_listing(await fetch_feed(http, url))

        elif kind == "search":

            async def fetch(query: str = entry["query"]) -> str:
                stories = await fetch_search_results(
                    http, query, api_key=search_api_key, window=window
                )
                return render_search_listing(query, stories)

        elif kind == "reddit":

            async def fetch(url: str = url) -> str:
                return render_subreddit_listing(await fetch_subreddit(http, url))

        else:

            async def fetch(url: str = url) -> str:
                return await renderer.render(url)

        match await policy.call(fetch, label=f"collect {name}"):
            case Ok(text) if text.strip():
                documents.append(
                    RawDocument(
                        source=name,
                        url=url,
                        kind=kind,
                        source_type=SOURCE_TYPES.get(kind, "scrape"),
                        text=text,
                        fetched_at=now().isoformat(),
                    )
                )
            case Ok():
                logger.warning(f"{name}: no readable text", extra={"context": {"source": name}})
            case Err(error):
                logger.warning(
                    f"{name}: collection failed: {error}",
                    extra={"context": {"source": name, "error": type(error).__name__}},
                )

        if index < len(sources) - 1:
            await policy.pause()

    if sources and not documents:
        raise PipelineError(f"No documents collected from {len(sources)} sources")

    logger.info(f"Collected {len(documents)}/{len(sources)} sources")
    return documents
