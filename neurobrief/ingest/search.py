"""
News search API queries, condensed into text listings for article extraction.
"""

from datetime import date, datetime, timedelta
from urllib.parse import urlencode

import httpx
from dateutil.parser import ParserError
from dateutil.parser import parse as parse_date

from neurobrief.logging_config import get_logger

from .feeds import FEED_HEADERS, MAX_SUMMARY_CHARS

logger = get_logger("search")

NEWSAPI_EVERYTHING_URL = "https://newsapi.org/v2/everything"

MAX_STORIES = 50


class SearchError(Exception):
    """The search API answered with an error payload."""


def search_url(query: str) -> str:
    """Stable identifier for a configured query."""
    return f"{NEWSAPI_EVERYTHING_URL}?{urlencode({'q': query})}"


def search_window(now: datetime) -> tuple[date, date]:
    """The day before yesterday through yesterday, relative to ``now``."""
    today = now.date()
    return today - timedelta(days=2), today - timedelta(days=1)


async def fetch_search_results(
    client: httpx.AsyncClient,
    query: str,
    *,
    api_key: str,
    window: tuple[date, date],
    language: str = "en",
) -> list[dict]:
    """
    Run one query against the everything endpoint.

    Raises:
        httpx.HTTPError: transport failure or HTTP error status
        SearchError: response body is not an ``ok`` payload
    """
    date_from, date_to = window
    response = await client.get(
        NEWSAPI_EVERYTHING_URL,
        params={
            "q": query,
            "from": date_from.isoformat(),
            "to": date_to.isoformat(),
            "language": language,
            "pageSize": MAX_STORIES,
        },
        headers={**FEED_HEADERS, "Accept": "application/json", "X-Api-Key": api_key},
    )
    response.raise_for_status()

    payload = response.json()
    if not isinstance(payload, dict) or payload.get("status") != "ok":
        message = payload.get("message") if isinstance(payload, dict) else None
        raise SearchError(f"Search failed for {query!r}: {message or 'unexpected payload'}")

    stories = payload.get("articles") or []
    logger.debug(f"{len(stories)}/{payload.get('totalResults', 0)} stories for {query!r}")
    return [story for story in stories if isinstance(story, dict)]


def render_search_listing(query: str, stories: list[dict]) -> str:
    """Compact text listing of search hits: title, link, date, source, summary."""
    blocks = [f"Search: {query}"]

    for story in stories[:MAX_STORIES]:
        link = story.get("url") or ""
        if not link:
            continue
        lines = [f"Title: {story.get('title') or 'Untitled'}", f"Link: {link}"]
        if published := parse_story_date(story.get("publishedAt")):
            lines.append(f"Date: {published.date().isoformat()}")
        if outlet := (story.get("source") or {}).get("name"):
            lines.append(f"Source: {outlet}")
        if author := story.get("author"):
            lines.append(f"Author: {author}")
        if description := story.get("description"):
            lines.append(f"Summary: {description[:MAX_SUMMARY_CHARS]}")
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks) if len(blocks) > 1 else ""


def parse_story_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parse_date(value)
    except (ValueError, ParserError):
        return None
