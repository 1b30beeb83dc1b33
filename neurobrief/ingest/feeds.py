"""
RSS/Atom feed fetching, condensed into text listings for article extraction.
"""

from calendar import timegm
from datetime import datetime, timezone

import feedparser
import httpx
from dateutil.parser import ParserError
from dateutil.parser import parse as parse_date

from neurobrief.logging_config import get_logger

from .pages import BROWSER_HEADERS

logger = get_logger("feeds")

FEED_HEADERS = {
    "User-Agent": "Neurobrief/0.4",
    "Accept": (
        "application/rss+xml, application/atom+xml, application/xml, "
        "text/xml;q=0.9, */*;q=0.8"
    ),
}

BOT_FILTER_RETRY_STATUS_CODES = {403, 404}

MAX_ENTRIES = 50
MAX_SUMMARY_CHARS = 500


class FeedError(Exception):
    """A feed could not be fetched or parsed."""


async def fetch_feed(client: httpx.AsyncClient, feed_url: str) -> feedparser.FeedParserDict:
    """
    Fetch and parse a feed.

    Some feed hosts block simple bot user agents with a false 403/404, so those
    statuses are retried once with browser-like headers.

    Raises:
        httpx.HTTPError: transport failure or final HTTP error status
        FeedError: body could not be parsed and contains no entries
    """
    response: httpx.Response | None = None
    for headers in (FEED_HEADERS, BROWSER_HEADERS):
        response = await client.get(feed_url, headers=headers, follow_redirects=True)
        if response.status_code not in BOT_FILTER_RETRY_STATUS_CODES:
            break
        logger.debug(f"{feed_url}: got {response.status_code}, retrying with browser headers")

    if response is None:
        raise RuntimeError("Feed request did not produce a response")
    response.raise_for_status()

    feed = feedparser.parse(response.content)
    if feed.bozo and feed.bozo_exception and not feed.entries:
        raise FeedError(f"Feed parse error for {feed_url}: {feed.bozo_exception}")
    return feed


def render_feed_listing(feed: feedparser.FeedParserDict, max_entries: int = MAX_ENTRIES) -> str:
    """Compact text listing of feed entries: title, link, date, summary."""
    blocks: list[str] = []
    if title := feed.feed.get("title"):
        blocks.append(f"Feed: {title}")

    for entry in feed.entries[:max_entries]:
        link = entry.get("link", "")
        if not link:
            continue
        lines = [f"Title: {entry.get('title', 'Untitled')}", f"Link: {link}"]
        if published := parse_entry_date(entry):
            lines.append(f"Date: {published.date().isoformat()}")
        if author := extract_author(entry):
            lines.append(f"Author: {author}")
        if summary := entry.get("summary"):
            lines.append(f"Summary: {summary[:MAX_SUMMARY_CHARS]}")
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks)


def parse_entry_date(entry: dict) -> datetime | None:
    """Parse publication date from feed entry."""
    for field in ["published_parsed", "updated_parsed", "created_parsed"]:
        if parsed := entry.get(field):
            try:
                return datetime.fromtimestamp(timegm(parsed), tz=timezone.utc)
            except (ValueError, OverflowError):
                continue

    for field in ["published", "updated", "created"]:
        if date_str := entry.get(field):
            try:
                dt = parse_date(date_str)
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=timezone.utc)
                return dt
            except (ValueError, ParserError):
                continue

    return None


def extract_author(entry: dict) -> str | None:
    """Extract author name from feed entry."""
    if author := entry.get("author"):
        return author

    if author_detail := entry.get("author_detail"):
        if name := author_detail.get("name"):
            return name

    if authors := entry.get("authors"):
        if name := authors[0].get("name"):
            return name

    return None
