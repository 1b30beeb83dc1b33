"""
Subreddit listings fetched as JSON and condensed into text for article extraction.
"""

from datetime import datetime, timezone

import httpx

from neurobrief.logging_config import get_logger

from .feeds import FEED_HEADERS, MAX_ENTRIES, MAX_SUMMARY_CHARS

logger = get_logger("reddit")

REDDIT_BASE_URL = "https://www.reddit.com"


class RedditError(Exception):
    """A subreddit listing had an unexpected shape."""


def subreddit_url(subreddit: str, listing: str = "top", limit: int = 10) -> str:
    name = subreddit.strip().removeprefix("r/")
    return f"{REDDIT_BASE_URL}/r/{name}/{listing}.json?limit={limit}"


async def fetch_subreddit(client: httpx.AsyncClient, listing_url: str) -> list[dict]:
    """
    Fetch a subreddit listing and return its post payloads, pinned posts excluded.

    Raises:
        httpx.HTTPError: transport failure or HTTP error status
        RedditError: body is not a listing
    """
    response = await client.get(
        listing_url,
        headers={**FEED_HEADERS, "Accept": "application/json"},
        follow_redirects=True,
    )
    response.raise_for_status()

    payload = response.json()
    try:
        children = payload["data"]["children"]
    except (KeyError, TypeError) as exc:
        raise RedditError(f"Not a subreddit listing: {listing_url}") from exc

    posts = [child.get("data") or {} for child in children if isinstance(child, dict)]
    return [post for post in posts if post and not post.get("stickied")]


def post_link(post: dict) -> str:
    """External link for link posts, the discussion thread otherwise."""
    if not post.get("is_self") and (url := post.get("url")):
        return url
    if permalink := post.get("permalink"):
        return f"{REDDIT_BASE_URL}{permalink}"
    return ""


def render_subreddit_listing(posts: list[dict], max_entries: int = MAX_ENTRIES) -> str:
    blocks: list[str] = []
    if posts and (name := posts[0].get("subreddit_name_prefixed")):
        blocks.append(f"Subreddit: {name}")

    for post in posts[:max_entries]:
        link = post_link(post)
        if not link:
            continue
        lines = [f"Title: {post.get('title') or 'Untitled'}", f"Link: {link}"]
        if created := post.get("created_utc"):
            posted = datetime.fromtimestamp(float(created), tz=timezone.utc)
            lines.append(f"Date: {posted.date().isoformat()}")
        if author := post.get("author"):
            lines.append(f"Author: u/{author}")
        if "score" in post:
            lines.append(f"Score: {post['score']}")
        if text := post.get("selftext"):
            lines.append(f"Summary: {text[:MAX_SUMMARY_CHARS]}")
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks)
