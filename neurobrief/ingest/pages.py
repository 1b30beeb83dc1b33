"""Render web pages to readable text using httpx and BeautifulSoup."""

import re
from typing import Protocol

import httpx
from bs4 import BeautifulSoup

from neurobrief.logging_config import get_logger

logger = get_logger("pages")

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# Elements that never carry article text
STRIP_TAGS = ["script", "style", "noscript", "svg", "iframe", "template"]

_WHITESPACE_RE = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


class PageRenderer(Protocol):
    """Returns the readable text of a page."""

    async def render(self, url: str) -> str:
        ...


def html_to_text(html: str) -> str:
    """
    Reduce an HTML document to readable text.

    Scripts and styles are dropped; the first of ``<article>``, ``<main>`` or
    ``<body>`` is used as the content root. Links keep their href in
    parentheses so extraction prompts can see article URLs.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(STRIP_TAGS):
        tag.decompose()

    root = soup.find("article") or soup.find("main") or soup.body or soup
    for link in root.find_all("a", href=True):
        label = link.get_text(" ", strip=True)
        if label:
            link.replace_with(f"{label} ({link['href']})")

    text = root.get_text("\n", strip=True)
    text = _WHITESPACE_RE.sub(" ", text)
    return _BLANK_LINES_RE.sub("\n\n", text).strip()


class HttpPageRenderer:
    """Fetches pages over HTTP. Does not execute JavaScript."""

    def __init__(self, timeout: float = 30.0, client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient(
            headers=BROWSER_HEADERS,
            follow_redirects=True,
            timeout=timeout,
        )

    async def render(self, url: str) -> str:
        """Fetch ``url`` and return its readable text. Raises on HTTP errors."""
        response = await self._client.get(url)
        response.raise_for_status()
        text = html_to_text(response.text)
        logger.debug(f"Rendered {url}: {len(text)} chars")
        return text

    async def aclose(self) -> None:
        await self._client.aclose()
