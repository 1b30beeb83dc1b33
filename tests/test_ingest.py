"""Tests for page rendering, feed fetching and source collection."""

import asyncio
from datetime import UTC, datetime

import feedparser
import httpx
import pytest

from neurobrief.errors import PipelineError
from neurobrief.ingest import (
    HttpPageRenderer,
    RedditError,
    SearchError,
    fetch_feed,
    fetch_search_results,
    fetch_subreddit,
    html_to_text,
    render_feed_listing,
    render_search_listing,
    render_subreddit_listing,
    subreddit_url,
)
from neurobrief.ingest.collector import collect_documents
from neurobrief.ingest.feeds import extract_author, parse_entry_date
from neurobrief.ingest.search import search_window

from conftest import FIXED_NOW, FakeRenderer, RecordingSleep, make_policy

RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Neuro Feed</title>
    <link>https://feed.example.com/</link>
    <description>Neurotech news</description>
    <item>
      <title>New BCI trial</title>
      <link>https://feed.example.com/bci-trial</link>
      <description>A speech BCI enters trials.</description>
      <pubDate>Mon, 09 Feb 2026 08:00:00 GMT</pubDate>
    </item>
    <item>
      <title>EEG headset review</title>
      <link>https://feed.example.com/eeg-review</link>
      <description>Consumer EEG compared.</description>
    </item>
  </channel>
</rss>
"""


SEARCH_PAYLOAD = {
    "status": "ok",
    "totalResults": 2,
    "articles": [
        {
            "title": "Implant restores speech",
            "url": "https://news.example.com/implant",
            "publishedAt": "2026-02-08T10:00:00Z",
            "source": {"id": None, "name": "Example News"},
            "author": "A. Writer",
            "description": "A speech neuroprosthesis decodes words.",
        },
        {"title": "No link here", "url": None, "source": {"name": "Nowhere"}},
    ],
}

REDDIT_PAYLOAD = {
    "kind": "Listing",
    "data": {
        "children": [
            {
                "kind": "t3",
                "data": {
                    "title": "Weekly discussion thread",
                    "stickied": True,
                    "permalink": "/r/BCI/comments/1/weekly/",
                },
            },
            {
                "kind": "t3",
                "data": {
                    "title": "Open-source EEG headset released",
                    "subreddit_name_prefixed": "r/BCI",
                    "url": "https://hardware.example.com/eeg",
                    "is_self": False,
                    "permalink": "/r/BCI/comments/2/eeg/",
                    "author": "builder",
                    "score": 412,
                    "created_utc": 1770638400.0,
                },
            },
            {
                "kind": "t3",
                "data": {
                    "title": "Anyone tried neurofeedback for ADHD?",
                    "subreddit_name_prefixed": "r/BCI",
                    "url": "https://www.reddit.com/r/BCI/comments/3/neurofeedback/",
                    "is_self": True,
                    "permalink": "/r/BCI/comments/3/neurofeedback/",
                    "selftext": "Curious about home setups.",
                    "score": 12,
                },
            },
        ]
    },
}


def rss_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=RSS, headers={"Content-Type": "application/rss+xml"})


def source_handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "newsapi.org":
        return httpx.Response(200, json=SEARCH_PAYLOAD)
    if request.url.host == "www.reddit.com":
        return httpx.Response(200, json=REDDIT_PAYLOAD)
    return rss_handler(request)


class TestHtmlToText:
    def test_prefers_article_root_and_strips_scripts(self):
        html = """
        <html><head><script>var tracking = 1;</script><style>p {}</style></head>
        <body>
          <nav>Menu</nav>
          <article><h1>Headline</h1><p>Body text <a href="/story">read more</a></p></article>
        </body></html>
        """

        text = html_to_text(html)

        assert "Headline" in text
        assert "Body text" in text
        assert "read more (/story)" in text
        assert "tracking" not in text
        assert "Menu" not in text

    def test_collapses_whitespace(self):
        text = html_to_text("<body><p>one    two</p>\n\n\n\n<p>three</p></body>")

        assert "one two" in text
        assert "\n\n\n" not in text

    def test_empty_document(self):
        assert html_to_text("") == ""


class TestHttpPageRenderer:
    def test_renders_page_text(self):
        async def run():
            transport = httpx.MockTransport(
                lambda request: httpx.Response(200, text="<main><p>Hello brain</p></main>")
            )
            renderer = HttpPageRenderer(client=httpx.AsyncClient(transport=transport))
            try:
                return await renderer.render("https://example.com/")
            finally:
                await renderer.aclose()

        assert asyncio.run(run()) == "Hello brain"

    def test_http_error_raises(self):
        async def run():
            transport = httpx.MockTransport(lambda request: httpx.Response(500))
            renderer = HttpPageRenderer(client=httpx.AsyncClient(transport=transport))
            try:
                await renderer.render("https://example.com/")
            finally:
                await renderer.aclose()

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(run())


class TestFetchFeed:
    def test_parses_feed(self):
        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(rss_handler)) as client:
                return await fetch_feed(client, "https://feed.example.com/rss")

        feed = asyncio.run(run())

        assert feed.feed.title == "Neuro Feed"
        assert len(feed.entries) == 2

    def test_retries_bot_filter_with_browser_headers(self):
        user_agents: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            user_agents.append(request.headers["User-Agent"])
            if request.headers["User-Agent"].startswith("Neurobrief"):
                return httpx.Response(403)
            return rss_handler(request)

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await fetch_feed(client, "https://feed.example.com/rss")

        feed = asyncio.run(run())

        assert len(feed.entries) == 2
        assert len(user_agents) == 2
        assert user_agents[1].startswith("Mozilla/5.0")

    def test_final_error_status_raises(self):
        async def run():
            transport = httpx.MockTransport(lambda request: httpx.Response(404))
            async with httpx.AsyncClient(transport=transport) as client:
                await fetch_feed(client, "https://feed.example.com/rss")

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(run())


class TestFeedListing:
    def test_renders_entries(self):
        listing = render_feed_listing(feedparser.parse(RSS))

        assert listing.startswith("Feed: Neuro Feed")
        assert "Title: New BCI trial\nLink: https://feed.example.com/bci-trial" in listing
        assert "Date: 2026-02-09" in listing
        assert "Summary: Consumer EEG compared." in listing

    def test_skips_entries_without_link(self):
        feed = feedparser.FeedParserDict(
            feed=feedparser.FeedParserDict(),
            entries=[
                feedparser.FeedParserDict(title="No link"),
                feedparser.FeedParserDict(title="Linked", link="https://a.com/1"),
            ],
        )

        listing = render_feed_listing(feed)

        assert "No link" not in listing
        assert "Title: Linked" in listing

    def test_respects_max_entries(self):
        listing = render_feed_listing(feedparser.parse(RSS), max_entries=1)

        assert "EEG headset review" not in listing


class TestEntryFields:
    def test_date_from_string_fields(self):
        parsed = parse_entry_date({"updated": "2026-02-01T10:30:00"})
        assert parsed == datetime(2026, 2, 1, 10, 30, tzinfo=UTC)

    def test_unparseable_date(self):
        assert parse_entry_date({"published": "not a date"}) is None
        assert parse_entry_date({}) is None

    def test_author_fallbacks(self):
        assert extract_author({"author": "Ada"}) == "Ada"
        assert extract_author({"author_detail": {"name": "Grace"}}) == "Grace"
        assert extract_author({"authors": [{"name": "Alan"}]}) == "Alan"
        assert extract_author({}) is None


class TestSearchSource:
    def test_window_is_two_days_back_to_yesterday(self):
        assert [d.isoformat() for d in search_window(FIXED_NOW)] == ["2026-02-07", "2026-02-08"]

    def test_sends_query_window_and_key(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=SEARCH_PAYLOAD)

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await fetch_search_results(
                    client,
                    '"neural implant"',
                    api_key="news-key",
                    window=search_window(FIXED_NOW),
                )

        stories = asyncio.run(run())

        assert len(stories) == 2
        params = requests[0].url.params
        assert params["q"] == '"neural implant"'
        assert params["from"] == "2026-02-07"
        assert params["to"] == "2026-02-08"
        assert params["language"] == "en"
        assert requests[0].headers["X-Api-Key"] == "news-key"

    def test_error_payload_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "error", "message": "rateLimited"})

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                await fetch_search_results(
                    client, "eeg", api_key="k", window=search_window(FIXED_NOW)
                )

        with pytest.raises(SearchError, match="rateLimited"):
            asyncio.run(run())

    def test_error_status_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"status": "error", "code": "apiKeyInvalid"})

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                await fetch_search_results(
                    client, "eeg", api_key="bad", window=search_window(FIXED_NOW)
                )

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(run())

    def test_listing_skips_stories_without_url(self):
        text = render_search_listing("neural implant", SEARCH_PAYLOAD["articles"])

        assert text.startswith("Search: neural implant")
        assert "Link: https://news.example.com/implant" in text
        assert "Date: 2026-02-08" in text
        assert "Source: Example News" in text
        assert "No link here" not in text

    def test_listing_without_stories_is_blank(self):
        assert render_search_listing("eeg", []) == ""


class TestRedditSource:
    def test_listing_url(self):
        assert subreddit_url("r/BCI", "new", 5) == "https://www.reddit.com/r/BCI/new.json?limit=5"
        assert subreddit_url("Nootropics") == (
            "https://www.reddit.com/r/Nootropics/top.json?limit=10"
        )

    def test_fetch_drops_pinned_posts(self):
        async def run():
            transport = httpx.MockTransport(source_handler)
            async with httpx.AsyncClient(transport=transport) as client:
                return await fetch_subreddit(client, subreddit_url("BCI"))

        posts = asyncio.run(run())

        assert [post["title"] for post in posts] == [
            "Open-source EEG headset released",
            "Anyone tried neurofeedback for ADHD?",
        ]

    def test_non_listing_body_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"message": "Not Found", "error": 404})

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                await fetch_subreddit(client, subreddit_url("missing"))

        with pytest.raises(RedditError):
            asyncio.run(run())

    def test_listing_links_external_and_self_posts(self):
        posts = [child["data"] for child in REDDIT_PAYLOAD["data"]["children"][1:]]

        text = render_subreddit_listing(posts)

        assert text.startswith("Subreddit: r/BCI")
        assert "Link: https://hardware.example.com/eeg" in text
        assert "Link: https://www.reddit.com/r/BCI/comments/3/neurofeedback/" in text
        assert "Date: 2026-02-09" in text
        assert "Author: u/builder" in text
        assert "Summary: Curious about home setups." in text


class TestCollectDocuments:
    def collect(self, sources, renderer, sleep=None, search_api_key=None):
        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(source_handler)) as http:
                return await collect_documents(
                    sources,
                    renderer=renderer,
                    http=http,
                    policy=make_policy("fetch", sleep=sleep, delay_s=2.0),
                    now=lambda: FIXED_NOW,
                    search_api_key=search_api_key,
                )

        return asyncio.run(run())

    def test_collects_pages_and_feeds_skipping_failures(self):
        sources = {
            "Page": {"url": "https://page.example.com/", "kind": "page"},
            "Broken": {"url": "https://broken.example.com/", "kind": "page"},
            "Feed": {"url": "https://feed.example.com/rss", "kind": "feed"},
        }
        renderer = FakeRenderer({"https://page.example.com/": "Page about neurotech"})
        sleep = RecordingSleep()

        documents = self.collect(sources, renderer, sleep)

        assert [d.source for d in documents] == ["Page", "Feed"]
        assert documents[0].text == "Page about neurotech"
        assert documents[1].kind == "feed"
        assert "New BCI trial" in documents[1].text
        assert documents[0].fetched_at == FIXED_NOW.isoformat()
        assert sleep.calls == [2.0, 2.0]

    def test_blank_page_is_skipped(self):
        sources = {
            "Blank": {"url": "https://blank.example.com/"},
            "Page": {"url": "https://page.example.com/"},
        }
        renderer = FakeRenderer(
            {"https://blank.example.com/": "   ", "https://page.example.com/": "Text"}
        )

        assert [d.source for d in self.collect(sources, renderer)] == ["Page"]

    def test_raises_when_nothing_collected(self):
        sources = {"Broken": {"url": "https://broken.example.com/"}}

        with pytest.raises(PipelineError):
            self.collect(sources, FakeRenderer())

    def test_no_sources(self):
        assert self.collect({}, FakeRenderer()) == []

    def test_search_and_subreddit_documents_carry_source_type(self):
        sources = {
            "Page": {"url": "https://page.example.com/", "kind": "page"},
            "Search BCI": {
                "url": "https://newsapi.org/v2/everything?q=bci",
                "kind": "search",
                "query": "bci",
            },
            "r/BCI": {"url": subreddit_url("BCI"), "kind": "reddit"},
        }
        renderer = FakeRenderer({"https://page.example.com/": "Page about neurotech"})

        documents = self.collect(sources, renderer, search_api_key="news-key")

        assert [(d.source, d.kind, d.source_type) for d in documents] == [
            ("Page", "page", "scrape"),
            ("Search BCI", "search", "newsapi"),
            ("r/BCI", "reddit", "reddit"),
        ]
        assert "Implant restores speech" in documents[1].text
        assert "Open-source EEG headset released" in documents[2].text

    def test_search_sources_skipped_without_key(self):
        sources = {
            "Search BCI": {
                "url": "https://newsapi.org/v2/everything?q=bci",
                "kind": "search",
                "query": "bci",
            },
            "Feed": {"url": "https://feed.example.com/rss", "kind": "feed"},
        }

        documents = self.collect(sources, FakeRenderer())

        assert [d.source for d in documents] == ["Feed"]
