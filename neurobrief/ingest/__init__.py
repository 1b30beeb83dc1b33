"""Source ingestion: rendered pages, RSS/Atom feeds, news search and subreddits."""

from .feeds import FeedError, fetch_feed, render_feed_listing
from .pages import HttpPageRenderer, PageRenderer, html_to_text
from .reddit import RedditError, fetch_subreddit, render_subreddit_listing, subreddit_url
from .search import SearchError, fetch_search_results, render_search_listing, search_url

__all__ = [
    "FeedError",
    "HttpPageRenderer",
    "PageRenderer",
    "RedditError",
    "SearchError",
    "fetch_feed",
    "fetch_search_results",
    "fetch_subreddit",
    "html_to_text",
    "render_feed_listing",
    "render_search_listing",
    "render_subreddit_listing",
    "search_url",
    "subreddit_url",
]
