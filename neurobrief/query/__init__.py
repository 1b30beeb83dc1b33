"""Query layer over a finished article corpus."""

from .index import (
    ArticleIndex,
    build_article_index,
    cosine_similarity,
    filter_by_date_range,
    filter_by_source,
    filter_by_tags,
    find_similar_articles,
    load_corpus,
    search_articles,
    sort_by_ranking,
)

__all__ = [
    "ArticleIndex",
    "build_article_index",
    "cosine_similarity",
    "filter_by_date_range",
    "filter_by_source",
    "filter_by_tags",
    "find_similar_articles",
    "load_corpus",
    "search_articles",
    "sort_by_ranking",
]
