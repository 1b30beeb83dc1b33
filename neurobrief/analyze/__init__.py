"""Analysis module - LLM-powered extraction, enrichment and ranking."""

from .embeddings import embed_articles
from .enricher import Enricher, enrich_top_articles
from .extractor import extract_articles
from .moderation import mark_all_passed, moderate_articles
from .ranking import build_corpus, ranking_score
from .validator import (
    ExtractedArticle,
    GptValidationError,
    validate_article_response,
    validate_summary_response,
    validate_tag_response,
)

__all__ = [
    "Enricher",
    "ExtractedArticle",
    "GptValidationError",
    "build_corpus",
    "embed_articles",
    "enrich_top_articles",
    "extract_articles",
    "mark_all_passed",
    "moderate_articles",
    "ranking_score",
    "validate_article_response",
    "validate_summary_response",
    "validate_tag_response",
]
