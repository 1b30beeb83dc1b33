"""
In-memory article index for search, filtering and similarity ranking.

The index is a read-only view over one corpus snapshot. It is rebuilt from
scratch whenever the corpus changes; nothing here mutates it in place.
"""

import math
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

from neurobrief.logging_config import get_logger
from neurobrief.models import Article, Corpus
from neurobrief.pipeline.phases import PipelinePhase
from neurobrief.storage import CheckpointManager

logger = get_logger("query")


@dataclass(frozen=True)
class ArticleIndex:
    """Lookup tables over a fixed list of articles."""

    all: list[Article] = field(default_factory=list)
    by_id: dict[str, Article] = field(default_factory=dict)
    by_tag: dict[str, list[Article]] = field(default_factory=dict)
    by_date: dict[str, list[Article]] = field(default_factory=dict)
    by_source: dict[str, list[Article]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.all)


def build_article_index(articles: Sequence[Article]) -> ArticleIndex:
    by_id: dict[str, Article] = {}
    by_tag: defaultdict[str, list[Article]] = defaultdict(list)
    by_date: defaultdict[str, list[Article]] = defaultdict(list)
    by_source: defaultdict[str, list[Article]] = defaultdict(list)

    for article in articles:
        by_id[article.id] = article
        for tag in dict.fromkeys(article.tags):
            by_tag[tag].append(article)
        by_date[article.date_key].append(article)
        by_source[article.source].append(article)

    return ArticleIndex(
        all=list(articles),
        by_id=by_id,
        by_tag=dict(by_tag),
        by_date=dict(by_date),
        by_source=dict(by_source),
    )


def search_articles(index: ArticleIndex, query: str) -> list[Article]:
    """Case-insensitive substring match on title, description and summary; empty matches all."""
    needle = query.strip().lower()
    if not needle:
        return list(index.all)
    return [
        article
        for article in index.all
        if needle in article.title.lower()
        or needle in article.description.lower()
        or needle in (article.summary or "").lower()
    ]


def filter_by_tags(index: ArticleIndex, tags: Sequence[str]) -> list[Article]:
    """Articles carrying any of ``tags``, each listed once. No tags matches everything."""
    if not tags:
        return list(index.all)

    seen: set[str] = set()
    results: list[Article] = []
    for tag in tags:
        for article in index.by_tag.get(tag, []):
            if article.id not in seen:
                seen.add(article.id)
                results.append(article)
    return results


def filter_by_date_range(
    articles: Sequence[Article],
    date_from: str | None = None,
    date_to: str | None = None,
) -> list[Article]:
    """Articles whose date key falls within the inclusive range; a missing bound is open."""
    if not date_from and not date_to:
        return list(articles)
    return [
        article
        for article in articles
        if not (date_from and article.date_key < date_from)
        and not (date_to and article.date_key > date_to)
    ]


def filter_by_source(index: ArticleIndex, source: str) -> list[Article]:
    return list(index.by_source.get(source, []))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 for empty, mismatched or zero vectors."""
    if len(a) != len(b) or not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    denominator = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if denominator == 0:
        return 0.0
    return dot / denominator


def find_similar_articles(index: ArticleIndex, article_id: str, limit: int = 5) -> list[Article]:
    """
    Nearest articles to ``article_id`` by embedding cosine similarity.

    Returns an empty list when the article is unknown or has no embedding.
    Articles without embeddings are never candidates.
    """
    target = index.by_id.get(article_id)
    if target is None or not target.embedding:
        return []

    scored = [
        (cosine_similarity(target.embedding, article.embedding), article)
        for article in index.all
        if article.id != article_id and article.embedding
    ]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [article for _, article in scored[:limit]]


def sort_by_ranking(articles: Sequence[Article]) -> list[Article]:
    """Highest ranking score first, falling back to relevance when unranked."""
    return sorted(
        articles,
        key=lambda a: a.ranking_score if a.ranking_score is not None else a.relevance_score,
        reverse=True,
    )


def load_corpus(checkpoints: CheckpointManager, run_date: str) -> Corpus | None:
    """The final corpus checkpointed for ``run_date``, or None if the run has not finished."""
    payload = checkpoints.load(run_date, PipelinePhase.FINAL)
    if payload is None:
        return None
    corpus = Corpus.model_validate(payload)
    logger.debug(f"Loaded {len(corpus.all_articles)} articles for {run_date}")
    return corpus
