"""Ranking and corpus assembly (the final phase)."""

from collections import Counter
from datetime import date, datetime

from neurobrief.models import Article, Corpus, CorpusMetadata, DateRange

RELEVANCE_WEIGHT = 0.8
RECENCY_WEIGHT = 0.2
RECENCY_WINDOW_DAYS = 7


def _article_day(article: Article) -> date | None:
    try:
        return date.fromisoformat(article.date_key)
    except ValueError:
        return None


def recency_score(article: Article, run_date: date) -> float:
    """1.0 for articles dated on the run date, falling linearly to 0 over the window."""
    day = _article_day(article)
    if day is None:
        return 0.0
    age_days = max(0, (run_date - day).days)
    return max(0.0, 1.0 - age_days / RECENCY_WINDOW_DAYS)


def ranking_score(article: Article, run_date: date) -> float:
    score = (
        RELEVANCE_WEIGHT * article.relevance_score
        + RECENCY_WEIGHT * recency_score(article, run_date)
    )
    return round(score, 4)


def build_metadata(articles: list[Article]) -> CorpusMetadata:
    days = sorted(article.date_key for article in articles)
    tag_counts = Counter(tag for article in articles for tag in article.tags)
    source_counts = Counter(article.source for article in articles)
    return CorpusMetadata(
        total_articles=len(articles),
        date_range=DateRange(from_=days[0] if days else None, to=days[-1] if days else None),
        tag_counts=dict(tag_counts.most_common()),
        source_counts=dict(source_counts.most_common()),
    )


def build_corpus(articles: list[Article], run_date: str, now: datetime) -> Corpus:
    """
    Final ranked corpus for a run.

    Articles that failed moderation are dropped, duplicates by URL keep their
    first occurrence, and the rest are sorted by ranking score descending.
    """
    day = date.fromisoformat(run_date)
    seen: set[str] = set()
    kept: list[Article] = []
    for article in articles:
        if article.moderation_passed is False or article.url in seen:
            continue
        seen.add(article.url)
        kept.append(article.model_copy(update={"ranking_score": ranking_score(article, day)}))

    kept.sort(key=lambda a: (a.ranking_score or 0.0, a.relevance_score), reverse=True)
    return Corpus(all_articles=kept, timestamp=now.isoformat(), metadata=build_metadata(kept))
