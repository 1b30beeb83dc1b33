"""Full-content extraction, summaries and tags for the top articles (the enrich phase)."""

import math

from neurobrief.ingest import PageRenderer
from neurobrief.llm import CompletionClient
from neurobrief.logging_config import get_logger
from neurobrief.models import Article
from neurobrief.resilience import CallPolicy, Err, Ok

from .prompts import SUMMARY_SYSTEM, SUMMARY_USER, TAGGING_SYSTEM, TAGGING_USER
from .validator import validate_summary_response, validate_tag_response

logger = get_logger("enricher")

WORDS_PER_MINUTE = 200
MAX_STORED_CONTENT = 50_000
MAX_PROMPT_CONTENT = 8_000
EXCERPT_CHARS = 300


def reading_time_minutes(word_count: int) -> int:
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def excerpt(text: str, max_chars: int = EXCERPT_CHARS) -> str:
    """First ``max_chars`` of ``text``, cut at a word boundary."""
    flat = " ".join(text.split())
    if len(flat) <= max_chars:
        return flat
    return flat[:max_chars].rsplit(" ", 1)[0] + "..."


class Enricher:
    """Adds content, summary and tags to one article at a time."""

    def __init__(
        self,
        renderer: PageRenderer,
        client: CompletionClient,
        fetch_policy: CallPolicy,
        summary_policy: CallPolicy,
    ):
        self.renderer = renderer
        self.client = client
        self.fetch_policy = fetch_policy
        self.summary_policy = summary_policy

    async def enrich(self, article: Article) -> Article:
        """Enriched copy of ``article``, or the article unchanged if its page cannot be fetched."""
        context = {"article": article.id}

        fetched = await self.fetch_policy.call(
            lambda: self.renderer.render(article.url), label=f"fetch {article.id}"
        )
        if isinstance(fetched, Err):
            logger.warning(
                f"Content extraction failed for {article.title[:50]}: {fetched.error}",
                extra={"context": context},
            )
            return article
        content = fetched.value

        word_count = len(content.split())
        summary = await self._summarize(article, content)
        tags = await self._tag(article, summary)

        return article.evolve(
            content=content[:MAX_STORED_CONTENT],
            summary=summary,
            word_count=word_count,
            reading_time_minutes=reading_time_minutes(word_count),
            tags=tags,
        )

    async def _summarize(self, article: Article, content: str) -> str:
        prompt = SUMMARY_USER.format(title=article.title, content=content[:MAX_PROMPT_CONTENT])
        result = await self.summary_policy.call(
            lambda: self.client.complete(prompt, SUMMARY_SYSTEM, max_tokens=500, temperature=0.3),
            label=f"summarize {article.id}",
        )
        match result:
            case Ok(raw):
                match validate_summary_response(raw):
                    case Ok(summary):
                        return summary
                    case Err(invalid):
                        logger.warning(
                            f"Unusable summary for {article.title[:50]}",
                            extra={"context": {"article": article.id, "code": invalid.code}},
                        )
            case Err(error):
                logger.warning(f"Summary generation failed for {article.title[:50]}: {error}")

        return excerpt(content) or article.description

    async def _tag(self, article: Article, summary: str) -> list[str] | None:
        """Validated tags, or None to keep the article's existing tags."""
        prompt = TAGGING_USER.format(title=article.title, text=summary[:MAX_PROMPT_CONTENT])
        result = await self.summary_policy.call(
            lambda: self.client.complete(prompt, TAGGING_SYSTEM, max_tokens=100, temperature=0.0),
            label=f"tag {article.id}",
        )
        match result:
            case Ok(raw):
                match validate_tag_response(raw):
                    case Ok(tags):
                        return tags
                    case Err(invalid):
                        logger.debug(f"No usable tags for {article.id}: {invalid.code}")
            case Err(error):
                logger.warning(f"Tagging failed for {article.title[:50]}: {error}")
        return None


async def enrich_top_articles(
    articles: list[Article],
    enricher: Enricher,
    limit: int = 20,
) -> list[Article]:
    """Enrich the ``limit`` most relevant articles sequentially; the rest pass through."""
    ranked = sorted(articles, key=lambda a: a.relevance_score, reverse=True)
    top, rest = ranked[:limit], ranked[limit:]
    logger.info(f"Enriching top {len(top)} of {len(articles)} articles")

    enriched: list[Article] = []
    for index, article in enumerate(top):
        enriched.append(await enricher.enrich(article))
        if index < len(top) - 1:
            await enricher.fetch_policy.pause()

    summarized = sum(1 for a in enriched if a.summary and a.summary != a.description)
    logger.info(f"Enrichment complete: {summarized}/{len(top)} summarized")
    return enriched + rest
