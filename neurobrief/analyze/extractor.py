"""Turn collected page text into validated articles (the gpt phase)."""

from collections.abc import Callable
from datetime import datetime

from neurobrief.llm import CompletionClient
from neurobrief.logging_config import get_logger
from neurobrief.models import Article, RawDocument, SourceType, generate_article_id
from neurobrief.resilience import CallPolicy, Err, Ok

from .prompts import EXTRACTION_SYSTEM, EXTRACTION_USER
from .validator import ExtractedArticle, validate_article_response

logger = get_logger("extractor")

MAX_CONTENT_CHARS = 100_000


def truncate_content(content: str, max_chars: int = MAX_CONTENT_CHARS) -> str:
    if len(content) <= max_chars:
        return content
    return content[:max_chars] + "\n[...truncated]"


def to_article(
    item: ExtractedArticle, scraped_at: str, source_type: SourceType = "scrape"
) -> Article:
    return Article(
        id=generate_article_id(item.url),
        title=item.title,
        url=item.url,
        source=item.source,
        description=item.description,
        relevance_score=item.relevance_score,
        author=item.author or None,
        published_at=item.published_at or None,
        scraped_at=scraped_at,
        source_type=source_type,
    )


def dedupe_by_url(articles: list[Article]) -> list[Article]:
    """Keep one article per URL, preferring the higher relevance score."""
    best: dict[str, Article] = {}
    for article in articles:
        current = best.get(article.url)
        if current is None or article.relevance_score > current.relevance_score:
            best[article.url] = article
    return list(best.values())


async def extract_articles(
    documents: list[RawDocument],
    *,
    client: CompletionClient,
    policy: CallPolicy,
    now: Callable[[], datetime],
    min_valid_items: int = 1,
) -> list[Article]:
    """
    Send each document through the extraction prompt and salvage valid items.

    A malformed response costs only that document's articles; it is not
    retried. Provider failures (retries or breaker exhausted) are skipped too,
    unless every document failed that way, in which case the last provider
    error is raised.
    """
    articles: list[Article] = []
    provider_failures = 0
    last_error: Exception | None = None

    for index, document in enumerate(documents):
        context = {"source": document.source}
        prompt = EXTRACTION_USER.format(
            source=document.source,
            url=document.url,
            content=truncate_content(document.text),
        )

        async def complete(prompt: str = prompt) -> str | None:
            return await client.complete(
                prompt, EXTRACTION_SYSTEM, max_tokens=4096, temperature=0.2
            )

        match await policy.call(complete, label=f"extract {document.source}"):
            case Err(error):
                provider_failures += 1
                last_error = error
                logger.error(
                    f"Extraction failed for {document.source}: {error}",
                    extra={"context": {**context, "error": type(error).__name__}},
                )
            case Ok(raw):
                match validate_article_response(raw, min_valid_items=min_valid_items):
                    case Ok(items):
                        scraped_at = now().isoformat()
                        articles.extend(
                            to_article(item, scraped_at, document.source_type) for item in items
                        )
                        logger.info(f"Extracted {len(items)} articles from {document.source}")
                    case Err(invalid):
                        logger.warning(
                            f"Unusable response for {document.source}: {invalid.message}",
                            extra={"context": {**context, "code": invalid.code}},
                        )

        if index < len(documents) - 1:
            await policy.pause()

    if documents and provider_failures == len(documents) and last_error is not None:
        raise last_error

    unique = dedupe_by_url(articles)
    logger.info(
        f"Extraction complete: {len(unique)} unique articles "
        f"from {len(documents)} documents"
    )
    return unique
