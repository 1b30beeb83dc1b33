"""Content moderation for articles (the moderate phase). Fails open."""

from neurobrief.llm import ModerationClient
from neurobrief.logging_config import get_logger
from neurobrief.models import Article
from neurobrief.resilience import CallPolicy, Err, Ok

logger = get_logger("moderation")

MAX_INPUT_CHARS = 8_000


def build_moderation_input(article: Article) -> str:
    parts = [article.title, article.description, article.summary or ""]
    return "\n\n".join(part for part in parts if part)[:MAX_INPUT_CHARS]


async def moderate_articles(
    articles: list[Article],
    *,
    client: ModerationClient,
    policy: CallPolicy,
) -> list[Article]:
    """
    Mark each article with ``moderation_passed`` and, when flagged, the flagged categories.

    Flagged articles are kept so the final phase can decide what to drop. An
    article whose moderation call fails passes unflagged.
    """
    logger.info(f"Moderating {len(articles)} articles")
    flagged_count = 0
    results: list[Article] = []

    for index, article in enumerate(articles):
        text = build_moderation_input(article)

        match await policy.call(lambda: client.moderate(text), label=f"moderate {article.id}"):
            case Ok(verdict) if verdict.flagged:
                flagged_count += 1
                logger.warning(
                    f"Article flagged: {article.title[:50]}",
                    extra={
                        "context": {
                            "article": article.id,
                            "categories": ",".join(verdict.flagged_categories),
                        }
                    },
                )
                results.append(
                    article.model_copy(
                        update={
                            "moderation_passed": False,
                            "moderation_flags": verdict.flagged_categories,
                        }
                    )
                )
            case Ok():
                results.append(article.model_copy(update={"moderation_passed": True}))
            case Err(error):
                logger.warning(
                    f"Moderation error for {article.title[:50]}: {error}",
                    extra={"context": {"article": article.id, "error": type(error).__name__}},
                )
                results.append(article.model_copy(update={"moderation_passed": True}))

        if index < len(articles) - 1:
            await policy.pause()

    logger.info(f"Moderation complete: {flagged_count}/{len(articles)} flagged")
    return results


def mark_all_passed(articles: list[Article]) -> list[Article]:
    return [article.model_copy(update={"moderation_passed": True}) for article in articles]
