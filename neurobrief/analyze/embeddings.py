"""Batched embedding generation for articles (the embed phase)."""

from collections.abc import Iterator
from typing import TypeVar

from neurobrief.llm import EmbeddingClient
from neurobrief.logging_config import get_logger
from neurobrief.models import Article
from neurobrief.resilience import CallPolicy, Err, Ok

logger = get_logger("embeddings")

MAX_INPUT_CHARS = 8_000

T = TypeVar("T")


def build_embedding_input(article: Article) -> str:
    parts = [
        article.title,
        article.description,
        article.summary or "",
        ", ".join(article.tags),
        ", ".join(article.entities or []),
    ]
    return " ".join(part for part in parts if part)[:MAX_INPUT_CHARS]


def chunk(items: list[T], size: int) -> Iterator[list[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


async def embed_articles(
    articles: list[Article],
    *,
    client: EmbeddingClient,
    policy: CallPolicy,
    batch_size: int = 100,
) -> list[Article]:
    """
    Embed every article that has no embedding yet, preserving order.

    A failed batch leaves its articles without embeddings; other batches are
    unaffected.
    """
    pending = [article for article in articles if not article.embedding]
    if not pending:
        logger.info("All articles already have embeddings")
        return articles

    logger.info(
        f"Generating embeddings for {len(pending)} articles "
        f"({len(articles) - len(pending)} already done)"
    )
    vectors: dict[str, list[float]] = {}
    batches = list(chunk(pending, batch_size))

    for index, batch in enumerate(batches):
        inputs = [build_embedding_input(article) for article in batch]

        match await policy.call(lambda: client.embed(inputs), label=f"embed batch {index + 1}"):
            case Ok(embeddings):
                for article, vector in zip(batch, embeddings):
                    vectors[article.id] = vector
            case Err(error):
                logger.error(
                    f"Embedding batch {index + 1}/{len(batches)} failed: {error}",
                    extra={"context": {"batch": index + 1, "error": type(error).__name__}},
                )

        if index < len(batches) - 1:
            await policy.pause()

    logger.info(f"Embedding generation complete: {len(vectors)}/{len(pending)}")
    return [
        article.evolve(embedding=vectors.get(article.id)) if article.id in vectors else article
        for article in articles
    ]
