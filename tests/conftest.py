"""Shared fixtures: deterministic time, fake collaborators and article factories."""

from datetime import UTC, datetime
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from neurobrief.models import Article, ModerationResult, generate_article_id
from neurobrief.resilience import CallPolicy, CircuitBreaker, CircuitBreakerConfig, RetryConfig

FIXED_NOW = datetime(2026, 2, 9, 12, 0, tzinfo=UTC)


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeCompletion:
    """Completion client returning scripted responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts: list[tuple[str, str]] = []

    async def complete(self, prompt, system, *, max_tokens=4096, temperature=0.3):
        self.prompts.append((prompt, system))
        if not self.responses:
            raise AssertionError("unexpected completion call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeModeration:
    def __init__(self, flagged_ids: set[str] | None = None, fail: bool = False):
        self.flagged_ids = flagged_ids or set()
        self.fail = fail
        self.calls = 0

    async def moderate(self, text):
        self.calls += 1
        if self.fail:
            raise RuntimeError("moderation unavailable")
        flagged = any(marker in text for marker in self.flagged_ids)
        return ModerationResult(flagged=flagged, categories={"violence": flagged, "hate": False})


class FakeEmbeddings:
    def __init__(self, dims: int = 3, fail_batches: set[int] | None = None):
        self.dims = dims
        self.fail_batches = fail_batches or set()
        self.batches: list[list[str]] = []

    async def embed(self, texts):
        self.batches.append(list(texts))
        if len(self.batches) - 1 in self.fail_batches:
            raise RuntimeError("embedding batch failed")
        return [[float(len(text))] + [1.0] * (self.dims - 1) for text in texts]


class FakeSpeech:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    async def synthesize(self, text, voice):
        self.calls.append((text, voice))
        if self.fail:
            raise RuntimeError("speech unavailable")
        return b"ID3-fake-mp3"


class FakeRenderer:
    """Page renderer backed by a url -> text mapping; unknown urls raise."""

    def __init__(self, pages: dict[str, str] | None = None):
        self.pages = pages or {}
        self.requested: list[str] = []

    async def render(self, url):
        self.requested.append(url)
        if url not in self.pages:
            raise RuntimeError(f"cannot render {url}")
        return self.pages[url]


def make_article(**overrides) -> Article:
    url = overrides.pop("url", "https://example.com/test")
    fields = {
        "id": generate_article_id(url),
        "title": "Test Article",
        "url": url,
        "source": "Test Source",
        "description": "Test description about neuroscience",
        "relevance_score": 0.8,
        "scraped_at": "2026-02-09T00:00:00+00:00",
        "tags": [],
    }
    fields.update(overrides)
    return Article(**fields)


def make_policy(
    name: str = "test",
    *,
    attempts: int = 1,
    threshold: int = 5,
    sleep: RecordingSleep | None = None,
    delay_s: float = 0.0,
    timeout_s: float | None = None,
) -> CallPolicy:
    return CallPolicy(
        breaker=CircuitBreaker(name, CircuitBreakerConfig(failure_threshold=threshold)),
        retry=RetryConfig(max_attempts=attempts, base_delay_ms=10, max_delay_ms=100),
        timeout_s=timeout_s,
        delay_s=delay_s,
        sleep=sleep or RecordingSleep(),
    )


@pytest.fixture
def tmp_dir():
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()
