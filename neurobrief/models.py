"""
Core data models for the news pipeline.

Using Pydantic for validation and serialization. Python attributes are
snake_case; the JSON written to checkpoints and read by downstream consumers
uses camelCase field names.
"""

import hashlib
from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SourceType = Literal["scrape", "newsapi", "reddit"]
SourceKind = Literal["page", "feed", "search", "reddit"]

NEWS_TAGS: tuple[str, ...] = (
    # Neuroimaging and measurement
    "eeg",
    "fmri",
    "meg",
    "pet-imaging",
    "dti",
    "fnirs",
    "neuroimaging",
    # Neuroscience research
    "synaptic-plasticity",
    "neurotransmitters",
    "neural-circuits",
    "cognitive-neuroscience",
    "behavioral-neuroscience",
    "brain-plasticity",
    "translational-neuroscience",
    "molecular-psychiatry",
    # Neurotechnology
    "bci",
    "neural-interfaces",
    "neuralink",
    "synchron",
    "kernel-neuro",
    "openbci",
    "emotiv",
    "muse",
    "tdcs",
    "tms",
    "vagus-nerve-stimulation",
    "closed-loop-systems",
    "invasive-bci",
    "non-invasive-bci",
    "eeg-headsets",
    "neural-prosthetics",
    # Computational and clinical
    "precision-psychiatry",
    "computational-psychiatry",
    "digital-phenotyping",
    "machine-learning",
    "federated-learning",
    "ai-diagnostics",
    "deep-learning",
    "brain-connectivity",
    "neural-decoding",
    "signal-processing",
    "computational-neuroscience",
    "diffusion-models",
    # Pharmacology
    "neuropharmacology",
    "nmda-modulators",
    "gaba-modulators",
    "serotonin-system",
    "psychiatric-genomics",
    "clinical-trials",
    "drug-discovery",
    "cns-therapeutics",
    "nootropics",
    "peptides",
    "psychedelics",
    # Biohacking and wellness
    "biohacking",
    "neurofeedback",
    "meditation",
    "red-light-therapy",
    "cold-exposure",
    "circadian-rhythm",
    "supplements",
    "microdosing",
    "longevity",
    # Biology
    "biomarkers",
    "hpa-axis",
    "neuroinflammation",
    "gut-brain-axis",
    "microbiome",
    "epigenetics",
    "neural-oscillations",
    "default-mode-network",
    "neuroendocrine",
    "fear-extinction",
    # Decentralized science
    "desci",
    "daos",
    "tokenomics",
    "blockchain-research",
    "on-chain-governance",
    "decentralized-irb",
    "quadratic-voting",
    # Industry
    "pharma",
    "biotech",
    "startups",
    "funding",
    "regulatory",
    "fda",
)


def generate_article_id(url: str) -> str:
    """Stable article identifier: first 16 hex chars of the URL's SHA-256."""
    return hashlib.sha256(url.encode()).hexdigest()[:16]


class WireModel(BaseModel):
    """Base for records serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Article(WireModel):
    """A news article, enriched phase by phase."""

    id: str = Field(..., min_length=1, description="URL hash")
    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1, description="Source name")
    description: str = Field(default="")
    relevance_score: float = Field(..., ge=0, le=1, description="Topical fit in [0, 1]")
    scraped_at: str = Field(..., description="ISO timestamp of extraction")
    source_type: SourceType = Field(default="scrape")
    language: str = Field(default="en")
    tags: list[str] = Field(default_factory=list)

    author: str | None = None
    published_at: str | None = None
    image_url: str | None = None

    # Populated by later phases
    summary: str | None = None
    content: str | None = None
    word_count: int | None = None
    reading_time_minutes: int | None = None
    entities: list[str] | None = None
    embedding: list[float] | None = None
    moderation_passed: bool | None = None
    moderation_flags: list[str] | None = None
    audio_url: str | None = None
    ranking_score: float | None = None

    def evolve(self, **changes: Any) -> Self:
        """
        Return a copy with extra fields set.

        Fields are only ever gained: ``None`` values are ignored so an enriched
        field is never cleared, and the identity fields cannot change.
        """
        updates = {key: value for key, value in changes.items() if value is not None}
        for key in ("id", "url"):
            if key in updates and updates[key] != getattr(self, key):
                raise ValueError(f"Article {key} is immutable")
        return self.model_copy(update=updates)

    @property
    def date_key(self) -> str:
        """YYYY-MM-DD of publication, falling back to extraction time."""
        return (self.published_at or self.scraped_at)[:10]


class RawDocument(WireModel):
    """Readable text fetched from one configured source."""

    source: str
    url: str
    kind: SourceKind = "page"
    source_type: SourceType = "scrape"
    text: str
    fetched_at: str


class ModerationResult(WireModel):
    flagged: bool
    categories: dict[str, bool] = Field(default_factory=dict)

    @property
    def flagged_categories(self) -> list[str]:
        return sorted(name for name, hit in self.categories.items() if hit)


class PodcastSegment(WireModel):
    speaker: Literal["nova", "dr-renn"]
    text: str = Field(..., min_length=1)


class PodcastScript(WireModel):
    title: str
    description: str = ""
    segments: list[PodcastSegment] = Field(default_factory=list)
    article_ids: list[str] = Field(default_factory=list)

    @property
    def char_count(self) -> int:
        return sum(len(segment.text) for segment in self.segments)


class PodcastEpisode(WireModel):
    id: str = Field(..., description="ep-YYYY-MM-DD")
    title: str
    description: str = ""
    audio_url: str = ""
    segment_files: list[str] = Field(default_factory=list)
    duration: int = Field(default=0, description="Estimated seconds")
    date: str
    article_ids: list[str] = Field(default_factory=list)
    char_count: int = 0


class DateRange(BaseModel):
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class CorpusMetadata(WireModel):
    total_articles: int = 0
    date_range: DateRange = Field(default_factory=DateRange)
    tag_counts: dict[str, int] = Field(default_factory=dict)
    source_counts: dict[str, int] = Field(default_factory=dict)


class Corpus(WireModel):
    """Final ranked output of a run."""

    all_articles: list[Article] = Field(default_factory=list)
    timestamp: str
    metadata: CorpusMetadata = Field(default_factory=CorpusMetadata)
