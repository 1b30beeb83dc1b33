"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Any, Literal, Self

import yaml
from pydantic import AliasChoices, BaseModel, Field, HttpUrl, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from neurobrief.ingest import search_url, subreddit_url
from neurobrief.llm import PROVIDER_DEFAULTS
from neurobrief.resilience import CircuitBreakerConfig, RetryConfig

# XDG config directory for user configuration
XDG_CONFIG_PATH = Path.home() / ".config" / "neurobrief"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=[
            XDG_CONFIG_PATH / "config.env",  # User config (lower priority)
            ".env",  # Project .env (higher priority)
        ],
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM
    llm_provider: Literal["gemini", "openai", "anthropic"] = Field(
        default="openai",
        description="Completion provider to use",
    )
    llm_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("LLM_API_KEY", "OPENAI_API_KEY", "OPENAI_KEY"),
        description="API key for configured completion provider",
    )
    llm_model: str | None = Field(
        default=None,
        validation_alias=AliasChoices("LLM_MODEL", "OPENAI_MODEL"),
        description="Model name for configured completion provider",
    )

    # Moderation, embeddings and article audio always go through OpenAI
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "OPENAI_KEY"),
        description="OpenAI key for moderation, embeddings and speech",
    )

    # News search API
    newsapi_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("NEWSAPI_KEY", "NEWS_API_KEY"),
        description="API key for search sources",
    )

    # Podcast voices
    elevenlabs_api_key: str | None = Field(default=None, description="ElevenLabs API key")
    elevenlabs_voice_nova: str = Field(default="EXAVITQu4vr4xnSDxMaL")
    elevenlabs_voice_renn: str = Field(default="VR6AewLTigWG4xSOukaG")

    # Paths
    config_dir: Path = Field(default=Path("config"), description="Config directory")
    data_dir: Path = Field(default=Path("data"), description="Data directory")
    checkpoint_dir: Path | None = Field(
        default=None, description="Checkpoint directory (default: <data_dir>/checkpoints)"
    )
    checkpoint_backend: Literal["file", "sqlite"] = Field(default="file")

    # Resilience
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay_ms: int = Field(default=2_000, gt=0)
    retry_max_delay_ms: int = Field(default=15_000, gt=0)
    breaker_failure_threshold: int = Field(default=3, ge=1)
    breaker_reset_timeout_ms: int = Field(default=120_000, ge=0)
    breaker_half_open_max_attempts: int = Field(default=1, ge=1)
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # Pacing
    request_delay_ms: int = Field(default=500, ge=0, description="Delay between external calls")
    source_delay_ms: int = Field(default=2_000, ge=0, description="Delay between sources")

    # Processing
    enrich_limit: int = Field(default=20, ge=0, description="Articles to enrich per run")
    audio_limit: int = Field(default=5, ge=0, description="Articles to voice per run")
    embedding_batch_size: int = Field(default=100, ge=1, le=2048)
    podcast_max_segments: int | None = Field(default=None, ge=1)
    min_valid_items: int = Field(
        default=1, ge=1, description="Fewest valid items an extraction response may yield"
    )
    dry_run: bool = Field(default=False, description="Skip side-effecting external calls")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["pretty", "json"] = Field(default="pretty")

    @property
    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=max(self.retry_max_delay_ms, self.retry_base_delay_ms),
        )

    @property
    def breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            failure_threshold=self.breaker_failure_threshold,
            reset_timeout_ms=self.breaker_reset_timeout_ms,
            half_open_max_attempts=self.breaker_half_open_max_attempts,
        )

    @property
    def sources_path(self) -> Path:
        return self.config_dir / "sources.yaml"

    @property
    def audio_dir(self) -> Path:
        return self.data_dir / "audio"

    @property
    def podcast_dir(self) -> Path:
        return self.data_dir / "podcast"

    @property
    def auxiliary_openai_key(self) -> str | None:
        """OpenAI key for moderation, embeddings and speech, if one resolves."""
        if self.openai_api_key:
            return self.openai_api_key
        if self.llm_provider == "openai" and self.llm_api_key:
            return self.llm_api_key
        return None

    @model_validator(mode="after")
    def apply_llm_defaults(self) -> Self:
        """Fill provider-specific model defaults when omitted."""
        if self.llm_model is None:
            self.llm_model = PROVIDER_DEFAULTS[self.llm_provider]
        return self

    @model_validator(mode="after")
    def ensure_directories(self) -> Self:
        """Create necessary directories if they don't exist."""
        if self.checkpoint_dir is None:
            self.checkpoint_dir = self.data_dir / "checkpoints"
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        return self


class SourceEntry(BaseModel):
    """Validated source entry from sources.yaml."""

    url: HttpUrl = Field(..., description="Page, feed or subreddit listing URL")
    kind: Literal["page", "feed", "search", "reddit"] = Field(default="page")
    query: str | None = Field(default=None, description="Search terms for search sources")
    subreddit: str | None = Field(default=None)
    listing: Literal["top", "new", "hot"] = Field(default="top")
    limit: int = Field(default=10, ge=1, le=100)
    notes: str | None = Field(default=None)

    model_config = {"extra": "allow"}

    @model_validator(mode="before")
    @classmethod
    def derive_url(cls, data: Any) -> Any:
        """Search and subreddit sources may omit the URL."""
        if not isinstance(data, dict) or data.get("url"):
            return data
        if data.get("kind") == "search" and data.get("query"):
            return {**data, "url": search_url(data["query"])}
        if data.get("kind") == "reddit" and data.get("subreddit"):
            url = subreddit_url(
                data["subreddit"], data.get("listing", "top"), data.get("limit", 10)
            )
            return {**data, "url": url}
        return data

    @model_validator(mode="after")
    def require_query(self) -> Self:
        if self.kind == "search" and not (self.query or "").strip():
            raise ValueError("search sources need a query")
        return self


class SourceConfig:
    """Configured news sources."""

    def __init__(self, config_path: Path):
        self.config_path = config_path
        self._sources: dict[str, dict] = {}
        self._load()

    def _load(self) -> None:
        """Load sources from YAML file."""
        if not self.config_path.exists():
            self._sources = {}
            return

        with open(self.config_path) as file_handle:
            data = yaml.safe_load(file_handle) or {}

        if not isinstance(data, dict):
            raise ValueError("Invalid sources.yaml: top-level structure must be a mapping")

        raw_sources = data.get("sources", {})
        if raw_sources is None:
            self._sources = {}
            return
        if not isinstance(raw_sources, dict):
            raise ValueError("Invalid sources.yaml: 'sources' must be a mapping")

        validated: dict[str, dict] = {}
        validation_errors: list[str] = []
        url_to_names: dict[str, list[str]] = {}

        for raw_name, raw_source in raw_sources.items():
            name = str(raw_name).strip()
            if not name:
                validation_errors.append("Source name cannot be empty")
                continue
            if not isinstance(raw_source, dict):
                validation_errors.append(f"{name}: source configuration must be a mapping")
                continue

            try:
                parsed = SourceEntry.model_validate(raw_source)
            except ValidationError as exc:
                details = "; ".join(
                    f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                )
                validation_errors.append(f"{name}: {details}")
                continue

            entry = parsed.model_dump(mode="python")
            entry["url"] = str(parsed.url)
            validated[name] = entry
            url_to_names.setdefault(entry["url"], []).append(name)

        validation_errors.extend(
            f"Duplicate source URL {url}: {', '.join(names)}"
            for url, names in url_to_names.items()
            if len(names) > 1
        )

        if validation_errors:
            rendered = "\n  - ".join(validation_errors)
            raise ValueError(f"Invalid sources.yaml entries:\n  - {rendered}")

        self._sources = validated

    @property
    def sources(self) -> dict[str, dict]:
        """Get all configured sources."""
        return self._sources

    def by_kind(self, kind: str) -> dict[str, dict]:
        return {name: entry for name, entry in self._sources.items() if entry["kind"] == kind}


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get application settings (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
