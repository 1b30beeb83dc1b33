"""Tests for settings, env aliases and source configuration."""

import pytest

from neurobrief import config
from neurobrief.config import Settings, SourceConfig
from neurobrief.resilience import CircuitBreakerConfig, RetryConfig

ENV_VARS = (
    "LLM_PROVIDER",
    "LLM_API_KEY",
    "LLM_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_KEY",
    "OPENAI_MODEL",
    "ELEVENLABS_API_KEY",
    "NEWSAPI_KEY",
    "NEWS_API_KEY",
    "CHECKPOINT_DIR",
    "DRY_RUN",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_dir):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_dir)
    monkeypatch.setenv("DATA_DIR", str(tmp_dir / "data"))
    monkeypatch.setenv("CONFIG_DIR", str(tmp_dir / "config"))
    yield
    config._settings = None


class TestSettings:
    def test_applies_provider_default_model(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "anthropic")
        monkeypatch.setenv("LLM_API_KEY", "test-key")

        settings = Settings()

        assert settings.llm_model == "claude-sonnet-4-20250514"

    def test_explicit_model_kept(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "gemini")
        monkeypatch.setenv("LLM_MODEL", "gemini-custom")

        assert Settings().llm_model == "gemini-custom"

    def test_openai_key_alias_populates_both_keys(self, monkeypatch):
        monkeypatch.setenv("OPENAI_KEY", "sk-legacy")

        settings = Settings()

        assert settings.llm_api_key == "sk-legacy"
        assert settings.openai_api_key == "sk-legacy"
        assert settings.auxiliary_openai_key == "sk-legacy"

    def test_news_search_key_alias(self, monkeypatch):
        monkeypatch.setenv("NEWS_API_KEY", "news-legacy")

        assert Settings().newsapi_key == "news-legacy"

    def test_auxiliary_key_falls_back_to_openai_completion_key(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.setenv("LLM_API_KEY", "sk-llm")

        assert Settings().auxiliary_openai_key == "sk-llm"

    def test_auxiliary_key_missing_for_other_providers(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "anthropic")
        monkeypatch.setenv("LLM_API_KEY", "sk-ant")

        settings = Settings()

        assert settings.auxiliary_openai_key is None

    def test_checkpoint_dir_defaults_under_data_dir(self, tmp_dir):
        settings = Settings()

        assert settings.checkpoint_dir == tmp_dir / "data" / "checkpoints"
        assert settings.checkpoint_dir.is_dir()
        assert settings.audio_dir == tmp_dir / "data" / "audio"
        assert settings.sources_path == tmp_dir / "config" / "sources.yaml"

    def test_resilience_configs(self, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "4")
        monkeypatch.setenv("BREAKER_FAILURE_THRESHOLD", "2")

        settings = Settings()

        assert settings.retry_config == RetryConfig(
            max_attempts=4, base_delay_ms=2_000, max_delay_ms=15_000
        )
        assert settings.breaker_config == CircuitBreakerConfig(
            failure_threshold=2, reset_timeout_ms=120_000, half_open_max_attempts=1
        )

    def test_max_delay_never_below_base(self, monkeypatch):
        monkeypatch.setenv("RETRY_BASE_DELAY_MS", "20000")
        monkeypatch.setenv("RETRY_MAX_DELAY_MS", "1000")

        assert Settings().retry_config.max_delay_ms == 20_000

    def test_rejects_invalid_values(self, monkeypatch):
        monkeypatch.setenv("MIN_VALID_ITEMS", "0")
        with pytest.raises(ValueError):
            Settings()

    def test_get_settings_is_cached(self):
        config._settings = None
        assert config.get_settings() is config.get_settings()


class TestSourceConfig:
    def write(self, tmp_dir, text: str):
        path = tmp_dir / "sources.yaml"
        path.write_text(text)
        return path

    def test_missing_file_means_no_sources(self, tmp_dir):
        assert SourceConfig(tmp_dir / "absent.yaml").sources == {}

    def test_loads_and_defaults_kind(self, tmp_dir):
        path = self.write(
            tmp_dir,
            """
sources:
  Neuroscience News:
    url: https://neurosciencenews.com/
  MIT Neuro:
    url: https://news.mit.edu/rss/topic/neuroscience
    kind: feed
    notes: RSS
""",
        )
        sources = SourceConfig(path)

        assert sources.sources["Neuroscience News"]["kind"] == "page"
        assert sources.sources["MIT Neuro"]["url"] == "https://news.mit.edu/rss/topic/neuroscience"
        assert list(sources.by_kind("feed")) == ["MIT Neuro"]

    def test_search_and_reddit_entries_derive_urls(self, tmp_dir):
        path = self.write(
            tmp_dir,
            """
sources:
  Search BCI:
    kind: search
    query: '"brain-computer interface"'
  r/BCI:
    kind: reddit
    subreddit: BCI
    listing: new
    limit: 5
""",
        )
        sources = SourceConfig(path)

        search = sources.sources["Search BCI"]
        assert search["url"].startswith("https://newsapi.org/v2/everything?q=")
        assert search["query"] == '"brain-computer interface"'
        assert sources.sources["r/BCI"]["url"] == "https://www.reddit.com/r/BCI/new.json?limit=5"
        assert list(sources.by_kind("reddit")) == ["r/BCI"]

    def test_search_entry_requires_query(self, tmp_dir):
        path = self.write(
            tmp_dir,
            """
sources:
  Empty Search:
    kind: search
    url: https://newsapi.org/v2/everything
""",
        )
        with pytest.raises(ValueError, match="Empty Search"):
            SourceConfig(path)

    def test_aggregates_errors(self, tmp_dir):
        path = self.write(
            tmp_dir,
            """
sources:
  Bad URL:
    url: not-a-url
  Not A Mapping: https://example.com
  Wrong Kind:
    url: https://example.com/a
    kind: podcast
""",
        )
        with pytest.raises(ValueError) as excinfo:
            SourceConfig(path)

        message = str(excinfo.value)
        assert "Bad URL" in message
        assert "Not A Mapping" in message
        assert "Wrong Kind" in message

    def test_rejects_duplicate_urls(self, tmp_dir):
        path = self.write(
            tmp_dir,
            """
sources:
  One:
    url: https://example.com/news
  Two:
    url: https://example.com/news
""",
        )
        with pytest.raises(ValueError, match="Duplicate source URL"):
            SourceConfig(path)

    def test_rejects_non_mapping_top_level(self, tmp_dir):
        with pytest.raises(ValueError):
            SourceConfig(self.write(tmp_dir, "- just\n- a list\n"))

    def test_empty_sources_section(self, tmp_dir):
        assert SourceConfig(self.write(tmp_dir, "sources:\n")).sources == {}
