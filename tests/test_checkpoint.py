"""Tests for checkpoint persistence over both storage backends."""

import json

import pytest

from neurobrief.pipeline.phases import PIPELINE_PHASES, PipelinePhase
from neurobrief.storage import (
    CheckpointManager,
    FileCheckpointStore,
    SqliteCheckpointStore,
    open_checkpoints,
    validate_run_date,
)

DATE = "2026-02-09"


@pytest.fixture(params=["file", "sqlite"])
def manager(request, tmp_dir):
    return open_checkpoints(request.param, tmp_dir / "checkpoints")


class TestPhases:
    def test_fixed_order(self):
        assert [phase.value for phase in PIPELINE_PHASES] == [
            "scrape", "gpt", "enrich", "moderate", "embed", "audio", "podcast", "final",
        ]
        assert [phase.order for phase in PIPELINE_PHASES] == list(range(8))

    def test_parse(self):
        assert PipelinePhase.parse("embed") is PipelinePhase.EMBED
        assert PipelinePhase.parse("notes") is None


class TestValidateRunDate:
    def test_accepts_calendar_date(self):
        assert validate_run_date("2026-02-28") == "2026-02-28"

    @pytest.mark.parametrize("value", ["2026-2-9", "20260209", "2026-02-30", "../etc"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            validate_run_date(value)


class TestCheckpointManager:
    def test_load_missing_returns_none(self, manager):
        assert manager.load(DATE, PipelinePhase.SCRAPE) is None
        assert not manager.exists(DATE, PipelinePhase.SCRAPE)

    def test_save_then_load(self, manager):
        payload = {"articles": [{"id": "a1", "title": "Ünïcode"}], "count": 1}
        manager.save(DATE, PipelinePhase.GPT, payload)

        assert manager.exists(DATE, PipelinePhase.GPT)
        assert manager.load(DATE, PipelinePhase.GPT) == payload

    def test_last_writer_wins(self, manager):
        manager.save(DATE, PipelinePhase.GPT, {"version": 1})
        manager.save(DATE, PipelinePhase.GPT, {"version": 2})

        assert manager.load(DATE, PipelinePhase.GPT) == {"version": 2}

    def test_dates_are_independent(self, manager):
        manager.save(DATE, PipelinePhase.SCRAPE, [1])

        assert not manager.exists("2026-02-10", PipelinePhase.SCRAPE)
        assert manager.list_checkpoints("2026-02-10") == []

    def test_list_sorted_by_pipeline_order(self, manager):
        # Saved in an order that differs from both pipeline and lexical order
        for phase in (PipelinePhase.PODCAST, PipelinePhase.AUDIO, PipelinePhase.EMBED,
                      PipelinePhase.ENRICH, PipelinePhase.GPT):
            manager.save(DATE, phase, {})

        assert manager.list_checkpoints(DATE) == [
            PipelinePhase.GPT,
            PipelinePhase.ENRICH,
            PipelinePhase.EMBED,
            PipelinePhase.AUDIO,
            PipelinePhase.PODCAST,
        ]
        assert manager.get_latest_phase(DATE) is PipelinePhase.PODCAST

    def test_latest_phase_none_when_empty(self, manager):
        assert manager.get_latest_phase(DATE) is None

    def test_discard(self, manager):
        manager.save(DATE, PipelinePhase.FINAL, {})

        assert manager.discard(DATE, PipelinePhase.FINAL) is True
        assert manager.discard(DATE, PipelinePhase.FINAL) is False
        assert not manager.exists(DATE, PipelinePhase.FINAL)

    def test_rejects_invalid_date(self, manager):
        with pytest.raises(ValueError):
            manager.save("yesterday", PipelinePhase.SCRAPE, {})


class TestFileStore:
    def test_layout_is_date_underscore_phase_json(self, tmp_dir):
        manager = CheckpointManager(FileCheckpointStore(tmp_dir))
        manager.save(DATE, PipelinePhase.SCRAPE, {"documents": []})

        path = tmp_dir / f"{DATE}_scrape.json"
        assert path.is_file()
        # Human-diffable: indented JSON
        assert path.read_text() == json.dumps({"documents": []}, indent=2)

    def test_creates_base_directory(self, tmp_dir):
        base = tmp_dir / "nested" / "checkpoints"
        CheckpointManager(FileCheckpointStore(base)).save(DATE, PipelinePhase.GPT, {})
        assert (base / f"{DATE}_gpt.json").exists()

    def test_corrupt_checkpoint_treated_as_absent(self, tmp_dir):
        manager = CheckpointManager(FileCheckpointStore(tmp_dir))
        (tmp_dir / f"{DATE}_enrich.json").write_text("{not json")

        assert manager.exists(DATE, PipelinePhase.ENRICH)
        assert manager.load(DATE, PipelinePhase.ENRICH) is None

    def test_undecodable_bytes_treated_as_absent(self, tmp_dir):
        manager = CheckpointManager(FileCheckpointStore(tmp_dir))
        (tmp_dir / f"{DATE}_scrape.json").write_bytes(b"\xff\xfe\x00garbage")

        assert manager.exists(DATE, PipelinePhase.SCRAPE)
        assert manager.load(DATE, PipelinePhase.SCRAPE) is None

    def test_unknown_phase_files_ignored(self, tmp_dir):
        manager = CheckpointManager(FileCheckpointStore(tmp_dir))
        manager.save(DATE, PipelinePhase.GPT, {})
        (tmp_dir / f"{DATE}_notes.json").write_text("{}")
        (tmp_dir / "readme.txt").write_text("hi")

        assert manager.list_checkpoints(DATE) == [PipelinePhase.GPT]

    def test_no_temp_files_left_behind(self, tmp_dir):
        manager = CheckpointManager(FileCheckpointStore(tmp_dir))
        manager.save(DATE, PipelinePhase.GPT, {"a": 1})
        manager.save(DATE, PipelinePhase.GPT, {"a": 2})

        assert sorted(p.name for p in tmp_dir.iterdir()) == [f"{DATE}_gpt.json"]


class TestSqliteStore:
    def test_persists_across_instances(self, tmp_dir):
        db_path = tmp_dir / "checkpoints.db"
        CheckpointManager(SqliteCheckpointStore(db_path)).save(DATE, PipelinePhase.EMBED, [1, 2])

        reopened = CheckpointManager(SqliteCheckpointStore(db_path))

        assert reopened.load(DATE, PipelinePhase.EMBED) == [1, 2]

    def test_corrupt_payload_treated_as_absent(self, tmp_dir):
        store = SqliteCheckpointStore(tmp_dir / "checkpoints.db")
        store.put(DATE, "gpt", "{truncated")

        assert CheckpointManager(store).load(DATE, PipelinePhase.GPT) is None


def test_open_checkpoints_rejects_unknown_backend(tmp_dir):
    with pytest.raises(ValueError):
        open_checkpoints("redis", tmp_dir)
