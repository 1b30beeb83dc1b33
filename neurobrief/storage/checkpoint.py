"""
Persist and restore the output of each pipeline phase.

Checkpoints are keyed by ``(run date, phase)``. The storage itself is a small
key-value protocol so the same manager works over flat JSON files or SQLite.
"""

import json
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from neurobrief.logging_config import get_logger
from neurobrief.pipeline.phases import PipelinePhase

logger = get_logger("checkpoint")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class CheckpointStore(Protocol):
    """Raw text records keyed by (date, phase token)."""

    def get(self, date: str, phase: str) -> str | None:
        ...

    def put(self, date: str, phase: str, data: str) -> None:
        ...

    def contains(self, date: str, phase: str) -> bool:
        ...

    def phases(self, date: str) -> list[str]:
        """Phase tokens stored for ``date``, in no particular order."""
        ...

    def delete(self, date: str, phase: str) -> bool:
        ...


class FileCheckpointStore:
    """One JSON file per checkpoint at ``{base_dir}/{date}_{phase}.json``."""

    SUFFIX = ".json"

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, date: str, phase: str) -> Path:
        return self.base_dir / f"{date}_{phase}{self.SUFFIX}"

    def get(self, date: str, phase: str) -> str | None:
        """Raw checkpoint text. Raises UnicodeDecodeError on undecodable bytes."""
        try:
            return self.path_for(date, phase).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def put(self, date: str, phase: str, data: str) -> None:
        """Write via a temp file and rename so readers never see a partial file."""
        target = self.path_for(date, phase)
        fd, temp_name = tempfile.mkstemp(
            dir=self.base_dir, prefix=f".{target.stem}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(data)
            os.replace(temp_name, target)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def contains(self, date: str, phase: str) -> bool:
        return self.path_for(date, phase).is_file()

    def phases(self, date: str) -> list[str]:
        prefix = f"{date}_"
        return [
            path.name[len(prefix) : -len(self.SUFFIX)]
            for path in self.base_dir.glob(f"{date}_*{self.SUFFIX}")
            if path.is_file() and path.name.startswith(prefix)
        ]

    def delete(self, date: str, phase: str) -> bool:
        path = self.path_for(date, phase)
        if not path.exists():
            return False
        path.unlink()
        return True


def validate_run_date(date: str) -> str:
    """Return ``date`` if it is a real YYYY-MM-DD calendar date."""
    if not _DATE_RE.match(date):
        raise ValueError(f"Invalid run date {date!r}: expected YYYY-MM-DD")
    try:
        datetime.strptime(date, "%Y-%m-%d")
    except ValueError as exc:
        raise ValueError(f"Invalid run date {date!r}: {exc}") from exc
    return date


class CheckpointManager:
    """Serializes phase payloads to JSON and orders checkpoints by pipeline phase."""

    def __init__(self, store: CheckpointStore):
        self.store = store

    def save(self, date: str, phase: PipelinePhase, payload: Any) -> None:
        """Write ``payload`` for ``(date, phase)``, replacing any earlier checkpoint."""
        validate_run_date(date)
        data = json.dumps(payload, indent=2, ensure_ascii=False)
        self.store.put(date, phase.value, data)
        logger.debug(f"Saved checkpoint {date}_{phase.value} ({len(data)} bytes)")

    def load(self, date: str, phase: PipelinePhase) -> Any | None:
        """Payload for ``(date, phase)``; None if absent or undecodable."""
        validate_run_date(date)
        try:
            raw = self.store.get(date, phase.value)
            if raw is None:
                return None
            return json.loads(raw)
        except ValueError as exc:
            logger.warning(
                f"Ignoring corrupt checkpoint {date}_{phase.value}: {exc}",
                extra={"context": {"phase": phase.value, "run_date": date}},
            )
            return None

    def exists(self, date: str, phase: PipelinePhase) -> bool:
        validate_run_date(date)
        return self.store.contains(date, phase.value)

    def list_checkpoints(self, date: str) -> list[PipelinePhase]:
        """Phases checkpointed for ``date``, sorted by pipeline order."""
        validate_run_date(date)
        known = (PipelinePhase.parse(token) for token in self.store.phases(date))
        return sorted((phase for phase in known if phase is not None), key=lambda p: p.order)

    def get_latest_phase(self, date: str) -> PipelinePhase | None:
        phases = self.list_checkpoints(date)
        return phases[-1] if phases else None

    def discard(self, date: str, phase: PipelinePhase) -> bool:
        """Remove one checkpoint. Returns whether it existed."""
        validate_run_date(date)
        return self.store.delete(date, phase.value)
