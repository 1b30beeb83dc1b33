"""Checkpoint persistence."""

from pathlib import Path

from .checkpoint import CheckpointManager, CheckpointStore, FileCheckpointStore, validate_run_date
from .sqlite_store import SqliteCheckpointStore


def open_checkpoints(backend: str, checkpoint_dir: Path) -> CheckpointManager:
    """Checkpoint manager over the configured backend."""
    match backend:
        case "sqlite":
            store: CheckpointStore = SqliteCheckpointStore(checkpoint_dir / "checkpoints.db")
        case "file":
            store = FileCheckpointStore(checkpoint_dir)
        case _:
            raise ValueError(f"Unknown checkpoint backend: {backend}")
    return CheckpointManager(store)


__all__ = [
    "CheckpointManager",
    "CheckpointStore",
    "FileCheckpointStore",
    "SqliteCheckpointStore",
    "open_checkpoints",
    "validate_run_date",
]
