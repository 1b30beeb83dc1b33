"""SQLite-backed checkpoint store."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator


class SqliteCheckpointStore:
    """One row per (run_date, phase) in a WAL-mode SQLite database."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.executescript("""
                PRAGMA journal_mode=WAL;

                CREATE TABLE IF NOT EXISTS checkpoints (
                    run_date TEXT NOT NULL,
                    phase TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (run_date, phase)
                );
            """)

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, date: str, phase: str) -> str | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT payload FROM checkpoints WHERE run_date = ? AND phase = ?",
                (date, phase),
            ).fetchone()
        return None if row is None else row["payload"]

    def put(self, date: str, phase: str, data: str) -> None:
        """Store a payload. Overwrites the existing row."""
        with self._connection() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO checkpoints (run_date, phase, payload, updated_at)
                   VALUES (?, ?, ?, CURRENT_TIMESTAMP)""",
                (date, phase, data),
            )

    def contains(self, date: str, phase: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM checkpoints WHERE run_date = ? AND phase = ?",
                (date, phase),
            ).fetchone()
        return row is not None

    def phases(self, date: str) -> list[str]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT phase FROM checkpoints WHERE run_date = ?", (date,)
            ).fetchall()
        return [row["phase"] for row in rows]

    def delete(self, date: str, phase: str) -> bool:
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM checkpoints WHERE run_date = ? AND phase = ?",
                (date, phase),
            )
            return cursor.rowcount > 0
