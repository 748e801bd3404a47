from __future__ import annotations

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from checkup.checks.results import Result
from checkup.errors import StorageError

logger = logging.getLogger(__name__)


class Storage(ABC):
    @abstractmethod
    def store(self, results: list[Result]) -> None:
        """Persist one batch of results. Raises StorageError on failure."""


class SQLiteStorage(Storage):
    """Stores each checkup run as a batch of JSON-encoded results."""

    def __init__(self, db_path: str, max_batches: int = 500) -> None:
        self._db_path = self._resolve_db_path(db_path)
        self._max_batches = max_batches
        self._lock = threading.Lock()

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

        with self._lock:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._init_schema()

    @staticmethod
    def _resolve_db_path(raw_path: str) -> Path:
        p = Path(raw_path).expanduser()
        if p.is_absolute():
            return p
        return Path.cwd() / p

    def _init_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS check_batches (
                batch_id INTEGER PRIMARY KEY AUTOINCREMENT,
                ts TEXT NOT NULL,
                result_count INTEGER NOT NULL,
                healthy INTEGER NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS check_results (
                row_id INTEGER PRIMARY KEY AUTOINCREMENT,
                batch_id INTEGER NOT NULL REFERENCES check_batches(batch_id),
                position INTEGER NOT NULL,
                title TEXT NOT NULL,
                endpoint TEXT NOT NULL,
                type TEXT NOT NULL,
                status TEXT NOT NULL,
                payload TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_check_results_batch ON check_results(batch_id)"
        )
        self._conn.commit()

    def store(self, results: list[Result]) -> None:
        ts = datetime.now(timezone.utc).isoformat()
        healthy = all(r.healthy for r in results)
        try:
            with self._lock:
                with self._conn:
                    cur = self._conn.execute(
                        "INSERT INTO check_batches (ts, result_count, healthy) VALUES (?, ?, ?)",
                        (ts, len(results), 1 if healthy else 0),
                    )
                    batch_id = cur.lastrowid
                    self._conn.executemany(
                        """
                        INSERT INTO check_results (
                            batch_id, position, title, endpoint, type, status, payload
                        ) VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                batch_id,
                                i,
                                r.title,
                                r.endpoint,
                                r.type,
                                r.status().value,
                                json.dumps(r.to_dict()),
                            )
                            for i, r in enumerate(results)
                        ],
                    )
                    self._trim_batches_locked()
        except sqlite3.Error as e:
            raise StorageError(f"failed to store results in {self._db_path}: {e}") from e

        logger.info("Stored %d result(s) as batch %s", len(results), batch_id)

    def _trim_batches_locked(self) -> None:
        keep = """
            SELECT batch_id FROM check_batches ORDER BY batch_id DESC LIMIT ?
        """
        self._conn.execute(
            f"DELETE FROM check_results WHERE batch_id NOT IN ({keep})",
            (self._max_batches,),
        )
        self._conn.execute(
            f"DELETE FROM check_batches WHERE batch_id NOT IN ({keep})",
            (self._max_batches,),
        )

    def load_batch(self, batch_id: int) -> list[Result]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT payload FROM check_results WHERE batch_id = ? ORDER BY position",
                (batch_id,),
            ).fetchall()
        return [Result.from_dict(json.loads(r["payload"])) for r in rows]

    def load_recent(self, limit: int) -> list[dict[str, Any]]:
        """Most recent batches, newest first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT batch_id, ts, result_count, healthy
                FROM check_batches
                ORDER BY batch_id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()

        return [
            {
                "batch_id": r["batch_id"],
                "ts": r["ts"],
                "healthy": bool(r["healthy"]),
                "results": self.load_batch(r["batch_id"]),
            }
            for r in rows
        ]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
