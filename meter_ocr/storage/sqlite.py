from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from meter_ocr.exceptions import PersistenceError
from meter_ocr.storage.base import COLLECTIONS, PersistenceStore


class SQLiteStore(PersistenceStore):
    """SQLite-backed store for observations, mistake pattern stats and rules.

    One table per collection, each row holding the record as JSON. A single
    connection is shared and guarded by a lock; writes outside ``transaction()``
    commit immediately, writes inside it commit when the block exits.
    """

    def __init__(self, db_path: str | Path, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._db_path = str(db_path)
        self._lock = threading.RLock()
        self._depth = 0
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False, isolation_level=None)
            self._init()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to open database {self._db_path}: {e}") from e
        self.logger.debug(f"Opened SQLite store at {self._db_path}")

    def _init(self) -> None:
        for collection in COLLECTIONS:
            self._conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {collection} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        """Run a statement, committing on its own unless a transaction is open."""
        with self._lock:
            if self._depth:
                yield self._conn
                return
            with self.transaction():
                yield self._conn

    def add(self, collection: str, record: Dict[str, Any]) -> int:
        self._check_collection(collection)
        try:
            with self._write() as conn:
                cur = conn.execute(
                    f"INSERT INTO {collection} (data, created_at) VALUES (?, ?)",
                    (json.dumps(record), datetime.now(timezone.utc).isoformat()),
                )
                return cur.lastrowid
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to add record to {collection}: {e}") from e

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        self._check_collection(collection)
        try:
            with self._lock:
                rows = self._conn.execute(f"SELECT id, data FROM {collection} ORDER BY id").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read {collection}: {e}") from e
        return [{**json.loads(data), "id": record_id} for record_id, data in rows]

    def update(self, collection: str, record_id: int, partial: Dict[str, Any]) -> None:
        self._check_collection(collection)
        try:
            with self._write() as conn:
                row = conn.execute(f"SELECT data FROM {collection} WHERE id = ?", (record_id,)).fetchone()
                if row is None:
                    raise PersistenceError(f"No record {record_id} in {collection}")
                data = {**json.loads(row[0]), **partial}
                conn.execute(f"UPDATE {collection} SET data = ? WHERE id = ?", (json.dumps(data), record_id))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to update record {record_id} in {collection}: {e}") from e

    def clear(self, collection: str) -> None:
        self._check_collection(collection)
        try:
            with self._write() as conn:
                conn.execute(f"DELETE FROM {collection}")
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clear {collection}: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            try:
                self._conn.execute("BEGIN")
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to begin transaction: {e}") from e
            self._depth = 1
            try:
                yield
            except BaseException:
                self._depth = 0
                self._conn.execute("ROLLBACK")
                self.logger.debug("SQLite transaction rolled back")
                raise
            self._depth = 0
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._conn.execute("ROLLBACK")
                raise PersistenceError(f"Failed to commit transaction: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()
