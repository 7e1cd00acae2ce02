import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from meter_ocr.exceptions import PersistenceError
from meter_ocr.storage.base import COLLECTIONS, PersistenceStore


class InMemoryStore(PersistenceStore):
    """Process-local store, used for tests and for running without a database.

    Transactions snapshot the collections and restore them if the block raises.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._records: Dict[str, Dict[int, Dict[str, Any]]] = {name: {} for name in COLLECTIONS}
        self._next_id = 1

    def add(self, collection: str, record: Dict[str, Any]) -> int:
        self._check_collection(collection)
        with self._lock:
            record_id = self._next_id
            self._next_id += 1
            self._records[collection][record_id] = copy.deepcopy(record)
            return record_id

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        self._check_collection(collection)
        with self._lock:
            return [{**copy.deepcopy(data), "id": record_id} for record_id, data in self._records[collection].items()]

    def update(self, collection: str, record_id: int, partial: Dict[str, Any]) -> None:
        self._check_collection(collection)
        with self._lock:
            if record_id not in self._records[collection]:
                raise PersistenceError(f"No record {record_id} in {collection}")
            self._records[collection][record_id].update(copy.deepcopy(partial))

    def clear(self, collection: str) -> None:
        self._check_collection(collection)
        with self._lock:
            self._records[collection].clear()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = copy.deepcopy(self._records)
            next_id = self._next_id
            try:
                yield
            except BaseException:
                self._records = snapshot
                self._next_id = next_id
                self.logger.debug("In-memory transaction rolled back")
                raise
