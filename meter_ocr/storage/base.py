from abc import ABC, abstractmethod
from typing import Any, ContextManager, Dict, List

OBSERVATIONS = "observations"
MISTAKE_PATTERNS = "mistake_patterns"
CORRECTION_RULES = "correction_rules"

COLLECTIONS = (OBSERVATIONS, MISTAKE_PATTERNS, CORRECTION_RULES)


class PersistenceStore(ABC):
    """Durable record store holding the learning engine's collections.

    Records are plain JSON-serializable dicts. ``get_all`` returns them in
    insertion order with the store-assigned ``id`` merged in. Every failure is
    reported as ``PersistenceError``.
    """

    @abstractmethod
    def add(self, collection: str, record: Dict[str, Any]) -> int:
        """Append a record and return its id."""
        pass

    @abstractmethod
    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        """Return every record of a collection, oldest first."""
        pass

    @abstractmethod
    def update(self, collection: str, record_id: int, partial: Dict[str, Any]) -> None:
        """Merge ``partial`` into an existing record."""
        pass

    @abstractmethod
    def clear(self, collection: str) -> None:
        pass

    @abstractmethod
    def transaction(self) -> ContextManager[None]:
        """Group writes so that they are persisted all together or not at all."""
        pass

    def clear_all(self) -> None:
        """Empty every collection in a single transaction."""
        with self.transaction():
            for collection in COLLECTIONS:
                self.clear(collection)

    def close(self) -> None:
        pass

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")
