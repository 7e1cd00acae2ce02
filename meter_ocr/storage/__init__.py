from meter_ocr.storage.base import PersistenceStore, OBSERVATIONS, MISTAKE_PATTERNS, CORRECTION_RULES
from meter_ocr.storage.memory import InMemoryStore
from meter_ocr.storage.sqlite import SQLiteStore

__all__ = [
    "PersistenceStore",
    "InMemoryStore",
    "SQLiteStore",
    "OBSERVATIONS",
    "MISTAKE_PATTERNS",
    "CORRECTION_RULES",
]
