import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from meter_ocr.storage.base import MISTAKE_PATTERNS, PersistenceStore
from meter_ocr.types import ErrorKind, MistakePattern, Observation, make_pattern_key


class MistakeAggregator:
    """Accumulates classified observations into per-key mistake patterns.

    The durable log is append-only: every update writes a full snapshot of the
    pattern, so the store may hold several records per key. ``load`` folds them
    back, the most recent snapshot of each key winning.
    """

    def __init__(self, store: PersistenceStore, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._store = store
        self._lock = threading.RLock()
        self._patterns: Dict[str, MistakePattern] = {}

    def build(self, observation: Observation) -> MistakePattern:
        """Compute the pattern snapshot that ``observation`` would produce, without storing it."""
        key = make_pattern_key(observation.error_kind, observation.original_text, observation.corrected_text)
        with self._lock:
            existing = self._patterns.get(key)

        if existing is None:
            return MistakePattern(
                pattern_key=key,
                error_kind=observation.error_kind,
                original_text=observation.original_text,
                corrected_text=observation.corrected_text,
                occurrence_count=1,
                confidence_sum=observation.confidence,
                contexts=(observation.context,),
                first_seen=observation.timestamp,
                last_seen=observation.timestamp,
            )

        return MistakePattern(
            pattern_key=key,
            error_kind=existing.error_kind,
            original_text=existing.original_text,
            corrected_text=existing.corrected_text,
            occurrence_count=existing.occurrence_count + 1,
            confidence_sum=existing.confidence_sum + observation.confidence,
            contexts=existing.contexts + (observation.context,),
            first_seen=existing.first_seen,
            last_seen=observation.timestamp,
        )

    def commit(self, pattern: MistakePattern) -> None:
        with self._lock:
            self._patterns[pattern.pattern_key] = pattern

    def persist(self, pattern: MistakePattern) -> int:
        return self._store.add(MISTAKE_PATTERNS, pattern.to_dict())

    def record(self, observation: Observation) -> MistakePattern:
        """Upsert the pattern for ``observation``; the snapshot is stored before it becomes visible."""
        pattern = self.build(observation)
        self.persist(pattern)
        self.commit(pattern)
        self.logger.debug(f"Pattern {pattern.pattern_key} now seen {pattern.occurrence_count} time(s)")
        return pattern

    def load(self, records: Iterable[Dict[str, Any]]) -> int:
        """Replace in-memory state by folding stored stat records by key."""
        folded: Dict[str, MistakePattern] = {}
        for record in records:
            pattern = MistakePattern.from_dict(record)
            folded[pattern.pattern_key] = pattern
        with self._lock:
            self._patterns = folded
        self.logger.info(f"Loaded {len(folded)} mistake patterns")
        return len(folded)

    def get(self, pattern_key: str) -> Optional[MistakePattern]:
        with self._lock:
            return self._patterns.get(pattern_key)

    def patterns(self) -> List[MistakePattern]:
        """All patterns, ordered by key."""
        with self._lock:
            return [self._patterns[key] for key in sorted(self._patterns)]

    def for_kind(self, error_kind: ErrorKind) -> List[MistakePattern]:
        return [p for p in self.patterns() if p.error_kind == error_kind]

    def clear(self) -> None:
        with self._lock:
            self._patterns = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._patterns)
