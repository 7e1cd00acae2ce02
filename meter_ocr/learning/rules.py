import logging
import threading
from dataclasses import replace
from statistics import mean
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from meter_ocr.core.config import LearningConfig
from meter_ocr.learning.aggregator import MistakeAggregator
from meter_ocr.storage.base import CORRECTION_RULES, PersistenceStore
from meter_ocr.types import Context, CorrectionRule, ErrorKind, MistakePattern, RuleConditions, utc_now


class RuleStore:
    """Owns the promoted correction rules and their usage feedback.

    Rule objects are replaced wholesale, so readers holding a rule (or a
    snapshot from ``ordered_rules``) never see a half-updated set of counters.
    Each change is written to the persistence store before it is published in
    memory. Lock order is promotion or feedback lock, then the store, then the
    rule lock; the rule lock is only held for in-memory work.
    """

    def __init__(
        self,
        store: PersistenceStore,
        aggregator: MistakeAggregator,
        config: Optional[LearningConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.config = config or LearningConfig()
        self._store = store
        self._aggregator = aggregator
        self._lock = threading.RLock()
        self._feedback_lock = threading.Lock()
        self.promotion_lock = threading.RLock()
        self._rules: Dict[str, CorrectionRule] = {}
        self._ordered: Tuple[CorrectionRule, ...] = ()

    # Promotion

    def analyze_conditions(self, contexts: Sequence[Context]) -> RuleConditions:
        device_types = frozenset(c.device_type for c in contexts if c.device_type)

        features = [c.image_features for c in contexts if c.image_features is not None]
        sharpness = [f.sharpness for f in features if f.sharpness is not None]
        brightness = [f.brightness for f in features if f.brightness is not None]

        lighting = None
        if brightness:
            lighting = "good" if mean(brightness) > self.config.lighting_threshold else "poor"

        return RuleConditions(
            allowed_device_types=device_types,
            avg_quality_signal=mean(sharpness) if sharpness else self.config.default_quality_signal,
            lighting=lighting,
        )

    def build_rule(self, pattern: MistakePattern) -> CorrectionRule:
        return CorrectionRule(
            pattern_key=pattern.pattern_key,
            error_kind=pattern.error_kind,
            from_token=pattern.original_text,
            to_token=pattern.corrected_text,
            conditions=self.analyze_conditions(pattern.contexts),
            base_confidence=pattern.average_confidence,
            effectiveness=min(pattern.occurrence_count / self.config.promotion_threshold, 1.0),
            created_at=utc_now(),
        )

    def promotable(self, error_kind: ErrorKind, patterns: Iterable[MistakePattern]) -> List[CorrectionRule]:
        """Rules that patterns of ``error_kind`` qualify for and that do not exist yet."""
        with self._lock:
            return [
                self.build_rule(pattern)
                for pattern in patterns
                if pattern.error_kind == error_kind
                and pattern.occurrence_count >= self.config.promotion_threshold
                and pattern.pattern_key not in self._rules
            ]

    def persist(self, rule: CorrectionRule) -> CorrectionRule:
        """Write a new rule to the store, returning it with its assigned id."""
        record_id = self._store.add(CORRECTION_RULES, rule.to_dict())
        return replace(rule, id=record_id)

    def commit(self, rule: CorrectionRule) -> bool:
        """Publish a persisted rule unless one already exists for its pattern key."""
        with self._lock:
            if rule.pattern_key in self._rules:
                self.logger.warning(f"Rule for {rule.pattern_key} already exists; keeping the original")
                return False
            self._rules[rule.pattern_key] = rule
            self._reindex()
        self.logger.info(f"Created new correction rule: {rule.pattern_key}")
        return True

    def check_promotion(
        self, error_kind: ErrorKind, patterns: Optional[Iterable[MistakePattern]] = None
    ) -> List[CorrectionRule]:
        """Promote every qualifying pattern of ``error_kind`` that has no rule yet."""
        if patterns is None:
            patterns = self._aggregator.for_kind(error_kind)

        created = []
        with self.promotion_lock:
            candidates = self.promotable(error_kind, patterns)
            if not candidates:
                return created
            with self._store.transaction():
                persisted = [self.persist(rule) for rule in candidates]
            for rule in persisted:
                if self.commit(rule):
                    created.append(rule)
        return created

    # Feedback

    def update_effectiveness(self, rule: CorrectionRule, applied: bool) -> CorrectionRule:
        """Count one application attempt of ``rule`` and recompute its effectiveness."""
        return self.record_feedback([(rule, applied)])[0]

    def record_feedback(self, outcomes: Sequence[Tuple[CorrectionRule, bool]]) -> List[CorrectionRule]:
        """Count application attempts for several rules at once.

        The new counters are written in one store transaction and published in
        memory only after it commits, so a failed write changes nothing. The
        rule lock is never held while the store is busy.
        """
        with self._feedback_lock:
            with self._lock:
                staged: Dict[str, CorrectionRule] = {}
                updated = []
                for rule, applied in outcomes:
                    current = staged.get(rule.pattern_key) or self._rules.get(rule.pattern_key, rule)
                    usage_count = current.usage_count + 1
                    success_count = current.success_count + (1 if applied else 0)
                    new_rule = replace(
                        current,
                        usage_count=usage_count,
                        success_count=success_count,
                        effectiveness=success_count / usage_count,
                    )
                    staged[rule.pattern_key] = new_rule
                    updated.append(new_rule)

            persisted = [rule for rule in staged.values() if rule.id is not None]
            if persisted:
                with self._store.transaction():
                    for rule in persisted:
                        self._store.update(CORRECTION_RULES, rule.id, rule.counters())

            with self._lock:
                known = {key: rule for key, rule in staged.items() if key in self._rules}
                if known:
                    self._rules.update(known)
                    self._reindex()
        return updated

    # Reads

    def _reindex(self) -> None:
        self._ordered = tuple(sorted(self._rules.values(), key=CorrectionRule.sort_key))

    def ordered_rules(self) -> Tuple[CorrectionRule, ...]:
        """Rules in application order: effectiveness desc, created_at asc, pattern_key asc."""
        with self._lock:
            return self._ordered

    def rules(self) -> List[CorrectionRule]:
        return list(self.ordered_rules())

    def get(self, pattern_key: str) -> Optional[CorrectionRule]:
        with self._lock:
            return self._rules.get(pattern_key)

    def load(self, records: Iterable[Dict[str, Any]]) -> int:
        """Replace in-memory rules with stored ones; the first record per key wins."""
        loaded: Dict[str, CorrectionRule] = {}
        for record in records:
            rule = CorrectionRule.from_dict(record)
            if rule.pattern_key in loaded:
                self.logger.warning(f"Ignoring duplicate stored rule {rule.id} for {rule.pattern_key}")
                continue
            loaded[rule.pattern_key] = rule
        with self._lock:
            self._rules = loaded
            self._reindex()
        self.logger.info(f"Loaded {len(loaded)} correction rules")
        return len(loaded)

    def clear(self) -> None:
        with self._lock:
            self._rules = {}
            self._ordered = ()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rules)
