import logging
import threading
from dataclasses import replace
from typing import List, Optional

from meter_ocr.core.config import LearningConfig
from meter_ocr.learning.aggregator import MistakeAggregator
from meter_ocr.learning.classifier import PatternClassifier
from meter_ocr.learning.engine import CorrectionEngine
from meter_ocr.learning.rules import RuleStore
from meter_ocr.storage.base import CORRECTION_RULES, MISTAKE_PATTERNS, OBSERVATIONS, PersistenceStore
from meter_ocr.types import (
    Context,
    CorrectedResult,
    CorrectionRule,
    ErrorKind,
    ImageFeatures,
    LearningStatistics,
    MistakePattern,
    Observation,
    OCRResult,
)


class LearningCoordinator:
    """Entry point of the learning engine.

    Construct one per process, call ``initialize()`` to replay persisted state
    and ``shutdown()`` when done. ``submit_correction`` is the only path that
    adds evidence; ``apply`` corrects new OCR output with the rules learned so
    far.
    """

    def __init__(
        self,
        store: PersistenceStore,
        config: Optional[LearningConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.config = config or LearningConfig()
        self.store = store
        self.classifier = PatternClassifier()
        self.aggregator = MistakeAggregator(store, logger=self.logger)
        self.rule_store = RuleStore(store, self.aggregator, config=self.config, logger=self.logger)
        self.engine = CorrectionEngine(self.rule_store, config=self.config, logger=self.logger)
        self._write_lock = threading.RLock()
        self._observation_count = 0
        self.is_initialized = False

    def initialize(self) -> None:
        """Rebuild in-memory patterns and rules from the persistence store."""
        with self._write_lock:
            self._observation_count = len(self.store.get_all(OBSERVATIONS))
            self.aggregator.load(self.store.get_all(MISTAKE_PATTERNS))
            self.rule_store.load(self.store.get_all(CORRECTION_RULES))
            self.is_initialized = True
        self.logger.info(
            f"Learning engine initialized with {self._observation_count} observations, "
            f"{len(self.aggregator)} patterns and {len(self.rule_store)} rules"
        )

    def shutdown(self) -> None:
        with self._write_lock:
            self.store.close()
            self.is_initialized = False
        self.logger.info("Learning engine shut down")

    def submit_correction(
        self,
        original_result: OCRResult,
        user_text: str,
        image_features: Optional[ImageFeatures] = None,
        context: Optional[Context] = None,
    ) -> Optional[Observation]:
        """Record a user correction of ``original_result`` and promote rules it qualifies.

        Everything is written in one store transaction before memory is updated;
        a ``PersistenceError`` propagates and leaves in-memory state untouched.
        Returns None when the user kept the OCR text as is.
        """
        original_text = original_result.text or ""
        user_text = user_text or ""
        if original_text == user_text:
            self.logger.debug(f"Reading '{user_text}' confirmed without changes; nothing to learn")
            return None

        context = (context or Context()).with_features(image_features)
        observation = Observation(
            original_text=original_text,
            corrected_text=user_text,
            confidence=min(max(original_result.confidence or 0.0, 0.0), 1.0),
            context=context,
            error_kind=self.classifier.classify(original_text, user_text),
        )

        with self._write_lock, self.rule_store.promotion_lock:
            pattern = self.aggregator.build(observation)
            candidates = self.rule_store.promotable(observation.error_kind, self._patterns_with(pattern))
            with self.store.transaction():
                observation_id = self.store.add(OBSERVATIONS, observation.to_dict())
                self.aggregator.persist(pattern)
                new_rules = [self.rule_store.persist(rule) for rule in candidates]

            self.aggregator.commit(pattern)
            for rule in new_rules:
                self.rule_store.commit(rule)
            self._observation_count += 1

        self.logger.info(
            f"Saved correction '{original_text}' -> '{user_text}' as {observation.error_kind.value} "
            f"({pattern.occurrence_count} occurrence(s))"
        )
        return replace(observation, id=observation_id)

    def _patterns_with(self, staged: MistakePattern) -> List[MistakePattern]:
        patterns = [p for p in self.aggregator.for_kind(staged.error_kind) if p.pattern_key != staged.pattern_key]
        patterns.append(staged)
        return patterns

    def apply(self, ocr_result: OCRResult, context: Optional[Context] = None) -> CorrectedResult:
        if not self.is_initialized:
            self.logger.warning("Learning engine not initialized; returning OCR output unchanged")
            return CorrectedResult.unchanged(ocr_result)
        return self.engine.apply(ocr_result, context)

    def get_statistics(self) -> LearningStatistics:
        rules = self.rule_store.rules()
        success_rate = sum(rule.effectiveness for rule in rules) / len(rules) if rules else 0.0
        return LearningStatistics(
            observation_count=self._observation_count,
            rule_count=len(rules),
            pattern_count=len(self.aggregator),
            success_rate=success_rate,
        )

    def list_rules(self) -> List[CorrectionRule]:
        return self.rule_store.rules()

    def list_patterns(self) -> List[MistakePattern]:
        return self.aggregator.patterns()

    def list_observations(self, error_kind: Optional[ErrorKind] = None) -> List[Observation]:
        """Stored user corrections, oldest first, optionally only those of ``error_kind``."""
        observations = [Observation.from_dict(record) for record in self.store.get_all(OBSERVATIONS)]
        if error_kind is not None:
            observations = [o for o in observations if o.error_kind == error_kind]
        return observations

    def reset_learning_state(self) -> None:
        """Delete all observations, patterns and rules, durably first."""
        with self._write_lock:
            self.store.clear_all()
            self.aggregator.clear()
            self.rule_store.clear()
            self._observation_count = 0
        self.logger.info("Learning state reset")
