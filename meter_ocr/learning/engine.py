import logging
from typing import Callable, Dict, List, Optional

from meter_ocr.core.config import LearningConfig
from meter_ocr.exceptions import PersistenceError
from meter_ocr.learning.rules import RuleStore
from meter_ocr.types import AppliedRule, Context, CorrectedResult, CorrectionRule, ErrorKind, OCRResult


def replace_all(text: str, rule: CorrectionRule) -> str:
    return text.replace(rule.from_token, rule.to_token)


def replace_first(text: str, rule: CorrectionRule) -> str:
    return text.replace(rule.from_token, rule.to_token, 1)


def keep_format(text: str, rule: CorrectionRule) -> str:
    # Format normalization is not implemented; format rules are promoted but leave text as is.
    return text


REPLACEMENT_POLICIES: Dict[ErrorKind, Callable[[str, CorrectionRule], str]] = {
    ErrorKind.DIGIT_CONFUSION: replace_all,
    ErrorKind.EXTRA_DIGIT: replace_all,
    ErrorKind.MISSING_DIGIT: replace_first,
    ErrorKind.FORMAT_ERROR: keep_format,
}


class CorrectionEngine:
    """Applies learned correction rules to fresh OCR output.

    Rules are tried in the store's deterministic order and compose: each rule
    sees the text as already rewritten by the rules before it.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        config: Optional[LearningConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.config = config or LearningConfig()
        self._rule_store = rule_store

    def should_apply(self, rule: CorrectionRule, text: str, confidence: float, context: Optional[Context]) -> bool:
        if not rule.conditions.matches(context):
            self.logger.debug(f"Rule {rule.pattern_key} skipped: device type does not match")
            return False
        if not confidence < rule.base_confidence + self.config.confidence_margin:
            self.logger.debug(f"Rule {rule.pattern_key} skipped: OCR confidence {confidence:.2f} too high")
            return False
        return bool(text) and rule.from_token in text

    @staticmethod
    def apply_rule(rule: CorrectionRule, text: str) -> str:
        if not text:
            return text
        policy = REPLACEMENT_POLICIES.get(rule.error_kind)
        if policy is None:
            return text
        return policy(text, rule)

    def apply(self, ocr_result: OCRResult, context: Optional[Context] = None) -> CorrectedResult:
        """Correct ``ocr_result`` with every eligible rule, returning the text and a trace.

        Failed recognitions and empty text pass through untouched. Usage
        counters of all applied rules are recorded in one write; if it fails, no
        counter changes and the raw OCR text is returned instead.
        """
        if not ocr_result.success or not ocr_result.text:
            return CorrectedResult.unchanged(ocr_result)

        try:
            return self._apply(ocr_result, context)
        except PersistenceError as e:
            self.logger.error(f"Failed to record rule usage, returning raw OCR output: {e}")
            return CorrectedResult.unchanged(ocr_result)

    def _apply(self, ocr_result: OCRResult, context: Optional[Context]) -> CorrectedResult:
        result = CorrectedResult.unchanged(ocr_result)
        text = ocr_result.text
        applied: List[CorrectionRule] = []

        for rule in self._rule_store.ordered_rules():
            if not self.should_apply(rule, text, ocr_result.confidence, context):
                continue

            corrected = self.apply_rule(rule, text)
            if corrected == text:
                continue

            result.applied_rules.append(
                AppliedRule(rule_id=rule.id, pattern_key=rule.pattern_key, from_text=text, to_text=corrected)
            )
            self.logger.debug(f"Rule {rule.pattern_key} corrected '{text}' -> '{corrected}'")
            applied.append(rule)
            text = corrected

        # Counters are written together once the text is final.
        if applied:
            self._rule_store.record_feedback([(rule, True) for rule in applied])
        result.corrected_text = text
        return result
