from meter_ocr.learning.aggregator import MistakeAggregator
from meter_ocr.learning.classifier import PatternClassifier, digit_projection
from meter_ocr.learning.coordinator import LearningCoordinator
from meter_ocr.learning.engine import CorrectionEngine
from meter_ocr.learning.rules import RuleStore

__all__ = [
    "PatternClassifier",
    "digit_projection",
    "MistakeAggregator",
    "RuleStore",
    "CorrectionEngine",
    "LearningCoordinator",
]
