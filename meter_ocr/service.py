import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from meter_ocr.learning.coordinator import LearningCoordinator
from meter_ocr.ocr.base import BaseOCREngine
from meter_ocr.ocr.features import extract_image_features
from meter_ocr.types import Context, CorrectedResult, ImageFeatures, Observation, OCRResult


@dataclass
class LearningContext:
    """What was known about a photograph when it was recognized."""

    features: ImageFeatures
    context: Context

    def to_dict(self) -> Dict[str, Any]:
        return {"features": self.features.to_dict(), "context": self.context.to_dict()}


@dataclass
class LearningRecognition:
    """A recognition result with learned corrections applied."""

    ocr_result: OCRResult
    correction: CorrectedResult
    learning_context: Optional[LearningContext] = None

    @property
    def text(self) -> str:
        return self.correction.corrected_text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ocr_result": self.ocr_result.to_dict(),
            "correction": self.correction.to_dict(),
            "learning_context": self.learning_context.to_dict() if self.learning_context else None,
        }


class AdaptiveOCRService:
    """Runs OCR on meter photographs and closes the loop with the learning engine."""

    def __init__(
        self,
        engine: BaseOCREngine,
        coordinator: LearningCoordinator,
        feature_extractor: Callable[[Any], ImageFeatures] = extract_image_features,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.engine = engine
        self.coordinator = coordinator
        self.feature_extractor = feature_extractor

    def recognize_with_learning(self, image: Any, context: Optional[Context] = None) -> LearningRecognition:
        result = self.engine.recognize(image)
        if not result.success:
            self.logger.warning(f"Recognition failed, skipping learned corrections: {result.error}")
            return LearningRecognition(ocr_result=result, correction=CorrectedResult.unchanged(result))

        features = self.feature_extractor(image)
        context = (context or Context()).with_features(features)
        correction = self.coordinator.apply(result, context)

        return LearningRecognition(
            ocr_result=result,
            correction=correction,
            learning_context=LearningContext(features=features, context=context),
        )

    def register_user_correction(
        self, recognition: LearningRecognition, user_text: str, context: Optional[Context] = None
    ) -> Optional[Observation]:
        """Teach the engine the value the user entered for ``recognition``.

        The correction is recorded against the raw OCR text, not the already
        corrected one, so that learned rules keep describing the engine's errors.
        """
        if recognition.learning_context is None:
            self.logger.warning("No learning context available for correction")
            return None

        learned = recognition.learning_context.context
        if context is not None:
            learned = Context(
                device_type=context.device_type or learned.device_type,
                image_features=learned.image_features,
                attributes={**learned.attributes, **context.attributes},
            )

        return self.coordinator.submit_correction(
            recognition.ocr_result,
            user_text,
            image_features=recognition.learning_context.features,
            context=learned,
        )
