"""Test helper utilities for building learning engine fixtures."""

from typing import Optional

from meter_ocr.learning.coordinator import LearningCoordinator
from meter_ocr.types import (
    Context,
    CorrectionRule,
    ErrorKind,
    ImageFeatures,
    Observation,
    OCRResult,
    RuleConditions,
    make_pattern_key,
)


def create_test_context(device_type: Optional[str] = "gas", sharpness: Optional[float] = None, brightness: Optional[float] = None) -> Context:
    features = None
    if sharpness is not None or brightness is not None:
        features = ImageFeatures(brightness=brightness, sharpness=sharpness)
    return Context(device_type=device_type, image_features=features)


def create_test_observation(
    original: str = "1234",
    corrected: str = "1334",
    error_kind: ErrorKind = ErrorKind.DIGIT_CONFUSION,
    confidence: float = 0.5,
    context: Optional[Context] = None,
    timestamp: str = "2024-01-01T00:00:00+00:00",
) -> Observation:
    return Observation(
        original_text=original,
        corrected_text=corrected,
        confidence=confidence,
        context=context or create_test_context(),
        error_kind=error_kind,
        timestamp=timestamp,
    )


def create_test_rule(
    original: str = "1234",
    corrected: str = "1334",
    error_kind: ErrorKind = ErrorKind.DIGIT_CONFUSION,
    device_types=("gas",),
    base_confidence: float = 0.5,
    effectiveness: float = 1.0,
    created_at: str = "2024-01-01T00:00:00+00:00",
    rule_id: Optional[int] = None,
) -> CorrectionRule:
    return CorrectionRule(
        pattern_key=make_pattern_key(error_kind, original, corrected),
        error_kind=error_kind,
        from_token=original,
        to_token=corrected,
        conditions=RuleConditions(allowed_device_types=frozenset(device_types)),
        base_confidence=base_confidence,
        effectiveness=effectiveness,
        created_at=created_at,
        id=rule_id,
    )


def submit_repeatedly(
    coordinator: LearningCoordinator,
    original: str,
    corrected: str,
    times: int,
    confidence: float = 0.5,
    device_type: Optional[str] = "gas",
) -> None:
    for _ in range(times):
        coordinator.submit_correction(
            OCRResult(text=original, confidence=confidence),
            corrected,
            context=Context(device_type=device_type),
        )
