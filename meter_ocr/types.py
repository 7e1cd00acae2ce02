from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple
from enum import Enum


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class ErrorKind(str, Enum):
    """How an OCR reading diverged from the value the user entered."""

    DIGIT_CONFUSION = "digit_confusion"
    EXTRA_DIGIT = "extra_digit"
    MISSING_DIGIT = "missing_digit"
    FORMAT_ERROR = "format_error"
    OTHER = "other"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ImageFeatures:
    """Image-quality signals measured on the photographed meter face."""

    brightness: Optional[float] = None
    contrast: Optional[float] = None
    sharpness: Optional[float] = None
    width: int = 0
    height: int = 0
    aspect_ratio: float = 1.0

    @classmethod
    def neutral(cls) -> "ImageFeatures":
        """Features used when the image could not be measured."""
        return cls(brightness=0.5, contrast=0.5, sharpness=0.5, width=0, height=0, aspect_ratio=1.0)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ImageFeatures"]:
        if not data:
            return None
        return cls(
            brightness=data.get("brightness"),
            contrast=data.get("contrast"),
            sharpness=data.get("sharpness"),
            width=data.get("width", 0) or 0,
            height=data.get("height", 0) or 0,
            aspect_ratio=data.get("aspect_ratio", 1.0) or 1.0,
        )


@dataclass(frozen=True)
class Context:
    """Situational attributes captured alongside a reading.

    Every field is optional; a missing device type or missing image features
    simply means "unknown" and never makes a context invalid.
    """

    device_type: Optional[str] = None
    image_features: Optional[ImageFeatures] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Callers keep their own dict; the context holds a read-only copy.
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes or {})))

    def with_features(self, image_features: Optional[ImageFeatures]) -> "Context":
        """Return a copy carrying the given image features (existing ones win if none given)."""
        return Context(
            device_type=self.device_type,
            image_features=image_features or self.image_features,
            attributes=dict(self.attributes),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_type": self.device_type,
            "image_features": self.image_features.to_dict() if self.image_features else None,
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Context":
        """Create Context from dictionary, tolerating missing or null fields."""
        if not data:
            return cls()
        return cls(
            device_type=data.get("device_type") or None,
            image_features=ImageFeatures.from_dict(data.get("image_features")),
            attributes=dict(data.get("attributes") or {}),
        )


@dataclass
class OCRResult:
    """Output of an OCR engine for a single meter photograph."""

    text: str
    confidence: float
    timestamp: str = field(default_factory=utc_now)
    raw_text: str = ""
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: Optional[str] = None) -> "OCRResult":
        return cls(text="", confidence=0.0, success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OCRResult":
        return cls(
            text=data.get("text") or "",
            confidence=float(data.get("confidence") or 0.0),
            timestamp=data.get("timestamp") or utc_now(),
            raw_text=data.get("raw_text") or "",
            success=data.get("success", True),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class Observation:
    """One user correction of an OCR reading. Created once, never mutated."""

    original_text: str
    corrected_text: str
    confidence: float
    context: Context
    error_kind: ErrorKind
    timestamp: str = field(default_factory=utc_now)
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_text": self.original_text,
            "corrected_text": self.corrected_text,
            "confidence": self.confidence,
            "context": self.context.to_dict(),
            "error_kind": self.error_kind.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Observation":
        return cls(
            original_text=data["original_text"],
            corrected_text=data["corrected_text"],
            confidence=data["confidence"],
            context=Context.from_dict(data.get("context")),
            error_kind=ErrorKind(data["error_kind"]),
            timestamp=data["timestamp"],
            id=data.get("id"),
        )


def make_pattern_key(error_kind: ErrorKind, original_text: str, corrected_text: str) -> str:
    """Key identifying a mistake pattern: kind, original and corrected text joined by '|'."""
    return f"{ErrorKind(error_kind).value}|{original_text}|{corrected_text}"


@dataclass(frozen=True)
class MistakePattern:
    """Aggregated evidence for one (error kind, original, corrected) triple.

    Instances are replaced rather than mutated, so a reference held by a reader
    always describes one consistent snapshot.
    """

    pattern_key: str
    error_kind: ErrorKind
    original_text: str
    corrected_text: str
    occurrence_count: int
    confidence_sum: float
    contexts: Tuple[Context, ...]
    first_seen: str
    last_seen: str

    @property
    def average_confidence(self) -> float:
        return self.confidence_sum / self.occurrence_count if self.occurrence_count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern_key": self.pattern_key,
            "error_kind": self.error_kind.value,
            "original_text": self.original_text,
            "corrected_text": self.corrected_text,
            "occurrence_count": self.occurrence_count,
            "confidence_sum": self.confidence_sum,
            "contexts": [c.to_dict() for c in self.contexts],
            "first_seen": self.first_seen,
            "last_seen": self.last_seen,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MistakePattern":
        return cls(
            pattern_key=data["pattern_key"],
            error_kind=ErrorKind(data["error_kind"]),
            original_text=data["original_text"],
            corrected_text=data["corrected_text"],
            occurrence_count=data["occurrence_count"],
            confidence_sum=data["confidence_sum"],
            contexts=tuple(Context.from_dict(c) for c in data.get("contexts", [])),
            first_seen=data["first_seen"],
            last_seen=data["last_seen"],
        )


@dataclass(frozen=True)
class RuleConditions:
    """Situations in which a correction rule may fire."""

    allowed_device_types: FrozenSet[str] = frozenset()
    avg_quality_signal: float = 0.5
    lighting: Optional[str] = None

    def matches(self, context: Optional[Context]) -> bool:
        """An empty device set matches every context, including one with no device type."""
        if not self.allowed_device_types:
            return True
        device_type = context.device_type if context else None
        return device_type in self.allowed_device_types

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed_device_types": sorted(self.allowed_device_types),
            "avg_quality_signal": self.avg_quality_signal,
            "lighting": self.lighting,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RuleConditions":
        if not data:
            return cls()
        return cls(
            allowed_device_types=frozenset(data.get("allowed_device_types") or []),
            avg_quality_signal=data.get("avg_quality_signal", 0.5),
            lighting=data.get("lighting"),
        )


@dataclass(frozen=True)
class CorrectionRule:
    """A promoted, reusable transformation derived from a mistake pattern."""

    pattern_key: str
    error_kind: ErrorKind
    from_token: str
    to_token: str
    conditions: RuleConditions
    base_confidence: float
    effectiveness: float
    created_at: str
    usage_count: int = 0
    success_count: int = 0
    id: Optional[int] = None

    def sort_key(self) -> Tuple[float, str, str]:
        """Application order: most effective first, then oldest, then by key."""
        return (-self.effectiveness, self.created_at, self.pattern_key)

    def counters(self) -> Dict[str, Any]:
        return {
            "usage_count": self.usage_count,
            "success_count": self.success_count,
            "effectiveness": self.effectiveness,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern_key": self.pattern_key,
            "error_kind": self.error_kind.value,
            "from_token": self.from_token,
            "to_token": self.to_token,
            "conditions": self.conditions.to_dict(),
            "base_confidence": self.base_confidence,
            "effectiveness": self.effectiveness,
            "created_at": self.created_at,
            "usage_count": self.usage_count,
            "success_count": self.success_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorrectionRule":
        return cls(
            pattern_key=data["pattern_key"],
            error_kind=ErrorKind(data["error_kind"]),
            from_token=data["from_token"],
            to_token=data["to_token"],
            conditions=RuleConditions.from_dict(data.get("conditions")),
            base_confidence=data["base_confidence"],
            effectiveness=data["effectiveness"],
            created_at=data["created_at"],
            usage_count=data.get("usage_count", 0),
            success_count=data.get("success_count", 0),
            id=data.get("id"),
        )


@dataclass
class AppliedRule:
    """Trace entry for one rule that changed the working text."""

    rule_id: Optional[int]
    pattern_key: str
    from_text: str
    to_text: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CorrectedResult:
    """OCR output after learned corrections, keeping the original for audit."""

    corrected_text: str
    original_text: str
    confidence: float
    applied_rules: List[AppliedRule] = field(default_factory=list)

    @property
    def was_corrected(self) -> bool:
        return len(self.applied_rules) > 0

    @classmethod
    def unchanged(cls, ocr_result: OCRResult) -> "CorrectedResult":
        return cls(corrected_text=ocr_result.text, original_text=ocr_result.text, confidence=ocr_result.confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "corrected_text": self.corrected_text,
            "original_text": self.original_text,
            "confidence": self.confidence,
            "applied_rules": [r.to_dict() for r in self.applied_rules],
            "was_corrected": self.was_corrected,
        }


@dataclass
class LearningStatistics:
    """Aggregate counters describing what the engine has learned so far."""

    observation_count: int
    rule_count: int
    pattern_count: int
    success_rate: float

    @property
    def success_rate_percent(self) -> float:
        return self.success_rate * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "observation_count": self.observation_count,
            "rule_count": self.rule_count,
            "pattern_count": self.pattern_count,
            "success_rate": self.success_rate,
            "success_rate_percent": self.success_rate_percent,
        }
