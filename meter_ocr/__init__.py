from meter_ocr.core.config import LearningConfig, StorageConfig, OCRConfig
from meter_ocr.learning.coordinator import LearningCoordinator
from meter_ocr.types import Context, CorrectedResult, CorrectionRule, ErrorKind, ImageFeatures, MistakePattern, OCRResult
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("meter-ocr-learning")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = [
    "LearningCoordinator",
    "LearningConfig",
    "StorageConfig",
    "OCRConfig",
    "Context",
    "CorrectedResult",
    "CorrectionRule",
    "ErrorKind",
    "ImageFeatures",
    "MistakePattern",
    "OCRResult",
]
