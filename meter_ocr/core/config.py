import os
from dataclasses import dataclass, field


def default_db_path() -> str:
    return os.getenv(
        "METER_OCR_DB_PATH",
        os.path.join(os.path.expanduser("~"), "meter-ocr", "learning.sqlite3"),
    )


@dataclass
class LearningConfig:
    """Configuration for the correction-rule learning engine."""

    promotion_threshold: int = 5
    confidence_margin: float = 0.2
    default_quality_signal: float = 0.5
    lighting_threshold: float = 0.5

    def __post_init__(self):
        if self.promotion_threshold < 1:
            raise ValueError("promotion_threshold must be at least 1")


@dataclass
class StorageConfig:
    """Configuration for the persistence store."""

    # ":memory:" keeps the database in process memory
    db_path: str = field(default_factory=default_db_path)


@dataclass
class OCRConfig:
    """Configuration for the Tesseract OCR adapter."""

    language: str = "eng"
    # Digits and separators only, single word page segmentation, LSTM engine
    tesseract_config: str = "--psm 8 --oem 1 -c tessedit_char_whitelist=0123456789.,"
