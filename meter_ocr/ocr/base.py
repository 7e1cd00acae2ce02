from abc import ABC, abstractmethod
from typing import Any, Optional
import logging

from meter_ocr.exceptions import OCREngineError
from meter_ocr.types import OCRResult


class BaseOCREngine(ABC):
    """Base class for OCR engines that read a meter photograph.

    Subclasses implement ``_recognize``; ``recognize`` turns any engine failure
    into a failed ``OCRResult`` so callers never have to handle exceptions.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    def get_name(self) -> str:
        """Return the name of this OCR engine."""
        pass

    @abstractmethod
    def _recognize(self, image: Any) -> OCRResult:
        """Run recognition, raising OCREngineError on failure."""
        pass

    def recognize(self, image: Any) -> OCRResult:
        self.logger.debug(f"Starting recognition with {self.get_name()}")
        try:
            result = self._recognize(image)
        except OCREngineError as e:
            self.logger.error(f"{self.get_name()} recognition failed: {e}")
            return OCRResult.failed(str(e))
        self.logger.debug(f"Recognized '{result.text}' with confidence {result.confidence:.2f}")
        return result
