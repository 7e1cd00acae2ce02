from typing import Any, Optional
import logging

from meter_ocr.core.config import OCRConfig
from meter_ocr.exceptions import OCREngineError
from meter_ocr.ocr.base import BaseOCREngine
from meter_ocr.ocr.features import open_image
from meter_ocr.ocr.reading import normalize_reading
from meter_ocr.types import OCRResult


class TesseractEngine(BaseOCREngine):
    """Reads meter digits with Tesseract through pytesseract."""

    def __init__(self, config: Optional[OCRConfig] = None, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.config = config or OCRConfig()

    def get_name(self) -> str:
        return "Tesseract"

    def _recognize(self, image: Any) -> OCRResult:
        import pytesseract

        try:
            img = open_image(image)
            data = pytesseract.image_to_data(
                img,
                lang=self.config.language,
                config=self.config.tesseract_config,
                output_type=pytesseract.Output.DICT,
            )
        except (OSError, pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
            raise OCREngineError(str(e)) from e

        words = []
        confidences = []
        for text, conf in zip(data.get("text", []), data.get("conf", [])):
            conf = float(conf)
            if text and text.strip() and conf >= 0:
                words.append(text.strip())
                confidences.append(conf)

        raw_text = " ".join(words)
        self.logger.debug(f"Raw OCR text: {raw_text!r}")

        reading = normalize_reading(raw_text)
        if reading is None:
            raise OCREngineError(f"No meter reading found in OCR text {raw_text!r}")

        confidence = sum(confidences) / len(confidences) / 100 if confidences else 0.0
        return OCRResult(text=reading, confidence=min(max(confidence, 0.0), 1.0), raw_text=raw_text)
