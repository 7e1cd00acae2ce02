from unittest.mock import patch

import pytest
from PIL import Image

from meter_ocr.exceptions import OCREngineError
from meter_ocr.ocr.base import BaseOCREngine
from meter_ocr.types import OCRResult


class StaticEngine(BaseOCREngine):
    def __init__(self, result=None, error=None, logger=None):
        super().__init__(logger)
        self.result = result
        self.error = error

    def get_name(self) -> str:
        return "Static"

    def _recognize(self, image):
        if self.error:
            raise self.error
        return self.result


def test_recognize_returns_engine_result(test_logger):
    result = OCRResult(text="1234", confidence=0.8)
    assert StaticEngine(result=result, logger=test_logger).recognize("meter.jpg") is result


def test_engine_error_becomes_failed_result(test_logger):
    result = StaticEngine(error=OCREngineError("no text"), logger=test_logger).recognize("meter.jpg")
    assert result.success is False
    assert result.text == ""
    assert result.confidence == 0.0
    assert result.error == "no text"


def test_tesseract_engine_reads_digits():
    pytesseract = pytest.importorskip("pytesseract")
    from meter_ocr.ocr.tesseract import TesseractEngine

    data = {"text": ["", "0123", "45"], "conf": ["-1", "80", "60"]}
    with patch.object(pytesseract, "image_to_data", return_value=data) as image_to_data:
        result = TesseractEngine().recognize(Image.new("L", (20, 10)))

    assert image_to_data.call_args.kwargs["config"].startswith("--psm 8")
    assert result.success is True
    assert result.raw_text == "0123 45"
    assert result.text == "12345"
    assert result.confidence == pytest.approx(0.7)


def test_tesseract_engine_without_reading_fails():
    pytesseract = pytest.importorskip("pytesseract")
    from meter_ocr.ocr.tesseract import TesseractEngine

    with patch.object(pytesseract, "image_to_data", return_value={"text": ["abc"], "conf": ["90"]}):
        result = TesseractEngine().recognize(Image.new("L", (20, 10)))

    assert result.success is False
    assert result.text == ""
