from meter_ocr.ocr.base import BaseOCREngine
from meter_ocr.ocr.features import extract_image_features
from meter_ocr.ocr.reading import normalize_reading

__all__ = ["BaseOCREngine", "extract_image_features", "normalize_reading"]
