from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, confloat

from meter_ocr.types import Context, ImageFeatures, OCRResult


class ImageFeaturesModel(BaseModel):
    brightness: Optional[confloat(ge=0.0, le=1.0)] = None
    contrast: Optional[confloat(ge=0.0, le=1.0)] = None
    sharpness: Optional[confloat(ge=0.0, le=1.0)] = None
    width: int = 0
    height: int = 0
    aspect_ratio: float = 1.0

    def to_features(self) -> ImageFeatures:
        return ImageFeatures(**self.model_dump())


class ContextModel(BaseModel):
    device_type: Optional[str] = Field(None, description="Meter type, e.g. gas, water, electricity")
    image_features: Optional[ImageFeaturesModel] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    def to_context(self) -> Context:
        return Context(
            device_type=self.device_type or None,
            image_features=self.image_features.to_features() if self.image_features else None,
            attributes=dict(self.attributes),
        )


class OCRResultModel(BaseModel):
    text: str = Field("", description="Reading as returned by the OCR engine")
    confidence: confloat(ge=0.0, le=1.0) = 0.0
    success: bool = True

    def to_result(self) -> OCRResult:
        return OCRResult(text=self.text, confidence=self.confidence, success=self.success)


class ApplyRequest(BaseModel):
    ocr_result: OCRResultModel
    context: ContextModel = Field(default_factory=ContextModel)


class CorrectionRequest(BaseModel):
    ocr_result: OCRResultModel
    user_text: str = Field(..., description="Value entered by the user")
    image_features: Optional[ImageFeaturesModel] = None
    context: ContextModel = Field(default_factory=ContextModel)
