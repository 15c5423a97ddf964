from __future__ import annotations

from pydantic import BaseModel, Field


class ClassifyRequest(BaseModel):
    image_base64: str = Field(..., description="Base64 encoded camera frame")
    device_id: str = Field("unknown", description="Identifier of the scanning device")


class ClassificationResponse(BaseModel):
    label: str
    confidence: float
    features: list[str] = Field(
        default_factory=list, description="Security checks the frame passed"
    )


__all__ = ["ClassifyRequest", "ClassificationResponse"]
