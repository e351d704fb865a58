"""Models for generation-service structured outputs."""

from typing import Literal

from pydantic import BaseModel, Field


class FaceAnalysis(BaseModel):
    """Face attributes extracted from a selfie."""

    face_shape: str
    hair_type: str
    current_style: str | None = None
    skin_undertone: str | None = None
    confidence_score: float = Field(ge=0.0, le=1.0)


class HairstyleRecommendation(BaseModel):
    """Single recommended hairstyle."""

    style_name: str
    description: str
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    salon_difficulty: Literal["easy", "medium", "hard"] | None = None
    maintenance_level: Literal["low", "medium", "high"] | None = None


class AnalysisResponse(BaseModel):
    """Structured output for face analysis."""

    face_analysis: FaceAnalysis
    recommended_styles: list[HairstyleRecommendation]


class ChatMessage(BaseModel):
    """One turn of the styling chat transcript."""

    role: Literal["user", "model"]
    text: str
