"""Pydantic models for the HTTP surface."""

from datetime import datetime

from pydantic import BaseModel, Field

from lookbook.domain.looks import LookKind
from lookbook.domain.styling import ChatMessage


class LookIn(BaseModel):
    """Look produced by the UI and submitted for saving."""

    id: str | None = None
    kind: LookKind
    label: str
    image: str = Field(description="Base64 data URL of the generated image")
    created_at: datetime | None = None


class LookOut(BaseModel):
    """Look as rendered by the UI."""

    id: str
    kind: LookKind
    label: str
    created_at: datetime
    image_url: str | None


class SaveOut(BaseModel):
    """Outcome of a save request."""

    look: LookOut
    backend: str
    warning: str | None = None


class SessionOut(BaseModel):
    """Current identity mode."""

    mode: str
    user_id: str | None = None
    is_anonymous: bool = False


class HairstyleRequest(BaseModel):
    """Request to preview a hairstyle on a selfie."""

    selfie: str
    style_name: str


class TryOnRequest(BaseModel):
    """Request to composite a garment onto a person."""

    person: str
    garment: str


class FaceAnalysisRequest(BaseModel):
    """Request to analyze a selfie."""

    selfie: str


class ChatRequest(BaseModel):
    """Styling chat request."""

    message: str
    history: list[ChatMessage] = Field(default_factory=list)


class ChatOut(BaseModel):
    """Styling chat reply."""

    reply: str
