"""Generation service: face analysis, style previews, try-on and chat."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

from pydantic import ValidationError

from lookbook.domain.errors import GenerationFailedError
from lookbook.domain.looks import EncodedImage, Look, LookKind
from lookbook.domain.styling import AnalysisResponse, ChatMessage

TRY_ON_LABEL = "Virtual Try-On"

ANALYSIS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "face_analysis": {
            "type": "object",
            "properties": {
                "face_shape": {"type": "string"},
                "hair_type": {"type": "string"},
                "current_style": {"anyOf": [{"type": "string"}, {"type": "null"}]},
                "skin_undertone": {"anyOf": [{"type": "string"}, {"type": "null"}]},
                "confidence_score": {"type": "number", "minimum": 0.0, "maximum": 1.0},
            },
            "required": [
                "face_shape",
                "hair_type",
                "current_style",
                "skin_undertone",
                "confidence_score",
            ],
            "additionalProperties": False,
        },
        "recommended_styles": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "style_name": {"type": "string"},
                    "description": {"type": "string"},
                    "confidence_score": {
                        "anyOf": [{"type": "number"}, {"type": "null"}]
                    },
                    "salon_difficulty": {
                        "anyOf": [
                            {"type": "string", "enum": ["easy", "medium", "hard"]},
                            {"type": "null"},
                        ]
                    },
                    "maintenance_level": {
                        "anyOf": [
                            {"type": "string", "enum": ["low", "medium", "high"]},
                            {"type": "null"},
                        ]
                    },
                },
                "required": [
                    "style_name",
                    "description",
                    "confidence_score",
                    "salon_difficulty",
                    "maintenance_level",
                ],
                "additionalProperties": False,
            },
        },
    },
    "required": ["face_analysis", "recommended_styles"],
    "additionalProperties": False,
}

_ANALYSIS_PROMPT = (
    "Act as a professional stylist. Analyze this selfie: face shape, hair type "
    "and texture, current style, skin undertone and a confidence score (0-1). "
    "Recommend four distinct hairstyles (professional, trendy, traditional, "
    "low-maintenance) with why each suits the face shape, salon difficulty and "
    "maintenance level."
)

_CHAT_INSTRUCTIONS = (
    "You are a friendly personal stylist. Give concise, practical advice on "
    "hair, clothing and grooming."
)


class GenerationClient(Protocol):
    """Interface for the multimodal generation backend."""

    async def analyze(
        self,
        *,
        model: str,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Return structured analysis of an image."""

    async def edit_images(
        self, *, model: str, images: list[EncodedImage], prompt: str
    ) -> EncodedImage:
        """Return a single generated image derived from the inputs."""

    async def reply(
        self, *, model: str, instructions: str, messages: list[dict[str, str]]
    ) -> str:
        """Return a free-text chat reply."""


@dataclass
class GenerationService:
    """Builds generation requests and turns responses into looks."""

    client: GenerationClient
    model: str
    image_model: str

    async def analyze_face(self, selfie: EncodedImage) -> AnalysisResponse:
        """Analyze a selfie and recommend hairstyles."""
        try:
            raw = await self.client.analyze(
                model=self.model,
                image_data_url=selfie.to_data_url(),
                schema=ANALYSIS_SCHEMA,
                prompt=_ANALYSIS_PROMPT,
            )
        except Exception as exc:
            raise GenerationFailedError("Face analysis failed") from exc
        try:
            return AnalysisResponse.model_validate(raw)
        except ValidationError as exc:
            raise GenerationFailedError("Face analysis returned malformed data") from exc

    async def preview_hairstyle(
        self, selfie: EncodedImage, style_name: str, look_id: str | None = None
    ) -> Look:
        """Render the person with a new hairstyle."""
        prompt = (
            f"Transform the person in this image with the following hairstyle: "
            f"{style_name}. Keep the exact facial identity, skin texture and "
            "lighting. The hair must look photorealistic with a natural hairline."
        )
        image = await self._edit([selfie], prompt)
        return _new_look(image, LookKind.HAIRSTYLE, style_name, look_id)

    async def try_on(
        self, person: EncodedImage, garment: EncodedImage, look_id: str | None = None
    ) -> Look:
        """Render the person wearing the garment."""
        prompt = (
            "The first image is a person, the second is a garment. Generate a "
            "photorealistic image of the same person wearing the garment. Keep the "
            "person's face, body shape, pose and background unchanged."
        )
        image = await self._edit([person, garment], prompt)
        return _new_look(image, LookKind.CLOTHING, TRY_ON_LABEL, look_id)

    async def chat_reply(self, history: list[ChatMessage], message: str) -> str:
        """Answer a styling question given the transcript so far."""
        messages = [
            {
                "role": "assistant" if turn.role == "model" else "user",
                "content": turn.text,
            }
            for turn in history
        ]
        messages.append({"role": "user", "content": message})
        try:
            text = await self.client.reply(
                model=self.model, instructions=_CHAT_INSTRUCTIONS, messages=messages
            )
        except Exception as exc:
            raise GenerationFailedError("Chat reply failed") from exc
        if not text or not text.strip():
            raise GenerationFailedError("Chat reply was empty")
        return text

    async def _edit(self, images: list[EncodedImage], prompt: str) -> EncodedImage:
        try:
            result = await self.client.edit_images(
                model=self.image_model, images=images, prompt=prompt
            )
        except Exception as exc:
            raise GenerationFailedError("Image generation failed") from exc
        if not result.data:
            raise GenerationFailedError("Image generation returned no image")
        return result


def _new_look(
    image: EncodedImage, kind: LookKind, label: str, look_id: str | None
) -> Look:
    return Look(
        id=look_id or str(uuid4()),
        kind=kind,
        label=label,
        created_at=datetime.now(tz=UTC),
        payload=image,
    )
