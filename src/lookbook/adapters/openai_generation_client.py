"""OpenAI client for analysis, image edits and chat."""

import base64
import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from lookbook.domain.looks import EncodedImage
from lookbook.services.generation import GenerationClient


@dataclass
class OpenAIGenerationClient(GenerationClient):
    """Generation client backed by the OpenAI Responses and Images APIs."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIGenerationClient":
        """Create an OpenAI generation client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def analyze(
        self,
        *,
        model: str,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Call the Responses API with structured outputs."""
        response = await self.client.responses.create(
            model=model,
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {"type": "input_image", "image_url": image_data_url},
                    ],
                }
            ],
            text={
                "format": {
                    "type": "json_schema",
                    "name": "face_analysis",
                    "strict": True,
                    "schema": schema,
                }
            },
            store=False,
        )
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return json.loads(output_text)

    async def edit_images(
        self, *, model: str, images: list[EncodedImage], prompt: str
    ) -> EncodedImage:
        """Generate one image from the input images via the Images API."""
        files = [
            (f"input-{index}.{image.extension}", image.data, image.mime_type)
            for index, image in enumerate(images)
        ]
        response = await self.client.images.edit(
            model=model,
            image=files,
            prompt=prompt,
        )
        if not response.data or not response.data[0].b64_json:
            raise RuntimeError("OpenAI returned no image")
        return EncodedImage.from_bytes(base64.b64decode(response.data[0].b64_json))

    async def reply(
        self, *, model: str, instructions: str, messages: list[dict[str, str]]
    ) -> str:
        """Return the model's chat reply."""
        response = await self.client.responses.create(
            model=model,
            instructions=instructions,
            input=messages,
            store=False,
        )
        return response.output_text

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
