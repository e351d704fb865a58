"""Domain models for generated looks."""

import base64
import binascii
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import StrEnum

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


class LookKind(StrEnum):
    """Feature that produced a look."""

    HAIRSTYLE = "hairstyle"
    CLOTHING = "clothing"


@dataclass(frozen=True)
class EncodedImage:
    """Self-describing encoded image payload."""

    mime_type: str
    data: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "EncodedImage":
        """Wrap raw image bytes, sniffing the MIME type from the signature."""
        return cls(mime_type=detect_mime_type(data), data=data)

    @classmethod
    def from_data_url(cls, data_url: str) -> "EncodedImage":
        """Parse a base64 ``data:`` URL (a bare base64 string is read as JPEG)."""
        if not data_url.startswith("data:"):
            return cls(mime_type="image/jpeg", data=_b64decode(data_url))
        header, sep, encoded = data_url.partition(",")
        if not sep or not header.endswith(";base64"):
            raise ValueError("Expected a base64 data URL")
        mime_type = header[len("data:") : -len(";base64")] or "image/jpeg"
        return cls(mime_type=mime_type, data=_b64decode(encoded))

    def to_data_url(self) -> str:
        """Return the payload as a base64 data URL."""
        encoded = base64.b64encode(self.data).decode("utf-8")
        return f"data:{self.mime_type};base64,{encoded}"

    @property
    def extension(self) -> str:
        """File extension matching the MIME type."""
        return _EXTENSIONS.get(self.mime_type, "jpg")


@dataclass(frozen=True)
class Look:
    """A persisted AI-generated artifact.

    Local looks carry the inline ``payload``. Remote looks, once persisted,
    carry ``image_url`` and ``remote_blob_ref`` instead.
    """

    id: str
    kind: LookKind
    label: str
    created_at: datetime
    payload: EncodedImage | None = None
    image_url: str | None = None
    remote_blob_ref: str | None = None

    @property
    def is_inline(self) -> bool:
        """Whether pixel data is embedded in the look."""
        return self.payload is not None

    def as_local(self) -> "Look":
        """Return a copy suitable for device storage (no remote references)."""
        return replace(self, image_url=None, remote_blob_ref=None)


def newest_first(looks: list[Look]) -> list[Look]:
    """Return looks ordered by creation time, newest first."""
    return sorted(looks, key=lambda look: _sort_key(look.created_at), reverse=True)


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def _b64decode(encoded: str) -> bytes:
    try:
        return base64.b64decode(encoded, validate=True)
    except binascii.Error as exc:
        raise ValueError("Invalid base64 image data") from exc


def _sort_key(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
