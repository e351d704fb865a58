"""Device-local look persistence."""

import logging
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, TypeAdapter

from lookbook.adapters.key_value_storage import KeyValueStorage
from lookbook.domain.errors import (
    CapacityExceededError,
    CorruptLocalStateError,
    StorageUnavailableError,
)
from lookbook.domain.looks import EncodedImage, Look, LookKind, newest_first

DEFAULT_STORAGE_KEY = "lookbook_looks"
DEFAULT_CAPACITY_BYTES = 4_500_000

logger = logging.getLogger(__name__)


class StoredLook(BaseModel):
    """Serialized form of a look on the device."""

    id: str
    kind: LookKind
    label: str
    created_at: datetime
    image: str


_COLLECTION = TypeAdapter(list[StoredLook])


@dataclass
class LocalLookStore:
    """Whole-collection look storage under a single key.

    Every write re-serializes the full collection so the stored value is
    always one consistent snapshot.
    """

    storage: KeyValueStorage
    key: str = DEFAULT_STORAGE_KEY
    capacity_bytes: int = DEFAULT_CAPACITY_BYTES

    def load_all(self) -> list[Look]:
        """Return stored looks newest-first; corrupt data reads as empty."""
        try:
            raw = self.storage.get(self.key)
            if raw is None:
                return []
            records = _COLLECTION.validate_json(raw)
            looks = [_to_look(record) for record in records]
        except ValueError as exc:
            error = CorruptLocalStateError(f"Stored looks under {self.key!r} are unreadable")
            error.__cause__ = exc
            logger.warning("Resetting local looks: %s", error, exc_info=error)
            return []
        return newest_first(looks)

    def save_all(self, looks: list[Look]) -> None:
        """Replace the stored collection.

        Raises CapacityExceededError when the serialized collection is over the
        ceiling and StorageUnavailableError when the device refuses the write.
        Neither leaves a partial value behind.
        """
        encoded = self._encode(looks)
        size = len(encoded)
        if size > self.capacity_bytes:
            raise CapacityExceededError(size, self.capacity_bytes)
        try:
            self.storage.set(self.key, encoded.decode("utf-8"))
        except OSError as exc:
            raise StorageUnavailableError("Device storage rejected the write") from exc

    def append_one(self, look: Look) -> list[Look]:
        """Prepend a look to the stored collection and return the result."""
        looks = [look, *self.load_all()]
        self.save_all(looks)
        return looks

    def remove_one(self, look_id: str) -> list[Look]:
        """Remove a look by id and return the remaining collection."""
        looks = [look for look in self.load_all() if look.id != look_id]
        self.save_all(looks)
        return looks

    def serialized_size(self, looks: list[Look]) -> int:
        """Return the stored size in bytes a collection would occupy."""
        return len(self._encode(looks))

    def clear(self) -> None:
        """Drop the stored collection."""
        self.storage.delete(self.key)

    def _encode(self, looks: list[Look]) -> bytes:
        return _COLLECTION.dump_json([_to_record(look) for look in looks])


def _to_record(look: Look) -> StoredLook:
    if look.payload is None:
        raise ValueError(f"Look {look.id} has no inline image to store locally")
    return StoredLook(
        id=look.id,
        kind=look.kind,
        label=look.label,
        created_at=look.created_at,
        image=look.payload.to_data_url(),
    )


def _to_look(record: StoredLook) -> Look:
    return Look(
        id=record.id,
        kind=record.kind,
        label=record.label,
        created_at=record.created_at,
        payload=EncodedImage.from_data_url(record.image),
    )
