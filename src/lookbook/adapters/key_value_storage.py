"""Device key-value storage backends."""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


class KeyValueStorage(Protocol):
    """Interface for durable string storage under fixed keys."""

    def get(self, key: str) -> str | None:
        """Return the stored value, if present."""

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one atomically."""

    def delete(self, key: str) -> None:
        """Remove a stored value if present."""


@dataclass
class InMemoryKeyValueStorage(KeyValueStorage):
    """Process-local storage, used for tests and ephemeral sessions."""

    _values: dict[str, str]

    def __init__(self) -> None:
        self._values = {}

    def get(self, key: str) -> str | None:
        """Return the stored value, if present."""
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        """Store a value."""
        self._values[key] = value

    def delete(self, key: str) -> None:
        """Remove a stored value."""
        self._values.pop(key, None)


@dataclass
class FileKeyValueStorage(KeyValueStorage):
    """One file per key inside a device directory."""

    directory: Path

    def get(self, key: str) -> str | None:
        """Read the file for a key."""
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        """Write through a temp file and rename, so readers never see partial data."""
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        """Remove the file for a key."""
        self._path(key).unlink(missing_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"
