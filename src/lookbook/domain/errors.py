"""Error taxonomy for look persistence and generation."""


class LookbookError(Exception):
    """Base error for the application."""


class NoActiveSessionError(LookbookError):
    """Raised when an operation needs an identity but none is active."""


class StorageError(LookbookError):
    """Base error for local storage writes."""


class CapacityExceededError(StorageError):
    """Raised when a local write would exceed the size ceiling."""

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        super().__init__(
            f"Local storage is full ({size_bytes} bytes > {limit_bytes} bytes). "
            "Delete old looks to save."
        )
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class StorageUnavailableError(StorageError):
    """Raised when the device storage rejects a write."""


class CorruptLocalStateError(LookbookError):
    """Raised when stored local looks cannot be decoded."""


class RemoteError(LookbookError):
    """Base error for remote store failures."""


class RemoteWriteError(RemoteError):
    """Raised when uploading a look or writing its record fails."""


class RemoteDeleteError(RemoteError):
    """Raised when deleting a remote look fails."""


class GenerationFailedError(LookbookError):
    """Raised when the generation service fails or returns nothing usable."""


class AuthUnavailableError(LookbookError):
    """Raised when the auth backend is unreachable or refuses the operation."""
