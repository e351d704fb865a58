"""Identity modes that select the active persistence backend."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AuthSession:
    """Session reported by the authentication backend."""

    user_id: str
    is_anonymous: bool = False


@dataclass(frozen=True)
class Unauthenticated:
    """No session; persistence is idle."""

    name: str = "unauthenticated"


@dataclass(frozen=True)
class Guest:
    """Explicit local-only mode."""

    name: str = "guest"


@dataclass(frozen=True)
class Authenticated:
    """Signed-in (possibly anonymous) user backed by remote storage."""

    user_id: str
    is_anonymous: bool = False
    name: str = "authenticated"


IdentityMode = Unauthenticated | Guest | Authenticated
