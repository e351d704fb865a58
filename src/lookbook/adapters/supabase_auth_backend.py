"""Supabase-backed authentication backend."""

from collections.abc import Callable
from dataclasses import dataclass

from supabase import Client

from lookbook.domain.errors import AuthUnavailableError
from lookbook.domain.identity import AuthSession
from lookbook.domain.subscriptions import Subscription
from lookbook.services.identity import AuthBackend


@dataclass
class SupabaseAuthBackend(AuthBackend):
    """Auth backend over the Supabase auth client."""

    client: Client

    def current_session(self) -> AuthSession | None:
        """Return the active session, if any."""
        return _to_auth_session(self.client.auth.get_session())

    def on_session_change(
        self, callback: Callable[[AuthSession | None], None]
    ) -> Subscription:
        """Forward auth state changes as sessions."""

        def handle(_event: object, session: object) -> None:
            callback(_to_auth_session(session))

        subscription = self.client.auth.on_auth_state_change(handle)
        return Subscription(subscription.unsubscribe)

    def sign_in_anonymously(self) -> AuthSession:
        """Start an anonymous session."""
        try:
            response = self.client.auth.sign_in_anonymously()
        except Exception as exc:
            raise AuthUnavailableError("Anonymous sign-in is unavailable") from exc
        session = _to_auth_session(getattr(response, "session", None))
        if session is None:
            raise AuthUnavailableError("Anonymous sign-in returned no session")
        return session

    def sign_out(self) -> None:
        """End the active session."""
        self.client.auth.sign_out()


def _to_auth_session(session: object) -> AuthSession | None:
    user = getattr(session, "user", None)
    if user is None:
        return None
    return AuthSession(
        user_id=str(user.id),
        is_anonymous=bool(getattr(user, "is_anonymous", False)),
    )
