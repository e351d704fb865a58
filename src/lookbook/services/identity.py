"""Identity monitor: maps auth sessions and guest declarations to a mode."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from lookbook.domain.errors import AuthUnavailableError
from lookbook.domain.identity import (
    AuthSession,
    Authenticated,
    Guest,
    IdentityMode,
    Unauthenticated,
)
from lookbook.domain.subscriptions import Subscription

logger = logging.getLogger(__name__)

ModeListener = Callable[[IdentityMode], None]


class AuthBackend(Protocol):
    """Interface for the authentication backend."""

    def current_session(self) -> AuthSession | None:
        """Return the active session, if any."""

    def on_session_change(
        self, callback: Callable[[AuthSession | None], None]
    ) -> Subscription:
        """Register for session changes."""

    def sign_in_anonymously(self) -> AuthSession:
        """Start an anonymous session; raise AuthUnavailableError if refused."""

    def sign_out(self) -> None:
        """End the active session."""


@dataclass
class IdentityMonitor:
    """Single source of the current identity mode.

    Listeners are notified once per transition, in order. The backend
    subscription is held only while at least one listener is registered.
    """

    backend: AuthBackend
    _guest: bool = field(default=False, init=False)
    _session: AuthSession | None = field(default=None, init=False)
    _mode: IdentityMode | None = field(default=None, init=False)
    _listeners: list[ModeListener] = field(default_factory=list, init=False)
    _backend_subscription: Subscription | None = field(default=None, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)

    def current_mode(self) -> IdentityMode:
        """Return the current identity mode without blocking on the network."""
        with self._lock:
            if self._mode is None:
                self._session = self.backend.current_session()
                self._mode = self._resolve()
            return self._mode

    def on_change(self, callback: ModeListener) -> Subscription:
        """Register a transition listener; cancel the handle to deregister."""
        with self._lock:
            self.current_mode()
            self._listeners.append(callback)
            if self._backend_subscription is None:
                self._backend_subscription = self.backend.on_session_change(
                    self._handle_session
                )
        return Subscription(lambda: self._remove_listener(callback))

    def declare_guest(self) -> None:
        """Enter local-only guest mode."""
        with self._lock:
            self._guest = True
            self._update()

    def leave_guest(self) -> None:
        """Leave guest mode."""
        with self._lock:
            self._guest = False
            self._update()

    def continue_as_guest(self) -> IdentityMode:
        """Start an anonymous session, or fall back to local guest mode.

        The fallback applies when the backend is unreachable or refuses
        anonymous sign-in by policy.
        """
        try:
            session = self.backend.sign_in_anonymously()
        except AuthUnavailableError:
            logger.info("Anonymous sign-in unavailable, continuing in guest mode")
            self.declare_guest()
            return self.current_mode()
        self._handle_session(session)
        return self.current_mode()

    def sign_out(self) -> None:
        """Sign out of the backend session, or leave guest mode."""
        with self._lock:
            has_session = self._session is not None
        if has_session:
            self.backend.sign_out()
            self._handle_session(None)
        else:
            self.leave_guest()

    def _handle_session(self, session: AuthSession | None) -> None:
        with self._lock:
            self._session = session
            if session is not None:
                self._guest = False
            self._update()

    def _update(self) -> None:
        mode = self._resolve()
        if mode == self._mode:
            return
        self._mode = mode
        logger.info("Identity mode changed to %s", mode.name)
        for listener in list(self._listeners):
            listener(mode)

    def _resolve(self) -> IdentityMode:
        if self._session is not None:
            return Authenticated(
                user_id=self._session.user_id,
                is_anonymous=self._session.is_anonymous,
            )
        if self._guest:
            return Guest()
        return Unauthenticated()

    def _remove_listener(self, callback: ModeListener) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)
            if not self._listeners and self._backend_subscription is not None:
                self._backend_subscription.cancel()
                self._backend_subscription = None
