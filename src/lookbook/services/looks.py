"""Look repository: one save/delete/list contract over local and remote storage."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal, Protocol

from lookbook.adapters.local_look_store import LocalLookStore
from lookbook.domain.errors import NoActiveSessionError, RemoteWriteError, StorageError
from lookbook.domain.identity import Authenticated, Guest, IdentityMode, Unauthenticated
from lookbook.domain.looks import Look, newest_first
from lookbook.domain.subscriptions import Subscription

logger = logging.getLogger(__name__)

LooksListener = Callable[[list[Look]], None]


class RemoteLookStore(Protocol):
    """Persistence interface for per-user remote looks."""

    def save_look(self, user_id: str, look: Look) -> Look:
        """Upload a look and write its metadata; return the stored form."""

    def delete_look(self, user_id: str, look_id: str, blob_ref: str | None = None) -> None:
        """Delete a look's metadata and image."""

    def list_looks(self, user_id: str) -> list[Look]:
        """Return the user's looks, newest first."""


class LookFeed(Protocol):
    """Live query over a user's remote looks."""

    async def subscribe(self, user_id: str, on_update: LooksListener) -> Subscription:
        """Deliver the current snapshot now and on every change."""

    async def refresh(self, user_id: str) -> None:
        """Re-query and push a fresh snapshot to live subscribers."""


class IdentitySource(Protocol):
    """Source of identity mode transitions."""

    def current_mode(self) -> IdentityMode:
        """Return the current identity mode."""

    def on_change(self, callback: Callable[[IdentityMode], None]) -> Subscription:
        """Register a transition listener."""


@dataclass(frozen=True)
class SaveResult:
    """Which backend accepted a save, plus the remote error if it fell back."""

    backend: Literal["remote", "local"]
    remote_error: RemoteWriteError | None = None

    @property
    def fell_back(self) -> bool:
        """Whether the look was kept locally after a remote failure."""
        return self.remote_error is not None


@dataclass
class LookRepository:
    """State machine that routes look persistence by identity mode.

    All transitions and mutations run under one lock, so the read-modify-write
    of the local collection never interleaves and mode events apply in order.
    """

    local_store: LocalLookStore
    remote_store: RemoteLookStore
    feed: LookFeed
    _mode: IdentityMode = field(default_factory=Unauthenticated, init=False)
    _looks: list[Look] = field(default_factory=list, init=False)
    _subscription: Subscription | None = field(default=None, init=False)
    _identity_subscription: Subscription | None = field(default=None, init=False)
    _listeners: list[LooksListener] = field(default_factory=list, init=False)
    _pending: set[asyncio.Task[None]] = field(default_factory=set, init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @property
    def mode(self) -> IdentityMode:
        """Identity mode currently applied."""
        return self._mode

    def list_looks(self) -> list[Look]:
        """Return a snapshot of the collection, newest first."""
        return list(self._looks)

    def on_looks_changed(self, callback: LooksListener) -> Subscription:
        """Register a listener for collection changes."""
        self._listeners.append(callback)
        return Subscription(lambda: self._remove_listener(callback))

    def bind(self, identity: IdentitySource) -> None:
        """Follow an identity source, starting from its current mode.

        Must be called from the event loop that will run the transitions.
        """
        self._loop = asyncio.get_running_loop()
        if self._identity_subscription is not None:
            self._identity_subscription.cancel()
        self._identity_subscription = identity.on_change(self._on_mode_change)
        self._schedule(identity.current_mode())

    async def settle(self) -> None:
        """Wait until every queued mode transition has been applied."""
        await asyncio.sleep(0)
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def switch_mode(self, mode: IdentityMode) -> None:
        """Apply an identity mode: drop prior state, then load from the new backend."""
        async with self._lock:
            self._cancel_subscription()
            self._mode = mode
            self._replace([])
            if isinstance(mode, Authenticated):
                subscription = Subscription()
                self._subscription = subscription
                feed_subscription = await self.feed.subscribe(
                    mode.user_id, self._snapshot_handler(subscription)
                )
                subscription.release = feed_subscription.cancel
                if not subscription.active:
                    feed_subscription.cancel()
            elif isinstance(mode, Guest):
                self._replace(self.local_store.load_all())
            logger.info("Look repository switched to %s mode", mode.name)

    async def save(self, look: Look) -> SaveResult:
        """Persist a look through the backend selected by the identity mode.

        A failed cloud save keeps the look on the device and reports the
        original remote error in the result. Local failures are raised as is.
        """
        if look.payload is None:
            raise ValueError(f"Look {look.id} has no image payload to save")
        async with self._lock:
            mode = self._mode
            if isinstance(mode, Guest):
                self._save_locally(look)
                return SaveResult(backend="local")
            if not isinstance(mode, Authenticated):
                raise NoActiveSessionError("Sign in or continue as guest to save looks")
            try:
                await asyncio.to_thread(self.remote_store.save_look, mode.user_id, look)
            except RemoteWriteError as exc:
                logger.warning(
                    "Cloud save failed for look %s, keeping it on device",
                    look.id,
                    exc_info=True,
                )
                self._fall_back_locally(look, cause=exc)
                return SaveResult(backend="local", remote_error=exc)
            await self._refresh(mode.user_id)
            return SaveResult(backend="remote")

    async def delete(self, look_id: str) -> None:
        """Delete a look from the active backend. Remote failures propagate."""
        async with self._lock:
            mode = self._mode
            if isinstance(mode, Guest):
                remaining = [look for look in self._looks if look.id != look_id]
                self.local_store.save_all(remaining)
                self._replace(remaining)
                return
            if not isinstance(mode, Authenticated):
                raise NoActiveSessionError("Sign in or continue as guest to delete looks")
            target = next((look for look in self._looks if look.id == look_id), None)
            blob_ref = target.remote_blob_ref if target else None
            await asyncio.to_thread(
                self.remote_store.delete_look, mode.user_id, look_id, blob_ref
            )
            await self._refresh(mode.user_id)

    async def close(self) -> None:
        """Detach from the identity source and cancel the live feed."""
        if self._identity_subscription is not None:
            self._identity_subscription.cancel()
            self._identity_subscription = None
        await self.settle()
        async with self._lock:
            self._cancel_subscription()

    def _save_locally(self, look: Look) -> None:
        looks = newest_first(
            [look, *(item for item in self._looks if item.id != look.id)]
        )
        self.local_store.save_all(looks)
        self._replace(looks)

    def _fall_back_locally(self, look: Look, cause: RemoteWriteError) -> None:
        # Remote snapshot entries carry no pixels, so only the device collection
        # is rewritten; the in-memory view keeps the remote entries.
        local_look = look.as_local()
        stored = newest_first(
            [
                local_look,
                *(item for item in self.local_store.load_all() if item.id != look.id),
            ]
        )
        try:
            self.local_store.save_all(stored)
        except StorageError as exc:
            raise exc from cause
        self._replace(
            newest_first(
                [local_look, *(item for item in self._looks if item.id != look.id)]
            )
        )

    async def _refresh(self, user_id: str) -> None:
        try:
            await self.feed.refresh(user_id)
        except Exception:
            logger.exception("Failed to refresh looks for user %s", user_id)

    def _snapshot_handler(self, subscription: Subscription) -> LooksListener:
        def handle(looks: list[Look]) -> None:
            if subscription.active:
                self._replace(looks)

        return handle

    def _replace(self, looks: list[Look]) -> None:
        self._looks = list(looks)
        for listener in list(self._listeners):
            try:
                listener(self.list_looks())
            except Exception:
                logger.exception("Looks listener failed")

    def _remove_listener(self, callback: LooksListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _cancel_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _on_mode_change(self, mode: IdentityMode) -> None:
        loop = self._loop
        if loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._schedule(mode)
        else:
            loop.call_soon_threadsafe(self._schedule, mode)

    def _schedule(self, mode: IdentityMode) -> None:
        task = asyncio.get_running_loop().create_task(self.switch_mode(mode))
        self._pending.add(task)
        task.add_done_callback(self._transition_done)

    def _transition_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Failed to apply identity mode", exc_info=task.exception()
            )


