"""Live query over a user's remote looks."""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field

from lookbook.domain.subscriptions import Subscription
from lookbook.services.looks import LookFeed, LooksListener, RemoteLookStore

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class _Channel:
    user_id: str
    on_update: LooksListener
    subscription: Subscription | None = None
    delivered_seq: int = -1
    poller: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self.subscription is not None and self.subscription.active


@dataclass
class LiveLookFeed(LookFeed):
    """Snapshot feed driven by write-through refreshes and periodic polling.

    Every delivery is a full snapshot. Snapshots older than the last one a
    channel received are dropped, and cancelled channels never receive again.
    """

    store: RemoteLookStore
    poll_interval_seconds: float | None = 15.0
    _channels: dict[str, list[_Channel]] = field(default_factory=dict, init=False)
    _sequence: itertools.count = field(default_factory=itertools.count, init=False)

    async def subscribe(self, user_id: str, on_update: LooksListener) -> Subscription:
        """Deliver the current snapshot, then every change until cancelled."""
        channel = _Channel(user_id=user_id, on_update=on_update)
        channel.subscription = Subscription(lambda: self._release(channel))
        self._channels.setdefault(user_id, []).append(channel)
        try:
            await self._deliver(user_id, [channel])
        except Exception:
            logger.exception("Initial looks snapshot failed for user %s", user_id)
        if channel.active and self.poll_interval_seconds:
            channel.poller = asyncio.get_running_loop().create_task(self._poll(channel))
        return channel.subscription

    async def refresh(self, user_id: str) -> None:
        """Push a fresh snapshot to every live channel for the user."""
        channels = list(self._channels.get(user_id, []))
        if channels:
            await self._deliver(user_id, channels)

    def active_count(self, user_id: str) -> int:
        """Return the number of live channels for a user."""
        return len(self._channels.get(user_id, []))

    async def _deliver(self, user_id: str, channels: list[_Channel]) -> None:
        seq = next(self._sequence)
        snapshot = await asyncio.to_thread(self.store.list_looks, user_id)
        for channel in channels:
            if not channel.active or seq < channel.delivered_seq:
                continue
            channel.delivered_seq = seq
            channel.on_update(list(snapshot))

    async def _poll(self, channel: _Channel) -> None:
        while channel.active:
            await asyncio.sleep(self.poll_interval_seconds or 0)
            if not channel.active:
                return
            try:
                await self._deliver(channel.user_id, [channel])
            except Exception:
                logger.warning(
                    "Polling looks failed for user %s", channel.user_id, exc_info=True
                )

    def _release(self, channel: _Channel) -> None:
        channels = self._channels.get(channel.user_id, [])
        if channel in channels:
            channels.remove(channel)
        if not channels:
            self._channels.pop(channel.user_id, None)
        if channel.poller is not None:
            channel.poller.cancel()
            channel.poller = None
