"""Tests for the live remote looks feed."""

import asyncio
import threading

from lookbook.domain.looks import Look
from lookbook.services.live_feed import LiveLookFeed
from tests.conftest import InMemoryRemoteLookStore, make_look


def test_subscribe_delivers_current_snapshot_immediately(
    remote_store: InMemoryRemoteLookStore, feed: LiveLookFeed
) -> None:
    remote_store.save_look("u1", make_look("a", 1))
    remote_store.save_look("u1", make_look("b", 2))
    snapshots: list[list[Look]] = []

    async def scenario() -> None:
        await feed.subscribe("u1", snapshots.append)

    asyncio.run(scenario())

    assert [[look.id for look in snap] for snap in snapshots] == [["b", "a"]]
    assert all(look.payload is None for look in snapshots[0])
    assert snapshots[0][0].remote_blob_ref == "u1/b.png"


def test_refresh_pushes_full_snapshots_until_cancelled(
    remote_store: InMemoryRemoteLookStore, feed: LiveLookFeed
) -> None:
    snapshots: list[list[str]] = []

    async def scenario() -> None:
        subscription = await feed.subscribe(
            "u1", lambda looks: snapshots.append([look.id for look in looks])
        )
        remote_store.save_look("u1", make_look("a", 1))
        await feed.refresh("u1")
        subscription.cancel()
        remote_store.save_look("u1", make_look("b", 2))
        await feed.refresh("u1")

    asyncio.run(scenario())

    assert snapshots == [[], ["a"]]
    assert feed.active_count("u1") == 0


def test_refresh_only_reaches_the_matching_user(
    remote_store: InMemoryRemoteLookStore, feed: LiveLookFeed
) -> None:
    seen: dict[str, int] = {"u1": 0, "u2": 0}

    def counter(user_id: str):  # type: ignore[no-untyped-def]
        def handle(_looks: list[Look]) -> None:
            seen[user_id] += 1

        return handle

    async def scenario() -> None:
        await feed.subscribe("u1", counter("u1"))
        await feed.subscribe("u2", counter("u2"))
        await feed.refresh("u1")

    asyncio.run(scenario())

    assert seen == {"u1": 2, "u2": 1}


def test_stale_snapshot_is_not_delivered_after_newer_one() -> None:
    class GatedStore(InMemoryRemoteLookStore):
        gated: bool = False
        gate: threading.Event = threading.Event()

        def list_looks(self, user_id: str) -> list[Look]:
            gated = self.gated
            snapshot = super().list_looks(user_id)
            if gated:
                self.gate.wait(timeout=5)
            return snapshot

    store = GatedStore()
    feed = LiveLookFeed(store=store, poll_interval_seconds=None)
    delivered: list[list[str]] = []

    async def scenario() -> None:
        await feed.subscribe(
            "u1", lambda looks: delivered.append([look.id for look in looks])
        )
        store.save_look("u1", make_look("a", 1))
        store.gated = True
        slow = asyncio.create_task(feed.refresh("u1"))
        await asyncio.sleep(0.05)
        store.gated = False
        store.save_look("u1", make_look("b", 2))
        await feed.refresh("u1")
        store.gate.set()
        await slow

    asyncio.run(scenario())

    assert delivered == [[], ["b", "a"]]


def test_polling_picks_up_changes_from_other_devices() -> None:
    store = InMemoryRemoteLookStore()
    feed = LiveLookFeed(store=store, poll_interval_seconds=0.01)
    delivered: list[list[str]] = []

    async def scenario() -> None:
        subscription = await feed.subscribe(
            "u1", lambda looks: delivered.append([look.id for look in looks])
        )
        store.save_look("u1", make_look("a", 1))
        for _ in range(100):
            if delivered[-1] == ["a"]:
                break
            await asyncio.sleep(0.01)
        subscription.cancel()
        calls_after_cancel = store.list_calls
        await asyncio.sleep(0.05)
        assert store.list_calls <= calls_after_cancel + 1

    asyncio.run(scenario())

    assert delivered[0] == []
    assert delivered[-1] == ["a"]


def test_failed_initial_snapshot_still_returns_subscription() -> None:
    store = InMemoryRemoteLookStore(fail_list=True)
    feed = LiveLookFeed(store=store, poll_interval_seconds=None)
    delivered: list[list[Look]] = []

    async def scenario() -> bool:
        subscription = await feed.subscribe("u1", delivered.append)
        return subscription.active

    assert asyncio.run(scenario())
    assert delivered == []
