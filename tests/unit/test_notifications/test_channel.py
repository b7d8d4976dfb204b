"""
Unit tests for the notification channel.
Tests the connection state machine, push/fetch merging, optimistic reads
and the silence watchdog against an in-memory backend.
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from weddingdesk.core.errors import (
    BackendError,
    ChannelClosedError,
    NotificationFetchError,
    NotificationWriteError,
)
from weddingdesk.core.models import Notification
from weddingdesk.notifications.channel import ChannelState, FeedSnapshot, NotificationChannel
from weddingdesk.notifications.transport import InProcessPushTransport


BASE = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def note(id, minutes=0, read=False, user_id="u1", message=None):
    return Notification(
        id=id,
        user_id=user_id,
        message=message or f"n{id}",
        read=read,
        created_at=BASE + timedelta(minutes=minutes),
    )


class FakeBackend:
    """In-memory NotificationBackend with failure switches and hooks."""

    def __init__(self, rows=()):
        self.rows = list(rows)
        self.fail_fetch = False
        self.fail_write = False
        self.gate = None
        self.during_fetch = None
        self.on_write = None
        self.unexpected = None
        self.fetch_calls = 0
        self.writes = []

    async def fetch_for_user(self, user_id):
        self.fetch_calls += 1
        if self.unexpected is not None:
            error, self.unexpected = self.unexpected, None
            raise error
        if self.during_fetch is not None:
            self.during_fetch()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_fetch:
            raise BackendError("fetch failed")
        return [n for n in self.rows if n.user_id == user_id]

    async def mark_read(self, notification_id):
        self.writes.append(("one", notification_id))
        if self.fail_write:
            raise BackendError("write failed")

    async def mark_many_read(self, user_id, notification_ids):
        self.writes.append(("many", tuple(notification_ids)))
        if self.on_write is not None:
            self.on_write()
        if self.fail_write:
            raise BackendError("write failed")


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def backend():
    return FakeBackend([note(1, minutes=1), note(2, minutes=2, read=True), note(3, minutes=3)])


@pytest.fixture
def transport():
    return InProcessPushTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def channel(backend, transport, clock):
    return NotificationChannel(
        backend, transport, silence_timeout=90, watchdog_interval=None, clock=clock
    )


def ids(channel):
    return [n.id for n in channel.notifications]


class TestConnect:
    """Tests for connecting and the initial fetch."""

    @pytest.mark.asyncio
    async def test_connect_goes_live_with_newest_first(self, channel, transport):
        """Listeners see connecting then live; the feed is newest first."""
        states = []
        channel.add_listener(lambda snapshot: states.append(snapshot.state))

        snapshot = await channel.connect("u1")

        assert states == [ChannelState.CONNECTING, ChannelState.LIVE]
        assert snapshot.state is ChannelState.LIVE
        assert ids(channel) == [3, 2, 1]
        assert channel.unread_count == 2
        assert transport.subscriber_count("u1") == 1

    @pytest.mark.asyncio
    async def test_connect_same_user_is_noop(self, channel, backend):
        await channel.connect("u1")
        await channel.connect("u1")
        assert backend.fetch_calls == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_leaves_channel_reconnecting(self, channel, backend):
        """A failed initial fetch raises and the next tick repairs."""
        backend.fail_fetch = True
        with pytest.raises(NotificationFetchError):
            await channel.connect("u1")

        assert channel.state is ChannelState.RECONNECTING
        assert isinstance(channel.last_error, BackendError)

        backend.fail_fetch = False
        await channel.check_silence()

        assert channel.state is ChannelState.LIVE
        assert ids(channel) == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_push_during_initial_fetch_is_not_duplicated(self, channel, backend, transport):
        """A row pushed while the bulk fetch is in flight appears once."""
        backend.rows.append(note(7, minutes=7))
        backend.during_fetch = lambda: transport.publish(note(7, minutes=7))

        await channel.connect("u1")

        assert ids(channel) == [7, 3, 2, 1]

    @pytest.mark.asyncio
    async def test_stale_fetch_is_discarded(self, channel, backend):
        """A fetch that completes after close() does not repopulate the feed."""
        backend.gate = asyncio.Event()
        pending = asyncio.create_task(channel.connect("u1"))
        await asyncio.sleep(0)

        await channel.close()
        backend.gate.set()
        snapshot = await pending

        assert snapshot.state is ChannelState.DISCONNECTED
        assert channel.notifications == ()


class TestPushAndMerge:
    """Tests for merging live pushes and fetches."""

    @pytest.mark.asyncio
    async def test_push_prepends(self, channel, transport):
        await channel.connect("u1")
        transport.publish(note(9, minutes=9))
        assert ids(channel) == [9, 3, 2, 1]
        assert channel.unread_count == 3

    @pytest.mark.asyncio
    async def test_push_replaces_same_id(self, channel, transport):
        """Pushed data wins over the local copy and moves to the front."""
        await channel.connect("u1")
        transport.publish(note(1, minutes=1, message="updated"))

        assert ids(channel) == [1, 3, 2]
        assert channel.notifications[0].message == "updated"

    @pytest.mark.asyncio
    async def test_push_never_clears_read_flag(self, channel, transport):
        await channel.connect("u1")
        await channel.mark_read(1)
        transport.publish(note(1, minutes=1, read=False))
        assert channel.notifications[0].read is True

    @pytest.mark.asyncio
    async def test_repair_fetch_keeps_local_rows(self, channel, backend, transport):
        """Local rows win in a repair fetch; read flags are OR-ed."""
        await channel.connect("u1")
        transport.publish(note(4, minutes=4, message="pushed"))
        await channel.mark_read(3)

        backend.rows = [
            note(4, minutes=4, message="stale"),
            note(3, minutes=3, read=False),
            note(1, minutes=1, read=True),
            note(5, minutes=5),
        ]
        channel.transport_dropped()
        await channel.check_silence()

        assert channel.state is ChannelState.LIVE
        assert ids(channel) == [5, 4, 3, 2, 1]
        by_id = {n.id: n for n in channel.notifications}
        assert by_id[4].message == "pushed"
        assert by_id[3].read is True
        assert by_id[1].read is True

    @pytest.mark.asyncio
    async def test_updates_replace_the_tuple(self, channel):
        """Earlier snapshots are never mutated."""
        await channel.connect("u1")
        before = channel.notifications

        await channel.mark_read(1)

        assert channel.notifications is not before
        assert [n.read for n in before if n.id == 1] == [False]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self, channel):
        seen = []

        def broken(snapshot):
            raise RuntimeError("render failed")

        channel.add_listener(broken)
        channel.add_listener(seen.append)
        await channel.connect("u1")
        assert seen[-1].state is ChannelState.LIVE


class TestReadState:
    """Tests for optimistic read writes."""

    @pytest.mark.asyncio
    async def test_mark_read(self, channel, backend):
        await channel.connect("u1")
        assert await channel.mark_read(1) is True
        assert channel.unread_count == 1
        assert backend.writes == [("one", 1)]

    @pytest.mark.asyncio
    async def test_mark_read_unknown_or_read_is_noop(self, channel, backend):
        await channel.connect("u1")
        assert await channel.mark_read(99) is False
        assert await channel.mark_read(2) is False
        assert backend.writes == []

    @pytest.mark.asyncio
    async def test_write_failure_keeps_local_read(self, channel, backend):
        await channel.connect("u1")
        backend.fail_write = True

        with pytest.raises(NotificationWriteError) as exc_info:
            await channel.mark_read(1)

        assert exc_info.value.notification_ids == (1,)
        assert {n.id: n.read for n in channel.notifications}[1] is True

    @pytest.mark.asyncio
    async def test_mark_all_read_is_idempotent(self, channel, backend):
        await channel.connect("u1")

        assert await channel.mark_all_read() == 2
        assert channel.unread_count == 0
        assert await channel.mark_all_read() == 0
        assert len(backend.writes) == 1
        assert set(backend.writes[0][1]) == {1, 3}

    @pytest.mark.asyncio
    async def test_mark_all_read_only_targets_current_unread(self, channel, backend, transport):
        """A row pushed while the bulk write is in flight stays unread."""
        await channel.connect("u1")
        backend.on_write = lambda: transport.publish(note(8, minutes=8))

        assert await channel.mark_all_read() == 2

        assert 8 not in backend.writes[0][1]
        assert channel.unread_count == 1
        assert channel.notifications[0].id == 8

    @pytest.mark.asyncio
    async def test_mark_all_read_failure_reports_ids(self, channel, backend):
        await channel.connect("u1")
        backend.fail_write = True
        with pytest.raises(NotificationWriteError) as exc_info:
            await channel.mark_all_read()
        assert set(exc_info.value.notification_ids) == {1, 3}
        assert channel.unread_count == 0

    @pytest.mark.asyncio
    async def test_closed_channel_rejects_reads(self, channel):
        with pytest.raises(ChannelClosedError):
            await channel.mark_all_read()
        with pytest.raises(ChannelClosedError):
            await channel.mark_read(1)


class TestLifecycle:
    """Tests for drops, silence, close and user switching."""

    @pytest.mark.asyncio
    async def test_transport_drop_then_repair(self, channel, transport):
        await channel.connect("u1")
        channel.transport_dropped()

        assert channel.state is ChannelState.RECONNECTING
        assert transport.subscriber_count("u1") == 0

        await channel.check_silence()

        assert channel.state is ChannelState.LIVE
        assert transport.subscriber_count("u1") == 1

    @pytest.mark.asyncio
    async def test_silence_triggers_reconnect(self, channel, backend, transport, clock):
        """A silently dropped subscription is noticed after the timeout."""
        await channel.connect("u1")
        transport.drop("u1")

        clock.advance(60)
        await channel.check_silence()
        assert backend.fetch_calls == 1

        clock.advance(31)
        await channel.check_silence()

        assert channel.state is ChannelState.LIVE
        assert backend.fetch_calls == 2
        assert transport.subscriber_count("u1") == 1

    @pytest.mark.asyncio
    async def test_push_counts_as_activity(self, channel, backend, transport, clock):
        await channel.connect("u1")
        clock.advance(80)
        transport.publish(note(9, minutes=9))
        clock.advance(20)
        await channel.check_silence()
        assert backend.fetch_calls == 1

    @pytest.mark.asyncio
    async def test_failed_repair_stays_reconnecting(self, channel, backend, clock):
        """Local state survives a failed repair and the next tick retries."""
        await channel.connect("u1")
        backend.fail_fetch = True
        clock.advance(91)

        await channel.check_silence()

        assert channel.state is ChannelState.RECONNECTING
        assert ids(channel) == [3, 2, 1]

        backend.fail_fetch = False
        await channel.check_silence()
        assert channel.state is ChannelState.LIVE

    @pytest.mark.asyncio
    async def test_close_clears_state(self, channel, transport):
        await channel.connect("u1")
        await channel.close()

        assert channel.state is ChannelState.DISCONNECTED
        assert channel.user_id is None
        assert channel.notifications == ()
        assert transport.subscriber_count() == 0

        transport.publish(note(9))
        assert channel.notifications == ()

    @pytest.mark.asyncio
    async def test_switch_user(self, channel, backend):
        backend.rows.append(note(20, user_id="u2"))
        await channel.connect("u1")

        await channel.switch_user("u2")
        assert channel.user_id == "u2"
        assert ids(channel) == [20]

        await channel.switch_user("u2")
        assert backend.fetch_calls == 2

        await channel.switch_user(None)
        assert channel.state is ChannelState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_background_watchdog_repairs(self, backend, transport, clock):
        """The watchdog task repairs a dropped channel on its own."""
        channel = NotificationChannel(
            backend, transport, silence_timeout=90, watchdog_interval=0.01, clock=clock
        )
        await channel.connect("u1")
        channel.transport_dropped()

        for _ in range(50):
            if channel.state is ChannelState.LIVE:
                break
            await asyncio.sleep(0.01)

        assert channel.state is ChannelState.LIVE
        await channel.close()

    @pytest.mark.asyncio
    async def test_watchdog_survives_unexpected_repair_error(self, backend, transport, clock):
        """An unexpected error in one repair does not stop later ticks."""
        channel = NotificationChannel(
            backend, transport, silence_timeout=90, watchdog_interval=0.01, clock=clock
        )
        await channel.connect("u1")
        backend.unexpected = RuntimeError("adapter blew up")
        channel.transport_dropped()

        for _ in range(50):
            if channel.state is ChannelState.LIVE:
                break
            await asyncio.sleep(0.01)

        assert channel.state is ChannelState.LIVE
        assert backend.fetch_calls >= 3
        assert isinstance(channel.last_error, RuntimeError)
        await channel.close()
        assert channel.state is ChannelState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_close_after_failed_watchdog_task(self, channel):
        """close() completes even if the watchdog task ended with an error."""
        await channel.connect("u1")

        async def broken():
            raise RuntimeError("watchdog crashed")

        channel._watchdog = asyncio.create_task(broken())
        await asyncio.sleep(0)

        await channel.close()

        assert channel.state is ChannelState.DISCONNECTED
        assert channel.notifications == ()


class TestFeedSnapshot:
    """Tests for snapshot serialisation."""

    def test_to_dict(self):
        snapshot = FeedSnapshot(ChannelState.LIVE, (note(1),), 1)
        data = snapshot.to_dict()
        assert data["type"] == "snapshot"
        assert data["state"] == "live"
        assert data["unread_count"] == 1
        assert data["notifications"][0]["id"] == 1
        assert data["notifications"][0]["created_at"] == BASE.isoformat()
