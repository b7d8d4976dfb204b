"""
Per-user live notification feed.

A NotificationChannel keeps one user's notifications consistent across live
pushes, bulk fetches and local read/unread interaction:

    disconnected --connect--> connecting --fetch ok--> live
    live --transport drop / silence--> reconnecting --repair ok--> live
    any --close--> disconnected

Local state is an immutable tuple that is replaced whole on every change;
listeners receive a FeedSnapshot after each replacement. Reads are
optimistic: the local tuple is patched first and the backend write follows,
with no rollback on failure. The read flag never goes from true to false.

One channel lives per session (WebSocket connection); there is no shared
feed state between channels.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from weddingdesk.core.errors import (
    BackendError,
    ChannelClosedError,
    NotificationFetchError,
    NotificationWriteError,
    TransportError,
)
from weddingdesk.core.models import Notification

from .store import NotificationBackend
from .transport import PushTransport


_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    LIVE = "live"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True)
class FeedSnapshot:
    """Immutable view of the feed handed to listeners"""
    state: ChannelState
    notifications: Tuple[Notification, ...]
    unread_count: int

    def to_dict(self) -> dict:
        return {
            "type": "snapshot",
            "state": self.state.value,
            "unread_count": self.unread_count,
            "notifications": [n.to_dict() for n in self.notifications],
        }


Listener = Callable[[FeedSnapshot], None]


def _newest_first(notification: Notification):
    # rows without a timestamp are treated as newest
    created = notification.created_at
    return (created is None, created or _OLDEST)


class NotificationChannel:
    """
    Live notification feed for one user at a time.

    Usage:
        channel = NotificationChannel(backend, transport)
        channel.add_listener(render)
        await channel.connect("user-1")
        await channel.mark_read(42)
        await channel.close()
    """

    def __init__(
        self,
        backend: NotificationBackend,
        transport: PushTransport,
        silence_timeout: float = 90.0,
        watchdog_interval: Optional[float] = 15.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            backend: Bulk fetch and read-state writes
            transport: Insert subscriptions
            silence_timeout: Seconds without activity before a live channel
                is considered dropped
            watchdog_interval: Seconds between watchdog ticks (None disables
                the background task; call check_silence() directly)
            clock: Monotonic time source
        """
        self.backend = backend
        self.transport = transport
        self.silence_timeout = silence_timeout
        self.watchdog_interval = watchdog_interval
        self._clock = clock

        self._state = ChannelState.DISCONNECTED
        self._user_id: Optional[str] = None
        self._notifications: Tuple[Notification, ...] = ()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._generation = 0
        self._repairing = False
        self._last_activity = clock()
        self._last_error: Optional[Exception] = None
        self._watchdog: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        self.logger = logging.getLogger("notifications.channel")

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        return self._notifications

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.read)

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    def snapshot(self) -> FeedSnapshot:
        return FeedSnapshot(
            state=self._state,
            notifications=self._notifications,
            unread_count=self.unread_count,
        )

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a snapshot listener; returns a function removing it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # State replacement
    # ------------------------------------------------------------------

    def _apply(
        self,
        notifications: Optional[Tuple[Notification, ...]] = None,
        state: Optional[ChannelState] = None,
    ) -> None:
        """Replace the notification tuple and/or state, then notify once."""
        if state is not None and state is not self._state:
            self.logger.info(f"{self._state.value} -> {state.value}")
            self._state = state
        if notifications is not None:
            self._notifications = notifications

        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                self.logger.warning(f"Snapshot listener failed: {e!r}")

    def _merge_fetched(self, fetched: Iterable[Notification]) -> Tuple[Notification, ...]:
        """
        Merge a bulk or repair fetch into local state.

        Local rows win (they may be newer push deliveries or optimistic
        reads), read flags are OR-ed, unseen rows are added. The result is
        newest first, stable on equal timestamps.
        """
        merged: Dict[int, Notification] = {n.id: n for n in self._notifications}
        added = 0
        for row in fetched:
            if row.user_id != self._user_id:
                continue
            kept = merged.get(row.id)
            if kept is None:
                merged[row.id] = row
                added += 1
            elif row.read and not kept.read:
                merged[row.id] = replace(kept, read=True)
        self.logger.debug(f"Merged fetch: {added} new, {len(merged)} total")
        return tuple(sorted(merged.values(), key=_newest_first, reverse=True))

    def _on_push(self, notification: Notification) -> None:
        """Transport callback: prepend, dedupe by id, pushed data wins."""
        if self._state is ChannelState.DISCONNECTED or notification.user_id != self._user_id:
            return

        self._last_activity = self._clock()
        existing = next((n for n in self._notifications if n.id == notification.id), None)
        if existing is not None and existing.read and not notification.read:
            notification = replace(notification, read=True)

        rest = tuple(n for n in self._notifications if n.id != notification.id)
        self._apply(notifications=(notification,) + rest)

    def _subscribe(self, user_id: str) -> None:
        self._release_subscription()
        self._unsubscribe = self.transport.subscribe(user_id, self._on_push)

    def _release_subscription(self) -> None:
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, user_id: str) -> FeedSnapshot:
        """
        Subscribe to inserts for user_id and seed the feed with a bulk fetch.

        Raises:
            NotificationFetchError: If the subscription or fetch failed. The
                channel is left reconnecting and the watchdog retries.
        """
        if self._state is not ChannelState.DISCONNECTED:
            if user_id == self._user_id:
                return self.snapshot()
            await self.close()

        self._generation += 1
        generation = self._generation
        self._user_id = user_id
        self.logger = logging.getLogger(f"notifications.channel.{user_id}")
        self._last_activity = self._clock()
        self._apply(state=ChannelState.CONNECTING)
        self._start_watchdog()

        try:
            self._subscribe(user_id)
            fetched = await self.backend.fetch_for_user(user_id)
        except (BackendError, TransportError) as e:
            if generation != self._generation:
                self.logger.debug("Discarding failed fetch from a closed session")
                return self.snapshot()
            self._last_error = e
            self.logger.warning(f"Initial fetch failed: {e}")
            self._apply(state=ChannelState.RECONNECTING)
            raise NotificationFetchError(f"Could not load notifications for {user_id}: {e}") from e

        if generation != self._generation:
            self.logger.debug("Discarding fetch result from a closed session")
            return self.snapshot()

        self._last_activity = self._clock()
        self._apply(notifications=self._merge_fetched(fetched), state=ChannelState.LIVE)
        return self.snapshot()

    async def reconnect(self) -> bool:
        """
        Resubscribe and run a repair fetch, keeping local state.

        Failures are logged and left for the next watchdog tick.

        Returns:
            True if the channel is live again
        """
        if self._state is ChannelState.DISCONNECTED or self._user_id is None:
            return False
        if self._repairing:
            return False

        generation = self._generation
        user_id = self._user_id
        if self._state is not ChannelState.RECONNECTING:
            self._apply(state=ChannelState.RECONNECTING)

        self._repairing = True
        try:
            self._subscribe(user_id)
            fetched = await self.backend.fetch_for_user(user_id)
        except (BackendError, TransportError) as e:
            if generation == self._generation:
                self._last_error = e
                self.logger.warning(f"Repair failed, retrying on next tick: {e}")
            return False
        finally:
            if generation == self._generation:
                self._repairing = False

        if generation != self._generation:
            self.logger.debug("Discarding repair result from a closed session")
            return False

        self._last_activity = self._clock()
        self._apply(notifications=self._merge_fetched(fetched), state=ChannelState.LIVE)
        return True

    def transport_dropped(self) -> None:
        """The transport went away silently; repair on the next tick."""
        if self._state is not ChannelState.LIVE:
            return
        self._release_subscription()
        self._apply(state=ChannelState.RECONNECTING)

    async def check_silence(self) -> None:
        """
        Watchdog tick.

        A live channel that has been quiet longer than silence_timeout is
        treated as dropped; a reconnecting channel gets a repair attempt.
        """
        if self._state is ChannelState.LIVE:
            if self._clock() - self._last_activity > self.silence_timeout:
                self.logger.info(f"No activity for {self.silence_timeout}s, reconnecting")
                self.transport_dropped()
        if self._state is ChannelState.RECONNECTING:
            await self.reconnect()

    def _start_watchdog(self) -> None:
        if self.watchdog_interval is None or self._watchdog is not None:
            return
        self._watchdog = asyncio.create_task(self._watch())

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.watchdog_interval)
            try:
                await self.check_silence()
            except Exception as e:
                self._last_error = e
                self.logger.warning(f"Watchdog tick failed, retrying on next tick: {e!r}")

    async def _stop_watchdog(self) -> None:
        task, self._watchdog = self._watchdog, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.logger.warning(f"Watchdog ended with an error: {e!r}")

    async def close(self) -> None:
        """Tear down the session and clear local state."""
        self._generation += 1
        self._repairing = False
        await self._stop_watchdog()
        self._release_subscription()
        self._user_id = None
        self._apply(notifications=(), state=ChannelState.DISCONNECTED)

    async def switch_user(self, user_id: Optional[str]) -> FeedSnapshot:
        """Follow the signed-in identity: None closes, a new id reconnects."""
        if user_id is None:
            await self.close()
            return self.snapshot()
        if user_id == self._user_id and self._state is not ChannelState.DISCONNECTED:
            return self.snapshot()
        if self._state is not ChannelState.DISCONNECTED:
            await self.close()
        return await self.connect(user_id)

    # ------------------------------------------------------------------
    # Read state
    # ------------------------------------------------------------------

    def _ensure_open(self) -> str:
        if self._state is ChannelState.DISCONNECTED or self._user_id is None:
            raise ChannelClosedError("Notification channel is not connected")
        return self._user_id

    async def mark_read(self, notification_id: int) -> bool:
        """
        Mark one notification read, locally first.

        Returns:
            False when the id is unknown or already read (no backend write)

        Raises:
            NotificationWriteError: If the backend write failed; the local
                read flag is kept
        """
        self._ensure_open()
        target = next((n for n in self._notifications if n.id == notification_id), None)
        if target is None or target.read:
            return False

        self._apply(notifications=tuple(
            replace(n, read=True) if n.id == notification_id else n
            for n in self._notifications
        ))

        try:
            await self.backend.mark_read(notification_id)
        except BackendError as e:
            self._last_error = e
            self.logger.warning(f"mark_read({notification_id}) failed: {e}")
            raise NotificationWriteError(
                f"Could not mark notification {notification_id} read: {e}",
                (notification_id,),
            ) from e
        return True

    async def mark_all_read(self) -> int:
        """
        Mark every notification that is unread right now as read.

        Only those ids are written, so rows pushed while the write is in
        flight stay unread.

        Returns:
            Number of notifications marked (0 means no backend write)
        """
        user_id = self._ensure_open()
        unread_ids = tuple(n.id for n in self._notifications if not n.read)
        if not unread_ids:
            return 0

        targets = frozenset(unread_ids)
        self._apply(notifications=tuple(
            replace(n, read=True) if n.id in targets else n
            for n in self._notifications
        ))

        try:
            await self.backend.mark_many_read(user_id, unread_ids)
        except BackendError as e:
            self._last_error = e
            self.logger.warning(f"mark_all_read failed for {len(unread_ids)} rows: {e}")
            raise NotificationWriteError(
                f"Could not mark {len(unread_ids)} notifications read: {e}",
                unread_ids,
            ) from e
        return len(unread_ids)
