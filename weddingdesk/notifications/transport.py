"""
Push transport for notification inserts.

A minimal pub/sub hub: subscribers register per user id and receive each
published notification for that user, synchronously, on the caller's
thread (the event loop in the API). There is no broker and no replay; a
subscriber that is not registered when a row is published never sees it.
"""

import logging
from typing import Callable, Dict, List, Optional, Protocol

from weddingdesk.core.errors import TransportError
from weddingdesk.core.models import Notification


logger = logging.getLogger(__name__)

InsertCallback = Callable[[Notification], None]
Unsubscribe = Callable[[], None]


class PushTransport(Protocol):
    """What the notification channel needs from a push transport"""

    def subscribe(self, user_id: str, on_insert: InsertCallback) -> Unsubscribe:
        ...


class InProcessPushTransport:
    """
    In-process implementation of PushTransport.

    Usage:
        transport = InProcessPushTransport()
        unsubscribe = transport.subscribe("u1", channel_callback)

        # after inserting a notification row
        transport.publish(notification)
    """

    def __init__(self):
        # Map of user_id -> {subscription_id: callback}
        self._subscribers: Dict[str, Dict[int, InsertCallback]] = {}
        self._next_id = 0
        self._closed = False

    def subscribe(self, user_id: str, on_insert: InsertCallback) -> Unsubscribe:
        """
        Register a callback for inserts addressed to user_id.

        Returns:
            Function removing this subscription (safe to call twice)

        Raises:
            TransportError: If the transport has been shut down
        """
        if self._closed:
            raise TransportError("Push transport is closed")

        self._next_id += 1
        subscription_id = self._next_id
        self._subscribers.setdefault(user_id, {})[subscription_id] = on_insert
        logger.debug(f"Subscribed {user_id} ({subscription_id})")

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(user_id)
            if callbacks is None:
                return
            callbacks.pop(subscription_id, None)
            if not callbacks:
                self._subscribers.pop(user_id, None)

        return unsubscribe

    def publish(self, notification: Notification) -> int:
        """
        Deliver a notification to every subscriber of its user.

        A failing callback is logged and does not stop delivery to the rest.

        Returns:
            Number of callbacks invoked successfully
        """
        callbacks = list(self._subscribers.get(notification.user_id, {}).values())
        delivered = 0
        for callback in callbacks:
            try:
                callback(notification)
                delivered += 1
            except Exception as e:
                logger.warning(f"Push callback for {notification.user_id} failed: {e!r}")
        return delivered

    def drop(self, user_id: Optional[str] = None) -> None:
        """Discard subscriptions without telling subscribers (silent drop)."""
        if user_id is None:
            self._subscribers.clear()
        else:
            self._subscribers.pop(user_id, None)

    def close(self) -> None:
        self._closed = True
        self._subscribers.clear()

    def subscriber_count(self, user_id: Optional[str] = None) -> int:
        if user_id is not None:
            return len(self._subscribers.get(user_id, {}))
        return sum(len(callbacks) for callbacks in self._subscribers.values())

    def subscribed_users(self) -> List[str]:
        return sorted(self._subscribers)
