"""
Notifications module for WeddingDesk.

Per-user live feed (channel), the push transport it subscribes to, the
backend adapter it reads and writes through, and the change-log dispatcher
that creates notifications.
"""

from .channel import ChannelState, FeedSnapshot, NotificationChannel
from .dispatcher import NotificationDispatcher
from .store import NotificationBackend, RepositoryNotificationBackend
from .transport import InProcessPushTransport, PushTransport

__all__ = [
    'ChannelState',
    'FeedSnapshot',
    'NotificationChannel',
    'NotificationDispatcher',
    'NotificationBackend',
    'RepositoryNotificationBackend',
    'InProcessPushTransport',
    'PushTransport',
]
