"""
Exception hierarchy for WeddingDesk.

Everything raised on purpose by the aggregation and notification engine
derives from WeddingDeskError so API handlers can map failures to
responses without catching unrelated bugs.
"""


class WeddingDeskError(Exception):
    """Base class for all WeddingDesk errors."""


class BackendError(WeddingDeskError):
    """A read or write against the record store failed."""


class SnapshotLoadError(BackendError):
    """A dashboard snapshot could not be loaded (transient, user may retry)."""


class TransportError(WeddingDeskError):
    """The push transport could not establish a subscription."""


class ChannelError(WeddingDeskError):
    """Base class for notification channel failures."""


class NotificationFetchError(ChannelError):
    """Bulk fetch of a user's notifications failed; local state was kept."""


class NotificationWriteError(ChannelError):
    """
    Backend write for an optimistic read-flag update failed.

    The local change is not rolled back.
    """

    def __init__(self, message: str, notification_ids=()):
        super().__init__(message)
        self.notification_ids = tuple(notification_ids)


class ChannelClosedError(ChannelError):
    """Operation attempted on a channel with no connected user."""


class UnknownPipelineStepError(WeddingDeskError, ValueError):
    """A filter predicate or sort comparator name is not registered."""
