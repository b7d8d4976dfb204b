"""
Change-log driven notification fan-out.

Every recorded change made by a known user produces one notification for
each participant of that event (couple and coordinators) except that user.
Changes without an actor are recorded only. Rows are stored first and then
published to live subscribers.
"""

import logging
from typing import List

from weddingdesk.core.errors import BackendError
from weddingdesk.core.models import ChangeLog, Event, Notification
from weddingdesk.core.repository import EventRepository, NotificationRepository

from .transport import InProcessPushTransport


logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Records changes and notifies the people following the event."""

    def __init__(
        self,
        events: EventRepository,
        notifications: NotificationRepository,
        transport: InProcessPushTransport,
    ):
        self.events = events
        self.notifications = notifications
        self.transport = transport

    def dispatch_change(self, change: ChangeLog) -> List[Notification]:
        """
        Record a change and fan it out.

        Store failures are logged and yield an empty list; the change that
        triggered the dispatch has already happened and is not undone.

        Returns:
            Notifications created and published
        """
        try:
            self.events.record_change(change)
            if not change.actor_user_id:
                logger.debug(f"Change on event {change.event_id} has no actor, nobody notified")
                return []

            row =self.events.get_event(change.event_id)
            if row is None:
                logger.warning(f"Change for unknown event {change.event_id}, nobody notified")
                return []

            event = Event.from_dict(row)
            recipients = sorted(event.participant_ids() - {change.actor_user_id})
            if not recipients:
                return []

            message = f"{event.name}: {change.description}"
            rows = self.notifications.create_many([
                {
                    "user_id": user_id,
                    "event_id": event.id,
                    "message": message,
                    "kind": change.change_type,
                }
                for user_id in recipients
            ])
        except BackendError as e:
            logger.warning(f"Notification fan-out for event {change.event_id} failed: {e}")
            return []

        created = [Notification.from_dict(r) for r in rows]
        for notification in created:
            self.transport.publish(notification)

        logger.info(f"Notified {len(created)} participant(s) of event {change.event_id}")
        return created
