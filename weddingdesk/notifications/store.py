"""
Async notification backend contract and its repository-backed adapter.
"""

import logging
from typing import List, Optional, Protocol, Sequence

from weddingdesk.core.models import Notification
from weddingdesk.core.repository import NotificationRepository


logger = logging.getLogger(__name__)


class NotificationBackend(Protocol):
    """Bulk fetch and read-state writes used by the notification channel"""

    async def fetch_for_user(self, user_id: str) -> List[Notification]:
        ...

    async def mark_read(self, notification_id: int) -> None:
        ...

    async def mark_many_read(self, user_id: str, notification_ids: Sequence[int]) -> None:
        ...


class RepositoryNotificationBackend:
    """
    NotificationBackend over NotificationRepository.

    Store failures surface as BackendError from the repository.
    """

    def __init__(self, repository: NotificationRepository, limit: Optional[int] = None):
        """
        Args:
            repository: Notification rows
            limit: Maximum rows per bulk fetch (newest first)
        """
        self.repository = repository
        self.limit = limit

    async def fetch_for_user(self, user_id: str) -> List[Notification]:
        notifications = []
        for row in self.repository.list_for_user(user_id, self.limit):
            try:
                notifications.append(Notification.from_dict(row))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed notification row {row.get('id', '?')}: {e!r}")
        return notifications

    async def mark_read(self, notification_id: int) -> None:
        self.repository.mark_read(notification_id)

    async def mark_many_read(self, user_id: str, notification_ids: Sequence[int]) -> None:
        self.repository.mark_many_read(user_id, notification_ids)
