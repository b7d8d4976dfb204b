"""
Dependency injection for FastAPI endpoints.

Config, Database and the push transport are process-wide singletons
(lru_cache); repositories, the aggregator, the dispatcher and the
notification backend are built per request on top of them. Tests swap any
of these through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends

from weddingdesk.core.config import Config
from weddingdesk.core.database import Database
from weddingdesk.core.repository import EventRepository, NotificationRepository
from weddingdesk.dashboard.aggregator import RecordAggregator
from weddingdesk.notifications.dispatcher import NotificationDispatcher
from weddingdesk.notifications.store import RepositoryNotificationBackend
from weddingdesk.notifications.transport import InProcessPushTransport


@lru_cache()
def get_config() -> Config:
    """
    Get cached Config instance.

    lru_cache ensures we only create one Config instance
    for the lifetime of the application (singleton pattern).
    """
    return Config()


@lru_cache()
def get_database() -> Database:
    """Get cached Database instance at the configured path."""
    return Database(get_config().get_database_path())


@lru_cache()
def get_push_transport() -> InProcessPushTransport:
    """One transport per process; every channel and the dispatcher share it."""
    return InProcessPushTransport()


def get_event_repository(db: Database = Depends(get_database)) -> EventRepository:
    return EventRepository(db)


def get_notification_repository(db: Database = Depends(get_database)) -> NotificationRepository:
    return NotificationRepository(db)


def get_record_aggregator(
    repository: EventRepository = Depends(get_event_repository),
    config: Config = Depends(get_config),
) -> RecordAggregator:
    """Get RecordAggregator for dashboard data."""
    return RecordAggregator(repository, config)


def get_notification_dispatcher(
    events: EventRepository = Depends(get_event_repository),
    notifications: NotificationRepository = Depends(get_notification_repository),
    transport: InProcessPushTransport = Depends(get_push_transport),
) -> NotificationDispatcher:
    return NotificationDispatcher(events, notifications, transport)


def get_notification_backend(
    repository: NotificationRepository = Depends(get_notification_repository),
    config: Config = Depends(get_config),
) -> RepositoryNotificationBackend:
    """Backend for live channels, capped at the configured feed size."""
    return RepositoryNotificationBackend(
        repository, limit=config.get("feed_limit", "notifications", 25)
    )
