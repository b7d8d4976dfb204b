"""
Core module for WeddingDesk
Contains configuration, the record store, models and temporal helpers
"""

from .config import Config
from .database import Database, get_database
from .models import (
    AssigneeClass,
    ChangeLog,
    CoordinatorAssignment,
    Event,
    Notification,
    Task,
    TimelineItem,
)
from .repository import EventRepository, NotificationRepository

__all__ = [
    'Config',
    'Database',
    'get_database',
    'AssigneeClass',
    'ChangeLog',
    'CoordinatorAssignment',
    'Event',
    'Notification',
    'Task',
    'TimelineItem',
    'EventRepository',
    'NotificationRepository',
]
