"""
Data models for WeddingDesk
Defines the record snapshots (events, tasks, timeline items) and the
notification feed entries shared by the dashboards and the live channel.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from .temporal import clock_minutes, parse_date


PIPELINE_STAGES = ("Inquiry", "In Talks", "Signed", "Planning", "Completed", "Cancelled")
TERMINAL_STATUSES = frozenset({"Completed", "Cancelled"})


class AssigneeClass(str, Enum):
    """Which side of the wedding a task is assigned to."""
    COUPLE = "couple"
    COORDINATOR = "coordinator"

    @classmethod
    def coerce(cls, value: Any) -> "AssigneeClass":
        """Parse an assignee value, defaulting unknown values to couple."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.COUPLE


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a timestamp from the database, normalised to aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except (ValueError, TypeError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "t")
    return bool(value)


@dataclass(frozen=True)
class CoordinatorAssignment:
    """A coordinator attached to an event."""
    user_id: str
    full_name: str = ""
    is_lead: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CoordinatorAssignment':
        """Create assignment from a joined coordinator_assignments row"""
        return cls(
            user_id=str(data['coordinator_id']),
            full_name=data.get('full_name') or "",
            is_lead=_as_bool(data.get('is_lead', False)),
        )


@dataclass(frozen=True)
class Task:
    """Task data model"""
    id: Optional[int] = None
    event_id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    due_date: Optional[date] = None
    completed: bool = False
    assigned_to: AssigneeClass = AssigneeClass.COUPLE
    assigned_user_id: Optional[str] = None
    priority: Optional[str] = None  # 'low', 'medium', 'high'
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        """Create Task from database row dictionary"""
        return cls(
            id=data.get('id'),
            event_id=data.get('event_id'),
            title=data.get('title') or "",
            description=data.get('description'),
            due_date=parse_date(data.get('due_date')),
            completed=_as_bool(data.get('completed', False)),
            assigned_to=AssigneeClass.coerce(data.get('assigned_to')),
            assigned_user_id=data.get('assigned_user_id'),
            priority=data.get('priority'),
            completed_at=_parse_datetime(data.get('completed_at')),
            created_at=_parse_datetime(data.get('created_at')),
        )

    @property
    def is_open(self) -> bool:
        """Open means not completed; the one definition every count uses."""
        return not self.completed


@dataclass(frozen=True)
class TimelineItem:
    """One entry of an event's day-of schedule"""
    id: Optional[int] = None
    event_id: Optional[int] = None
    title: str = ""
    time: Optional[str] = None  # HH:MM, event-local
    description: Optional[str] = None
    sort_order: int = 0
    item_type: Optional[str] = None  # 'vendor', 'couple'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimelineItem':
        """Create TimelineItem from database row dictionary"""
        try:
            sort_order = int(data.get('sort_order') or 0)
        except (TypeError, ValueError):
            sort_order = 0
        return cls(
            id=data.get('id'),
            event_id=data.get('event_id'),
            title=data.get('title') or "",
            time=data.get('time') or None,
            description=data.get('description'),
            sort_order=sort_order,
            item_type=data.get('item_type'),
        )

    @property
    def minutes(self) -> Optional[int]:
        """Clock time as minutes since midnight, None when absent or malformed"""
        return clock_minutes(self.time)


@dataclass(frozen=True)
class Event:
    """Event (wedding) data model with its nested tasks and schedule"""
    id: Optional[int] = None
    name: str = ""
    event_date: Optional[date] = None
    status: str = "Inquiry"
    archived: bool = False
    couple_user_id: Optional[str] = None
    venue_name: Optional[str] = None
    package_type: Optional[str] = None
    coordinators: Tuple[CoordinatorAssignment, ...] = ()
    tasks: Tuple[Task, ...] = ()
    timeline_items: Tuple[TimelineItem, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        """
        Create Event from a database row with nested child rows.

        Expects optional 'tasks', 'timeline_items' and 'coordinators' lists
        of row dictionaries alongside the event columns.
        """
        return cls(
            id=data['id'],
            name=data.get('name') or "",
            event_date=parse_date(data.get('event_date')),
            status=data.get('status') or "Inquiry",
            archived=_as_bool(data.get('archived', False)),
            couple_user_id=data.get('couple_user_id'),
            venue_name=data.get('venue_name'),
            package_type=data.get('package_type'),
            coordinators=tuple(
                CoordinatorAssignment.from_dict(row) for row in data.get('coordinators') or ()
            ),
            tasks=tuple(Task.from_dict(row) for row in data.get('tasks') or ()),
            timeline_items=tuple(
                TimelineItem.from_dict(row) for row in data.get('timeline_items') or ()
            ),
        )

    @property
    def is_terminal(self) -> bool:
        """Completed/Cancelled events are conventionally archived next."""
        return self.status in TERMINAL_STATUSES

    def is_lead(self, user_id: Optional[str]) -> bool:
        """Check if the user is a lead coordinator on this event"""
        return any(c.user_id == user_id and c.is_lead for c in self.coordinators)

    def participant_ids(self) -> FrozenSet[str]:
        """User ids of everyone who follows this event (couple + coordinators)"""
        ids = {c.user_id for c in self.coordinators}
        if self.couple_user_id:
            ids.add(self.couple_user_id)
        return frozenset(ids)


@dataclass(frozen=True)
class Notification:
    """A single-recipient feed entry"""
    id: int
    user_id: str
    message: str = ""
    read: bool = False
    created_at: Optional[datetime] = None
    event_id: Optional[int] = None
    kind: str = "info"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Notification':
        """Create Notification from database row or push payload"""
        return cls(
            id=data['id'],
            user_id=str(data['user_id']),
            message=data.get('message') or "",
            read=_as_bool(data.get('read', False)),
            created_at=_parse_datetime(data.get('created_at')),
            event_id=data.get('event_id'),
            kind=data.get('kind') or "info",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise for JSON transport"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "message": self.message,
            "read": self.read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "event_id": self.event_id,
            "kind": self.kind,
        }


@dataclass(frozen=True)
class ChangeLog:
    """Audit entry for a state change; drives notification fan-out"""
    event_id: int
    actor_user_id: Optional[str]
    description: str
    change_type: str = "info"
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChangeLog':
        """Create ChangeLog from database row dictionary"""
        return cls(
            id=data.get('id'),
            event_id=data['event_id'],
            actor_user_id=data.get('actor_user_id'),
            description=data.get('description') or "",
            change_type=data.get('change_type') or "info",
            entity_type=data.get('entity_type'),
            entity_id=data.get('entity_id'),
            created_at=_parse_datetime(data.get('created_at')),
        )
