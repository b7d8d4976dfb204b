"""
Record aggregation for the WeddingDesk dashboards.

Turns independently fetched Event, Task and TimelineItem snapshots into the
cross-entity views the admin dashboard, coordinator console and couple
portal share: flattened task lists, task counts, urgency-ordered events,
day-of banners and pipeline statistics.

The module-level functions are pure. RecordAggregator pulls snapshots from
the record store and assembles a DashboardSnapshot per request.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from weddingdesk.core.config import Config
from weddingdesk.core.errors import BackendError, SnapshotLoadError
from weddingdesk.core.models import PIPELINE_STAGES, AssigneeClass, Event, Task, TimelineItem
from weddingdesk.core.repository import EventRepository
from weddingdesk.core.temporal import current_and_next_event, days_until, local_now


@dataclass(frozen=True)
class TaskWithOrigin:
    """A task tagged with the event it belongs to."""
    task: Task
    event_id: Optional[int]
    event_name: str

    @property
    def id(self) -> Optional[int]:
        return self.task.id

    @property
    def title(self) -> str:
        return self.task.title

    @property
    def due_date(self) -> Optional[date]:
        return self.task.due_date

    @property
    def completed(self) -> bool:
        return self.task.completed

    @property
    def assigned_to(self) -> AssigneeClass:
        return self.task.assigned_to

    @property
    def assigned_user_id(self) -> Optional[str]:
        return self.task.assigned_user_id


@dataclass
class EventTaskGroup:
    """Tasks of one event, in first-seen order."""
    name: str
    tasks: List[TaskWithOrigin] = field(default_factory=list)


@dataclass
class TaskCounts:
    """Task statistics over active events."""
    total: int = 0
    overdue: int = 0
    due_today: int = 0
    completed_per_event: Dict[Optional[int], int] = field(default_factory=dict)
    open_per_event: Dict[Optional[int], int] = field(default_factory=dict)

    @property
    def open_total(self) -> int:
        return sum(self.open_per_event.values())

    @property
    def completed_total(self) -> int:
        return sum(self.completed_per_event.values())


@dataclass(frozen=True)
class DayOfBanner:
    """What is happening now and what comes next on an event's day."""
    current: Optional[TimelineItem] = None
    next: Optional[TimelineItem] = None
    minutes_until_next: Optional[int] = None


@dataclass
class PipelineStats:
    """Admin pipeline overview."""
    active_total: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)
    upcoming_soon: int = 0
    tasks_remaining: int = 0


@dataclass
class MonthGroup:
    """Events falling in one calendar month."""
    key: str
    label: str
    events: List[Event] = field(default_factory=list)


@dataclass
class DashboardSnapshot:
    """Complete dashboard data for one role."""
    generated_at: datetime
    today: date
    role: str
    events: List[Event]
    tasks: List[TaskWithOrigin]
    counts: TaskCounts
    banners: Dict[Optional[int], DayOfBanner]
    upcoming_count: int
    pipeline: Optional[PipelineStats] = None
    archived: List[Event] = field(default_factory=list)
    skipped_rows: int = 0
    months: List[MonthGroup] = field(default_factory=list)


# =============================================================================
# Timeline ordering
# =============================================================================

def timeline_sort_key(item: TimelineItem) -> Tuple[int, int, int]:
    """
    Canonical ordering key for a day-of schedule.

    Timed items order by minutes since midnight, untimed items by their
    sort_order. Ties fall back to sort_order, then timed before untimed.
    """
    minutes = item.minutes
    if minutes is not None:
        return (minutes, item.sort_order, 0)
    return (item.sort_order, item.sort_order, 1)


def sorted_timeline(items: Iterable[TimelineItem]) -> List[TimelineItem]:
    return sorted(items, key=timeline_sort_key)


# =============================================================================
# Event selection
# =============================================================================

def active_events(events: Iterable[Event]) -> List[Event]:
    """Events that are not archived, whatever their status."""
    return [e for e in events if not e.archived]


def archived_events(events: Iterable[Event]) -> List[Event]:
    return [e for e in events if e.archived]


def visible_events(events: Iterable[Event], hidden_statuses: Iterable[str]) -> List[Event]:
    """Drop events whose status is in the hidden set (coordinator default view)."""
    hidden = frozenset(hidden_statuses or ())
    return [e for e in events if e.status not in hidden]


def upcoming_events(
    events: Iterable[Event],
    within_days: int,
    today: Optional[date] = None
) -> List[Event]:
    """Active events dated between today and today + within_days, inclusive."""
    upcoming = []
    for event in active_events(events):
        delta = days_until(event.event_date, today)
        if delta is not None and 0 <= delta <= within_days:
            upcoming.append(event)
    return upcoming


def sorted_by_urgency(events: Iterable[Event], today: Optional[date] = None) -> List[Event]:
    """
    Order active events by how soon they need attention.

    Segments, in order:
        1. today and future, soonest first
        2. undated (including unparseable dates), input order
        3. past, most recent first

    Args:
        events: Event snapshots (archived ones are dropped)
        today: Reference date

    Returns:
        New list; the input is not modified
    """
    future: List[Tuple[int, Event]] = []
    undated: List[Event] = []
    past: List[Tuple[int, Event]] = []

    for event in active_events(events):
        delta = days_until(event.event_date, today)
        if delta is None:
            undated.append(event)
        elif delta >= 0:
            future.append((delta, event))
        else:
            past.append((delta, event))

    future.sort(key=lambda pair: pair[0])
    past.sort(key=lambda pair: pair[0], reverse=True)

    return [e for _, e in future] + undated + [e for _, e in past]


def events_by_month(events: Iterable[Event]) -> List[MonthGroup]:
    """Group active events by YYYY-MM, chronologically, with undated events last."""
    groups: Dict[str, MonthGroup] = {}
    undated = MonthGroup(key="no-date", label="No date")

    for event in sorted(active_events(events), key=lambda e: e.event_date or date.max):
        if event.event_date is None:
            undated.events.append(event)
            continue
        key = event.event_date.strftime("%Y-%m")
        if key not in groups:
            groups[key] = MonthGroup(key=key, label=event.event_date.strftime("%B %Y"))
        groups[key].events.append(event)

    result = [groups[key] for key in sorted(groups)]
    if undated.events:
        result.append(undated)
    return result


# =============================================================================
# Tasks
# =============================================================================

def flatten_tasks(events: Iterable[Event]) -> List[TaskWithOrigin]:
    """Every task of every active event, tagged with its event."""
    return [
        TaskWithOrigin(task=task, event_id=event.id, event_name=event.name)
        for event in active_events(events)
        for task in event.tasks
    ]


def group_tasks_by_event(tasks: Iterable[TaskWithOrigin]) -> "OrderedDict[Optional[int], EventTaskGroup]":
    """Group tagged tasks by event id, keeping first-seen order on both levels."""
    groups: "OrderedDict[Optional[int], EventTaskGroup]" = OrderedDict()
    for item in tasks:
        group = groups.get(item.event_id)
        if group is None:
            group = groups[item.event_id] = EventTaskGroup(name=item.event_name)
        group.tasks.append(item)
    return groups


def compute_counts(events: Iterable[Event], today: Optional[date] = None) -> TaskCounts:
    """
    Count tasks across active events in one pass.

    Open means not completed. Overdue and due-today only apply to open
    tasks and never overlap.
    """
    if today is None:
        today = date.today()

    counts = TaskCounts()
    for event in active_events(events):
        _tally_event(counts, event, today)
    return counts


def event_task_counts(event: Event, today: Optional[date] = None) -> TaskCounts:
    """Counts for a single event, archived or not."""
    counts = TaskCounts()
    _tally_event(counts, event, today or date.today())
    return counts


def _tally_event(counts: TaskCounts, event: Event, today: date) -> None:
    counts.completed_per_event.setdefault(event.id, 0)
    counts.open_per_event.setdefault(event.id, 0)

    for task in event.tasks:
        counts.total += 1
        if not task.is_open:
            counts.completed_per_event[event.id] += 1
            continue

        counts.open_per_event[event.id] += 1
        delta = days_until(task.due_date, today)
        if delta is None:
            continue
        if delta < 0:
            counts.overdue += 1
        elif delta == 0:
            counts.due_today += 1


# =============================================================================
# Day-of and pipeline
# =============================================================================

def day_of_banner(event: Event, now_minutes: int) -> DayOfBanner:
    """Resolve the happening-now and up-next entries for an event's schedule."""
    resolved = current_and_next_event(sorted_timeline(event.timeline_items), now_minutes)
    until_next = None
    if resolved.next is not None:
        until_next = resolved.next.minutes - now_minutes
    return DayOfBanner(current=resolved.current, next=resolved.next, minutes_until_next=until_next)


def pipeline_stats(
    events: Iterable[Event],
    today: Optional[date] = None,
    soon_days: int = 30
) -> PipelineStats:
    """Status breakdown, near-term events and remaining tasks for active events."""
    active = active_events(events)

    by_status = {stage: 0 for stage in PIPELINE_STAGES}
    for event in active:
        by_status[event.status] = by_status.get(event.status, 0) + 1

    return PipelineStats(
        active_total=len(active),
        by_status=by_status,
        upcoming_soon=len(upcoming_events(active, soon_days, today)),
        tasks_remaining=compute_counts(active, today).open_total,
    )


# =============================================================================
# Record-store backed aggregation
# =============================================================================

class RecordAggregator:
    """
    Builds dashboard snapshots for each role from the record store.

    Every call re-reads the store. Rows that cannot be turned into models
    are logged and skipped; a failed read raises SnapshotLoadError.
    """

    def __init__(self, repository: EventRepository, config: Optional[Config] = None):
        """
        Initialize aggregator.

        Args:
            repository: Event reads
            config: Configuration (creates default if not provided)
        """
        self.repository = repository
        self.config = config if config else Config()
        self.logger = logging.getLogger("dashboard.aggregator")

    def _now(self, now: Optional[datetime]) -> datetime:
        if now is not None:
            return now
        return local_now(self.config.get("timezone", "settings"))

    def _load(self, fetch: Callable[..., List[Dict[str, Any]]], *args: Any) -> Tuple[List[Event], int]:
        """Fetch event rows and convert them, skipping malformed ones."""
        try:
            rows = fetch(*args)
        except BackendError as e:
            self.logger.warning(f"Snapshot load failed: {e}")
            raise SnapshotLoadError(f"Could not load events: {e}") from e

        events = []
        skipped = 0
        for row in rows:
            try:
                events.append(Event.from_dict(row))
            except (KeyError, TypeError, ValueError) as e:
                skipped += 1
                self.logger.warning(f"Skipping malformed event row {row.get('id', '?')}: {e!r}")
        return events, skipped

    def _build(
        self,
        role: str,
        events: Sequence[Event],
        now: datetime,
        upcoming_window: int,
        skipped: int = 0,
    ) -> DashboardSnapshot:
        today = now.date()
        now_minutes = now.hour * 60 + now.minute

        ordered = sorted_by_urgency(events, today)
        banners = {
            event.id: day_of_banner(event, now_minutes)
            for event in ordered
            if event.event_date == today
        }

        return DashboardSnapshot(
            generated_at=now,
            today=today,
            role=role,
            events=ordered,
            tasks=flatten_tasks(ordered),
            counts=compute_counts(ordered, today),
            banners=banners,
            upcoming_count=len(upcoming_events(ordered, upcoming_window, today)),
            skipped_rows=skipped,
        )

    def coordinator_snapshot(self, user_id: str, now: Optional[datetime] = None) -> DashboardSnapshot:
        """Events assigned to a coordinator, hiding terminal statuses."""
        now = self._now(now)
        events, skipped = self._load(self.repository.events_for_coordinator, user_id)
        hidden = self.config.get("hidden_statuses", "dashboard", [])
        return self._build(
            "coordinator",
            visible_events(events, hidden),
            now,
            self.config.get("upcoming_window_days", "dashboard", 183),
            skipped,
        )

    def couple_snapshot(self, user_id: str, now: Optional[datetime] = None) -> DashboardSnapshot:
        """The couple's own events."""
        now = self._now(now)
        events, skipped = self._load(self.repository.events_for_couple, user_id)
        return self._build(
            "couple",
            events,
            now,
            self.config.get("upcoming_window_days", "dashboard", 183),
            skipped,
        )

    def admin_snapshot(self, now: Optional[datetime] = None) -> DashboardSnapshot:
        """Every event, with pipeline statistics and the archived list."""
        now = self._now(now)
        events, skipped = self._load(self.repository.all_events)
        soon_days = self.config.get("soon_window_days", "dashboard", 30)

        snapshot = self._build("admin", events, now, soon_days, skipped)
        snapshot.pipeline = pipeline_stats(events, now.date(), soon_days)
        snapshot.archived = archived_events(events)
        snapshot.months = events_by_month(events)
        return snapshot
