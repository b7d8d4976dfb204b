"""
Pydantic schemas for API request/response validation.

Dashboard responses are built from DashboardSnapshot objects with the
helper functions at the bottom of this module; notification responses map
one-to-one onto Notification.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from weddingdesk.core.models import CoordinatorAssignment, Event, Notification, TimelineItem
from weddingdesk.core.temporal import days_until, due_today_bucket, is_overdue
from weddingdesk.dashboard.aggregator import (
    DashboardSnapshot,
    DayOfBanner,
    PipelineStats,
    TaskCounts,
    TaskWithOrigin,
    event_task_counts,
)


# =============================================================================
# Base Response Schemas
# =============================================================================

class ActionResponse(BaseModel):
    """Standard response for write operations."""
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Error response for API errors."""
    detail: str
    code: Optional[str] = None


# =============================================================================
# Task Schemas
# =============================================================================

class TaskResponse(BaseModel):
    """Task data with its event and due-date classification."""
    id: int
    event_id: Optional[int] = None
    event_name: str = ""
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    completed: bool = False
    assigned_to: str = "couple"
    assigned_user_id: Optional[str] = None
    priority: Optional[str] = None
    days_until_due: Optional[int] = None
    overdue: bool = False
    due_today: bool = False

    class Config:
        from_attributes = True


class TaskListResponse(BaseModel):
    """Response for the filtered/sorted task list."""
    tasks: List[TaskResponse]
    total: int
    filters: List[str] = []
    sort: str = "due_date"


class TaskActionRequest(BaseModel):
    """Optional body for complete/uncomplete."""
    actor_user_id: Optional[str] = Field(default=None, description="User making the change")


# =============================================================================
# Event / Timeline Schemas
# =============================================================================

class CoordinatorResponse(BaseModel):
    user_id: str
    full_name: str = ""
    is_lead: bool = False


class TimelineItemResponse(BaseModel):
    id: Optional[int] = None
    title: str
    time: Optional[str] = None
    description: Optional[str] = None
    sort_order: int = 0
    item_type: Optional[str] = None


class EventSummary(BaseModel):
    """Event as shown on dashboards."""
    id: int
    name: str
    event_date: Optional[str] = None
    days_until: Optional[int] = None
    status: str
    archived: bool = False
    venue_name: Optional[str] = None
    package_type: Optional[str] = None
    coordinators: List[CoordinatorResponse] = []
    open_tasks: int = 0
    completed_tasks: int = 0


class DayOfBannerResponse(BaseModel):
    """Happening now / up next for an event taking place today."""
    event_id: int
    event_name: str
    current: Optional[TimelineItemResponse] = None
    next: Optional[TimelineItemResponse] = None
    minutes_until_next: Optional[int] = None


# =============================================================================
# Dashboard Schemas
# =============================================================================

class TaskCountsResponse(BaseModel):
    total: int = 0
    open: int = 0
    completed: int = 0
    overdue: int = 0
    due_today: int = 0


class PipelineStatsResponse(BaseModel):
    active_total: int = 0
    by_status: Dict[str, int] = {}
    upcoming_soon: int = 0
    tasks_remaining: int = 0


class MonthGroupResponse(BaseModel):
    """Active events falling in one calendar month."""
    key: str
    label: str
    event_ids: List[int] = []


class DashboardResponse(BaseModel):
    """Complete dashboard data for one role."""
    role: str
    generated_at: str
    today: str
    events: List[EventSummary]
    tasks: List[TaskResponse]
    counts: TaskCountsResponse
    banners: List[DayOfBannerResponse] = []
    upcoming_count: int = 0
    pipeline: Optional[PipelineStatsResponse] = None
    archived: List[EventSummary] = []
    skipped_rows: int = 0
    months: List[MonthGroupResponse] = []


# =============================================================================
# Notification Schemas
# =============================================================================

class NotificationResponse(BaseModel):
    id: int
    user_id: str
    message: str
    read: bool = False
    created_at: Optional[str] = None
    event_id: Optional[int] = None
    kind: str = "info"


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int = 0


# =============================================================================
# Conversions
# =============================================================================

def task_response(item: TaskWithOrigin, today: Optional[date] = None) -> TaskResponse:
    task = item.task
    return TaskResponse(
        id=task.id,
        event_id=item.event_id,
        event_name=item.event_name,
        title=task.title,
        description=task.description,
        due_date=task.due_date.isoformat() if task.due_date else None,
        completed=task.completed,
        assigned_to=task.assigned_to.value,
        assigned_user_id=task.assigned_user_id,
        priority=task.priority,
        days_until_due=days_until(task.due_date, today),
        overdue=is_overdue(task.due_date, task.completed, today),
        due_today=not task.completed and due_today_bucket(task.due_date, today),
    )


def _timeline_item_response(item: Optional[TimelineItem]) -> Optional[TimelineItemResponse]:
    if item is None:
        return None
    return TimelineItemResponse(
        id=item.id,
        title=item.title,
        time=item.time,
        description=item.description,
        sort_order=item.sort_order,
        item_type=item.item_type,
    )


def _coordinator_response(assignment: CoordinatorAssignment) -> CoordinatorResponse:
    return CoordinatorResponse(
        user_id=assignment.user_id,
        full_name=assignment.full_name,
        is_lead=assignment.is_lead,
    )


def event_summary(event: Event, counts: Optional[TaskCounts] = None,
                  today: Optional[date] = None) -> EventSummary:
    if counts is None or event.id not in counts.open_per_event:
        counts = event_task_counts(event, today)
    open_tasks = counts.open_per_event[event.id]
    completed_tasks = counts.completed_per_event[event.id]
    return EventSummary(
        id=event.id,
        name=event.name,
        event_date=event.event_date.isoformat() if event.event_date else None,
        days_until=days_until(event.event_date, today),
        status=event.status,
        archived=event.archived,
        venue_name=event.venue_name,
        package_type=event.package_type,
        coordinators=[_coordinator_response(c) for c in event.coordinators],
        open_tasks=open_tasks,
        completed_tasks=completed_tasks,
    )


def _banner_response(event: Event, banner: DayOfBanner) -> DayOfBannerResponse:
    return DayOfBannerResponse(
        event_id=event.id,
        event_name=event.name,
        current=_timeline_item_response(banner.current),
        next=_timeline_item_response(banner.next),
        minutes_until_next=banner.minutes_until_next,
    )


def _pipeline_response(stats: Optional[PipelineStats]) -> Optional[PipelineStatsResponse]:
    if stats is None:
        return None
    return PipelineStatsResponse(
        active_total=stats.active_total,
        by_status=stats.by_status,
        upcoming_soon=stats.upcoming_soon,
        tasks_remaining=stats.tasks_remaining,
    )


def dashboard_response(snapshot: DashboardSnapshot) -> DashboardResponse:
    today = snapshot.today
    counts = snapshot.counts
    return DashboardResponse(
        role=snapshot.role,
        generated_at=snapshot.generated_at.isoformat(),
        today=today.isoformat(),
        events=[event_summary(e, counts, today) for e in snapshot.events],
        tasks=[task_response(t, today) for t in snapshot.tasks],
        counts=TaskCountsResponse(
            total=counts.total,
            open=counts.open_total,
            completed=counts.completed_total,
            overdue=counts.overdue,
            due_today=counts.due_today,
        ),
        banners=[
            _banner_response(e, snapshot.banners[e.id])
            for e in snapshot.events
            if e.id in snapshot.banners
        ],
        upcoming_count=snapshot.upcoming_count,
        pipeline=_pipeline_response(snapshot.pipeline),
        archived=[event_summary(e, today=today) for e in snapshot.archived],
        skipped_rows=snapshot.skipped_rows,
        months=[
            MonthGroupResponse(key=g.key, label=g.label, event_ids=[e.id for e in g.events])
            for g in snapshot.months
        ],
    )


def notification_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(**notification.to_dict())
