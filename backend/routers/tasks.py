"""
Task API endpoints.

Lists tasks from a role's dashboard snapshot through the filter/sort
pipeline, and toggles completion. Each toggle is recorded as a change and
fanned out to the event's participants.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.dependencies import (
    get_config,
    get_event_repository,
    get_notification_dispatcher,
    get_record_aggregator,
)
from backend.schemas import (
    ActionResponse,
    TaskActionRequest,
    TaskListResponse,
    task_response,
)
from weddingdesk.core.config import Config
from weddingdesk.core.errors import BackendError, SnapshotLoadError, UnknownPipelineStepError
from weddingdesk.core.models import ChangeLog
from weddingdesk.core.repository import EventRepository
from weddingdesk.dashboard.aggregator import RecordAggregator
from weddingdesk.dashboard.pipeline import FilterContext, TaskPipeline
from weddingdesk.notifications.dispatcher import NotificationDispatcher

router = APIRouter(prefix="/tasks", tags=["tasks"])

ROLES = ("admin", "coordinator", "couple")


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    role: str = Query(..., description="admin, coordinator or couple"),
    user_id: Optional[str] = Query(None, description="Caller (required unless admin)"),
    filters: Optional[str] = Query(None, description="Comma-separated: open, mine, overdue, done"),
    sort: Optional[str] = Query(None, description="due_date, status, alphabetic or event"),
    q: Optional[str] = Query(None, description="Search title or event name"),
    aggregator: RecordAggregator = Depends(get_record_aggregator),
    config: Config = Depends(get_config),
):
    """
    List tasks visible to a role, filtered, searched and sorted.

    Filters are AND-combined. Sorting is stable, so repeated requests with
    the same parameters return the same order.
    """
    if role not in ROLES:
        raise HTTPException(status_code=400, detail=f"Unknown role '{role}'")
    if role != "admin" and not user_id:
        raise HTTPException(status_code=400, detail="user_id is required for this role")

    try:
        pipeline = TaskPipeline.from_params(
            filters, sort or config.get("default_sort", "dashboard", "due_date"), q
        )
    except UnknownPipelineStepError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        if role == "coordinator":
            snapshot = aggregator.coordinator_snapshot(user_id)
        elif role == "couple":
            snapshot = aggregator.couple_snapshot(user_id)
        else:
            snapshot = aggregator.admin_snapshot()
    except SnapshotLoadError as e:
        raise HTTPException(status_code=503, detail=str(e))

    context = FilterContext(role=role, user_id=user_id, today=snapshot.today)
    tasks = pipeline.run(snapshot.tasks, context)

    return TaskListResponse(
        tasks=[task_response(t, snapshot.today) for t in tasks],
        total=len(tasks),
        filters=list(pipeline.filters),
        sort=pipeline.sort_by,
    )


def _set_completed(
    task_id: int,
    completed: bool,
    body: Optional[TaskActionRequest],
    events: EventRepository,
    dispatcher: NotificationDispatcher,
) -> ActionResponse:
    try:
        task = events.get_task(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        if bool(task["completed"]) == completed:
            state = "completed" if completed else "open"
            return ActionResponse(
                success=True,
                message=f"Task '{task['title']}' already {state}",
                data={"task_id": task_id, "completed": completed, "notified": 0},
            )
        events.set_task_completed(task_id, completed)
    except BackendError as e:
        raise HTTPException(status_code=503, detail=str(e))

    verb = "completed" if completed else "reopened"
    notified = dispatcher.dispatch_change(ChangeLog(
        event_id=task["event_id"],
        actor_user_id=body.actor_user_id if body else None,
        description=f"Task {verb}: {task['title']}",
        change_type=f"task_{verb}",
        entity_type="task",
        entity_id=task_id,
    ))

    return ActionResponse(
        success=True,
        message=f"Task '{task['title']}' {verb}",
        data={"task_id": task_id, "completed": completed, "notified": len(notified)},
    )


@router.post("/{task_id}/complete", response_model=ActionResponse)
async def complete_task(
    task_id: int,
    body: Optional[TaskActionRequest] = None,
    events: EventRepository = Depends(get_event_repository),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Mark a task completed. Its due date is kept."""
    return _set_completed(task_id, True, body, events, dispatcher)


@router.post("/{task_id}/uncomplete", response_model=ActionResponse)
async def uncomplete_task(
    task_id: int,
    body: Optional[TaskActionRequest] = None,
    events: EventRepository = Depends(get_event_repository),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Reopen a completed task."""
    return _set_completed(task_id, False, body, events, dispatcher)
