"""
Dashboard API endpoints.

Each request re-reads the record store through RecordAggregator and returns
the role's snapshot. A failed read is a 503 the client may retry.
"""

from fastapi import APIRouter, Depends, HTTPException

from backend.dependencies import get_record_aggregator
from backend.schemas import DashboardResponse, dashboard_response
from weddingdesk.core.errors import SnapshotLoadError
from weddingdesk.dashboard.aggregator import RecordAggregator

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/coordinator/{user_id}", response_model=DashboardResponse)
async def coordinator_dashboard(
    user_id: str,
    aggregator: RecordAggregator = Depends(get_record_aggregator),
):
    """
    Coordinator console.

    Events assigned to the coordinator (completed and cancelled hidden by
    default), most urgent first, with task counts, day-of banners and the
    number of events in the upcoming window.
    """
    try:
        snapshot = aggregator.coordinator_snapshot(user_id)
    except SnapshotLoadError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return dashboard_response(snapshot)


@router.get("/couple/{user_id}", response_model=DashboardResponse)
async def couple_dashboard(
    user_id: str,
    aggregator: RecordAggregator = Depends(get_record_aggregator),
):
    """Couple portal: the couple's own events and tasks."""
    try:
        snapshot = aggregator.couple_snapshot(user_id)
    except SnapshotLoadError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return dashboard_response(snapshot)


@router.get("/admin", response_model=DashboardResponse)
async def admin_dashboard(
    aggregator: RecordAggregator = Depends(get_record_aggregator),
):
    """Admin dashboard: every active event, pipeline stats and archived events."""
    try:
        snapshot = aggregator.admin_snapshot()
    except SnapshotLoadError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return dashboard_response(snapshot)
