"""
Dashboard module for WeddingDesk.

Provides record aggregation and the task filter/sort pipeline shared by the
admin dashboard, coordinator console and couple portal.
"""

from .aggregator import (
    DashboardSnapshot,
    DayOfBanner,
    EventTaskGroup,
    MonthGroup,
    PipelineStats,
    RecordAggregator,
    TaskCounts,
    TaskWithOrigin,
    active_events,
    archived_events,
    compute_counts,
    day_of_banner,
    event_task_counts,
    events_by_month,
    flatten_tasks,
    group_tasks_by_event,
    pipeline_stats,
    sorted_by_urgency,
    sorted_timeline,
    timeline_sort_key,
    upcoming_events,
    visible_events,
)
from .pipeline import (
    DEFAULT_SORT,
    FilterContext,
    TaskPipeline,
    apply_filters,
    search_tasks,
    sort_tasks,
)

__all__ = [
    # Aggregator
    'DashboardSnapshot',
    'DayOfBanner',
    'EventTaskGroup',
    'MonthGroup',
    'PipelineStats',
    'RecordAggregator',
    'TaskCounts',
    'TaskWithOrigin',
    'active_events',
    'archived_events',
    'compute_counts',
    'day_of_banner',
    'event_task_counts',
    'events_by_month',
    'flatten_tasks',
    'group_tasks_by_event',
    'pipeline_stats',
    'sorted_by_urgency',
    'sorted_timeline',
    'timeline_sort_key',
    'upcoming_events',
    'visible_events',
    # Pipeline
    'DEFAULT_SORT',
    'FilterContext',
    'TaskPipeline',
    'apply_filters',
    'search_tasks',
    'sort_tasks',
]
