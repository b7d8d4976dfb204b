"""
Filter and sort pipeline for flattened task lists.

Named predicates are AND-composed in a single pass and named comparators
give stable orderings. Every step returns a new list and leaves its input
untouched.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from weddingdesk.core.errors import UnknownPipelineStepError
from weddingdesk.core.temporal import is_overdue


DEFAULT_SORT = "due_date"


@dataclass(frozen=True)
class FilterContext:
    """Who is asking, and when."""
    role: str
    user_id: Optional[str] = None
    today: Optional[date] = None


def _assignee_value(item: Any) -> str:
    assigned = getattr(item, "assigned_to", None)
    return getattr(assigned, "value", assigned) or ""


def _is_open(item: Any, context: FilterContext) -> bool:
    return not item.completed


def _is_mine(item: Any, context: FilterContext) -> bool:
    if item.completed:
        return False
    if _assignee_value(item) == context.role:
        return True
    return context.user_id is not None and item.assigned_user_id == context.user_id


def _is_overdue(item: Any, context: FilterContext) -> bool:
    return is_overdue(item.due_date, item.completed, context.today)


def _is_done(item: Any, context: FilterContext) -> bool:
    return bool(item.completed)


PREDICATES: Dict[str, Callable[[Any, FilterContext], bool]] = {
    "open": _is_open,
    "mine": _is_mine,
    "overdue": _is_overdue,
    "done": _is_done,
}

COMPARATORS: Dict[str, Callable[[Any], Any]] = {
    # nulls last
    "due_date": lambda item: (item.due_date is None, item.due_date or date.min),
    # open before done
    "status": lambda item: bool(item.completed),
    "alphabetic": lambda item: (item.title or "").casefold(),
    "event": lambda item: (getattr(item, "event_name", "") or "").casefold(),
}


def _predicates_for(names: Iterable[str]) -> List[Callable[[Any, FilterContext], bool]]:
    predicates = []
    for name in names:
        if name not in PREDICATES:
            raise UnknownPipelineStepError(
                f"Unknown filter '{name}'. Available: {', '.join(sorted(PREDICATES))}"
            )
        predicates.append(PREDICATES[name])
    return predicates


def apply_filters(tasks: Iterable[Any], names: Iterable[str], context: FilterContext) -> List[Any]:
    """Keep the tasks that satisfy every named predicate."""
    predicates = _predicates_for(names)
    return [t for t in tasks if all(p(t, context) for p in predicates)]


def sort_tasks(tasks: Iterable[Any], sort_by: str = DEFAULT_SORT) -> List[Any]:
    """Stable sort by a named comparator."""
    if sort_by not in COMPARATORS:
        raise UnknownPipelineStepError(
            f"Unknown sort '{sort_by}'. Available: {', '.join(sorted(COMPARATORS))}"
        )
    return sorted(tasks, key=COMPARATORS[sort_by])


def search_tasks(tasks: Iterable[Any], query: Optional[str]) -> List[Any]:
    """Case-insensitive substring match on task title or event name."""
    needle = (query or "").strip().casefold()
    if not needle:
        return list(tasks)
    return [
        t for t in tasks
        if needle in (t.title or "").casefold()
        or needle in (getattr(t, "event_name", "") or "").casefold()
    ]


@dataclass(frozen=True)
class TaskPipeline:
    """
    Active filter/sort/search state, independent of any view or tab.

    Example:
        pipeline = TaskPipeline(filters=("mine", "overdue"), sort_by="alphabetic")
        visible = pipeline.run(snapshot.tasks, FilterContext(role="couple"))
    """
    filters: Tuple[str, ...] = ()
    sort_by: str = DEFAULT_SORT
    search: Optional[str] = None

    def __post_init__(self):
        _predicates_for(self.filters)
        if self.sort_by not in COMPARATORS:
            raise UnknownPipelineStepError(f"Unknown sort '{self.sort_by}'")

    @classmethod
    def from_params(
        cls,
        filters: Optional[str] = None,
        sort_by: Optional[str] = None,
        search: Optional[str] = None,
    ) -> 'TaskPipeline':
        """Build from comma-separated query parameters."""
        names: Sequence[str] = tuple(
            name.strip() for name in (filters or "").split(",") if name.strip()
        )
        return cls(filters=tuple(names), sort_by=sort_by or DEFAULT_SORT, search=search)

    def run(self, tasks: Iterable[Any], context: FilterContext) -> List[Any]:
        selected = apply_filters(tasks, self.filters, context)
        selected = search_tasks(selected, self.search)
        return sort_tasks(selected, self.sort_by)
