"""
API routers for the WeddingDesk backend.

Each router handles a specific domain:
- dashboard: Role dashboards (coordinator, couple, admin)
- tasks: Filtered task lists and completion toggles
- notifications: Notification feed reads and read-state writes
"""

from .dashboard import router as dashboard_router
from .tasks import router as tasks_router
from .notifications import router as notifications_router

__all__ = [
    'dashboard_router',
    'tasks_router',
    'notifications_router',
]
