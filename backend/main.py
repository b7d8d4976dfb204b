"""
WeddingDesk FastAPI Backend

Entry point for the API server behind the admin dashboard, coordinator
console and couple portal.

Architecture:
- FastAPI handles HTTP routing and request/response validation
- Pydantic schemas shape dashboard and notification responses
- weddingdesk.dashboard aggregates records per role
- weddingdesk.notifications keeps live per-user feeds
- Database provides persistence via SQLite

Run with:
    uvicorn backend.main:app --reload --port 8000

Or:
    python -m backend.main
"""

import logging
import sqlite3
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from backend.routers import (
    dashboard_router,
    tasks_router,
    notifications_router,
)
from backend.dependencies import (
    get_config,
    get_database,
    get_notification_backend,
    get_push_transport,
)
from backend.websocket import notification_socket
from weddingdesk.core.config import Config
from weddingdesk.notifications.store import RepositoryNotificationBackend
from weddingdesk.notifications.transport import InProcessPushTransport


logger = logging.getLogger("weddingdesk.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: Configure logging, verify database connection
    - Shutdown: Close the push transport
    """
    config = get_config()
    logging.basicConfig(
        level=config.get("log_level", "settings", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        db = get_database()
        logger.info(f"Database connected: {db.db_path}")
        logger.info(f"Config loaded from: {config.config_dir}")
    except FileNotFoundError as e:
        logger.error(str(e))
        # Allow app to start but endpoints will fail until the database exists

    yield

    logger.info("Shutting down...")
    get_push_transport().close()
    get_push_transport.cache_clear()


# Create FastAPI app
app = FastAPI(
    title="WeddingDesk API",
    description="""
    Operational state and live notifications for wedding coordination.

    ## Features

    - **Dashboards**: Coordinator, couple and admin views with task counts,
      urgency-ordered events and day-of banners
    - **Tasks**: Filter (open, mine, overdue, done), search and sort tasks
      across events; complete and reopen them
    - **Notifications**: Per-user feed with read tracking, live over WebSocket
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for frontend access
# In production, replace with specific origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(dashboard_router)
app.include_router(tasks_router)
app.include_router(notifications_router)


# ============================================================
# WEBSOCKET ENDPOINT
# ============================================================
# One live notification channel per connection.
# ============================================================

@app.websocket("/ws/notifications/{user_id}")
async def notifications_websocket(
    websocket: WebSocket,
    user_id: str,
    backend: RepositoryNotificationBackend = Depends(get_notification_backend),
    transport: InProcessPushTransport = Depends(get_push_transport),
    config: Config = Depends(get_config),
):
    """
    Live notification feed for user_id.

    Protocol: see backend.websocket. The server pushes a full snapshot after
    every change; clients send mark_read, mark_all_read and ping.
    """
    await notification_socket(websocket, user_id, backend, transport, config)


@app.get("/")
async def root():
    """API root - returns basic info and available endpoints."""
    return {
        "name": "WeddingDesk API",
        "version": "0.1.0",
        "docs": "/docs",
        "endpoints": {
            "coordinator": "/dashboard/coordinator/{user_id}",
            "couple": "/dashboard/couple/{user_id}",
            "admin": "/dashboard/admin",
            "tasks": "/tasks",
            "notifications": "/notifications/{user_id}",
            "live": "/ws/notifications/{user_id}",
        }
    }


@app.get("/health")
async def health_check(db=Depends(get_database)):
    """Health check endpoint for monitoring."""
    try:
        db.execute_one("SELECT 1")
        return {"status": "healthy", "database": "connected"}
    except sqlite3.Error as e:
        return {"status": "unhealthy", "error": str(e)}


# Allow running directly with: python -m backend.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
