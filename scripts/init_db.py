#!/usr/bin/env python3
"""
Database initialization script for WeddingDesk
Creates the SQLite record store and optionally loads demo data

Usage:
    python scripts/init_db.py            # configured path
    python scripts/init_db.py --seed     # plus demo events, tasks, timeline
    python scripts/init_db.py --db /tmp/demo.db --force
"""

import argparse
import sqlite3
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from weddingdesk.core.config import Config
from weddingdesk.core.database import SQLiteDatabase
from weddingdesk.core.models import ChangeLog
from weddingdesk.core.repository import EventRepository, NotificationRepository


def seed_demo_data(db: SQLiteDatabase, today: Optional[date] = None) -> dict:
    """
    Load a small demo dataset relative to today.

    Returns:
        Counts of created rows by table
    """
    today = today or date.today()
    events = EventRepository(db)
    notifications = NotificationRepository(db)

    events.create_profile("admin-1", "Avery Admin", "admin", "admin@example.com")
    events.create_profile("coord-1", "Casey Coordinator", "coordinator", "casey@example.com")
    events.create_profile("coord-2", "Jordan Planner", "coordinator", "jordan@example.com")
    events.create_profile("couple-1", "Sam & Alex", "couple", "samalex@example.com")
    events.create_profile("couple-2", "Riley & Morgan", "couple", "rileymorgan@example.com")

    today_event = events.create_event(
        "Sam & Alex", today, "Planning", couple_user_id="couple-1",
        venue_name="Lakeside Pavilion", package_type="Full Planning",
    )
    spring_event = events.create_event(
        "Riley & Morgan", today + timedelta(days=45), "Signed", couple_user_id="couple-2",
        venue_name="The Orchard", package_type="Month-Of",
    )
    inquiry = events.create_event("Taylor & Quinn", None, "Inquiry")
    past_event = events.create_event(
        "Jamie & Drew", today - timedelta(days=20), "Completed", archived=True,
    )

    events.assign_coordinator(today_event, "coord-1", is_lead=True)
    events.assign_coordinator(today_event, "coord-2")
    events.assign_coordinator(spring_event, "coord-1", is_lead=True)
    events.assign_coordinator(inquiry, "coord-2", is_lead=True)
    events.assign_coordinator(past_event, "coord-1", is_lead=True)

    tasks = [
        (today_event, "Confirm final headcount", today - timedelta(days=2), "couple"),
        (today_event, "Print seating chart", today, "coordinator"),
        (today_event, "Send vendor arrival times", today - timedelta(days=5), "coordinator"),
        (spring_event, "Book florist", today + timedelta(days=10), "couple"),
        (spring_event, "Schedule tasting", today + timedelta(days=3), "coordinator"),
        (spring_event, "Choose invitation design", None, "couple"),
        (inquiry, "Send proposal", today + timedelta(days=1), "coordinator"),
    ]
    for event_id, title, due, assignee in tasks:
        events.create_task(event_id, title, due, assignee)
    events.create_task(today_event, "Sign venue contract", today - timedelta(days=90),
                       "couple", completed=True)

    timeline = [
        ("09:00", "Hair and makeup", "couple"),
        ("11:30", "Photographer arrives", "vendor"),
        ("13:00", "Lunch", "couple"),
        ("15:00", "Ceremony", "couple"),
        ("17:30", "Reception", "couple"),
        (None, "Send-off", "couple"),
    ]
    for order, (at, title, item_type) in enumerate(timeline):
        events.add_timeline_item(today_event, title, at, sort_order=order, item_type=item_type)

    change = ChangeLog(
        event_id=spring_event,
        actor_user_id="coord-1",
        description="Tasting scheduled",
        change_type="task_created",
    )
    events.record_change(change)
    notifications.create("couple-2", "Riley & Morgan: Tasting scheduled", spring_event)
    notifications.create("coord-1", "Sam & Alex: Headcount is overdue", today_event, kind="reminder")

    return {
        "profiles": db.count("profiles"),
        "events": db.count("events"),
        "tasks": db.count("tasks"),
        "timeline_items": db.count("timeline_items"),
        "notifications": db.count("notifications"),
    }


def init_database(db_path: Path, seed: bool = False, force: bool = False) -> bool:
    """Create the schema at db_path (and demo data with seed)"""
    db_path = Path(db_path)

    if db_path.exists():
        if not force:
            response = input(f"Database already exists at {db_path}. Overwrite? (yes/no): ")
            if response.lower() != 'yes':
                print("Aborting database initialization.")
                return False
        db_path.unlink()

    print(f"Creating database at {db_path}...")
    try:
        db = SQLiteDatabase(db_path, create=True)
        db.init_schema()
        print("✓ Database schema created successfully!")
        print(f"✓ Tables created: {', '.join(db.get_table_names())}")

        if seed:
            counts = seed_demo_data(db)
            summary = ", ".join(f"{name}={n}" for name, n in counts.items())
            print(f"✓ Demo data loaded: {summary}")

        return True

    except sqlite3.Error as e:
        print(f"✗ Database error: {e}")
        return False


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Initialize the WeddingDesk database")
    parser.add_argument("--db", type=Path, default=None,
                        help="Database file (defaults to the configured path)")
    parser.add_argument("--seed", action="store_true", help="Load demo data")
    parser.add_argument("--force", action="store_true", help="Overwrite without asking")
    args = parser.parse_args(argv)

    db_path = args.db or Config().get_database_path()

    print("=" * 60)
    print("WeddingDesk - Database Initialization")
    print("=" * 60)
    print()

    if init_database(db_path, seed=args.seed, force=args.force):
        print("\n" + "=" * 60)
        print("Database initialization complete!")
        print("=" * 60)
        return 0

    print("\n" + "=" * 60)
    print("Database initialization failed!")
    print("=" * 60)
    return 1


if __name__ == "__main__":
    sys.exit(main())
