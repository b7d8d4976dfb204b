"""
Row-level access to the record store.

EventRepository returns events with their tasks, timeline items and
coordinator assignments nested as plain dictionaries; turning them into
models is left to the caller so one malformed row cannot poison a whole
snapshot. NotificationRepository backs the notification feed.

sqlite3 failures are re-raised as BackendError.
"""

import sqlite3
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .database import DatabaseBase
from .errors import BackendError
from .models import ChangeLog


@contextmanager
def _backend_errors(action: str):
    try:
        yield
    except sqlite3.Error as e:
        raise BackendError(f"Failed to {action}: {e}") from e


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


class EventRepository:
    """Reads events with nested children; a few writes used by the API"""

    EVENT_COLUMNS = """
        id, name, event_date, status, archived, couple_user_id,
        venue_name, package_type, created_at, updated_at
    """

    def __init__(self, db: DatabaseBase):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def all_events(self) -> List[Dict[str, Any]]:
        """Every event, including archived ones"""
        with _backend_errors("load events"):
            rows = self.db.execute(
                f"SELECT {self.EVENT_COLUMNS} FROM events "
                "ORDER BY event_date IS NULL, event_date, id"
            )
            return self._attach_children(rows)

    def events_for_coordinator(self, user_id: str) -> List[Dict[str, Any]]:
        """Events the user is assigned to as a coordinator"""
        with _backend_errors("load coordinator events"):
            rows = self.db.execute(
                f"SELECT {self.EVENT_COLUMNS} FROM events "
                "WHERE id IN (SELECT event_id FROM coordinator_assignments WHERE coordinator_id = ?) "
                "ORDER BY event_date IS NULL, event_date, id",
                (user_id,),
            )
            return self._attach_children(rows)

    def events_for_couple(self, user_id: str) -> List[Dict[str, Any]]:
        """Events owned by the couple account"""
        with _backend_errors("load couple events"):
            rows = self.db.execute(
                f"SELECT {self.EVENT_COLUMNS} FROM events WHERE couple_user_id = ? "
                "ORDER BY event_date IS NULL, event_date, id",
                (user_id,),
            )
            return self._attach_children(rows)

    def get_event(self, event_id: int) -> Optional[Dict[str, Any]]:
        """Single event with children, or None"""
        with _backend_errors("load event"):
            rows = self.db.execute(
                f"SELECT {self.EVENT_COLUMNS} FROM events WHERE id = ?", (event_id,)
            )
            events = self._attach_children(rows)
            return events[0] if events else None

    def get_task(self, task_id: int) -> Optional[Dict[str, Any]]:
        with _backend_errors("load task"):
            return self.db.execute_one("SELECT * FROM tasks WHERE id = ?", (task_id,))

    def _attach_children(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Nest tasks, timeline items and coordinators under each event row"""
        if not rows:
            return []

        events = {row['id']: {**row, 'tasks': [], 'timeline_items': [], 'coordinators': []}
                  for row in rows}
        ids = list(events.keys())
        marks = _placeholders(ids)

        for task in self.db.execute(
            f"SELECT * FROM tasks WHERE event_id IN ({marks}) ORDER BY id", tuple(ids)
        ):
            events[task['event_id']]['tasks'].append(task)

        for item in self.db.execute(
            f"SELECT * FROM timeline_items WHERE event_id IN ({marks}) ORDER BY sort_order, id",
            tuple(ids),
        ):
            events[item['event_id']]['timeline_items'].append(item)

        for assignment in self.db.execute(
            f"""
            SELECT ca.event_id, ca.coordinator_id, ca.is_lead, p.full_name
            FROM coordinator_assignments ca
            LEFT JOIN profiles p ON p.id = ca.coordinator_id
            WHERE ca.event_id IN ({marks})
            ORDER BY ca.id
            """,
            tuple(ids),
        ):
            events[assignment['event_id']]['coordinators'].append(assignment)

        return list(events.values())

    # ------------------------------------------------------------------
    # Writes (callers re-fetch afterwards)
    # ------------------------------------------------------------------

    def create_profile(self, user_id: str, full_name: str, role: str,
                       email: Optional[str] = None) -> None:
        with _backend_errors("create profile"):
            self.db.execute_write(
                "INSERT OR REPLACE INTO profiles (id, full_name, email, role) VALUES (?, ?, ?, ?)",
                (user_id, full_name, email, role),
            )

    def create_event(
        self,
        name: str,
        event_date: Optional[date] = None,
        status: str = "Inquiry",
        couple_user_id: Optional[str] = None,
        venue_name: Optional[str] = None,
        package_type: Optional[str] = None,
        archived: bool = False,
    ) -> int:
        with _backend_errors("create event"):
            return self.db.execute_write(
                """INSERT INTO events
                   (name, event_date, status, archived, couple_user_id, venue_name, package_type)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    name,
                    event_date.isoformat() if isinstance(event_date, date) else event_date,
                    status,
                    1 if archived else 0,
                    couple_user_id,
                    venue_name,
                    package_type,
                ),
            )

    def assign_coordinator(self, event_id: int, coordinator_id: str, is_lead: bool = False) -> int:
        with _backend_errors("assign coordinator"):
            return self.db.execute_write(
                """INSERT INTO coordinator_assignments (event_id, coordinator_id, is_lead)
                   VALUES (?, ?, ?)""",
                (event_id, coordinator_id, 1 if is_lead else 0),
            )

    def create_task(
        self,
        event_id: int,
        title: str,
        due_date: Optional[date] = None,
        assigned_to: str = "couple",
        description: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_user_id: Optional[str] = None,
        completed: bool = False,
    ) -> int:
        with _backend_errors("create task"):
            return self.db.execute_write(
                """INSERT INTO tasks
                   (event_id, title, description, due_date, completed, completed_at,
                    assigned_to, assigned_user_id, priority)
                   VALUES (?, ?, ?, ?, ?, CASE WHEN ? THEN strftime('%Y-%m-%dT%H:%M:%f', 'now') END,
                           ?, ?, ?)""",
                (
                    event_id,
                    title,
                    description,
                    due_date.isoformat() if isinstance(due_date, date) else due_date,
                    1 if completed else 0,
                    1 if completed else 0,
                    assigned_to,
                    assigned_user_id,
                    priority,
                ),
            )

    def set_task_completed(self, task_id: int, completed: bool) -> bool:
        """Toggle completion; the due date is kept either way"""
        with _backend_errors("update task"):
            changed = self.db.execute_write(
                """UPDATE tasks
                   SET completed = ?,
                       completed_at = CASE WHEN ? THEN strftime('%Y-%m-%dT%H:%M:%f', 'now') END
                   WHERE id = ?""",
                (1 if completed else 0, 1 if completed else 0, task_id),
            )
            return changed > 0

    def add_timeline_item(
        self,
        event_id: int,
        title: str,
        time: Optional[str] = None,
        sort_order: int = 0,
        item_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        with _backend_errors("create timeline item"):
            return self.db.execute_write(
                """INSERT INTO timeline_items
                   (event_id, title, time, description, sort_order, item_type)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (event_id, title, time, description, sort_order, item_type),
            )

    def record_change(self, change: ChangeLog) -> int:
        with _backend_errors("record change"):
            return self.db.execute_write(
                """INSERT INTO change_logs
                   (event_id, actor_user_id, description, change_type, entity_type, entity_id)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    change.event_id,
                    change.actor_user_id,
                    change.description,
                    change.change_type,
                    change.entity_type,
                    change.entity_id,
                ),
            )


class NotificationRepository:
    """Notification rows for the feed; newest first"""

    def __init__(self, db: DatabaseBase):
        self.db = db

    def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC, id DESC"
        params: tuple = (user_id,)
        if limit:
            query += " LIMIT ?"
            params = (user_id, int(limit))
        with _backend_errors("load notifications"):
            return self.db.execute(query, params)

    def get(self, notification_id: int) -> Optional[Dict[str, Any]]:
        with _backend_errors("load notification"):
            return self.db.execute_one(
                "SELECT * FROM notifications WHERE id = ?", (notification_id,)
            )

    def create(self, user_id: str, message: str, event_id: Optional[int] = None,
               kind: str = "info") -> Dict[str, Any]:
        """Insert one unread notification and return the stored row"""
        return self.create_many([
            {"user_id": user_id, "message": message, "event_id": event_id, "kind": kind}
        ])[0]

    def create_many(self, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert unread notifications in one transaction and return the stored rows"""
        with _backend_errors("create notifications"):
            with self.db.transaction() as conn:
                ids = []
                for row in rows:
                    cursor = conn.execute(
                        """INSERT INTO notifications (user_id, event_id, message, kind, read)
                           VALUES (?, ?, ?, ?, 0)""",
                        (row["user_id"], row.get("event_id"), row["message"],
                         row.get("kind") or "info"),
                    )
                    ids.append(cursor.lastrowid)
            if not ids:
                return []
            return self.db.execute(
                f"SELECT * FROM notifications WHERE id IN ({_placeholders(ids)}) ORDER BY id",
                tuple(ids),
            )

    def mark_read(self, notification_id: int) -> bool:
        with _backend_errors("mark notification read"):
            return self.db.execute_write(
                "UPDATE notifications SET read = 1 WHERE id = ?", (notification_id,)
            ) > 0

    def mark_many_read(self, user_id: str, notification_ids: Sequence[int]) -> int:
        """Mark exactly the given ids read; rows inserted since stay unread"""
        ids = list(notification_ids)
        if not ids:
            return 0
        with _backend_errors("mark notifications read"):
            return self.db.execute_write(
                f"UPDATE notifications SET read = 1 WHERE user_id = ? AND id IN ({_placeholders(ids)})",
                (user_id, *ids),
            )

    def mark_all_read(self, user_id: str) -> int:
        with _backend_errors("mark all notifications read"):
            return self.db.execute_write(
                "UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0", (user_id,)
            )

    def unread_count(self, user_id: str) -> int:
        with _backend_errors("count notifications"):
            return self.db.count("notifications", "user_id = ? AND read = 0", (user_id,))
