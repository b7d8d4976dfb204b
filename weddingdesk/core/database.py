"""
Database utilities and connection management
SQLite record store backing events, tasks, timeline items, notifications
and change logs.

Usage:
    db = get_database()           # path from Config / WEDDINGDESK_DB_PATH
    db = SQLiteDatabase(path, create=True)
    db.init_schema()
"""

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple

from .config import Config


SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    full_name TEXT NOT NULL DEFAULT '',
    email TEXT,
    role TEXT NOT NULL CHECK(role IN ('admin', 'coordinator', 'couple')) DEFAULT 'couple',
    created_at DATETIME DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);

CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    event_date DATE,
    status TEXT NOT NULL DEFAULT 'Inquiry',
    archived BOOLEAN NOT NULL DEFAULT 0,
    couple_user_id TEXT REFERENCES profiles(id) ON DELETE SET NULL,
    venue_name TEXT,
    package_type TEXT,
    created_at DATETIME DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now')),
    updated_at DATETIME DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);

CREATE TABLE IF NOT EXISTS coordinator_assignments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id INTEGER NOT NULL REFERENCES events(id) ON DELETE CASCADE,
    coordinator_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    is_lead BOOLEAN NOT NULL DEFAULT 0,
    UNIQUE(event_id, coordinator_id)
);

CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id INTEGER NOT NULL REFERENCES events(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT,
    due_date DATE,
    completed BOOLEAN NOT NULL DEFAULT 0,
    completed_at DATETIME,
    assigned_to TEXT NOT NULL DEFAULT 'couple',
    assigned_user_id TEXT,
    priority TEXT,
    created_at DATETIME DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);

CREATE TABLE IF NOT EXISTS timeline_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id INTEGER NOT NULL REFERENCES events(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    time TEXT,
    description TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    item_type TEXT
);

CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    event_id INTEGER REFERENCES events(id) ON DELETE SET NULL,
    message TEXT NOT NULL,
    kind TEXT NOT NULL DEFAULT 'info',
    read BOOLEAN NOT NULL DEFAULT 0,
    created_at DATETIME DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);

CREATE TABLE IF NOT EXISTS change_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id INTEGER NOT NULL REFERENCES events(id) ON DELETE CASCADE,
    actor_user_id TEXT,
    description TEXT NOT NULL,
    change_type TEXT NOT NULL DEFAULT 'info',
    entity_type TEXT,
    entity_id INTEGER,
    created_at DATETIME DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_tasks_event ON tasks(event_id);
CREATE INDEX IF NOT EXISTS idx_timeline_event ON timeline_items(event_id);
CREATE INDEX IF NOT EXISTS idx_assignments_coordinator ON coordinator_assignments(coordinator_id);
CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, created_at);
"""


class DatabaseBase(ABC):
    """Abstract base class for database operations"""

    @abstractmethod
    def get_connection(self):
        """Get a database connection"""
        pass

    @abstractmethod
    def execute(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        """Execute a SELECT query and return results as list of dicts"""
        pass

    @abstractmethod
    def execute_one(self, query: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        """Execute a SELECT query and return single result"""
        pass

    @abstractmethod
    def execute_write(self, query: str, params: Tuple = ()) -> int:
        """Execute an INSERT, UPDATE, or DELETE query"""
        pass


class SQLiteDatabase(DatabaseBase):
    """SQLite database implementation"""

    def __init__(self, db_path: Optional[Path] = None, create: bool = False):
        """
        Args:
            db_path: Database file (defaults to the configured path)
            create: Create the file and its directory when missing
        """
        if db_path is None:
            db_path = Config().get_database_path()

        self.db_path = Path(db_path)

        if not self.db_path.exists():
            if not create:
                raise FileNotFoundError(
                    f"Database not found at {self.db_path}. "
                    "Run 'python scripts/init_db.py' to create it."
                )
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            sqlite3.connect(self.db_path).close()

    @contextmanager
    def get_connection(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Create all tables and indexes (idempotent)"""
        with self.get_connection() as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    def execute(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
            return [dict(row) for row in rows]

    def execute_one(self, query: str, params: Tuple = ()) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            row = cursor.fetchone()
            return dict(row) if row else None

    def execute_write(self, query: str, params: Tuple = ()) -> int:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            conn.commit()
            return cursor.lastrowid if cursor.lastrowid else cursor.rowcount

    def execute_many(self, query: str, params_list: List[Tuple]) -> int:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.executemany(query, params_list)
            conn.commit()
            return cursor.rowcount

    def table_exists(self, table_name: str) -> bool:
        query = "SELECT name FROM sqlite_master WHERE type='table' AND name=?;"
        result = self.execute_one(query, (table_name,))
        return result is not None

    def get_table_names(self) -> List[str]:
        query = "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
        rows = self.execute(query)
        return [row['name'] for row in rows if not row['name'].startswith('sqlite_')]

    def count(self, table_name: str, where_clause: str = "", params: Tuple = ()) -> int:
        query = f"SELECT COUNT(*) as count FROM {table_name}"
        if where_clause:
            query += f" WHERE {where_clause}"
        result = self.execute_one(query, params)
        return result['count'] if result else 0

    @contextmanager
    def transaction(self):
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise


Database = SQLiteDatabase


def get_database(config: Optional[Config] = None, create: bool = False) -> SQLiteDatabase:
    """
    Factory function for the configured database.

    Args:
        config: Configuration providing the database path
        create: Create and initialise the schema when the file is missing
    """
    config = config if config else Config()
    db = SQLiteDatabase(config.get_database_path(), create=create)
    if create:
        db.init_schema()
    return db
