"""
Storage backends for the entity tree and the history ledger.

The core components only depend on the ``StorageBackend`` interface. Two
implementations exist: a durable SQLite backend and an in-memory backend.
The backend is selected at startup from configuration.
"""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from .entity_models import (
    Client, GFPPlan, MonthlyReport, Staff, VismaWeek, WeeklyDoc,
)
from .retention_models import HistoryEntry, StorageError

logger = logging.getLogger(__name__)

_CHILD_KEYS = ('plans', 'weeklyDocs', 'monthlyReports', 'visma')


class StorageBackend(ABC):
    """Abstract read/write interface used by the entity store and the ledger."""

    storage_type: str = "abstract"

    @abstractmethod
    def load_staff(self) -> List[Staff]:
        """Load the full staff → client tree."""
        pass

    @abstractmethod
    def save_staff(self, staff: List[Staff]) -> None:
        """Replace the stored tree with ``staff``."""
        pass

    @abstractmethod
    def load_history(self) -> List[HistoryEntry]:
        """Load every history entry in insertion order."""
        pass

    @abstractmethod
    def save_history_entry(self, entry: HistoryEntry) -> None:
        """Insert an entry, or update the entry sharing its key."""
        pass


class MemoryBackend(StorageBackend):
    """
    Volatile backend.

    State is kept serialized so callers never share mutable objects with it.
    """

    storage_type = "memory"

    def __init__(self):
        self._state: Optional[str] = None
        self._history: List[Dict[str, Any]] = []

    def load_staff(self) -> List[Staff]:
        if self._state is None:
            return []
        return [Staff.from_dict(item) for item in json.loads(self._state)]

    def save_staff(self, staff: List[Staff]) -> None:
        self._state = json.dumps([member.to_dict() for member in staff])

    def load_history(self) -> List[HistoryEntry]:
        return [HistoryEntry.from_dict(item) for item in self._history]

    def save_history_entry(self, entry: HistoryEntry) -> None:
        for index, existing in enumerate(self._history):
            if HistoryEntry.from_dict(existing).key == entry.key:
                self._history[index] = entry.to_dict()
                return
        self._history.append(entry.to_dict())


class SqliteBackend(StorageBackend):
    """Durable backend on a SQLite database file."""

    storage_type = "sqlite"

    SCHEMA = [
        """
        CREATE TABLE IF NOT EXISTS staff (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT,
            position INTEGER NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS clients (
            id TEXT PRIMARY KEY,
            staff_id TEXT NOT NULL REFERENCES staff(id) ON DELETE CASCADE,
            position INTEGER NOT NULL,
            payload TEXT NOT NULL,
            created_at TEXT NOT NULL,
            archived_at TEXT,
            deleted_at TEXT
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS care_plans (
            client_id TEXT NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            plan_id TEXT NOT NULL,
            position INTEGER NOT NULL,
            payload TEXT NOT NULL,
            deleted_at TEXT,
            PRIMARY KEY (client_id, plan_id)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS weekly_docs (
            client_id TEXT NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            week_id TEXT NOT NULL,
            position INTEGER NOT NULL,
            payload TEXT NOT NULL,
            deleted_at TEXT,
            PRIMARY KEY (client_id, week_id)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS monthly_reports (
            client_id TEXT NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            month_id TEXT NOT NULL,
            position INTEGER NOT NULL,
            payload TEXT NOT NULL,
            deleted_at TEXT,
            PRIMARY KEY (client_id, month_id)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS visma_time (
            client_id TEXT NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            week_id TEXT NOT NULL,
            position INTEGER NOT NULL,
            payload TEXT NOT NULL,
            deleted_at TEXT,
            PRIMARY KEY (client_id, week_id)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS history_entries (
            id TEXT PRIMARY KEY,
            period_type TEXT NOT NULL,
            period_id TEXT NOT NULL,
            staff_id TEXT NOT NULL,
            client_id TEXT NOT NULL,
            metric TEXT NOT NULL,
            status TEXT NOT NULL,
            value REAL,
            ts TEXT NOT NULL,
            UNIQUE (period_type, period_id, staff_id, client_id, metric)
        )
        """,
    ]

    # (table, key column, client attribute)
    CHILD_TABLES = [
        ('care_plans', 'plan_id', 'plans'),
        ('weekly_docs', 'week_id', 'weekly_docs'),
        ('monthly_reports', 'month_id', 'monthly_reports'),
        ('visma_time', 'week_id', 'visma'),
    ]

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self._initialize_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _initialize_database(self):
        """Create tables if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                for statement in self.SCHEMA:
                    conn.execute(statement)
            logger.info(f"SQLite storage initialized at {self.db_path}")
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Failed to initialize database {self.db_path}: {e}") from e

    def load_staff(self) -> List[Staff]:
        try:
            with self._connect() as conn:
                staff_rows = conn.execute(
                    "SELECT id, name, email FROM staff ORDER BY position"
                ).fetchall()
                client_rows = conn.execute(
                    "SELECT id, staff_id, payload FROM clients ORDER BY position"
                ).fetchall()
                children: Dict[str, Dict[str, List[str]]] = {}
                for table, _key_column, attribute in self.CHILD_TABLES:
                    rows = conn.execute(
                        f"SELECT client_id, payload FROM {table} ORDER BY client_id, position"
                    ).fetchall()
                    for client_id, payload in rows:
                        children.setdefault(client_id, {}).setdefault(attribute, []).append(payload)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to load staff from {self.db_path}: {e}") from e

        staff_by_id = {row[0]: Staff(id=row[0], name=row[1], email=row[2]) for row in staff_rows}
        for client_id, staff_id, payload in client_rows:
            client = Client.from_dict(json.loads(payload))
            own = children.get(client_id, {})
            client.plans = [GFPPlan.from_dict(json.loads(p)) for p in own.get('plans', [])]
            client.weekly_docs = {
                doc.week_id: doc for doc in (WeeklyDoc.from_dict(json.loads(p)) for p in own.get('weekly_docs', []))
            }
            client.monthly_reports = {
                report.month_id: report
                for report in (MonthlyReport.from_dict(json.loads(p)) for p in own.get('monthly_reports', []))
            }
            client.visma = {
                week.week_id: week for week in (VismaWeek.from_dict(json.loads(p)) for p in own.get('visma', []))
            }
            if staff_id in staff_by_id:
                staff_by_id[staff_id].clients.append(client)
            else:
                logger.warning(f"Client {client_id} references unknown staff {staff_id}; skipped")

        return list(staff_by_id.values())

    def save_staff(self, staff: List[Staff]) -> None:
        try:
            with self._connect() as conn:
                for table, _key_column, _attribute in self.CHILD_TABLES:
                    conn.execute(f"DELETE FROM {table}")
                conn.execute("DELETE FROM clients")
                conn.execute("DELETE FROM staff")

                for staff_position, member in enumerate(staff):
                    conn.execute(
                        "INSERT INTO staff (id, name, email, position) VALUES (?, ?, ?, ?)",
                        (member.id, member.name, member.email, staff_position),
                    )
                    for client_position, client in enumerate(member.clients):
                        self._insert_client(conn, member.id, client_position, client)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save staff to {self.db_path}: {e}") from e

    def _insert_client(self, conn: sqlite3.Connection, staff_id: str, position: int, client: Client):
        payload = {k: v for k, v in client.to_dict().items() if k not in _CHILD_KEYS}
        conn.execute(
            """
            INSERT INTO clients (id, staff_id, position, payload, created_at, archived_at, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (client.id, staff_id, position, json.dumps(payload), client.created_at,
             client.archived_at, client.deleted_at),
        )
        for table, key_column, attribute in self.CHILD_TABLES:
            records = getattr(client, attribute)
            values = records if isinstance(records, list) else list(records.values())
            for child_position, record in enumerate(values):
                conn.execute(
                    f"INSERT INTO {table} (client_id, {key_column}, position, payload, deleted_at) "
                    f"VALUES (?, ?, ?, ?, ?)",
                    (client.id, record.key, child_position, json.dumps(record.to_dict()), record.deleted_at),
                )

    def load_history(self) -> List[HistoryEntry]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT id, period_type, period_id, staff_id, client_id, metric, status, value, ts
                    FROM history_entries ORDER BY rowid
                    """
                ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to load history from {self.db_path}: {e}") from e

        return [
            HistoryEntry.from_dict({
                'id': row[0], 'periodType': row[1], 'periodId': row[2], 'staffId': row[3],
                'clientId': row[4], 'metric': row[5], 'status': row[6], 'value': row[7], 'ts': row[8],
            })
            for row in rows
        ]

    def save_history_entry(self, entry: HistoryEntry) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO history_entries
                        (id, period_type, period_id, staff_id, client_id, metric, status, value, ts)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (period_type, period_id, staff_id, client_id, metric)
                    DO UPDATE SET status = excluded.status, value = excluded.value, ts = excluded.ts
                    """,
                    (entry.id, entry.period_type.value, entry.period_id, entry.staff_id,
                     entry.client_id, entry.metric.value, entry.status.value, entry.value, entry.ts),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save history entry {entry.id}: {e}") from e


def create_backend(backend: str, db_path: Optional[str] = None, memory_fallback: bool = True) -> StorageBackend:
    """
    Create the configured storage backend.

    Args:
        backend: ``sqlite`` or ``memory``.
        db_path: Database file for the SQLite backend.
        memory_fallback: Use the in-memory backend when SQLite cannot be opened.
    """
    if backend == "memory":
        return MemoryBackend()

    if backend != "sqlite":
        raise ValueError(f"Unknown storage backend: {backend}")

    if not db_path:
        raise ValueError("SQLite backend requires a db_path")

    try:
        return SqliteBackend(db_path)
    except StorageError as e:
        if not memory_fallback:
            raise
        logger.warning(f"Falling back to in-memory storage: {e}")
        return MemoryBackend()
