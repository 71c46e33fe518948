"""
Storage Backend Module

Provides the abstract storage interface the ledger is injected with, plus
in-memory (testing) and SQLite (persistence) implementations. All monetary
values are stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime, timezone
import copy
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager

from .errors import StorageError


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        result['created_at'] = self.created_at.isoformat()
        result['updated_at'] = self.updated_at.isoformat()
        for key, value in result.items():
            if isinstance(value, Decimal):
                result[key] = str(value)
        return result


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """
        Context manager for atomic operations.

        Nested blocks join the outermost one; only the outermost block
        commits or rolls back.
        """
        state = self.__dict__.setdefault('_atomic_state', threading.local())
        depth = getattr(state, 'depth', 0)
        state.depth = depth + 1
        try:
            if depth == 0:
                self.begin_transaction()
            try:
                yield
            except Exception:
                if depth == 0:
                    self.rollback()
                raise
            if depth == 0:
                self.commit()
        finally:
            state.depth = depth


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, value in filters.items():
        if key not in record or record[key] != value:
            return False
    return True


class InMemoryStorage(StorageInterface):
    """
    In-memory storage implementation for testing and single-process use.

    Transactions snapshot the data on begin and restore it on rollback, so
    a failed atomic block leaves no partial writes behind.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._snapshot: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None

    def _ensure_table(self, table: str) -> None:
        if table not in self._data:
            self._data[table] = {}

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            self._ensure_table(table)
            # JSON round trip stores a detached copy
            self._data[table][record_id] = json.loads(json.dumps(data, default=str))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            if record:
                return copy.deepcopy(record)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            return [copy.deepcopy(record) for record in self._data[table].values()]

    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from memory"""
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                del self._data[table][record_id]
                return True
            return False

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            return record_id in self._data[table]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            self._ensure_table(table)
            return [
                copy.deepcopy(record)
                for record in self._data[table].values()
                if _matches(record, filters)
            ]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._data[table] = {}

    def begin_transaction(self) -> None:
        self._lock.acquire()
        self._snapshot = copy.deepcopy(self._data)

    def commit(self) -> None:
        self._snapshot = None
        self._lock.release()

    def rollback(self) -> None:
        if self._snapshot is not None:
            self._data = self._snapshot
        self._snapshot = None
        self._lock.release()

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """
    SQLite storage implementation for persistence.

    Each table holds JSON documents keyed by id. Driver failures surface
    as StorageError.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        self._in_transaction = False
        self._known_tables = set()
        try:
            self._connection = sqlite3.connect(
                self.db_path, check_same_thread=False, isolation_level='DEFERRED'
            )
            self._connection.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open SQLite database {self.db_path}: {e}") from e

    @contextmanager
    def _guard(self, table: str):
        """Hold the connection lock, ensure the table and translate driver errors"""
        with self._lock:
            if self._connection is None:
                raise StorageError("SQLite storage is closed")
            try:
                self._ensure_table(table)
                yield self._connection
            except sqlite3.Error as e:
                raise StorageError(f"SQLite error on table {table}: {e}") from e

    def _ensure_table(self, table: str) -> None:
        if table in self._known_tables:
            return
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._connection.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_created_at
            ON {table}(created_at)
        """)
        if not self._in_transaction:
            self._connection.commit()
        self._known_tables.add(table)

    def _autocommit(self) -> None:
        if not self._in_transaction:
            self._connection.commit()

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._guard(table) as conn:
            now = datetime.now(timezone.utc).isoformat()
            data_json = json.dumps(data, default=str)
            conn.execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (record_id, data_json, record_id, now, now))
            self._autocommit()

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._guard(table) as conn:
            row = conn.execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)
            ).fetchone()
            if row:
                return json.loads(row['data'])
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._guard(table) as conn:
            cursor = conn.execute(f"SELECT data FROM {table} ORDER BY created_at, id")
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from SQLite"""
        with self._guard(table) as conn:
            cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            self._autocommit()
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._guard(table) as conn:
            cursor = conn.execute(
                f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,)
            )
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (simple JSON key matching)"""
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._guard(table) as conn:
            cursor = conn.execute(f"SELECT COUNT(*) AS count FROM {table}")
            return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._guard(table) as conn:
            conn.execute(f"DELETE FROM {table}")
            self._autocommit()

    def begin_transaction(self) -> None:
        # isolation_level='DEFERRED' opens the transaction on the first write
        self._lock.acquire()
        self._in_transaction = True

    def commit(self) -> None:
        try:
            if self._connection is not None:
                self._connection.commit()
        except sqlite3.Error as e:
            raise StorageError(f"SQLite commit failed: {e}") from e
        finally:
            self._in_transaction = False
            self._lock.release()

    def rollback(self) -> None:
        try:
            if self._connection is not None:
                self._connection.rollback()
        except sqlite3.Error as e:
            raise StorageError(f"SQLite rollback failed: {e}") from e
        finally:
            # Tables created inside the transaction are gone too
            self._known_tables.clear()
            self._in_transaction = False
            self._lock.release()

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
