"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). All monetary values stored as Decimal strings.

Units of work run inside ``atomic()``, which holds the storage lock for the
whole block and rolls every write back if the block raises.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        result['created_at'] = self.created_at.isoformat()
        for key, value in result.items():
            if isinstance(value, Decimal):
                result[key] = str(value)
        return result


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0

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
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters, in insertion order"""
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

    def find_sorted(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: str,
        descending: bool = False,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Find records matching filters, ordered by a field and sliced

        Records with equal sort keys keep insertion order, reversed when
        ``descending`` is set so that the latest write comes first.
        """
        records = self.find(table, filters)
        if descending:
            records.reverse()
        records.sort(key=lambda record: record.get(order_by) or "", reverse=descending)

        end = offset + limit if limit is not None else None
        return records[offset:end]

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def begin_transaction(self) -> None:
        """Start a database transaction"""
        self._depth += 1

    def commit(self) -> None:
        """Commit current transaction"""
        self._depth -= 1

    def rollback(self) -> None:
        """Rollback current transaction"""
        self._depth -= 1

    @contextmanager
    def atomic(self):
        """
        Context manager for atomic operations

        Nested blocks join the outermost one; only the outermost block
        commits or rolls back.
        """
        with self._lock:
            self.begin_transaction()
            try:
                yield
            except BaseException:
                self.rollback()
                raise
            self.commit()


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        super().__init__()
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._snapshot: Optional[str] = None

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            self._ensure_table(table)
            # Deep copy to prevent external mutation
            self._data[table][record_id] = json.loads(json.dumps(data, default=str))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            self._ensure_table(table)
            record = self._data[table].get(record_id)
            if record:
                return json.loads(json.dumps(record))
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            return [json.loads(json.dumps(record)) for record in self._data[table].values()]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            self._ensure_table(table)
            results = []
            for record in self._data[table].values():
                match = True
                for key, value in filters.items():
                    if key not in record or record[key] != value:
                        match = False
                        break
                if match:
                    results.append(json.loads(json.dumps(record)))
            return results

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._data[table] = {}

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    def begin_transaction(self) -> None:
        """Snapshot all tables on the outermost begin"""
        with self._lock:
            if self._depth == 0:
                self._snapshot = json.dumps(self._data)
            super().begin_transaction()

    def commit(self) -> None:
        with self._lock:
            super().commit()
            if self._depth == 0:
                self._snapshot = None

    def rollback(self) -> None:
        """Restore the snapshot taken by the outermost begin"""
        with self._lock:
            super().rollback()
            if self._depth == 0 and self._snapshot is not None:
                self._data = json.loads(self._snapshot)
                self._snapshot = None


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        super().__init__()
        self.db_path = str(db_path)
        # Autocommit mode; atomic() issues BEGIN/COMMIT explicitly
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._connection.row_factory = sqlite3.Row
        self._tables: set = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            self._connection.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
            self._tables.add(table)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._ensure_table(table)
            data_json = json.dumps(data, default=str)
            created_at = str(data.get('created_at', ''))

            # Upsert keeps the original rowid so insertion order survives updates
            self._connection.execute(f"""
                INSERT INTO {table} (id, data, created_at) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET data = excluded.data
            """, (record_id, data_json, created_at))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} WHERE id = ?
            """, (record_id,))
            row = cursor.fetchone()
            if row:
                return json.loads(row['data'])
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} ORDER BY rowid
            """)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def _where(self, filters: Dict[str, Any]):
        conditions = []
        params: List[Any] = []
        for key, value in filters.items():
            conditions.append("json_extract(data, ?) = ?")
            params.extend([f"$.{key}", value])
        clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        return clause, params

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters using JSON field extraction"""
        with self._lock:
            self._ensure_table(table)
            where_clause, params = self._where(filters)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} {where_clause} ORDER BY rowid
            """, params)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def find_sorted(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: str,
        descending: bool = False,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Ordered, paginated find evaluated by SQLite"""
        with self._lock:
            self._ensure_table(table)
            where_clause, params = self._where(filters)
            direction = "DESC" if descending else "ASC"
            params.extend([f"$.{order_by}", -1 if limit is None else limit, offset])
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} {where_clause}
                ORDER BY json_extract(data, ?) {direction}, rowid {direction}
                LIMIT ? OFFSET ?
            """, params)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT COUNT(*) as count FROM {table}
            """)
            return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")

    def begin_transaction(self) -> None:
        """Start a database transaction"""
        with self._lock:
            if self._depth == 0:
                self._connection.execute("BEGIN IMMEDIATE")
            super().begin_transaction()

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            super().commit()
            if self._depth == 0:
                self._connection.execute("COMMIT")

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            super().rollback()
            if self._depth == 0:
                self._connection.execute("ROLLBACK")
                # Tables created inside the rolled back block are gone again
                self._tables.clear()

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Create a storage backend from a URL

    Supported forms: ``memory://`` and ``sqlite:///path/to.db``
    (``sqlite://`` alone gives an in-memory SQLite database).
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()

    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteStorage(path or ":memory:")

    raise ValueError(f"Unsupported database URL: {database_url}")
