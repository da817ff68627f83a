"""SQLite implementation of DatabaseAdapter.

Uses core.common.db_interface for connection management.
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, List, Dict, Optional
from pathlib import Path
import sqlite3
import threading

from documents.adapters.database_adapter import DatabaseAdapter
from core.common.db_interface import MEMORY_DB, create_sqlite_connection


class SQLiteAdapter(DatabaseAdapter):
    """SQLite implementation of DatabaseAdapter.

    One connection shared across threads; statements are serialized by a
    re-entrant lock so a transaction opened by one thread is never
    interleaved with another thread's writes.
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize SQLite adapter.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self._db_path = db_path if str(db_path) == MEMORY_DB else Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._depth = 0

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create connection."""
        if self._conn is None:
            self._conn = create_sqlite_connection(
                self._db_path,
                check_same_thread=False,
                foreign_keys=True
            )
        return self._conn

    def _autocommit(self) -> None:
        if self._depth == 0:
            self.conn.commit()

    def execute(self, query: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute query and return cursor."""
        with self._lock:
            cursor = self.conn.execute(query, params)
            self._autocommit()
            return cursor

    def fetchone(self, query: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
        """Fetch single row as dictionary."""
        with self._lock:
            row = self.conn.execute(query, params).fetchone()
        return dict(row) if row else None

    def fetchall(self, query: str, params: tuple = ()) -> List[Dict[str, Any]]:
        """Fetch all rows as list of dictionaries."""
        with self._lock:
            rows = self.conn.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def insert(self, table: str, data: Dict[str, Any]) -> int:
        """Insert row and return last inserted ID."""
        columns = ", ".join(data.keys())
        placeholders = ", ".join(["?"] * len(data))
        query = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"
        with self._lock:
            cursor = self.conn.execute(query, tuple(data.values()))
            self._autocommit()
            return cursor.lastrowid

    def update(self, table: str, data: Dict[str, Any], where: str, where_params: tuple = ()) -> int:
        """Update rows and return count of affected rows."""
        set_clause = ", ".join([f"{key} = ?" for key in data.keys()])
        params = tuple(data.values()) + tuple(where_params)
        query = f"UPDATE {table} SET {set_clause} WHERE {where}"
        with self._lock:
            cursor = self.conn.execute(query, params)
            self._autocommit()
            return cursor.rowcount

    def delete(self, table: str, where: str, where_params: tuple = ()) -> int:
        """Delete rows and return count of affected rows."""
        query = f"DELETE FROM {table} WHERE {where}"
        with self._lock:
            cursor = self.conn.execute(query, tuple(where_params))
            self._autocommit()
            return cursor.rowcount

    @contextmanager
    def _scope(self, begin: str) -> Iterator["SQLiteAdapter"]:
        with self._lock:
            outer = self._depth == 0
            if outer and not self.conn.in_transaction:
                self.conn.execute(begin)
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if outer:
                    self.conn.rollback()
                raise
            else:
                self._depth -= 1
                if outer:
                    self.conn.commit()

    def transaction(self) -> ContextManager["SQLiteAdapter"]:
        """Atomic block; the lock is held until commit or rollback."""
        return self._scope("BEGIN IMMEDIATE")

    def snapshot(self) -> ContextManager["SQLiteAdapter"]:
        """Deferred read block; other processes keep writing under WAL."""
        return self._scope("BEGIN")

    def commit(self) -> None:
        """Commit current transaction."""
        with self._lock:
            self.conn.commit()

    def rollback(self) -> None:
        """Rollback current transaction."""
        with self._lock:
            self.conn.rollback()

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                try:
                    self._conn.close()
                finally:
                    self._conn = None

    def executescript(self, script: str) -> None:
        """Execute multiple SQL statements."""
        with self._lock:
            self.conn.executescript(script)
            self.conn.commit()
