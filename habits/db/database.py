"""Pooled SQLite connections with ACID transaction support."""

from __future__ import annotations

import logging
import queue
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

from habits.db.schema import SCHEMA_DDL

logger = logging.getLogger(__name__)


class Database:
    """
    SQLite connection pool over a single database file.

    Each request borrows one connection through ``connection()`` and gives it
    back when done.  Mutations go through ``transaction()``, which commits on
    success and rolls back on failure.  The pool is the handle the export and
    import code receives; it never opens connections on its own.
    """

    def __init__(
        self,
        path: Optional[Path | str] = None,
        pool_size: Optional[int] = None,
        busy_timeout_ms: Optional[int] = None,
        pool_timeout: Optional[float] = None,
    ):
        from habits.config import settings
        if path is None:
            self.path: Path = settings.DATABASE_PATH
        elif isinstance(path, str):
            self.path = Path(path)
        else:
            self.path = path
        self.pool_size = pool_size or settings.DB_POOL_SIZE
        self.busy_timeout_ms = (
            settings.DB_BUSY_TIMEOUT_MS if busy_timeout_ms is None else busy_timeout_ms
        )
        self.pool_timeout = (
            settings.DB_POOL_TIMEOUT_SECONDS if pool_timeout is None else pool_timeout
        )

        self._idle: queue.LifoQueue[sqlite3.Connection] = queue.LifoQueue()
        self._all: list[sqlite3.Connection] = []
        self._lock = threading.Lock()

    # -- connection lifecycle --------------------------------------------------

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self._ensure_dir()
        conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout_ms / 1000,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
        return conn

    def _acquire(self) -> sqlite3.Connection:
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            if len(self._all) < self.pool_size:
                conn = self._connect()
                self._all.append(conn)
                logger.debug(f"Opened pooled connection {len(self._all)}/{self.pool_size}")
                return conn

        try:
            return self._idle.get(timeout=self.pool_timeout)
        except queue.Empty:
            raise TimeoutError(
                f"No database connection available after {self.pool_timeout}s "
                f"(pool size {self.pool_size})"
            ) from None

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.rollback()
        self._idle.put(conn)

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a pooled connection for the duration of the block."""
        conn = self._acquire()
        try:
            yield conn
        finally:
            self._release(conn)

    def close(self) -> None:
        with self._lock:
            for conn in self._all:
                conn.close()
            self._all.clear()
            while True:
                try:
                    self._idle.get_nowait()
                except queue.Empty:
                    break

    def init(self) -> None:
        """Create all tables (idempotent)."""
        with self.connection() as conn:
            conn.executescript(SCHEMA_DDL)
            conn.commit()
        logger.info(f"Database schema ready at {self.path}")

    # -- transaction helpers ---------------------------------------------------

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """ACID transaction: commits on success, rolls back on exception."""
        with self.connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    # -- low-level query helpers -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> int:
        """Run one write statement in its own transaction; returns rowcount."""
        with self.transaction() as conn:
            cursor = conn.execute(sql, params)
            return cursor.rowcount

    def fetchone(self, sql: str, params: tuple = ()) -> Optional[dict[str, Any]]:
        with self.connection() as conn:
            cursor = conn.execute(sql, params)
            try:
                row = cursor.fetchone()
            finally:
                cursor.close()
        return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        with self.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]
