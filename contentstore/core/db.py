"""
SQLite storage for the content store.

DataDatabase owns one connection that serves as both the readable and the
writable handle. StorageHandle wraps it with the ACTIVE / RESET_PENDING
lifecycle used by whole-store resets.
"""

import os
import sqlite3
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Generator, Optional, Sequence

from .config import ensure_db_directory, get_db_path, get_db_timeout
from .contract import History, Images, Tables
from .errors import StorageResetError
from ..util.logging import logger

DATABASE_VERSION = 1

_SCHEMA = (
    f'''
    CREATE TABLE IF NOT EXISTS {Tables.IMAGES} (
        {Images._ID} INTEGER PRIMARY KEY AUTOINCREMENT,
        {Images.IMAGE_ID} TEXT NOT NULL,
        {Images.IMAGE_URL} TEXT,
        {Images.IMAGE_TITLE} TEXT,
        {Images.IMAGE_WIDTH} INTEGER,
        {Images.IMAGE_HEIGHT} INTEGER,
        {Images.IMAGE_UPDATED} TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE ({Images.IMAGE_ID})
    )
    ''',
    f'''
    CREATE TABLE IF NOT EXISTS {Tables.HISTORY} (
        {History._ID} INTEGER PRIMARY KEY AUTOINCREMENT,
        {History.IMAGE_ID} TEXT,
        {History.HISTORY_ACTION} TEXT,
        {History.HISTORY_TIMESTAMP} TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    f'CREATE INDEX IF NOT EXISTS idx_history_image_id ON {Tables.HISTORY}({History.IMAGE_ID})',
)


def init_db(conn: sqlite3.Connection):
    """Create the managed tables if they do not exist."""
    version = conn.execute("PRAGMA user_version").fetchone()[0]
    if 0 < version < DATABASE_VERSION:
        # No incremental upgrades yet: older layouts are rebuilt from scratch
        logger.warning(f"Upgrading database from version {version} to {DATABASE_VERSION}, dropping data")
        drop_tables(conn)

    for statement in _SCHEMA:
        conn.execute(statement)
    conn.execute(f"PRAGMA user_version = {DATABASE_VERSION}")


def drop_tables(conn: sqlite3.Connection):
    """Drop every managed table."""
    for table in Tables.ALL:
        conn.execute(f"DROP TABLE IF EXISTS {table}")


class DataDatabase:
    """Lazily opened SQLite database holding the images and history tables."""

    def __init__(self, db_path: Optional[str] = None, timeout: Optional[float] = None):
        self.db_path = db_path or get_db_path()
        self.timeout = get_db_timeout() if timeout is None else timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        # last_insert_rowid and changes() are per connection
        self._statement_lock = threading.RLock()

    def _open(self) -> sqlite3.Connection:
        ensure_db_directory(self.db_path)
        conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,  # shared by the host's worker threads
            timeout=self.timeout,
            isolation_level=None,  # every statement commits on its own
        )
        if self.db_path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = sqlite3.Row
        init_db(conn)
        logger.debug(f"Opened database {self.db_path}")
        return conn

    def get_writable_database(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                self._conn = self._open()
            return self._conn

    def get_readable_database(self) -> sqlite3.Connection:
        return self.get_writable_database()

    def execute(self, sql: str, parameters: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Run one statement on the shared connection.

        Statements are serialized so the returned cursor's ``lastrowid`` and
        ``rowcount`` belong to this statement even when other threads write.
        """
        conn = self.get_writable_database()
        with self._statement_lock:
            return conn.execute(sql, parameters)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def close(self):
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @staticmethod
    def delete_database(db_path: str):
        """Remove the database file and its journal side files."""
        if db_path == ":memory:":
            return
        for suffix in ("", "-wal", "-shm", "-journal"):
            path = db_path + suffix
            if os.path.exists(path):
                os.remove(path)


class HandleState(Enum):
    ACTIVE = "active"
    RESET_PENDING = "reset_pending"


class StorageHandle:
    """Owns the current DataDatabase and swaps it out during a reset.

    Operations run inside ``acquire()``. ``reset()`` blocks new acquisitions,
    waits for running ones to finish, then replaces the database.
    """

    def __init__(self, db_path: Optional[str] = None,
                 database_factory: Callable[[str], DataDatabase] = DataDatabase):
        self.db_path = db_path or get_db_path()
        self._factory = database_factory
        self._database: Optional[DataDatabase] = database_factory(self.db_path)
        self._state = HandleState.ACTIVE
        self._resetting = False
        self._in_flight = 0
        self._cond = threading.Condition()

    @property
    def state(self) -> HandleState:
        return self._state

    @contextmanager
    def acquire(self) -> Generator[DataDatabase, None, None]:
        with self._cond:
            while self._resetting:
                self._cond.wait()
            if self._database is None:
                # a failed reset left no database behind
                logger.info(f"Re-acquiring storage handle for {self.db_path}")
                self._database = self._factory(self.db_path)
                self._state = HandleState.ACTIVE
            self._in_flight += 1
            database = self._database
        try:
            yield database
        finally:
            with self._cond:
                self._in_flight -= 1
                self._cond.notify_all()

    def reset(self):
        """Close the database, delete its files and open it again with empty tables."""
        with self._cond:
            while self._resetting:
                self._cond.wait()
            self._resetting = True
            self._state = HandleState.RESET_PENDING
            try:
                while self._in_flight:
                    self._cond.wait()

                old, self._database = self._database, None
                if old is not None:
                    # closing finalizes any cursors callers still hold
                    old.close()
                DataDatabase.delete_database(self.db_path)

                fresh = self._factory(self.db_path)
                conn = fresh.get_writable_database()
                drop_tables(conn)
                init_db(conn)
                self._database = fresh
                self._state = HandleState.ACTIVE
                logger.log_reset(self.db_path)
            except (sqlite3.Error, OSError) as e:
                logger.log_reset(self.db_path, status="failed", details={"error": str(e)})
                raise StorageResetError(f"Failed to reset database {self.db_path}: {e}") from e
            finally:
                self._resetting = False
                self._cond.notify_all()

    def close(self):
        with self._cond:
            while self._resetting or self._in_flight:
                self._cond.wait()
            if self._database is not None:
                self._database.close()


def health_check(db_path: Optional[str] = None) -> bool:
    """Check that the managed tables exist."""
    try:
        conn = sqlite3.connect(db_path or get_db_path())
        try:
            cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [row[0] for row in cursor.fetchall()]
        finally:
            conn.close()
        return all(table in table_names for table in Tables.ALL)
    except sqlite3.Error:
        return False
