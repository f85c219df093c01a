"""Observable result cursor returned by DataProvider.query."""

import sqlite3
import threading
from typing import Callable, Iterator, List, Optional

from .address import ResourceAddress


class ResultCursor:
    """Lazy row sequence that learns when the rows behind it change.

    Rows are pulled from SQLite as the caller iterates. After a whole-store
    reset the underlying connection is gone and further fetches raise
    ``sqlite3.ProgrammingError``.
    """

    def __init__(self, cursor: sqlite3.Cursor):
        self._cursor = cursor
        self._lock = threading.Lock()
        self._listeners: List[Callable[[ResourceAddress], None]] = []
        self._gate = None
        self.notification_address: Optional[ResourceAddress] = None
        self.is_stale = False
        self.closed = False

    @property
    def columns(self) -> List[str]:
        if self._cursor.description is None:
            return []
        return [d[0] for d in self._cursor.description]

    def set_notification_address(self, gate, address: ResourceAddress):
        """Register through ``gate`` so changes to ``address`` mark this cursor stale."""
        self._gate = gate
        self.notification_address = address
        gate.register(address, self)

    def add_change_listener(self, listener: Callable[[ResourceAddress], None]):
        with self._lock:
            self._listeners.append(listener)

    def on_change(self, address: ResourceAddress):
        with self._lock:
            self.is_stale = True
            listeners = list(self._listeners)
        for listener in listeners:
            listener(address)

    def fetchone(self) -> Optional[sqlite3.Row]:
        return self._cursor.fetchone()

    def fetchall(self) -> List[sqlite3.Row]:
        return self._cursor.fetchall()

    def __iter__(self) -> Iterator[sqlite3.Row]:
        return iter(self._cursor)

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self._gate is not None:
            self._gate.sink.unregister(self)
        try:
            self._cursor.close()
        except sqlite3.ProgrammingError:
            # connection already closed by a reset
            pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
