"""
Helper for building selection clauses for SQLite.

Each ``where`` call adds one fragment with its own bound arguments. Fragments
are parenthesized and joined with AND, so a later fragment can only narrow the
rows picked by an earlier one. Fragments that could escape their parentheses
are rejected before anything reaches the database.

The terminal operations take ``db``, a sqlite3.Connection or a DataDatabase;
only its ``execute`` is used.
"""

import re
import sqlite3
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidColumn, MalformedPredicate

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
ORDER_TERM_RE = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(\s+COLLATE\s+(NOCASE|BINARY|RTRIM))?(\s+(ASC|DESC))?$",
    re.IGNORECASE,
)

_QUOTES = {"'": "'", '"': '"', "`": "`", "[": "]"}


def count_placeholders(fragment: str) -> int:
    """Count positional ``?`` placeholders outside quoted text.

    Raises MalformedPredicate for anything that would let the fragment break
    out of its parentheses or bind values by position/name.
    """
    count = 0
    depth = 0
    i = 0
    n = len(fragment)
    while i < n:
        c = fragment[i]
        nxt = fragment[i + 1] if i + 1 < n else ""

        if c in _QUOTES:
            close = _QUOTES[c]
            j = i + 1
            while True:
                j = fragment.find(close, j)
                if j == -1:
                    raise MalformedPredicate(f"Unterminated quote in selection: {fragment!r}")
                # doubled quote is an escaped quote
                if close != "]" and j + 1 < n and fragment[j + 1] == close:
                    j += 2
                    continue
                break
            i = j + 1
            continue

        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth < 0:
                raise MalformedPredicate(f"Unbalanced parentheses in selection: {fragment!r}")
        elif c == ";":
            raise MalformedPredicate(f"Statement separator in selection: {fragment!r}")
        elif (c == "-" and nxt == "-") or (c == "/" and nxt == "*"):
            raise MalformedPredicate(f"Comment in selection: {fragment!r}")
        elif c == "?":
            if nxt.isdigit():
                raise MalformedPredicate(f"Numbered placeholders are not supported: {fragment!r}")
            count += 1
        elif c in ":@$" and (nxt.isalpha() or nxt == "_"):
            raise MalformedPredicate(f"Named placeholders are not supported: {fragment!r}")
        i += 1

    if depth != 0:
        raise MalformedPredicate(f"Unbalanced parentheses in selection: {fragment!r}")
    return count


def check_identifier(name: str, allow_star: bool = False) -> str:
    if allow_star and name == "*":
        return name
    if not isinstance(name, str) or not IDENTIFIER_RE.match(name):
        raise InvalidColumn(f"Invalid column: {name!r}")
    return name


def check_order_by(order_by: str) -> str:
    terms = [term.strip() for term in order_by.split(",")]
    for term in terms:
        if not ORDER_TERM_RE.match(term):
            raise InvalidColumn(f"Invalid sort order: {order_by!r}")
    return ", ".join(terms)


class SelectionBuilder:
    """Accumulates a table and AND-ed selection fragments for one operation."""

    def __init__(self):
        self._table: Optional[str] = None
        self._selection: List[str] = []
        self._selection_args: List[Any] = []

    def reset(self) -> "SelectionBuilder":
        self._table = None
        self._selection = []
        self._selection_args = []
        return self

    def table(self, table: str) -> "SelectionBuilder":
        self._table = check_identifier(table)
        return self

    def where(self, selection: Optional[str], *selection_args: Any) -> "SelectionBuilder":
        """Append a fragment. Its ``?`` count must equal ``len(selection_args)``."""
        if not selection or not selection.strip():
            if selection_args:
                raise MalformedPredicate(
                    "Valid selection required when including arguments"
                )
            # nothing to add
            return self

        expected = count_placeholders(selection)
        if expected != len(selection_args):
            raise MalformedPredicate(
                f"Selection {selection!r} has {expected} placeholder(s) "
                f"but {len(selection_args)} argument(s)"
            )

        self._selection.append(selection.strip())
        self._selection_args.extend(selection_args)
        return self

    @property
    def fragment_count(self) -> int:
        return len(self._selection)

    def get_selection(self) -> str:
        """Composed selection, or an empty string for the whole table."""
        return " AND ".join(f"({s})" for s in self._selection)

    def get_selection_args(self) -> List[Any]:
        return list(self._selection_args)

    def _assert_table(self) -> str:
        if self._table is None:
            raise ValueError("Table not specified")
        return self._table

    def _where_clause(self) -> str:
        selection = self.get_selection()
        return f" WHERE {selection}" if selection else ""

    def build_query(self, columns: Optional[Sequence[str]] = None, distinct: bool = False,
                    order_by: Optional[str] = None, limit: Optional[int] = None) -> Tuple[str, List[Any]]:
        table = self._assert_table()
        if columns:
            projection = ", ".join(check_identifier(c, allow_star=True) for c in columns)
        else:
            projection = "*"

        sql = f"SELECT {'DISTINCT ' if distinct else ''}{projection} FROM {table}{self._where_clause()}"
        args = self.get_selection_args()
        if order_by:
            sql += f" ORDER BY {check_order_by(order_by)}"
        if limit is not None:
            if int(limit) < 0:
                raise ValueError(f"Invalid limit: {limit}")
            sql += " LIMIT ?"
            args.append(int(limit))
        return sql, args

    def query(self, db, columns: Optional[Sequence[str]] = None,
              distinct: bool = False, order_by: Optional[str] = None,
              limit: Optional[int] = None) -> sqlite3.Cursor:
        """Execute a SELECT and return the open cursor."""
        sql, args = self.build_query(columns, distinct, order_by, limit)
        return db.execute(sql, args)

    def update(self, db, values: Dict[str, Any]) -> int:
        """Execute an UPDATE, returning the number of rows changed. ``distinct`` does not apply."""
        table = self._assert_table()
        if not values:
            raise ValueError("Empty values")
        columns = [check_identifier(c) for c in values]
        assignments = ", ".join(f"{c}=?" for c in columns)
        sql = f"UPDATE {table} SET {assignments}{self._where_clause()}"
        cursor = db.execute(sql, list(values.values()) + self.get_selection_args())
        return cursor.rowcount

    def delete(self, db) -> int:
        """Execute a DELETE, returning the number of rows removed."""
        table = self._assert_table()
        cursor = db.execute(f"DELETE FROM {table}{self._where_clause()}", self.get_selection_args())
        return cursor.rowcount

    def __repr__(self) -> str:
        return (f"SelectionBuilder[table={self._table}, selection={self.get_selection()}, "
                f"selectionArgs={self._selection_args}]")


def insert_statement(table: str, values: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """INSERT for ``values``; an empty mapping inserts a row of defaults."""
    check_identifier(table)
    if not values:
        return f"INSERT INTO {table} DEFAULT VALUES", []
    columns = [check_identifier(c) for c in values]
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})", list(values.values())


def split_args(selection_args: Optional[Iterable[Any]]) -> Tuple[Any, ...]:
    """Normalize caller-supplied arguments (None, list or tuple) to a tuple."""
    if selection_args is None:
        return ()
    if isinstance(selection_args, (str, bytes)):
        return (selection_args,)
    return tuple(selection_args)
