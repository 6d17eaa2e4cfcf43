"""
Generic row store over the SQLite connection.

The streak, progress and reminder modules only talk to storage through this
class, so they can be exercised against any object with the same methods.
Filters use ``column__op`` keyword lookups (``date__gte``, ``user_id__in``,
``push_token__isnull``); a list or tuple value implies ``__in``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable, Iterable

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from database import get_db
from errors import PersistenceFailure

logger = logging.getLogger(__name__)

# table -> (primary key, allowed columns)
TABLES: dict[str, tuple[str, frozenset[str]]] = {
    "users": ("id", frozenset({
        "id", "email", "display_name", "password_hash", "daily_goal",
        "notification_enabled", "push_token", "push_token_registered_at",
        "login_attempts", "locked_until", "created_at", "updated_at",
    })),
    "streaks": ("user_id", frozenset({
        "user_id", "current_streak", "longest_streak", "previous_streak",
        "last_completed_date", "created_at", "updated_at",
    })),
    "daily_progress": ("id", frozenset({
        "id", "user_id", "date", "questions_answered", "questions_correct",
        "study_time_seconds", "created_at",
    })),
    "push_notification_log": ("id", frozenset({
        "id", "user_id", "date", "slot", "message_id", "created_at",
    })),
}

_OPERATORS = {
    "eq": "=",
    "ne": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
}


def _is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


class RowStore:
    """Whitelisted CRUD helpers. Every write commits immediately."""

    def __init__(self, connection_factory: Callable[[], Any] = get_db):
        self._connect = connection_factory

    # --- reads ---------------------------------------------------------

    def get_by_id(self, table: str, key: Any) -> dict | None:
        pk, _ = self._table(table)
        rows = self.get_by_filter(table, **{pk: key})
        return rows[0] if rows else None

    def get_by_filter(self, table: str, *, order_by: str | None = None,
                      limit: int | None = None, **filters: Any) -> list[dict]:
        self._table(table)
        where, params = self._where(table, filters)
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            col, _, direction = order_by.partition(" ")
            self._check_column(table, col)
            direction = direction.strip().upper()
            sql += f" ORDER BY {col}" + (" DESC" if direction == "DESC" else "")
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        rows = self._run(sql, params, write=False)
        return [dict(r) for r in rows]

    # --- writes --------------------------------------------------------

    def insert(self, table: str, row: dict) -> dict:
        pk, _ = self._table(table)
        cols = self._columns(table, row)
        sql = (
            f"INSERT INTO {table} ({', '.join(cols)}) "
            f"VALUES ({', '.join('?' * len(cols))})"
        )
        cur = self._run(sql, [row[c] for c in cols], write=True)
        stored = dict(row)
        if pk not in stored:
            stored[pk] = cur.lastrowid
        return stored

    def insert_many(self, table: str, rows: Iterable[dict]) -> int:
        rows = list(rows)
        if not rows:
            return 0
        self._table(table)
        cols = self._columns(table, rows[0])
        sql = (
            f"INSERT INTO {table} ({', '.join(cols)}) "
            f"VALUES ({', '.join('?' * len(cols))})"
        )
        return self._run_many(sql, [[r[c] for c in cols] for r in rows])

    def upsert_ignoring_conflict(self, table: str, row: dict) -> bool:
        """Insert ``row`` unless it collides with a unique key. True if inserted."""
        self._table(table)
        cols = self._columns(table, row)
        sql = (
            f"INSERT OR IGNORE INTO {table} ({', '.join(cols)}) "
            f"VALUES ({', '.join('?' * len(cols))})"
        )
        cur = self._run(sql, [row[c] for c in cols], write=True)
        return cur.rowcount > 0

    def update(self, table: str, values: dict, **filters: Any) -> int:
        """Conditional update. Returns the number of rows changed."""
        if not filters:
            raise ValueError("update() requires at least one filter")
        self._table(table)
        cols = self._columns(table, values)
        where, params = self._where(table, filters)
        sql = f"UPDATE {table} SET {', '.join(f'{c}=?' for c in cols)}{where}"
        cur = self._run(sql, [values[c] for c in cols] + params, write=True)
        return cur.rowcount

    def increment(self, table: str, deltas: dict[str, int], **filters: Any) -> int:
        """Atomic ``col = col + n`` for each delta."""
        if not filters:
            raise ValueError("increment() requires at least one filter")
        self._table(table)
        cols = self._columns(table, deltas)
        where, params = self._where(table, filters)
        sql = f"UPDATE {table} SET {', '.join(f'{c}={c}+?' for c in cols)}{where}"
        cur = self._run(sql, [int(deltas[c]) for c in cols] + params, write=True)
        return cur.rowcount

    def delete(self, table: str, **filters: Any) -> int:
        if not filters:
            raise ValueError("delete() requires at least one filter")
        self._table(table)
        where, params = self._where(table, filters)
        cur = self._run(f"DELETE FROM {table}{where}", params, write=True)
        return cur.rowcount

    # --- internals -----------------------------------------------------

    @staticmethod
    def _table(table: str) -> tuple[str, frozenset[str]]:
        try:
            return TABLES[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    def _check_column(self, table: str, col: str) -> None:
        if col not in self._table(table)[1]:
            raise ValueError(f"Unknown column {table}.{col}")

    def _columns(self, table: str, row: dict) -> list[str]:
        cols = list(row.keys())
        if not cols:
            raise ValueError("No columns given")
        for c in cols:
            self._check_column(table, c)
        return cols

    def _where(self, table: str, filters: dict) -> tuple[str, list]:
        clauses: list[str] = []
        params: list = []
        for key, value in filters.items():
            col, _, op = key.partition("__")
            self._check_column(table, col)
            if op == "isnull":
                clauses.append(f"{col} IS NULL" if value else f"{col} IS NOT NULL")
            elif op == "in" or (not op and isinstance(value, (list, tuple, set, frozenset))):
                values = list(value)
                if not values:
                    clauses.append("0")
                    continue
                clauses.append(f"{col} IN ({', '.join('?' * len(values))})")
                params.extend(values)
            elif not op and value is None:
                clauses.append(f"{col} IS NULL")
            elif op in _OPERATORS or not op:
                clauses.append(f"{col} {_OPERATORS[op or 'eq']} ?")
                params.append(value)
            else:
                raise ValueError(f"Unsupported lookup: {key}")
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        reraise=True,
    )
    def _execute(self, sql: str, params: list, write: bool, many: bool = False):
        db = self._connect()
        try:
            if many:
                cur = db.executemany(sql, params)
            else:
                cur = db.execute(sql, params)
            if write:
                db.commit()
                return cur
            return cur.fetchall()
        except sqlite3.Error:
            if write:
                try:
                    db.rollback()
                except sqlite3.Error:
                    pass
            raise

    def _run(self, sql: str, params: list, write: bool):
        try:
            return self._execute(sql, params, write)
        except sqlite3.Error as e:
            logger.error("Store %s failed: %s", "write" if write else "read", e)
            raise PersistenceFailure(str(e)) from e

    def _run_many(self, sql: str, rows: list[list]) -> int:
        try:
            cur = self._execute(sql, rows, True, many=True)
        except sqlite3.Error as e:
            logger.error("Store bulk write failed: %s", e)
            raise PersistenceFailure(str(e)) from e
        return cur.rowcount
