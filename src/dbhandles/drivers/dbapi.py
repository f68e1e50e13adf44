"""PEP 249 (DB-API 2.0) driver bridge.

Wraps any DB-API module (``sqlite3`` out of the box) in the driver
protocol.  DB-API has no separate prepare step, so a prepared statement is
the validated SQL text plus its connection; every ``execute()`` opens a
fresh cursor.

Data source: ``dbi:SQLite:dbname=/path/to/file.db``, ``dbi:SQLite:/path``
or ``dbi:SQLite:`` for an in-memory database.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from dbhandles.errors import DatabaseConnectionError, DatabaseError, ErrorContext, PrepareError

from .base import BaseConnection, BaseDriver, BaseStatement


class DbapiCursor:
    """``RowCursor`` over a DB-API cursor."""

    def __init__(self, cursor: Any, error_class: type[Exception], sql: str):
        self._cursor = cursor
        self._error_class = error_class
        self._sql = sql
        description = cursor.description or ()
        self.columns = tuple(desc[0] for desc in description)
        self.rowcount = cursor.rowcount if cursor.rowcount is not None else -1

    def fetchone(self) -> tuple | None:
        if not self.columns:
            return None
        try:
            row = self._cursor.fetchone()
        except self._error_class as e:
            raise DatabaseError(f"fetch failed: {e}", context=ErrorContext(sql=self._sql), cause=e) from e
        return tuple(row) if row is not None else None

    def close(self) -> None:
        self._cursor.close()


class DbapiStatement(BaseStatement):
    def execute(self, params: Sequence[Any] = ()) -> DbapiCursor:
        connection = self.connection
        if not connection.active:
            raise DatabaseError("execute on a closed connection", context=ErrorContext(sql=self.sql))
        error_class = connection.error_class
        try:
            cursor = connection.raw.cursor()
            cursor.execute(self.sql, tuple(params))
        except error_class as e:
            raise DatabaseError(f"execute failed: {e}", context=ErrorContext(sql=self.sql), cause=e) from e
        return DbapiCursor(cursor, error_class, self.sql)


class DbapiConnection(BaseConnection):
    """Adapter: DB-API connection → ``DriverConnection`` protocol."""

    def __init__(
        self,
        raw: Any,
        target: str,
        options: Mapping[str, Any],
        *,
        error_class: type[Exception],
        ping_sql: str = "SELECT 1",
    ):
        super().__init__(target, options)
        self.raw = raw
        self.error_class = error_class
        self._ping_sql = ping_sql

    def _prepare(self, sql: str) -> DbapiStatement:
        if not self.active:
            raise PrepareError("prepare on a closed connection", context=ErrorContext(sql=sql))
        if not sql.strip():
            raise PrepareError("cannot prepare an empty statement", context=ErrorContext(sql=sql))
        return DbapiStatement(self, sql)

    def ping(self) -> bool:
        if not self.active:
            return False
        try:
            cursor = self.raw.cursor()
            cursor.execute(self._ping_sql)
            cursor.fetchall()
            cursor.close()
        except self.error_class:
            return False
        return True

    def commit(self) -> None:
        try:
            self.raw.commit()
        except self.error_class as e:
            raise DatabaseError(f"commit failed: {e}", cause=e) from e

    def rollback(self) -> None:
        try:
            self.raw.rollback()
        except self.error_class as e:
            raise DatabaseError(f"rollback failed: {e}", cause=e) from e

    def _close(self) -> None:
        self.raw.close()


class DbapiDriver(BaseDriver):
    """
    Generic DB-API driver.

    ``opener`` receives ``(target, user, password, options)`` and returns
    a raw DB-API connection; errors of ``module.Error`` become
    ``DatabaseConnectionError``.
    """

    def __init__(self, module: Any, opener: Callable[..., Any], *, name: str | None = None, ping_sql: str = "SELECT 1"):
        self.module = module
        self._opener = opener
        self.name = name or module.__name__
        self._ping_sql = ping_sql

    def connect(
        self,
        target: str,
        user: str,
        password: str,
        options: Mapping[str, Any],
    ) -> DbapiConnection:
        try:
            raw = self._opener(target, user, password, options)
        except self.module.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to {self.name}: {e}",
                context=ErrorContext(data_source=f"dbi:{self.name}:{target}"),
                cause=e,
            ) from e
        return DbapiConnection(raw, target, options, error_class=self.module.Error, ping_sql=self._ping_sql)


def sqlite_path(target: str) -> str:
    """Path from an SQLite data source remainder (``dbname=...`` or bare path)."""
    target = target.strip()
    for part in target.split(";"):
        key, sep, value = part.partition("=")
        if sep and key.strip().lower() in ("dbname", "database", "db"):
            return value.strip() or ":memory:"
    return target or ":memory:"


def _open_sqlite(target: str, user: str, password: str, options: Mapping[str, Any]) -> Any:
    import sqlite3

    path = sqlite_path(target)
    conn = sqlite3.connect(
        path,
        timeout=float(options.get("timeout", 5.0)),
        check_same_thread=False,
        uri=path.startswith("file:"),
    )
    if options.get("auto_commit"):
        conn.isolation_level = None
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def sqlite_driver() -> DbapiDriver:
    """DB-API driver over the stdlib ``sqlite3`` module."""
    import sqlite3

    return DbapiDriver(sqlite3, _open_sqlite, name="SQLite")


__all__ = [
    "DbapiConnection",
    "DbapiCursor",
    "DbapiDriver",
    "DbapiStatement",
    "sqlite_driver",
    "sqlite_path",
]
