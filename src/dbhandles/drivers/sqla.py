"""SQLAlchemy driver bridge.

Lets any database SQLAlchemy can reach sit behind a registered handle::

    Music.set_db("main", "dbi:SQLAlchemy:postgresql+psycopg://app@db/music", "", "")

Statements run through ``Connection.exec_driver_sql()`` so placeholders use
the underlying DB-API paramstyle (``?`` for SQLite, ``%s`` for psycopg).
Registered templates are rendered with ``%`` first, so a psycopg bind
placeholder is written ``%%s`` in ``set_sql()``.

Requires the ``sqlalchemy`` optional extra::

    pip install dbhandles[sqlalchemy]

The import is guarded at ``connect()`` time, so registering a
``dbi:SQLAlchemy:`` connection never needs SQLAlchemy installed.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from dbhandles.errors import DatabaseConnectionError, DatabaseError, ErrorContext, PrepareError

from .base import BaseConnection, BaseDriver, BaseStatement


class SqlAlchemyCursor:
    """``RowCursor`` over a ``CursorResult``."""

    def __init__(self, result: Any, error_class: type[Exception], sql: str):
        self._result = result
        self._error_class = error_class
        self._sql = sql
        self.columns = tuple(result.keys()) if result.returns_rows else ()
        self.rowcount = result.rowcount if result.rowcount is not None else -1

    def fetchone(self) -> tuple | None:
        if not self.columns:
            return None
        try:
            row = self._result.fetchone()
        except self._error_class as e:
            raise DatabaseError(f"fetch failed: {e}", context=ErrorContext(sql=self._sql), cause=e) from e
        return tuple(row) if row is not None else None

    def close(self) -> None:
        self._result.close()


class SqlAlchemyStatement(BaseStatement):
    def execute(self, params: Sequence[Any] = ()) -> SqlAlchemyCursor:
        connection = self.connection
        if not connection.active:
            raise DatabaseError("execute on a closed connection", context=ErrorContext(sql=self.sql))
        try:
            result = connection.raw.exec_driver_sql(self.sql, tuple(params) or None)
        except connection.error_class as e:
            raise DatabaseError(f"execute failed: {e}", context=ErrorContext(sql=self.sql), cause=e) from e
        return SqlAlchemyCursor(result, connection.error_class, self.sql)


class SqlAlchemyConnection(BaseConnection):
    def __init__(self, engine: Any, raw: Any, target: str, options: Mapping[str, Any], *, error_class: type[Exception]):
        super().__init__(target, options)
        self.engine = engine
        self.raw = raw
        self.error_class = error_class

    @property
    def active(self) -> bool:
        return self._active and not self.raw.closed and not self.raw.invalidated

    def _prepare(self, sql: str) -> SqlAlchemyStatement:
        if not self.active:
            raise PrepareError("prepare on a closed connection", context=ErrorContext(sql=sql))
        if not sql.strip():
            raise PrepareError("cannot prepare an empty statement", context=ErrorContext(sql=sql))
        return SqlAlchemyStatement(self, sql)

    def ping(self) -> bool:
        if not self.active:
            return False
        try:
            self.raw.exec_driver_sql("SELECT 1").fetchall()
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
        self.engine.dispose()


class SqlAlchemyDriver(BaseDriver):
    """Driver behind ``dbi:SQLAlchemy:<url>`` data sources."""

    name = "SQLAlchemy"

    def connect(
        self,
        target: str,
        user: str,
        password: str,
        options: Mapping[str, Any],
    ) -> SqlAlchemyConnection:
        try:
            from sqlalchemy import create_engine
            from sqlalchemy.engine import make_url
            from sqlalchemy.exc import ArgumentError, SQLAlchemyError
        except ImportError:
            raise DatabaseConnectionError(
                "sqlalchemy is required for dbi:SQLAlchemy: data sources. "
                "Install with: pip install dbhandles[sqlalchemy]"
            ) from None

        try:
            url = make_url(target)
            if user and url.username is None:
                url = url.set(username=user)
            if password and url.password is None:
                url = url.set(password=password)
            engine = create_engine(url)
            raw = engine.connect()
            if options.get("auto_commit"):
                raw.execution_options(isolation_level="AUTOCOMMIT")
        except (ArgumentError, SQLAlchemyError) as e:
            raise DatabaseConnectionError(
                f"Failed to connect via SQLAlchemy: {e}",
                context=ErrorContext(data_source=f"dbi:SQLAlchemy:{target}"),
                cause=e,
            ) from e
        return SqlAlchemyConnection(engine, raw, target, options, error_class=SQLAlchemyError)


__all__ = [
    "SqlAlchemyConnection",
    "SqlAlchemyCursor",
    "SqlAlchemyDriver",
    "SqlAlchemyStatement",
]
