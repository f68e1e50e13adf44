"""
Driver protocols consumed by dbhandles.

The caching layer never talks to a database directly.  It talks to a
*driver*: something that can connect, prepare, execute and fetch.  This
module is the single definition of that contract; the bundled drivers in
``dbhandles.drivers`` and any third-party driver only have to match the
shape.

Architecture:
    ::

        Driver
        │  connect(target, user, password, options) → DriverConnection
        │  is_alive(connection)                     → bool
        │
        DriverConnection
        │  prepare(sql) / prepare_cached(sql)       → DriverStatement
        │  ping() · commit() · rollback() · close() · clear_cache()
        │
        DriverStatement
        │  execute(params)                          → RowCursor
        │  clear_cache()
        │
        RowCursor
           columns · rowcount · fetchone() → tuple | None · close()

Guardrails:
    ❌ DON'T: Return a half-open connection from ``connect()``
    ✅ DO: Raise; the registry caches nothing on failure

    ❌ DON'T: Raise at end of data from ``fetchone()``
    ✅ DO: Return ``None``

Tags:
    protocol, driver, connection, statement, cursor, dbhandles

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RowCursor(Protocol):
    """Result of one statement execution."""

    @property
    def columns(self) -> tuple[str, ...]:
        """Column names, empty for statements that return no rows."""
        ...

    @property
    def rowcount(self) -> int:
        """Affected/returned row count, ``-1`` when the driver cannot tell."""
        ...

    def fetchone(self) -> tuple | None:
        """Next row, or ``None`` at end of data."""
        ...

    def close(self) -> None:
        """Discard any pending rows."""
        ...


@runtime_checkable
class DriverStatement(Protocol):
    """A prepared statement bound to one connection."""

    sql: str

    @property
    def connection(self) -> DriverConnection:
        ...

    def execute(self, params: Sequence[Any] = ()) -> RowCursor:
        """Run the statement with positional bind values."""
        ...

    def clear_cache(self) -> None:
        """Remove this statement from its connection's cached-prepare table."""
        ...


@runtime_checkable
class DriverConnection(Protocol):
    """A live database connection."""

    @property
    def active(self) -> bool:
        """False once the connection was closed or is known to be broken."""
        ...

    def prepare(self, sql: str) -> DriverStatement:
        """Prepare a one-shot statement."""
        ...

    def prepare_cached(self, sql: str) -> DriverStatement:
        """Prepare, reusing the statement already prepared for equal SQL text."""
        ...

    def ping(self) -> bool:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def close(self) -> None:
        ...

    def clear_cache(self) -> None:
        """Forget every statement in the cached-prepare table."""
        ...


@runtime_checkable
class Driver(Protocol):
    """Factory for connections of one database kind."""

    name: str

    def connect(
        self,
        target: str,
        user: str,
        password: str,
        options: Mapping[str, Any],
    ) -> DriverConnection:
        """Open a new connection.  ``target`` is the data source after ``dbi:<driver>:``."""
        ...

    def is_alive(self, connection: DriverConnection) -> bool:
        """Liveness probe used before a cached connection is handed out."""
        ...


__all__ = [
    "Driver",
    "DriverConnection",
    "DriverStatement",
    "RowCursor",
]
