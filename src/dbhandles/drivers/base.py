"""Driver base classes.

Manifesto:
    Every driver needs the same bookkeeping around its vendor calls: a
    cached-prepare table keyed by SQL text, an ``active`` flag that flips
    on close, a default liveness probe.  The abstract bases hold that
    bookkeeping so concrete drivers only implement the vendor calls.

Features:
    - ``BaseDriver``: abstract ``connect()``, default ``is_alive()``
    - ``BaseConnection``: ``prepare_cached()`` table, ``clear_cache()``,
      ``close()`` bookkeeping
    - ``BaseStatement``: ``clear_cache()`` removes itself from the table
    - ``ListCursor``: cursor over rows already materialized in memory

Tags:
    dbhandles, driver, abstract-base, adapter-pattern

Doc-Types:
    api-reference
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from dbhandles.logging import get_logger
from dbhandles.protocols import RowCursor

logger = get_logger(__name__)


class BaseStatement(ABC):
    """Prepared statement owned by a ``BaseConnection``."""

    def __init__(self, connection: BaseConnection, sql: str):
        self._connection = connection
        self.sql = sql

    @property
    def connection(self) -> BaseConnection:
        return self._connection

    @abstractmethod
    def execute(self, params: Sequence[Any] = ()) -> RowCursor:
        """Run the statement with positional bind values."""
        ...

    def clear_cache(self) -> None:
        """Drop this statement from its connection's cached-prepare table."""
        self._connection._forget(self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.sql!r})"


class BaseConnection(ABC):
    """
    Abstract connection with a cached-prepare table.

    ``prepare_cached()`` returns the same statement object for equal SQL
    text until ``clear_cache()`` (or the statement's own ``clear_cache()``)
    removes it.
    """

    def __init__(self, target: str, options: Mapping[str, Any]):
        self.target = target
        self.options = dict(options)
        self._active = True
        self._cached: dict[str, BaseStatement] = {}

    @property
    def active(self) -> bool:
        """Whether the connection is open."""
        return self._active

    @property
    def cached_statements(self) -> dict[str, BaseStatement]:
        """Snapshot of the cached-prepare table (SQL text → statement)."""
        return dict(self._cached)

    def prepare(self, sql: str) -> BaseStatement:
        """Prepare a one-shot statement."""
        return self._prepare(sql)

    def prepare_cached(self, sql: str) -> BaseStatement:
        """Prepare ``sql`` once per connection and reuse it afterwards."""
        statement = self._cached.get(sql)
        if statement is None:
            statement = self._prepare(sql)
            self._cached[sql] = statement
        return statement

    def clear_cache(self) -> None:
        """Forget every cached statement."""
        self._cached.clear()

    def _forget(self, statement: BaseStatement) -> None:
        if self._cached.get(statement.sql) is statement:
            del self._cached[statement.sql]

    def ping(self) -> bool:
        return self._active

    def close(self) -> None:
        """Close the connection.  Idempotent."""
        if self._active:
            self._close()
            self._active = False
            self._cached.clear()

    @abstractmethod
    def _prepare(self, sql: str) -> BaseStatement:
        ...

    @abstractmethod
    def _close(self) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...

    def __repr__(self) -> str:
        state = "active" if self._active else "closed"
        return f"{self.__class__.__name__}({self.target!r}, {state})"


class BaseDriver(ABC):
    """
    Abstract driver.

    Subclasses set ``name`` and implement ``connect()``.  The default
    liveness probe is ``active and ping()``; a probe that raises counts as
    dead.
    """

    name: str = "base"

    @abstractmethod
    def connect(
        self,
        target: str,
        user: str,
        password: str,
        options: Mapping[str, Any],
    ) -> BaseConnection:
        ...

    def is_alive(self, connection: BaseConnection) -> bool:
        """Return False for closed or unreachable connections."""
        if not connection.active:
            return False
        try:
            return bool(connection.ping())
        except Exception as exc:
            logger.debug("ping_failed", driver=self.name, error=str(exc))
            return False


class ListCursor:
    """Cursor over rows that are already in memory."""

    def __init__(self, columns: Iterable[str], rows: Iterable[tuple], *, rowcount: int | None = None):
        self.columns = tuple(columns)
        self._rows = list(rows)
        self._position = 0
        self.rowcount = len(self._rows) if rowcount is None else rowcount

    def fetchone(self) -> tuple | None:
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def close(self) -> None:
        self._position = len(self._rows)


__all__ = [
    "BaseConnection",
    "BaseDriver",
    "BaseStatement",
    "ListCursor",
]
