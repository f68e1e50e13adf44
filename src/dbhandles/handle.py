"""
Statement handles -- execute with bind values, fetch in any row shape.

``StatementHandle`` wraps one prepared driver statement and adds the
result-shaping surface application code uses: positional rows, column
maps, ordered ``(column, value)`` pairs, and bound output cells that are
filled on every fetch.

Lifecycle:
    ::

        PREPARED ──execute()──▶ EXECUTING ──rows?──▶ ACTIVE ──fetch…/EOF/finish()──▶ FINISHED
                                     │                                                  │
                                     └──────no rows──────────────────────▶ FINISHED ◀───┘
                                                                                 │
                                                            execute() again ─────┘

Examples:
    >>> year, title = Bind(), Bind()
    >>> sth = Music.sql("by_artist")
    >>> sth.execute(["Low"], [year, title])
    >>> while sth.fetch() is not None:
    ...     print(year.value, title.value)

Tags:
    statement, handle, fetch, bind, result-shaping, dbhandles

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from enum import Enum
from typing import Any

from dbhandles.errors import DatabaseError, ErrorContext, HandleError, UsageError
from dbhandles.logging import get_logger
from dbhandles.protocols import DriverConnection, DriverStatement, RowCursor
from dbhandles.types import DEFAULT_OPTIONS, StatementSpec

logger = get_logger(__name__)


class HandleState(str, Enum):
    """Execution state of a statement handle."""

    PREPARED = "prepared"
    EXECUTING = "executing"
    ACTIVE = "active"          # Rows pending
    FINISHED = "finished"


class Bind:
    """Output cell for a bound result column.  ``value`` is set on every fetch."""

    __slots__ = ("value",)

    def __init__(self, value: Any = None):
        self.value = value

    def __repr__(self) -> str:
        return f"Bind({self.value!r})"


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_structured(value: Any) -> bool:
    return isinstance(value, (list, tuple, dict, set, Bind))


def split_execute_args(args: Sequence[Any]) -> tuple[list[Any], list[Bind] | None]:
    """Separate ``execute()`` arguments into bind values and bind targets.

    Two call shapes are accepted:

    - ``execute(v1, v2, ...)``: scalar bind values only
    - ``execute(values, targets)``: exactly two arguments, ``values`` a list
      or tuple (or ``None``), ``targets`` a list or tuple of :class:`Bind`

    Raises:
        UsageError: any other mix of structured arguments
    """
    if len(args) == 2 and (args[0] is None or _is_sequence(args[0])) and _is_sequence(args[1]):
        values = list(args[0] or ())
        targets = list(args[1])
        if any(_is_structured(value) for value in values):
            raise UsageError("bind values must be scalars")
        if any(not isinstance(target, Bind) for target in targets):
            raise UsageError("bind targets must be Bind cells")
        return values, targets

    if any(_is_structured(arg) for arg in args):
        raise UsageError(
            "execute() takes scalar bind values, or exactly two lists: "
            "(bind_values, bind_targets)"
        )
    return list(args), None


class StatementHandle:
    """
    A prepared statement plus the row-shaping calls around it.

    Handles come from ``StatementRegistry.get()`` (cached or transient);
    constructing one directly is only useful with a hand-made driver
    statement.

    Attributes:
        spec: Registration record the handle was prepared from
        state: Current ``HandleState``
    """

    def __init__(
        self,
        statement: DriverStatement,
        spec: StatementSpec,
        *,
        options: Mapping[str, Any] | None = None,
        owner: str | None = None,
    ):
        self._statement = statement
        self.spec = spec
        self.options = dict(options if options is not None else DEFAULT_OPTIONS)
        self.owner = owner
        self.state = HandleState.PREPARED
        self._cursor: RowCursor | None = None
        self._columns: tuple[str, ...] = ()
        self._bound: tuple[Bind, ...] = ()
        self._rowcount = -1

    # ── Introspection ────────────────────────────────────────────

    @property
    def sql(self) -> str:
        return self._statement.sql

    @property
    def statement(self) -> DriverStatement:
        return self._statement

    @property
    def connection(self) -> DriverConnection:
        return self._statement.connection

    @property
    def active(self) -> bool:
        """True while rows from the last execution are pending."""
        return self.state is HandleState.ACTIVE

    @property
    def columns(self) -> tuple[str, ...]:
        """Column names of the last execution, in result order."""
        return self._columns

    @property
    def rowcount(self) -> int:
        return self._rowcount

    # ── Execution ────────────────────────────────────────────────

    def execute(self, *args: Any) -> int | None:
        """Run the statement.

        ``execute(v1, v2, ...)`` binds scalar values.  ``execute(values,
        targets)`` additionally binds every result column to a
        :class:`Bind` cell; the number of targets must equal the number of
        result columns.

        Executing a handle that still has pending rows finishes it first.

        Returns:
            The driver's row count, or ``None`` when the execution failed
            and the connection has ``raise_error`` off
        """
        values, targets = split_execute_args(args)
        if self.state is HandleState.ACTIVE:
            self.finish()

        self.state = HandleState.EXECUTING
        self._bound = ()
        try:
            cursor = self._statement.execute(values)
        except HandleError as e:
            self.state = HandleState.FINISHED
            return self._failed(e.with_context(kind="sql", name=self.spec.name, sql=self.sql))
        except Exception as e:
            self.state = HandleState.FINISHED
            error = DatabaseError(
                f"execute failed: {e}",
                context=ErrorContext(owner=self.owner, kind="sql", name=self.spec.name, sql=self.sql),
                cause=e,
            )
            return self._failed(error)

        self._cursor = cursor
        self._columns = tuple(cursor.columns)
        self._rowcount = cursor.rowcount
        self.state = HandleState.ACTIVE if self._columns else HandleState.FINISHED

        if targets is not None:
            try:
                self.bind_columns(*targets)
            except UsageError:
                self.finish()
                raise
        return self._rowcount

    def bind_columns(self, *targets: Bind) -> None:
        """Bind result columns, in order, to output cells."""
        if any(not isinstance(target, Bind) for target in targets):
            raise UsageError("bind targets must be Bind cells")
        if len(targets) != len(self._columns):
            raise UsageError(
                f"{len(targets)} bind target(s) for {len(self._columns)} result column(s)",
                context=ErrorContext(owner=self.owner, kind="sql", name=self.spec.name, sql=self.sql),
            )
        self._bound = tuple(targets)

    def finish(self) -> None:
        """Discard pending rows.  Safe to call in any state."""
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None
        if self.state is not HandleState.PREPARED:
            self.state = HandleState.FINISHED

    def clear_cache(self) -> None:
        """Remove the underlying statement from its connection's cache."""
        self._statement.clear_cache()

    def _failed(self, error: HandleError) -> None:
        if self.owner and error.context.owner is None:
            error.context.owner = self.owner
        if self.options.get("print_error"):
            logger.error("execute_failed", **error.to_dict())
        if self.options.get("raise_error", True):
            raise error
        logger.warning("execute_failed", **error.to_dict())
        return None

    # ── Fetching ─────────────────────────────────────────────────

    def _next_row(self) -> tuple | None:
        if self.state is not HandleState.ACTIVE or self._cursor is None:
            return None
        try:
            row = self._cursor.fetchone()
        except HandleError:
            self.finish()
            raise
        except Exception as e:
            self.finish()
            raise DatabaseError(
                f"fetch failed: {e}",
                context=ErrorContext(owner=self.owner, kind="sql", name=self.spec.name, sql=self.sql),
                cause=e,
            ) from e

        if row is None:
            self.finish()
            return None
        for cell, value in zip(self._bound, row):
            cell.value = value
        return tuple(row)

    def fetch(self) -> list[Any] | None:
        """Next row as a list, or ``None`` past the end."""
        row = self._next_row()
        return list(row) if row is not None else None

    def fetch_values(self) -> tuple[Any, ...]:
        """Next row as a tuple; an empty tuple past the end."""
        return self._next_row() or ()

    def fetch_hash(self) -> dict[str, Any] | None:
        """Next row as ``{column: value}``, or ``None`` past the end."""
        row = self._next_row()
        return dict(zip(self._columns, row)) if row is not None else None

    def fetch_hash_items(self) -> tuple[tuple[str, Any], ...]:
        """Next row as ordered ``(column, value)`` pairs; empty past the end."""
        row = self._next_row()
        return tuple(zip(self._columns, row)) if row is not None else ()

    def fetchall(self) -> list[list[Any]]:
        """Every remaining row as a list."""
        return list(self)

    def fetchall_hash(self) -> list[dict[str, Any]]:
        """Every remaining row as a column map."""
        return list(self.iter_hash())

    def iter_hash(self) -> Iterator[dict[str, Any]]:
        while (row := self.fetch_hash()) is not None:
            yield row

    def __iter__(self) -> Iterator[list[Any]]:
        while (row := self.fetch()) is not None:
            yield row

    def __repr__(self) -> str:
        return f"StatementHandle({self.spec.accessor}, {self.state.value}, sql={self.sql!r})"


__all__ = [
    "Bind",
    "HandleState",
    "StatementHandle",
    "split_execute_args",
]
