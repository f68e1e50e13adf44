"""
In-memory fake driver for dbhandles tests.

``FakeDriver`` counts connects and can be told to fail the next one;
``FakeConnection.alive`` switches the liveness probe.  Statements are
classified by their first word:

- ``select ...``  returns ``FAKE_ROWS`` under ``FAKE_COLUMNS``
- ``update ...``  returns no rows
- ``fail ...``    raises ``DatabaseError``
- ``explode ...`` raises ``RuntimeError`` (a foreign driver error)
- ``bogus ...``   cannot be prepared

Usage in test code::

    from tests._support.fakes import FakeDriver

    drivers = DriverRegistry()
    drivers.register("fake", FakeDriver())
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from dbhandles.drivers import BaseConnection, BaseDriver, BaseStatement, ListCursor
from dbhandles.errors import DatabaseError, PrepareError

FAKE_COLUMNS = ("id", "label", "score")
FAKE_ROWS = [(1, "alpha", 0.5), (2, "beta", 1.5), (3, "gamma", 2.5)]


# =============================================================================
# Fake driver
# =============================================================================


class FakeStatement(BaseStatement):
    """``select ...`` returns ``FAKE_ROWS``; ``update ...`` returns no rows; ``fail`` raises."""

    def __init__(self, connection: FakeConnection, sql: str):
        super().__init__(connection, sql)
        self.executions: list[tuple] = []

    def execute(self, params: Sequence[Any] = ()) -> ListCursor:
        self.executions.append(tuple(params))
        verb = self.sql.split(None, 1)[0].lower()
        if verb == "fail":
            raise DatabaseError("boom")
        if verb == "explode":
            raise RuntimeError("driver blew up")
        if verb == "update":
            return ListCursor((), [], rowcount=len(params) or 1)
        return ListCursor(FAKE_COLUMNS, FAKE_ROWS)


class FakeConnection(BaseConnection):
    def __init__(self, target: str, options: Mapping[str, Any], serial: int):
        super().__init__(target, options)
        self.serial = serial
        self.alive = True
        self.prepares = 0
        self.commits = 0
        self.rollbacks = 0

    def _prepare(self, sql: str) -> FakeStatement:
        if sql.lower().startswith("bogus"):
            raise PrepareError(f"syntax error in {sql!r}")
        self.prepares += 1
        return FakeStatement(self, sql)

    def ping(self) -> bool:
        return self.alive

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def _close(self) -> None:
        pass


class FakeDriver(BaseDriver):
    name = "Fake"

    def __init__(self):
        self.connects: list[FakeConnection] = []
        self.fail_next = False

    def connect(self, target: str, user: str, password: str, options: Mapping[str, Any]) -> FakeConnection:
        if self.fail_next:
            self.fail_next = False
            raise ConnectionRefusedError("connection refused")
        connection = FakeConnection(target, options, serial=len(self.connects) + 1)
        self.connects.append(connection)
        return connection

