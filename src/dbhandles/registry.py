"""
Handle registry -- the explicit home of every connection and statement slot.

A ``HandleRegistry`` bundles one ``ConnectionRegistry`` and one
``StatementRegistry`` that share a ``DriverRegistry`` and a
``HandleSettings``.  Application classes reach it through
``DatabaseHandles.__handle_registry__``; by default that is the
module-level ``default_registry``.

Examples:
    >>> from dbhandles import DatabaseHandles, HandleRegistry
    >>> class Music(DatabaseHandles, registry=HandleRegistry()):
    ...     pass
    >>> Music.set_db("main", "dbi:SQLite:", "", "")
    >>> Music.db_names()
    ['main']

Tags:
    registry, lifecycle, test-isolation, dbhandles

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dbhandles.connections import ConnectionRegistry
from dbhandles.drivers.registry import DriverRegistry
from dbhandles.settings import HandleSettings
from dbhandles.statements import StatementRegistry


class HandleRegistry:
    """Connections plus statements for any number of class hierarchies."""

    def __init__(
        self,
        settings: HandleSettings | None = None,
        drivers: DriverRegistry | None = None,
    ):
        self.settings = settings or HandleSettings()
        self.drivers = drivers or DriverRegistry()
        self.connections = ConnectionRegistry(self.drivers, self.settings)
        self.statements = StatementRegistry(self.connections, self.settings)

    def clear(self, owner: type) -> None:
        """Forget every cached connection and statement handle visible from ``owner``."""
        self.statements.clear(owner)
        self.connections.clear(owner)

    def __repr__(self) -> str:
        return f"HandleRegistry(drivers={self.drivers.list_drivers()})"


default_registry = HandleRegistry()


__all__ = [
    "HandleRegistry",
    "default_registry",
]
