"""Driver registry and data source parsing.

Manifesto:
    Application classes name a data source string, never a driver class.
    The registry maps the driver part of ``dbi:<Driver>:<target>`` to a
    driver instance, so swapping SQLite for PostgreSQL is a string change.

Features:
    - ``DriverRegistry`` with pre-registered defaults
    - ``register()`` for custom / third-party drivers
    - ``parse_data_source()``: ``"dbi:SQLite:dbname=x.db"`` → ``("SQLite", "dbname=x.db")``

Tags:
    dbhandles, driver, registry, factory

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dbhandles.errors import DatabaseConnectionError, ErrorContext
from dbhandles.protocols import Driver

from .dbapi import sqlite_driver
from .example import ExampleDriver
from .sqla import SqlAlchemyDriver


def parse_data_source(data_source: str) -> tuple[str, str]:
    """Split ``dbi:<Driver>:<target>`` into ``(driver, target)``.

    The ``dbi:`` prefix is optional (``"SQLite:x.db"`` works too).

    Raises:
        DatabaseConnectionError: when no driver name can be found
    """
    parts = data_source.split(":", 2)
    if parts[0].lower() == "dbi":
        parts = parts[1:] + [""] if len(parts) == 2 else parts[1:]
    else:
        parts = data_source.split(":", 1)
    if len(parts) < 2 or not parts[0].strip():
        raise DatabaseConnectionError(
            f"Cannot find a driver name in data source {data_source!r} "
            "(expected 'dbi:<Driver>:<target>')",
            context=ErrorContext(data_source=data_source),
        )
    return parts[0].strip(), parts[1]


class DriverRegistry:
    """
    Registry of drivers by case-insensitive name.

    Pre-registered drivers:
    - ``ExampleP`` / ``example``: :class:`ExampleDriver`
    - ``SQLite``: DB-API bridge over ``sqlite3``
    - ``SQLAlchemy``: :class:`SqlAlchemyDriver` (needs the extra at connect time)
    """

    def __init__(self, *, defaults: bool = True):
        self._drivers: dict[str, Driver] = {}
        if defaults:
            self._register_defaults()

    def _register_defaults(self) -> None:
        example = ExampleDriver()
        self._drivers["examplep"] = example
        self._drivers["example"] = example  # Alias
        self._drivers["sqlite"] = sqlite_driver()
        self._drivers["sqlalchemy"] = SqlAlchemyDriver()

    def register(self, name: str, driver: Driver) -> None:
        """Register (or replace) a driver."""
        self._drivers[name.lower()] = driver

    def get(self, name: str) -> Driver:
        try:
            return self._drivers[name.lower()]
        except KeyError:
            raise DatabaseConnectionError(f"Unknown database driver: {name}") from None

    def resolve(self, data_source: str) -> tuple[Driver, str]:
        """Driver and target for a full data source string."""
        name, target = parse_data_source(data_source)
        try:
            return self.get(name), target
        except DatabaseConnectionError as e:
            raise e.with_context(data_source=data_source)

    def list_drivers(self) -> list[str]:
        """List registered driver names."""
        return sorted(self._drivers.keys())


__all__ = [
    "DriverRegistry",
    "parse_data_source",
]
