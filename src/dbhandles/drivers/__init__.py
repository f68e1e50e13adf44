"""Drivers -- the black-box database layer under the handle caches.

Each driver is **import-guarded**: an optional library is only required at
``connect()`` time, never at registration time.

Architecture::

    BaseDriver (base.py)           Abstract driver + liveness probe
        |-- ExampleDriver          directories as tables (dbi:ExampleP:)
        |-- DbapiDriver            any PEP 249 module (dbi:SQLite:)
        |-- SqlAlchemyDriver       any SQLAlchemy URL (dbi:SQLAlchemy:)

    DriverRegistry (registry.py)   driver name -> driver instance

Modules
-------
base            Abstract driver, connection and statement bases
example         Filesystem example driver
dbapi           DB-API 2.0 bridge + sqlite3 driver
sqla            SQLAlchemy bridge (requires the sqlalchemy extra)
registry        DriverRegistry + parse_data_source()
"""

from .base import BaseConnection, BaseDriver, BaseStatement, ListCursor
from .dbapi import DbapiConnection, DbapiDriver, sqlite_driver
from .example import ExampleDriver
from .registry import DriverRegistry, parse_data_source
from .sqla import SqlAlchemyDriver

__all__ = [
    # Base classes
    "BaseConnection",
    "BaseDriver",
    "BaseStatement",
    "ListCursor",
    # Implementations
    "DbapiConnection",
    "DbapiDriver",
    "ExampleDriver",
    "SqlAlchemyDriver",
    "sqlite_driver",
    # Registry
    "DriverRegistry",
    "parse_data_source",
]
