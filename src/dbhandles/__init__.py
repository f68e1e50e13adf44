"""dbhandles -- named, lazily opened, self-healing database handles for class hierarchies.

Manifesto:
    Long-running programs should open each logical database once, prepare
    each statement once, and never be handed a dead connection or a
    statement that is still mid-result.  ``dbhandles`` lets a class declare
    its connections and statements by name and takes care of the rest.

    - **Lazy:** registration never touches the database
    - **Shared:** one live handle per name for a whole class hierarchy
    - **Self-healing:** dead connections reconnect, busy statements are replaced
    - **Typed failures:** every error is a ``HandleError`` subclass

Architecture::

    Layer 1 -- Types, errors, ambient stack
        errors.py          HandleError hierarchy + warnings
        types.py           ConnectionSpec, StatementSpec, CachePolicy, naming rules
        logging.py         structlog configuration
        settings.py        HandleSettings (pydantic-settings, DBHANDLES_*)
        protocols.py       Driver / DriverConnection / DriverStatement / RowCursor

    Layer 2 -- Drivers
        drivers/           ExampleP, SQLite (DB-API), SQLAlchemy + DriverRegistry

    Layer 3 -- Caches
        connections.py     ConnectionRegistry (lazy connect, liveness, reconnect)
        statements.py      StatementRegistry (render, prepare, stale-handle recovery)
        handle.py          StatementHandle, Bind, HandleState (result shaping)
        registry.py        HandleRegistry + default_registry

    Layer 4 -- Application surface
        base.py            DatabaseHandles mixin (set_db/set_sql, db_<name>, sql_<name>)

Examples:
    >>> from dbhandles import Bind, DatabaseHandles, HandleRegistry
    >>> class Files(DatabaseHandles, registry=HandleRegistry()):
    ...     pass
    >>> Files.set_db("main", "dbi:ExampleP:", "", "")
    >>> Files.set_sql("by_dir", "select mode,size,name from ?", "main")
    >>> mode, size, name = Bind(), Bind(), Bind()
    >>> sth = Files().sql_by_dir()
    >>> sth.execute(["."], [mode, size, name])

Tags:
    database, connection-cache, prepared-statements, dbhandles

Doc-Types:
    - API Reference
    - Package Overview
"""

__version__ = "0.1.0"

from dbhandles.base import DatabaseHandles
from dbhandles.connections import ConnectionRegistry
from dbhandles.errors import (
    DatabaseConnectionError,
    DatabaseError,
    DuplicateNameError,
    ErrorCategory,
    ErrorContext,
    HandleError,
    HandleWarning,
    PrepareError,
    RegistrationError,
    StaleHandleWarning,
    UnknownConnectionError,
    UnknownNameError,
    UsageError,
)
from dbhandles.handle import Bind, HandleState, StatementHandle
from dbhandles.registry import HandleRegistry, default_registry
from dbhandles.settings import HandleSettings
from dbhandles.statements import StatementRegistry, render_sql
from dbhandles.types import CachePolicy, ConnectionSpec, StatementSpec

__all__ = [
    "__version__",
    # Application surface
    "DatabaseHandles",
    "HandleRegistry",
    "default_registry",
    "HandleSettings",
    # Caches
    "ConnectionRegistry",
    "StatementRegistry",
    "render_sql",
    # Handles
    "Bind",
    "HandleState",
    "StatementHandle",
    # Records
    "CachePolicy",
    "ConnectionSpec",
    "StatementSpec",
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "HandleError",
    "RegistrationError",
    "DuplicateNameError",
    "UnknownConnectionError",
    "DatabaseConnectionError",
    "PrepareError",
    "DatabaseError",
    "UsageError",
    "UnknownNameError",
    "HandleWarning",
    "StaleHandleWarning",
]
