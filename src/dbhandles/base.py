"""
DatabaseHandles -- the class-level registration and accessor surface.

Mix ``DatabaseHandles`` into an application class, register connections
and statements once at class-setup time, and read them from any instance
of the class or its subclasses::

    class Music(DatabaseHandles):
        pass

    Music.set_db("main", "dbi:SQLite:dbname=music.db", "", "")
    Music.set_sql("by_artist", "SELECT year, title FROM cd WHERE artist = ?", "main")

    music = Music()
    sth = music.sql_by_artist()        # same as Music.sql("by_artist")
    sth.execute("Low")
    for year, title in sth:
        ...

Manifesto:
    Accessors are not generated.  ``db_<name>`` and ``sql_<name>`` are
    served by one ``__getattr__`` that resolves the name against the
    instance's runtime class, so a subclass's shadowing registration wins
    for the subclass while the base keeps its own.

Guardrails:
    ❌ DON'T: Register handles per instance or inside request handlers
    ✅ DO: Register at import time, right after the class statement

    ❌ DON'T: Name a handle after an existing method (``db_names``)
    ✅ DO: Pick a name whose accessor is free; registration refuses clashes

Tags:
    mixin, accessor, registration, inheritance, dbhandles

Doc-Types:
    - API Reference
    - Usage Guide
"""

from __future__ import annotations

import functools
import warnings
from collections.abc import Mapping
from typing import Any, ClassVar

from dbhandles.connections import owner_name
from dbhandles.errors import ErrorContext, HandleWarning, RegistrationError
from dbhandles.handle import StatementHandle
from dbhandles.logging import get_logger
from dbhandles.protocols import DriverConnection
from dbhandles.registry import HandleRegistry, default_registry
from dbhandles.types import CachePolicy, ConnectionSpec, StatementSpec, normalize_name

logger = get_logger(__name__)


class DatabaseHandles:
    """
    Mixin giving a class hierarchy named, lazily opened database handles.

    Pass ``registry=`` in the class statement to give a hierarchy its own
    ``HandleRegistry`` (tests do this for isolation); subclasses inherit it.
    """

    __handle_registry__: ClassVar[HandleRegistry] = default_registry

    def __init_subclass__(cls, registry: HandleRegistry | None = None, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        if registry is not None:
            cls.__handle_registry__ = registry

    # ── Registration ─────────────────────────────────────────────

    @classmethod
    def set_db(
        cls,
        name: str,
        data_source: str,
        user: str = "",
        password: str = "",
        options: Mapping[str, Any] | None = None,
        *,
        override: bool = False,
    ) -> ConnectionSpec:
        """Register a connection; it is opened on first access."""
        cls._check_accessor("db", name)
        return cls.__handle_registry__.connections.register(
            cls, name, data_source, user, password, options, override=override
        )

    @classmethod
    def set_sql(
        cls,
        name: str,
        statement: str,
        db_name: str,
        cache: CachePolicy | bool = True,
        *,
        override: bool = False,
    ) -> StatementSpec:
        """Register a statement on connection ``db_name``; it is prepared on first access."""
        cls._check_accessor("sql", name)
        return cls.__handle_registry__.statements.register(
            cls, name, statement, db_name, cache, override=override
        )

    @classmethod
    def _check_accessor(cls, kind: str, name: str) -> None:
        accessor = f"{kind}_{normalize_name(name, kind)}"
        if any(accessor in vars(klass) for klass in cls.__mro__):
            raise RegistrationError(
                f"{accessor} would hide an existing attribute of {owner_name(cls)}",
                context=ErrorContext(owner=owner_name(cls), kind=kind, name=name),
            )

    # ── Introspection ────────────────────────────────────────────

    @classmethod
    def db_names(cls) -> list[str]:
        return cls.__handle_registry__.connections.names(cls)

    @classmethod
    def sql_names(cls) -> list[str]:
        return cls.__handle_registry__.statements.names(cls)

    # ── Accessors ────────────────────────────────────────────────

    @classmethod
    def db(cls, name: str) -> DriverConnection:
        """Live connection registered as ``name``."""
        return cls.__handle_registry__.connections.get(cls, normalize_name(name, "db"))

    @classmethod
    def sql(cls, name: str, *args: Any) -> StatementHandle:
        """Statement handle registered as ``name``; ``args`` fill its placeholders."""
        return cls.__handle_registry__.statements.get(cls, normalize_name(name, "sql"), *args)

    @classmethod
    def db_handles(cls, *names: str) -> list[DriverConnection]:
        """Live connections for ``names``, or for every registered name."""
        return cls.__handle_registry__.connections.handles(cls, *names)

    @classmethod
    def commit(cls, *names: str) -> bool:
        return cls.__handle_registry__.connections.commit(cls, *names)

    @classmethod
    def rollback(cls, *names: str) -> bool:
        return cls.__handle_registry__.connections.rollback(cls, *names)

    @classmethod
    def clear_db_cache(cls, *names: str) -> None:
        cls.__handle_registry__.connections.clear(cls, *names)

    @classmethod
    def clear_sql_cache(cls, *names: str) -> None:
        cls.__handle_registry__.statements.clear(cls, *names)

    def db_warn(self, thing: str, doing: str, error: BaseException | str | None = None) -> None:
        """Report a database failure without raising."""
        message = f"Failure while doing '{doing}' with '{thing}'"
        if error is not None:
            message = f"{message}: {error}"
        logger.warning(
            "db_failure",
            owner=owner_name(type(self)),
            thing=thing,
            doing=doing,
            error=str(error) if error is not None else None,
        )
        warnings.warn(message, HandleWarning, stacklevel=2)

    def __getattr__(self, attr: str) -> Any:
        # Only reached when normal lookup fails
        cls = type(self)
        registry = cls.__handle_registry__
        if attr.startswith("db_"):
            name = attr[3:]
            registry.connections.slot(cls, name)
            return functools.partial(cls.db, name)
        if attr.startswith("sql_"):
            name = attr[4:]
            registry.statements.slot(cls, name)
            return functools.partial(cls.sql, name)
        raise AttributeError(f"{cls.__qualname__!r} object has no attribute {attr!r}")


__all__ = ["DatabaseHandles"]
