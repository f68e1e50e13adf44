"""
Connection registry -- named connections, lazily opened, cached per hierarchy.

A class registers a connection by name; nothing touches the database
until the first access.  The first access opens the connection through
the driver and caches it in the slot that belongs to the declaring class,
so every subclass and every instance shares the same live connection.
Every later access re-validates the cached connection and transparently
reconnects when the liveness probe fails.

Manifesto:
    One program, one connection per logical database.  Persistent
    processes (servers, daemons, workers) leak connections when every
    module opens its own; lazily shared, self-healing handles remove
    that whole class of bug.

    - **Lazy:** registration never connects
    - **Shared:** one slot per (declaring class, name), visible to subclasses
    - **Self-healing:** a dead cached connection is replaced, never returned
    - **Not cached on failure:** a failed connect leaves the slot empty

Architecture:
    ::

        register(Owner, "main", ...)      get(Sub, "main")
                │                                │
                ▼                                ▼
        _slots[Owner]["main"]  ◀── MRO walk: Sub → Owner → object
                │
                ├── spec        ConnectionSpec (immutable)
                ├── connection  DriverConnection | None
                └── lock        one connect per slot, even under races

Guardrails:
    ❌ DON'T: Re-register a name to "update" it -- statements are bound to it
    ✅ DO: Shadow it in a subclass with ``override=True``

    ❌ DON'T: Close a connection obtained from ``get()``
    ✅ DO: Let the registry own it; ``clear()`` forgets it

Tags:
    connection, registry, cache, lazy, liveness, dbhandles

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from dbhandles.drivers.registry import DriverRegistry
from dbhandles.errors import (
    DatabaseConnectionError,
    DatabaseError,
    DuplicateNameError,
    HandleError,
    UnknownNameError,
)
from dbhandles.logging import get_logger, log_context
from dbhandles.protocols import Driver, DriverConnection
from dbhandles.settings import HandleSettings
from dbhandles.types import ConnectionSpec, merge_options, normalize_name

logger = get_logger(__name__)


def owner_name(owner: type) -> str:
    return f"{owner.__module__}.{owner.__qualname__}"


@dataclass(eq=False)
class ConnectionSlot:
    """Cache slot for one registered connection."""

    owner: type
    spec: ConnectionSpec
    connection: DriverConnection | None = None
    driver: Driver | None = None
    connects: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class ConnectionRegistry:
    """
    Named connections for class hierarchies.

    Resolution walks the runtime class's MRO; the most-derived declaration
    of a name wins.
    """

    def __init__(
        self,
        drivers: DriverRegistry | None = None,
        settings: HandleSettings | None = None,
    ):
        self.drivers = drivers or DriverRegistry()
        self.settings = settings or HandleSettings()
        self._slots: dict[type, dict[str, ConnectionSlot]] = {}
        self._clear_listeners: list[Callable[[ConnectionSlot], None]] = []

    def on_clear(self, listener: Callable[[ConnectionSlot], None]) -> None:
        """Call ``listener(slot)`` before a cached connection is forgotten."""
        self._clear_listeners.append(listener)

    # ── Registration ─────────────────────────────────────────────

    def register(
        self,
        owner: type,
        name: str,
        data_source: str,
        user: str = "",
        password: str = "",
        options: Mapping[str, Any] | None = None,
        *,
        override: bool = False,
    ) -> ConnectionSpec:
        """Register connection parameters under ``name`` for ``owner``.

        ``options`` are merged over the default options; caller keys win.

        Raises:
            DuplicateNameError: ``name`` is already declared on ``owner``, or
                inherited and ``override`` is not set
        """
        name = normalize_name(name, "db")
        own = self._slots.get(owner, {})
        if name in own:
            raise DuplicateNameError("db", name, owner=owner_name(owner))
        inherited = self.find(owner, name)
        if inherited is not None and not override:
            raise DuplicateNameError(
                "db",
                name,
                owner=owner_name(owner),
                message=(
                    f"db_{name} is inherited from {owner_name(inherited.owner)}; "
                    "pass override=True to shadow it"
                ),
            )

        spec = ConnectionSpec(
            name=name,
            data_source=data_source,
            user=user,
            password=password,
            options=merge_options(options, self.settings.default_options()),
        )
        self._slots.setdefault(owner, {})[name] = ConnectionSlot(owner=owner, spec=spec)
        logger.debug(
            "connection_registered",
            owner=owner_name(owner),
            name=name,
            data_source=data_source,
            shadows=owner_name(inherited.owner) if inherited else None,
        )
        return spec

    # ── Lookup ───────────────────────────────────────────────────

    def find(self, owner: type, name: str) -> ConnectionSlot | None:
        """Most-derived slot for ``name`` visible from ``owner``, or ``None``."""
        for klass in owner.__mro__:
            slot = self._slots.get(klass, {}).get(name)
            if slot is not None:
                return slot
        return None

    def slot(self, owner: type, name: str) -> ConnectionSlot:
        name = normalize_name(name, "db")
        slot = self.find(owner, name)
        if slot is None:
            raise UnknownNameError("db", name, owner=owner_name(owner))
        return slot

    def names(self, owner: type) -> list[str]:
        """Registered names visible from ``owner``: base classes first, insertion order."""
        seen: dict[str, None] = {}
        for klass in reversed(owner.__mro__):
            for name in self._slots.get(klass, {}):
                seen.setdefault(name, None)
        return list(seen)

    # ── Access ───────────────────────────────────────────────────

    def get(self, owner: type, name: str) -> DriverConnection:
        """Live connection for ``name``, connecting or reconnecting as needed.

        Raises:
            UnknownNameError: nothing named ``name`` is visible from ``owner``
            DatabaseConnectionError: the driver failed to connect
        """
        slot = self.slot(owner, name)
        with slot.lock, log_context(owner=owner_name(slot.owner), kind="db", name=slot.spec.name):
            connection = slot.connection
            if connection is not None:
                if self._is_alive(slot, connection):
                    return connection
                logger.warning(
                    "connection_stale",
                    owner=owner_name(slot.owner),
                    name=slot.spec.name,
                    data_source=slot.spec.data_source,
                )
                slot.connection = None
            slot.connection = self._connect(slot)
            return slot.connection

    def cached(self, owner: type, name: str) -> DriverConnection | None:
        """The cached connection without connecting or probing it."""
        return self.slot(owner, name).connection

    def handles(self, owner: type, *names: str) -> list[DriverConnection]:
        """Live connections for ``names`` (every visible name when empty)."""
        return [self.get(owner, name) for name in self._select(owner, names)]

    def commit(self, owner: type, *names: str) -> bool:
        """Commit every named (or every visible) connection."""
        for connection in self.handles(owner, *names):
            self._transaction(connection, "commit")
        return True

    def rollback(self, owner: type, *names: str) -> bool:
        """Roll back every named (or every visible) connection."""
        for connection in self.handles(owner, *names):
            self._transaction(connection, "rollback")
        return True

    def clear(self, owner: type, *names: str) -> None:
        """Forget cached connections so the next access reconnects.

        The forgotten connections are not closed; something else may still
        hold them.  Statement handles prepared on them are finished first.
        """
        for name in self._select(owner, names):
            slot = self.slot(owner, name)
            with slot.lock:
                if slot.connection is not None:
                    for listener in self._clear_listeners:
                        listener(slot)
                    slot.connection.clear_cache()
                    slot.connection = None
                    logger.debug("connection_cleared", owner=owner_name(slot.owner), name=name)

    # ── Internals ────────────────────────────────────────────────

    def _select(self, owner: type, names: Iterable[str]) -> list[str]:
        names = [normalize_name(name, "db") for name in names]
        return names or self.names(owner)

    def _is_alive(self, slot: ConnectionSlot, connection: DriverConnection) -> bool:
        if not connection.active:
            return False
        if not self.settings.ping_on_access or slot.driver is None:
            return True
        return slot.driver.is_alive(connection)

    def _connect(self, slot: ConnectionSlot) -> DriverConnection:
        spec = slot.spec
        context = {"owner": owner_name(slot.owner), "kind": "db", "name": spec.name, "data_source": spec.data_source}
        try:
            driver, target = self.drivers.resolve(spec.data_source)
            connection = driver.connect(target, spec.user, spec.password, spec.options)
        except HandleError as e:
            raise e.with_context(**context)
        except Exception as e:
            raise DatabaseConnectionError(
                f"Failed to connect db_{spec.name} to {spec.data_source}: {e}",
                cause=e,
            ).with_context(**context) from e

        slot.driver = driver
        slot.connects += 1
        logger.info(
            "connection_opened",
            owner=context["owner"],
            name=spec.name,
            data_source=spec.data_source,
            driver=driver.name,
            connects=slot.connects,
        )
        return connection

    @staticmethod
    def _transaction(connection: DriverConnection, action: str) -> None:
        try:
            getattr(connection, action)()
        except HandleError:
            raise
        except Exception as e:
            raise DatabaseError(f"{action} failed: {e}", cause=e) from e


__all__ = [
    "ConnectionRegistry",
    "ConnectionSlot",
    "owner_name",
]
