"""
Statement registry -- named SQL templates, prepared lazily on their connection.

A statement is registered with a template and the *name* of a connection.
The name is resolved against the calling class every time the statement
is requested, so a subclass that shadows the connection gets the statement
prepared on its own connection.

Manifesto:
    - **Prepared once:** without format arguments a cached statement is
      prepared through the connection's cached-prepare table and the handle
      is reused until something invalidates it
    - **Never handed out mid-result:** a cached handle that still has
      pending rows is finished, evicted and replaced, with one warning
    - **Dynamic SQL is transient:** format arguments always produce a fresh,
      uncached handle

Architecture:
    ::

        get(Owner, "by_id", *args)
            │
            ├── ConnectionRegistry.get(Owner, spec.connection_name)   (may reconnect)
            │
            ├── args or UNCACHED ──▶ render ──▶ connection.prepare()        ──▶ transient handle
            │
            └── CACHED, no args ──▶ slot.handles[connection slot]
                                       ├── same live connection, idle   ──▶ reuse
                                       ├── ACTIVE, any connection       ──▶ warn, finish, evict, re-prepare
                                       └── missing / other connection   ──▶ connection.prepare_cached()

Rendering:
    Templates use ``%``-style positional placeholders and are always
    rendered with ``template % tuple(args)``, so ``%%`` is a literal percent
    sign.  Too many or too few arguments is a ``UsageError``; a malformed
    placeholder is a ``PrepareError``.

Tags:
    statement, registry, prepare, cache, stale-handle, dbhandles

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import threading
import warnings
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from dbhandles.connections import ConnectionRegistry, ConnectionSlot, owner_name
from dbhandles.errors import (
    DuplicateNameError,
    ErrorContext,
    HandleError,
    PrepareError,
    StaleHandleWarning,
    UnknownConnectionError,
    UnknownNameError,
    UsageError,
)
from dbhandles.handle import StatementHandle
from dbhandles.logging import get_logger, log_context
from dbhandles.protocols import DriverConnection
from dbhandles.settings import HandleSettings
from dbhandles.types import CachePolicy, StatementSpec, normalize_name

logger = get_logger(__name__)


def render_sql(template: str, args: Sequence[Any] = ()) -> str:
    """Fill ``%``-placeholders in ``template`` with ``args``.

    >>> render_sql("select %s from ?", ["mode,name"])
    'select mode,name from ?'
    >>> render_sql("select '100%%' as pct")
    "select '100%' as pct"
    """
    try:
        return template % tuple(args)
    except TypeError as e:
        raise UsageError(
            f"cannot fill {template!r} with {len(args)} format argument(s): {e}",
            context=ErrorContext(sql=template),
        ) from e
    except (ValueError, KeyError) as e:
        raise PrepareError(
            f"malformed placeholder in {template!r}: {e}",
            context=ErrorContext(sql=template),
            cause=e,
        ) from e


@dataclass(eq=False)
class StatementSlot:
    """Cache slot for one registered statement.

    Cached handles are kept per connection slot, so a base class and a
    subclass that shadows the connection each keep their own handle.
    """

    owner: type
    spec: StatementSpec
    handles: dict[ConnectionSlot, StatementHandle] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class StatementRegistry:
    """Named statements for class hierarchies, resolved by MRO like connections."""

    def __init__(self, connections: ConnectionRegistry, settings: HandleSettings | None = None):
        self.connections = connections
        self.settings = settings or connections.settings
        self._slots: dict[type, dict[str, StatementSlot]] = {}
        connections.on_clear(self.release)

    # ── Registration ─────────────────────────────────────────────

    def register(
        self,
        owner: type,
        name: str,
        template: str,
        connection_name: str,
        cache_policy: CachePolicy | bool | str | None = CachePolicy.CACHED,
        *,
        override: bool = False,
    ) -> StatementSpec:
        """Register ``template`` under ``name`` on connection ``connection_name``.

        Raises:
            UnknownConnectionError: ``connection_name`` is not visible from ``owner``
            DuplicateNameError: ``name`` is already declared on ``owner``, or
                inherited and ``override`` is not set
        """
        name = normalize_name(name, "sql")
        connection_name = normalize_name(connection_name, "db")
        if self.connections.find(owner, connection_name) is None:
            raise UnknownConnectionError(connection_name, owner=owner_name(owner), statement=name)

        if name in self._slots.get(owner, {}):
            raise DuplicateNameError("sql", name, owner=owner_name(owner))
        inherited = self.find(owner, name)
        if inherited is not None and not override:
            raise DuplicateNameError(
                "sql",
                name,
                owner=owner_name(owner),
                message=(
                    f"sql_{name} is inherited from {owner_name(inherited.owner)}; "
                    "pass override=True to shadow it"
                ),
            )

        spec = StatementSpec(
            name=name,
            template=template,
            connection_name=connection_name,
            cache_policy=CachePolicy.coerce(cache_policy),
        )
        self._slots.setdefault(owner, {})[name] = StatementSlot(owner=owner, spec=spec)
        logger.debug(
            "statement_registered",
            owner=owner_name(owner),
            name=name,
            connection=connection_name,
            cache_policy=spec.cache_policy.value,
        )
        return spec

    # ── Lookup ───────────────────────────────────────────────────

    def find(self, owner: type, name: str) -> StatementSlot | None:
        for klass in owner.__mro__:
            slot = self._slots.get(klass, {}).get(name)
            if slot is not None:
                return slot
        return None

    def slot(self, owner: type, name: str) -> StatementSlot:
        name = normalize_name(name, "sql")
        slot = self.find(owner, name)
        if slot is None:
            raise UnknownNameError("sql", name, owner=owner_name(owner))
        return slot

    def names(self, owner: type) -> list[str]:
        """Registered names visible from ``owner``: base classes first, insertion order."""
        seen: dict[str, None] = {}
        for klass in reversed(owner.__mro__):
            for name in self._slots.get(klass, {}):
                seen.setdefault(name, None)
        return list(seen)

    # ── Access ───────────────────────────────────────────────────

    def get(self, owner: type, name: str, *args: Any) -> StatementHandle:
        """Handle for statement ``name``, prepared on its connection.

        Raises:
            UnknownNameError: nothing named ``name`` is visible from ``owner``
            DatabaseConnectionError: the connection could not be opened
            UsageError: ``args`` do not match the template's placeholders
            PrepareError: the driver rejected the SQL
        """
        slot = self.slot(owner, name)
        spec = slot.spec
        connection_slot = self.connections.slot(owner, spec.connection_name)
        connection = self.connections.get(owner, spec.connection_name)

        if args or not spec.cached:
            sql = self._render(slot, owner, args)
            return self._prepare(slot, owner, connection, connection_slot, sql, cached=False)

        with slot.lock:
            handle = slot.handles.get(connection_slot)
            if handle is not None:
                if handle.active:
                    self._retire_active(slot, owner, handle)
                elif handle.connection is connection:
                    return handle
            sql = self._render(slot, owner, ())
            handle = self._prepare(slot, owner, connection, connection_slot, sql, cached=True)
            slot.handles[connection_slot] = handle
            return handle

    def clear(self, owner: type, *names: str) -> None:
        """Forget cached handles so the next access prepares again."""
        for name in self._select(owner, names):
            slot = self.slot(owner, name)
            with slot.lock:
                for handle in slot.handles.values():
                    handle.finish()
                    handle.clear_cache()
                slot.handles.clear()
            logger.debug("statement_cleared", owner=owner_name(slot.owner), name=name)

    def release(self, connection_slot: ConnectionSlot) -> None:
        """Finish and forget every cached handle prepared on ``connection_slot``."""
        for slots in self._slots.values():
            for slot in slots.values():
                with slot.lock:
                    handle = slot.handles.pop(connection_slot, None)
                    if handle is None:
                        continue
                    was_active = handle.active
                    handle.finish()
                    handle.clear_cache()
                logger.debug(
                    "statement_released",
                    owner=owner_name(slot.owner),
                    name=slot.spec.name,
                    connection=connection_slot.spec.name,
                    was_active=was_active,
                )

    # ── Internals ────────────────────────────────────────────────

    def _select(self, owner: type, names: Iterable[str]) -> list[str]:
        names = [normalize_name(name, "sql") for name in names]
        return names or self.names(owner)

    def _render(self, slot: StatementSlot, owner: type, args: Sequence[Any]) -> str:
        try:
            return render_sql(slot.spec.template, args)
        except HandleError as e:
            raise e.with_context(owner=owner_name(owner), kind="sql", name=slot.spec.name)

    def _prepare(
        self,
        slot: StatementSlot,
        owner: type,
        connection: DriverConnection,
        connection_slot: ConnectionSlot,
        sql: str,
        *,
        cached: bool,
    ) -> StatementHandle:
        spec = slot.spec
        context = {"owner": owner_name(owner), "kind": "sql", "name": spec.name, "sql": sql}
        try:
            with log_context(owner=context["owner"], kind="sql", name=spec.name):
                statement = connection.prepare_cached(sql) if cached else connection.prepare(sql)
        except HandleError as e:
            raise e.with_context(**context)
        except Exception as e:
            raise PrepareError(
                f"Failed to prepare sql_{spec.name}: {e}",
                cause=e,
            ).with_context(**context) from e

        logger.debug(
            "statement_prepared",
            owner=context["owner"],
            name=spec.name,
            connection=spec.connection_name,
            cached=cached,
            sql=sql,
        )
        return StatementHandle(
            statement,
            spec,
            options=connection_slot.spec.options,
            owner=context["owner"],
        )

    def _retire_active(self, slot: StatementSlot, owner: type, handle: StatementHandle) -> None:
        logger.warning(
            "statement_still_active",
            owner=owner_name(owner),
            name=slot.spec.name,
            sql=handle.sql,
        )
        if self.settings.warn_on_active:
            warnings.warn(
                f"sql_{slot.spec.name} handle is still active; finishing it for you",
                StaleHandleWarning,
                stacklevel=4,
            )
        handle.finish()
        # Evict from the driver table so prepare_cached() hands back a new statement
        handle.clear_cache()


__all__ = [
    "StatementRegistry",
    "StatementSlot",
    "render_sql",
]
