"""Registration records and naming rules."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from dbhandles.errors import ErrorContext, RegistrationError

DEFAULT_OPTIONS: Mapping[str, Any] = MappingProxyType(
    {
        "raise_error": True,
        "auto_commit": False,
        "print_error": False,
    }
)

_WHITESPACE = re.compile(r"\s")


class CachePolicy(str, Enum):
    """Whether a statement goes through the connection's cached-prepare path."""

    CACHED = "cached"
    UNCACHED = "uncached"

    @classmethod
    def coerce(cls, value: CachePolicy | bool | str | None) -> CachePolicy:
        """Accept the policy, a boolean ``cache`` flag or ``None`` (cached)."""
        if isinstance(value, CachePolicy):
            return value
        if value is None or value is True:
            return cls.CACHED
        if value is False:
            return cls.UNCACHED
        return cls(value)


def normalize_name(name: str, kind: str) -> str:
    """Translate whitespace to underscores and check the result is an identifier.

    >>> normalize_name("find user", "sql")
    'find_user'
    """
    normalized = _WHITESPACE.sub("_", name)
    if not normalized.isidentifier():
        raise RegistrationError(
            f"{kind} name {name!r} does not make a valid accessor name",
            context=ErrorContext(kind=kind, name=name),
        )
    return normalized


def merge_options(
    options: Mapping[str, Any] | None,
    defaults: Mapping[str, Any] = DEFAULT_OPTIONS,
) -> dict[str, Any]:
    """Defaults overlaid with caller options (caller wins per key)."""
    return {**defaults, **(options or {})}


@dataclass(frozen=True)
class ConnectionSpec:
    """
    Connection parameters registered under a name.

    Immutable once registered.  ``password`` is kept out of ``repr()``.
    """

    name: str
    data_source: str
    user: str = ""
    password: str = field(default="", repr=False)
    options: Mapping[str, Any] = field(default_factory=lambda: dict(DEFAULT_OPTIONS))

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    @property
    def accessor(self) -> str:
        return f"db_{self.name}"


@dataclass(frozen=True)
class StatementSpec:
    """SQL template registered under a name, bound to a connection name."""

    name: str
    template: str
    connection_name: str
    cache_policy: CachePolicy = CachePolicy.CACHED

    @property
    def accessor(self) -> str:
        return f"sql_{self.name}"

    @property
    def cached(self) -> bool:
        return self.cache_policy is CachePolicy.CACHED


__all__ = [
    "CachePolicy",
    "ConnectionSpec",
    "DEFAULT_OPTIONS",
    "StatementSpec",
    "merge_options",
    "normalize_name",
]
