"""
Structured error types for dbhandles.

Every failure raised by the registries, the handle accessors and the
bundled drivers is a ``HandleError`` subclass.  Each error carries a
category, a structured context (owner class, handle name, data source,
SQL text) and the chained driver exception, so callers can log or route
it without parsing messages.

Manifesto:
    - **Typed hierarchy:** Registration, connection, prepare, execution and
      usage failures are distinct types, never a generic fault
    - **Nothing cached on failure:** A failed connect or prepare leaves the
      slot empty, so the next access retries
    - **Programmer errors are loud:** ``UsageError`` is raised synchronously
      at the call site and never retried
    - **Error chaining:** Driver exceptions are preserved as ``cause``

Architecture:
    ::

        HandleError (category, context, cause)
        ├── RegistrationError          (CONFIG)
        │   ├── DuplicateNameError
        │   └── UnknownConnectionError
        ├── DatabaseConnectionError    (DATABASE)
        ├── PrepareError               (DATABASE)
        ├── DatabaseError              (DATABASE)
        └── UsageError                 (USAGE)
            └── UnknownNameError       (also AttributeError)

        HandleWarning (UserWarning)
        └── StaleHandleWarning

Examples:
    >>> error = DuplicateNameError("db", "main", owner="Music")
    >>> error.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> error.to_dict()["context"]["name"]
    'main'

Tags:
    error-handling, exception-hierarchy, error-context, dbhandles

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"             # Bad registration, unknown references
    DATABASE = "DATABASE"         # Connect, prepare, execute failures
    USAGE = "USAGE"               # Malformed calls, unregistered names
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields that are set end up in ``to_dict()``, which keeps log
    lines short.  Passwords are never stored here.

    Attributes:
        owner: Name of the class the handle was resolved against
        kind: ``"db"`` or ``"sql"``
        name: Registered handle name
        data_source: Data source string of the connection
        sql: Rendered SQL text
        metadata: Additional key-value pairs
    """

    owner: str | None = None
    kind: str | None = None
    name: str | None = None
    data_source: str | None = None
    sql: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["owner", "kind", "name", "data_source", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class HandleError(Exception):
    """
    Base exception for all dbhandles errors.

    Subclasses set ``default_category``; callers may still pass an explicit
    ``category``.  The ``cause`` is chained as ``__cause__`` so tracebacks
    show the underlying driver exception.

    Examples:
        >>> try:
        ...     raise OSError("socket closed")
        ... except OSError as e:
        ...     error = DatabaseConnectionError("connect failed", cause=e)
        >>> error.cause
        OSError('socket closed')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> HandleError:
        """
        Add context to this error (fluent API).

        Usage:
            raise PrepareError("bad SQL").with_context(name="by_id", sql=sql)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# REGISTRATION ERRORS
# =============================================================================


class RegistrationError(HandleError):
    """
    A ``set_db``/``set_sql`` call was rejected.

    Fatal to that registration call, never to the process.  Nothing is
    registered when this is raised.
    """

    default_category = ErrorCategory.CONFIG


class DuplicateNameError(RegistrationError):
    """The name is already registered for this class (or inherited without ``override``)."""

    def __init__(self, kind: str, name: str, *, owner: str | None = None, message: str | None = None):
        self.kind = kind
        self.name = name
        super().__init__(
            message or f"{kind}_{name} is already registered for {owner}",
            context=ErrorContext(owner=owner, kind=kind, name=name),
        )


class UnknownConnectionError(RegistrationError):
    """A statement was registered against a connection name that does not resolve."""

    def __init__(self, connection_name: str, *, owner: str | None = None, statement: str | None = None):
        self.connection_name = connection_name
        super().__init__(
            f"Cannot register statement {statement!r}: no connection named "
            f"{connection_name!r} is visible from {owner}",
            context=ErrorContext(owner=owner, kind="sql", name=statement),
        )


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseConnectionError(HandleError):
    """The driver failed to connect.  The failed attempt is not cached."""

    default_category = ErrorCategory.DATABASE


class PrepareError(HandleError):
    """The SQL could not be prepared.  The failed handle is not cached."""

    default_category = ErrorCategory.DATABASE


class DatabaseError(HandleError):
    """Execute, fetch, commit or rollback failed inside the driver."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# USAGE ERRORS
# =============================================================================


class UsageError(HandleError):
    """
    Malformed call from application code.

    Raised before anything reaches the driver: mismatched bind values and
    bind targets, wrong number of format arguments, bad bind cells.
    """

    default_category = ErrorCategory.USAGE


class UnknownNameError(UsageError, AttributeError):
    """No connection or statement with this name is visible from the class."""

    def __init__(self, kind: str, name: str, *, owner: str | None = None):
        super().__init__(
            f"{owner} has no {kind}_{name}",
            context=ErrorContext(owner=owner, kind=kind, name=name),
        )
        # AttributeError.__init__ resets ``name``
        self.kind = kind
        self.name = name


# =============================================================================
# WARNINGS
# =============================================================================


class HandleWarning(UserWarning):
    """Non-fatal diagnostic emitted by dbhandles."""


class StaleHandleWarning(HandleWarning):
    """A cached statement handle was re-requested while it still had pending rows."""


__all__ = [
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
