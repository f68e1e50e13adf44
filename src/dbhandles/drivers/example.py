"""Example driver: directories as tables.

A harmless, read-only driver for demos and tests.  Every directory is a
table whose rows are the directory's entries and whose columns are the
entry's ``lstat()`` fields plus its name::

    select mode,size,name from ?      -- directory passed as bind value
    select * from /tmp                -- directory inlined

Data source: ``dbi:ExampleP:`` (anything after the second colon is ignored).
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping, Sequence
from typing import Any

from dbhandles.errors import DatabaseError, ErrorContext, PrepareError

from .base import BaseConnection, BaseDriver, BaseStatement, ListCursor

COLUMNS: tuple[str, ...] = (
    "mode", "ino", "dev", "nlink", "uid", "gid", "rdev",
    "size", "atime", "mtime", "ctime", "blksize", "blocks", "name",
)

_SELECT = re.compile(r"^\s*select\s+(?P<columns>.+?)\s+from\s+(?P<table>\S+)\s*;?\s*$", re.IGNORECASE | re.DOTALL)


def _entry_row(directory: str, name: str, columns: Sequence[str]) -> tuple:
    st = os.lstat(os.path.join(directory, name))
    values = {
        "mode": st.st_mode,
        "ino": st.st_ino,
        "dev": st.st_dev,
        "nlink": st.st_nlink,
        "uid": st.st_uid,
        "gid": st.st_gid,
        "rdev": getattr(st, "st_rdev", 0),
        "size": st.st_size,
        "atime": int(st.st_atime),
        "mtime": int(st.st_mtime),
        "ctime": int(st.st_ctime),
        "blksize": getattr(st, "st_blksize", 0),
        "blocks": getattr(st, "st_blocks", 0),
        "name": name,
    }
    return tuple(values[column] for column in columns)


class ExampleStatement(BaseStatement):
    def __init__(self, connection: ExampleConnection, sql: str, columns: tuple[str, ...], table: str):
        super().__init__(connection, sql)
        self.columns = columns
        self.table = table

    @property
    def param_count(self) -> int:
        return 1 if self.table == "?" else 0

    def execute(self, params: Sequence[Any] = ()) -> ListCursor:
        if not self.connection.active:
            raise DatabaseError("execute on a closed connection", context=ErrorContext(sql=self.sql))
        if len(params) != self.param_count:
            raise DatabaseError(
                f"called with {len(params)} bind variables when {self.param_count} are needed",
                context=ErrorContext(sql=self.sql),
            )
        directory = str(params[0]) if self.param_count else self.table
        try:
            names = sorted(os.listdir(directory))
            rows = [_entry_row(directory, name, self.columns) for name in names]
        except OSError as e:
            raise DatabaseError(
                f"cannot read table {directory!r}: {e.strerror or e}",
                context=ErrorContext(sql=self.sql),
                cause=e,
            ) from e
        return ListCursor(self.columns, rows)


class ExampleConnection(BaseConnection):
    def _prepare(self, sql: str) -> ExampleStatement:
        if not self.active:
            raise PrepareError("prepare on a closed connection", context=ErrorContext(sql=sql))
        match = _SELECT.match(sql)
        if match is None:
            raise PrepareError(f"syntax error in {sql!r}", context=ErrorContext(sql=sql))
        spec = match.group("columns").strip()
        if spec == "*":
            columns = COLUMNS
        else:
            columns = tuple(part.strip().lower() for part in spec.split(","))
        unknown = [column for column in columns if column not in COLUMNS]
        if unknown:
            raise PrepareError(
                f"unknown column(s) {', '.join(unknown)} in {sql!r}",
                context=ErrorContext(sql=sql),
            )
        return ExampleStatement(self, sql, columns, match.group("table"))

    def _close(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass


class ExampleDriver(BaseDriver):
    """Driver behind ``dbi:ExampleP:`` data sources."""

    name = "ExampleP"

    def connect(
        self,
        target: str,
        user: str,
        password: str,
        options: Mapping[str, Any],
    ) -> ExampleConnection:
        return ExampleConnection(target, options)


__all__ = [
    "COLUMNS",
    "ExampleConnection",
    "ExampleDriver",
    "ExampleStatement",
]
