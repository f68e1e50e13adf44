"""Tests for ``dbhandles.drivers.example`` -- directories as tables."""

from __future__ import annotations

import pytest

from dbhandles.drivers.example import COLUMNS, ExampleDriver
from dbhandles.errors import DatabaseError, PrepareError


@pytest.fixture
def connection():
    return ExampleDriver().connect("", "", "", {})


class TestPrepare:
    def test_named_columns(self, connection):
        statement = connection.prepare("select mode, size, name from ?")
        assert statement.columns == ("mode", "size", "name")
        assert statement.param_count == 1

    def test_star(self, connection):
        statement = connection.prepare("SELECT * FROM /tmp")
        assert statement.columns == COLUMNS
        assert statement.param_count == 0

    def test_unknown_column(self, connection):
        with pytest.raises(PrepareError, match="colour"):
            connection.prepare("select colour from ?")

    def test_syntax_error(self, connection):
        with pytest.raises(PrepareError):
            connection.prepare("delete from ?")

    def test_prepare_cached_reuses(self, connection):
        first = connection.prepare_cached("select name from ?")
        assert connection.prepare_cached("select name from ?") is first
        assert connection.prepare("select name from ?") is not first

    def test_statement_clear_cache(self, connection):
        first = connection.prepare_cached("select name from ?")
        first.clear_cache()
        assert connection.prepare_cached("select name from ?") is not first

    def test_prepare_after_close(self, connection):
        connection.close()
        with pytest.raises(PrepareError):
            connection.prepare("select name from ?")


class TestExecute:
    def test_rows_sorted_by_name(self, connection, table_dir):
        cursor = connection.prepare("select name, size from ?").execute([str(table_dir)])
        rows = []
        while (row := cursor.fetchone()) is not None:
            rows.append(row)
        assert rows == [("a.txt", 1), ("b.txt", 2), ("c.txt", 3)]
        assert cursor.rowcount == 3

    def test_inline_table(self, connection, table_dir):
        cursor = connection.prepare(f"select name from {table_dir}").execute()
        assert cursor.fetchone() == ("a.txt",)

    def test_wrong_bind_count(self, connection):
        statement = connection.prepare("select name from ?")
        with pytest.raises(DatabaseError, match="1 are needed"):
            statement.execute()

    def test_missing_directory(self, connection, tmp_path):
        statement = connection.prepare("select name from ?")
        with pytest.raises(DatabaseError) as exc_info:
            statement.execute([str(tmp_path / "nope")])
        assert isinstance(exc_info.value.cause, OSError)

    def test_execute_after_close(self, connection, table_dir):
        statement = connection.prepare("select name from ?")
        connection.close()
        with pytest.raises(DatabaseError):
            statement.execute([str(table_dir)])


class TestLiveness:
    def test_alive(self, connection):
        assert ExampleDriver().is_alive(connection)

    def test_closed_is_dead(self, connection):
        connection.close()
        assert not ExampleDriver().is_alive(connection)

    def test_close_idempotent(self, connection):
        connection.close()
        connection.close()
        assert not connection.active
