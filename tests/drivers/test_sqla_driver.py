"""Tests for ``dbhandles.drivers.sqla`` -- SQLAlchemy bridge (needs the extra)."""

from __future__ import annotations

import pytest

sqlalchemy = pytest.importorskip("sqlalchemy")

from dbhandles import Bind, DatabaseHandles, HandleRegistry, HandleSettings  # noqa: E402
from dbhandles.drivers.sqla import SqlAlchemyDriver  # noqa: E402
from dbhandles.errors import DatabaseConnectionError, DatabaseError  # noqa: E402

pytestmark = pytest.mark.sqlalchemy


@pytest.fixture
def connection(tmp_path):
    conn = SqlAlchemyDriver().connect(f"sqlite:///{tmp_path / 'music.db'}", "", "", {})
    yield conn
    conn.close()


class TestConnect:
    def test_connect(self, connection):
        assert connection.active
        assert SqlAlchemyDriver().is_alive(connection)

    def test_bad_url(self):
        with pytest.raises(DatabaseConnectionError):
            SqlAlchemyDriver().connect("not a url", "", "", {})

    def test_close(self, tmp_path):
        conn = SqlAlchemyDriver().connect("sqlite://", "", "", {})
        conn.close()
        assert not conn.active
        assert not SqlAlchemyDriver().is_alive(conn)

    def test_user_added_to_url(self):
        driver = SqlAlchemyDriver()
        conn = driver.connect("sqlite://", "scott", "tiger", {})
        # SQLite ignores credentials; they must still land on the URL
        assert conn.engine.url.username == "scott"
        conn.close()


class TestStatements:
    def test_roundtrip(self, connection):
        connection.prepare("CREATE TABLE t (x INTEGER, y TEXT)").execute()
        insert = connection.prepare("INSERT INTO t VALUES (?, ?)")
        assert insert.execute([1, "a"]).rowcount == 1
        connection.commit()
        cursor = connection.prepare("SELECT x, y FROM t").execute()
        assert cursor.columns == ("x", "y")
        assert cursor.fetchone() == (1, "a")
        assert cursor.fetchone() is None

    def test_execute_error_wrapped(self, connection):
        with pytest.raises(DatabaseError) as exc_info:
            connection.prepare("SELECT * FROM missing").execute()
        assert isinstance(exc_info.value.cause, sqlalchemy.exc.SQLAlchemyError)

    def test_rollback(self, connection):
        connection.prepare("CREATE TABLE t (x INTEGER)").execute()
        connection.commit()
        connection.prepare("INSERT INTO t VALUES (?)").execute([1])
        connection.rollback()
        assert connection.prepare("SELECT count(*) FROM t").execute().fetchone() == (0,)


class TestThroughHandles:
    def test_registered_connection(self, tmp_path):
        class Music(DatabaseHandles, registry=HandleRegistry(settings=HandleSettings(_env_file=None))):
            pass

        Music.set_db("main", f"dbi:SQLAlchemy:sqlite:///{tmp_path / 'music.db'}")
        Music.set_sql("create", "CREATE TABLE cd (title TEXT)", "main")
        Music.set_sql("add", "INSERT INTO cd VALUES (?)", "main")
        Music.set_sql("titles", "SELECT title FROM cd", "main")

        Music.sql("create").execute()
        Music.sql("add").execute("Secret Name")
        Music.commit()

        title = Bind()
        sth = Music().sql_titles()
        sth.execute(None, [title])
        sth.fetch()
        assert title.value == "Secret Name"
