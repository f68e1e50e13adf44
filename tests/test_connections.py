"""Tests for ``dbhandles.connections`` -- lazy connect, liveness, reconnect."""

from __future__ import annotations

import threading

import pytest

from dbhandles import DatabaseHandles, HandleRegistry, HandleSettings
from dbhandles.connections import ConnectionRegistry
from dbhandles.errors import (
    DatabaseConnectionError,
    DuplicateNameError,
    RegistrationError,
    UnknownNameError,
)


class TestRegister:
    def test_register_does_not_connect(self, owner, fake_driver):
        owner.set_db("main", "dbi:Fake:main")
        assert fake_driver.connects == []

    def test_register_returns_spec(self, owner):
        spec = owner.set_db("main", "dbi:Fake:main", "scott", "tiger")
        assert spec.name == "main"
        assert spec.user == "scott"
        assert spec.accessor == "db_main"
        assert "tiger" not in repr(spec)

    def test_default_options_merged(self, owner):
        spec = owner.set_db("main", "dbi:Fake:main")
        assert dict(spec.options) == {"raise_error": True, "auto_commit": False, "print_error": False}

    def test_caller_options_win_per_key(self, owner):
        spec = owner.set_db("main", "dbi:Fake:main", options={"auto_commit": True, "timeout": 3})
        assert spec.options["auto_commit"] is True
        assert spec.options["raise_error"] is True
        assert spec.options["timeout"] == 3

    def test_settings_change_defaults(self, drivers):
        registry = HandleRegistry(settings=HandleSettings(_env_file=None, raise_error=False), drivers=drivers)

        class Owner(DatabaseHandles, registry=registry):
            pass

        spec = Owner.set_db("main", "dbi:Fake:main")
        assert spec.options["raise_error"] is False

    def test_options_are_read_only(self, owner):
        spec = owner.set_db("main", "dbi:Fake:main")
        with pytest.raises(TypeError):
            spec.options["raise_error"] = False

    def test_whitespace_becomes_underscore(self, owner):
        owner.set_db("read only", "dbi:Fake:ro")
        assert owner.db_names() == ["read_only"]

    def test_invalid_name_rejected(self, owner):
        with pytest.raises(RegistrationError):
            owner.set_db("9lives", "dbi:Fake:x")

    def test_duplicate_on_same_class(self, owner):
        owner.set_db("main", "dbi:Fake:main")
        with pytest.raises(DuplicateNameError) as exc_info:
            owner.set_db("main", "dbi:Fake:other")
        assert exc_info.value.name == "main"
        assert exc_info.value.kind == "db"

    def test_duplicate_keeps_first_spec(self, owner, fake_driver):
        owner.set_db("main", "dbi:Fake:first")
        with pytest.raises(DuplicateNameError):
            owner.set_db("main", "dbi:Fake:second")
        assert owner.db("main").target == "first"

    def test_inherited_name_needs_override(self, owner):
        owner.set_db("main", "dbi:Fake:main")

        class Child(owner):
            pass

        with pytest.raises(DuplicateNameError, match="override=True"):
            Child.set_db("main", "dbi:Fake:child")

    def test_accessor_clash_rejected(self, owner):
        with pytest.raises(RegistrationError, match="db_names"):
            owner.set_db("names", "dbi:Fake:x")

    def test_unknown_driver_detected_on_access(self, owner):
        owner.set_db("main", "dbi:Nope:x")
        with pytest.raises(DatabaseConnectionError, match="Unknown database driver"):
            owner.db("main")


class TestGet:
    def test_first_access_connects(self, owner, fake_driver):
        owner.set_db("main", "dbi:Fake:main")
        connection = owner.db("main")
        assert connection is fake_driver.connects[0]
        assert connection.target == "main"

    def test_second_access_is_cached(self, owner, fake_driver):
        owner.set_db("main", "dbi:Fake:main")
        assert owner.db("main") is owner.db("main")
        assert len(fake_driver.connects) == 1

    def test_distinct_names_distinct_handles(self, owner):
        owner.set_db("a", "dbi:Fake:same")
        owner.set_db("b", "dbi:Fake:same")
        assert owner.db("a") is not owner.db("b")

    def test_failed_ping_reconnects(self, owner, fake_driver):
        owner.set_db("main", "dbi:Fake:main")
        first = owner.db("main")
        first.alive = False
        second = owner.db("main")
        assert second is not first
        assert len(fake_driver.connects) == 2
        assert owner.db("main") is second

    def test_closed_connection_reconnects(self, owner):
        owner.set_db("main", "dbi:Fake:main")
        first = owner.db("main")
        first.close()
        assert owner.db("main") is not first

    def test_ping_skipped_when_disabled(self, drivers, fake_driver):
        registry = HandleRegistry(settings=HandleSettings(_env_file=None, ping_on_access=False), drivers=drivers)

        class Owner(DatabaseHandles, registry=registry):
            pass

        Owner.set_db("main", "dbi:Fake:main")
        first = Owner.db("main")
        first.alive = False
        assert Owner.db("main") is first

    def test_connect_failure_not_cached(self, owner, fake_driver):
        owner.set_db("main", "dbi:Fake:main")
        fake_driver.fail_next = True
        with pytest.raises(DatabaseConnectionError) as exc_info:
            owner.db("main")
        assert isinstance(exc_info.value.cause, ConnectionRefusedError)
        assert exc_info.value.context.name == "main"
        assert exc_info.value.context.data_source == "dbi:Fake:main"
        assert owner.db("main") is fake_driver.connects[0]

    def test_unknown_name(self, owner):
        with pytest.raises(UnknownNameError) as exc_info:
            owner.db("missing")
        assert isinstance(exc_info.value, AttributeError)
        assert exc_info.value.kind == "db"

    def test_concurrent_first_access_connects_once(self, owner, fake_driver):
        owner.set_db("main", "dbi:Fake:main")
        barrier = threading.Barrier(8)
        results = []

        def worker():
            barrier.wait()
            results.append(owner.db("main"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(fake_driver.connects) == 1
        assert all(result is results[0] for result in results)


class TestHierarchy:
    def test_subclass_shares_handle(self, owner):
        owner.set_db("main", "dbi:Fake:main")

        class Child(owner):
            pass

        assert Child.db("main") is owner.db("main")
        assert Child().db_main() is owner().db_main()

    def test_override_only_affects_subclass(self, owner):
        owner.set_db("main", "dbi:Fake:base")

        class Child(owner):
            pass

        class GrandChild(Child):
            pass

        Child.set_db("main", "dbi:Fake:child", override=True)
        assert owner.db("main").target == "base"
        assert Child.db("main").target == "child"
        assert GrandChild.db("main") is Child.db("main")

    def test_names_base_first_deduplicated(self, owner):
        owner.set_db("main", "dbi:Fake:main")
        owner.set_db("audit", "dbi:Fake:audit")

        class Child(owner):
            pass

        Child.set_db("cache", "dbi:Fake:cache")
        Child.set_db("main", "dbi:Fake:child", override=True)
        assert Child.db_names() == ["main", "audit", "cache"]
        assert owner.db_names() == ["main", "audit"]

    def test_sibling_hierarchies_isolated(self, registry):
        class A(DatabaseHandles, registry=registry):
            pass

        class B(DatabaseHandles, registry=registry):
            pass

        A.set_db("main", "dbi:Fake:a")
        B.set_db("main", "dbi:Fake:b")
        assert A.db("main").target == "a"
        assert B.db("main").target == "b"


class TestHandlesAndTransactions:
    def test_db_handles_all_in_name_order(self, owner):
        owner.set_db("a", "dbi:Fake:a")
        owner.set_db("b", "dbi:Fake:b")
        assert [c.target for c in owner.db_handles()] == ["a", "b"]

    def test_db_handles_selected(self, owner):
        owner.set_db("a", "dbi:Fake:a")
        owner.set_db("b", "dbi:Fake:b")
        assert [c.target for c in owner.db_handles("b")] == ["b"]

    def test_commit_all(self, owner):
        owner.set_db("a", "dbi:Fake:a")
        owner.set_db("b", "dbi:Fake:b")
        assert owner.commit() is True
        assert [c.commits for c in owner.db_handles()] == [1, 1]

    def test_rollback_selected(self, owner):
        owner.set_db("a", "dbi:Fake:a")
        owner.set_db("b", "dbi:Fake:b")
        assert owner.rollback("a") is True
        assert owner.db("a").rollbacks == 1
        assert owner.db("b").rollbacks == 0


class TestClear:
    def test_clear_forces_reconnect(self, owner, fake_driver):
        owner.set_db("main", "dbi:Fake:main")
        first = owner.db("main")
        owner.clear_db_cache("main")
        assert owner.db("main") is not first
        assert first.active  # forgotten, not closed

    def test_clear_drops_prepared_statements(self, owner):
        owner.set_db("main", "dbi:Fake:main")
        connection = owner.db("main")
        connection.prepare_cached("select 1")
        owner.clear_db_cache()
        assert connection.cached_statements == {}

    def test_cached_does_not_connect(self, registry, owner, fake_driver):
        owner.set_db("main", "dbi:Fake:main")
        assert registry.connections.cached(owner, "main") is None
        assert fake_driver.connects == []


class TestStandalone:
    def test_registry_without_mixin(self, drivers, settings):
        connections = ConnectionRegistry(drivers, settings)

        class Plain:
            pass

        connections.register(Plain, "main", "dbi:Fake:main")
        assert connections.names(Plain) == ["main"]
        assert connections.get(Plain, "main") is connections.get(Plain, "main")


class TestRegistryNames:
    def test_get_normalizes_whitespace(self, registry, owner):
        owner.set_db("read only", "dbi:Fake:ro")
        connection = registry.connections.get(owner, "read only")
        assert connection is registry.connections.get(owner, "read_only")
        assert registry.connections.cached(owner, "read only") is connection
