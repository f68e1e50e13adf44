"""
Shared pytest fixtures for dbhandles tests.

This module provides:
- A fresh ``HandleRegistry`` per test (no ``.env`` lookup)
- The ``FakeDriver`` from ``tests._support.fakes`` registered as ``dbi:Fake:``
- ``owner``: a ``DatabaseHandles`` class bound to the fresh registry
- ``table_dir``: a directory with known entries for the ExampleP driver

Usage:
    def test_something(owner, fake_driver):
        owner.set_db("main", "dbi:Fake:main")
        ...
"""

from __future__ import annotations

from pathlib import Path

import pytest

from dbhandles import DatabaseHandles, HandleRegistry, HandleSettings
from dbhandles.drivers import DriverRegistry
from tests._support.fakes import FakeDriver


# =============================================================================
# Registry fixtures
# =============================================================================


@pytest.fixture
def settings() -> HandleSettings:
    return HandleSettings(_env_file=None)


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def drivers(fake_driver: FakeDriver) -> DriverRegistry:
    drivers = DriverRegistry()
    drivers.register("fake", fake_driver)
    return drivers


@pytest.fixture
def registry(settings: HandleSettings, drivers: DriverRegistry) -> HandleRegistry:
    """Fresh registry so no test sees another test's registrations."""
    return HandleRegistry(settings=settings, drivers=drivers)


@pytest.fixture
def owner(registry: HandleRegistry) -> type[DatabaseHandles]:
    class Owner(DatabaseHandles, registry=registry):
        pass

    return Owner


# =============================================================================
# Filesystem fixtures
# =============================================================================


@pytest.fixture
def table_dir(tmp_path: Path) -> Path:
    """Directory with three files of known sizes (a "table" for ExampleP)."""
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "b.txt").write_text("bb")
    (tmp_path / "c.txt").write_text("ccc")
    return tmp_path
