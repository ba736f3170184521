"""Global test configuration and shared fixtures."""

from __future__ import annotations

import typing as t

import pytest

pytest_plugins = ("mod_mox.pytest_plugin", "pytester")


@pytest.fixture(autouse=True)
def reset_engine_state() -> t.Generator[None, None, None]:
    """Ensure no double outlives the test that created it."""
    from mod_mox.engine import get_engine

    engine = get_engine()
    engine.destroy_all()
    yield
    leftovers = engine.doubled_units()
    engine.destroy_all()
    assert not leftovers, f"doubles leaked past teardown: {leftovers!r}"
