"""Steps for testing the pytest plugin."""

from __future__ import annotations

import shutil
import subprocess
import sys
import tempfile
import textwrap
import typing as t
from pathlib import Path

from behave import given, then, when  # type: ignore[attr-defined]


class BehaveContext(t.Protocol):
    """Behave step context for plugin tests."""

    test_file: Path
    tmpdir: Path
    result: subprocess.CompletedProcess[str]


def _write_test_file(context: BehaveContext, code: str) -> None:
    tmpdir = Path(tempfile.mkdtemp())
    context.tmpdir = tmpdir
    context.test_file = tmpdir / "test_example.py"
    context.test_file.write_text(textwrap.dedent(code))


@given("a temporary test file using the mod_mox fixture")
def step_create_fixture_test_file(context: BehaveContext) -> None:
    """Write a pytest file that exercises the fixture."""
    _write_test_file(
        context,
        """
        from mod_mox import assert_called
        from mod_mox.unittests._units import greeter

        pytest_plugins = ("mod_mox.pytest_plugin",)

        def test_example(mod_mox):
            mod_mox.mock(greeter, {"hello": lambda name: f"Hi, {name}"})
            assert greeter.hello("Ada") == "Hi, Ada"
            assert_called(greeter.hello, "Ada")
        """,
    )


@given("a temporary test file using setup_with_mocks")
def step_create_setup_test_file(context: BehaveContext) -> None:
    """Write a pytest file with a module-level setup fixture."""
    _write_test_file(
        context,
        """
        from mod_mox import setup_with_mocks
        from mod_mox.unittests._units import store

        mocked = setup_with_mocks(
            [(store, ["passthrough"], {"get": lambda key: "<html></html>"})],
            lambda request: {"test": request.node.name},
        )

        def test_fetch(mocked):
            assert mocked == {"test": "test_fetch"}
            assert store.get("http://example.com") == "<html></html>"

        def test_keys_pass_through():
            assert store.keys() == ["greeting", "subject"]
        """,
    )


@when("I run pytest on the file")
def step_run_pytest(context: BehaveContext) -> None:
    """Execute pytest on the generated file."""
    result = subprocess.run(  # noqa: S603
        [sys.executable, "-m", "pytest", str(context.test_file)],
        capture_output=True,
        text=True,
    )
    context.result = result
    shutil.rmtree(context.tmpdir)


@then("the run should pass")
def step_check_pass(context: BehaveContext) -> None:
    """Assert that pytest exited successfully."""
    assert context.result.returncode == 0, context.result.stdout  # noqa: S101


@then("the run should pass with {count:d} tests")
def step_check_pass_count(context: BehaveContext, count: int) -> None:
    """Assert that pytest ran and passed *count* tests."""
    assert context.result.returncode == 0, context.result.stdout  # noqa: S101
    assert f"{count} passed" in context.result.stdout  # noqa: S101
