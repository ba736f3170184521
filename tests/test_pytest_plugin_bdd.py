"""Behavioural test of the mod_mox pytest plug-in, expressed with pytest-bdd."""

from __future__ import annotations

import textwrap
import typing as t
from pathlib import Path

from pytest_bdd import given, parsers, scenario, then, when

if t.TYPE_CHECKING:  # pragma: no cover - used for type checking only
    from _pytest.pytester import Pytester, RunResult

FEATURES_DIR = Path(__file__).resolve().parent.parent / "features"


@scenario(str(FEATURES_DIR / "pytest_plugin.feature"), "mod_mox fixture basic usage")
def test_mod_mox_plugin() -> None:
    """Bind scenario steps for the fixture."""
    pass


@scenario(
    str(FEATURES_DIR / "pytest_plugin.feature"),
    "setup-level doubles apply to every test in a module",
)
def test_setup_with_mocks() -> None:
    """Bind scenario steps for setup-level doubles."""
    pass


FIXTURE_TEST_CODE = textwrap.dedent(
    """
    from mod_mox import assert_called
    from mod_mox.unittests._units import greeter

    pytest_plugins = ("mod_mox.pytest_plugin",)

    def test_example(mod_mox):
        mod_mox.mock(greeter, {"hello": lambda name: f"Hi, {name}"})
        assert greeter.hello("Ada") == "Hi, Ada"
        assert_called(greeter.hello, "Ada")
    """
)

SETUP_TEST_CODE = textwrap.dedent(
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
    """
)


@given("a temporary test file using the mod_mox fixture", target_fixture="test_file")
def create_fixture_test_file(pytester: Pytester) -> Path:
    """Write a test file that uses the fixture."""
    return pytester.makepyfile(FIXTURE_TEST_CODE)


@given("a temporary test file using setup_with_mocks", target_fixture="test_file")
def create_setup_test_file(pytester: Pytester) -> Path:
    """Write a test file with a module-level setup fixture."""
    return pytester.makepyfile(SETUP_TEST_CODE)


@when("I run pytest on the file", target_fixture="result")
def run_pytest(pytester: Pytester, test_file: Path) -> RunResult:
    """Run the inner pytest instance."""
    return pytester.runpytest(str(test_file))


@then("the run should pass")
def assert_success(result: RunResult) -> None:
    """Assert that the test passed."""
    result.assert_outcomes(passed=1)


@then(parsers.cfparse("the run should pass with {count:d} tests"))
def assert_success_count(result: RunResult, count: int) -> None:
    """Assert that every test passed."""
    result.assert_outcomes(passed=count)
