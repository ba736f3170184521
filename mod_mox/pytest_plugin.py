"""Pytest plugin providing the ``mod_mox`` fixture and ``setup_with_mocks``."""

from __future__ import annotations

import inspect
import logging
import typing as t

import pytest

from .controller import MockSession
from .errors import ValidationFailedError
from .registry import MockSpec

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .controller import Descriptor

logger = logging.getLogger(__name__)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line and ini options for the plugin."""
    group = parser.getgroup("mod_mox")
    group.addoption(
        "--mod-mox-verify-on-exit",
        action="store_true",
        dest="mod_mox_verify_on_exit",
        default=None,
        help=(
            "Fail tests whose doubles received calls no replacement could "
            "serve. Overrides the pytest.ini setting."
        ),
    )
    group.addoption(
        "--no-mod-mox-verify-on-exit",
        action="store_false",
        dest="mod_mox_verify_on_exit",
        default=None,
        help="Do not validate doubles when the mod_mox fixture is torn down.",
    )
    parser.addini(
        "mod_mox_verify_on_exit",
        "Validate doubles installed through the mod_mox fixture at teardown.",
        type="bool",
        default=True,
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register plugin-specific markers."""
    config.addinivalue_line(
        "markers",
        (
            "mod_mox(verify_on_exit: bool = True): override double validation "
            "at teardown for a single test."
        ),
    )


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[t.Any]
) -> t.Generator[None, None, None]:
    """Attach each phase's report to the item so teardown can inspect it."""
    del call
    outcome = yield
    rep = outcome.get_result()
    setattr(item, f"rep_{rep.when}", rep)


def _verify_on_exit_enabled(request: pytest.FixtureRequest) -> bool:
    """Return whether the fixture should validate doubles at teardown."""
    # Priority order: marker > fixture param > CLI option > INI setting

    marker = request.node.get_closest_marker("mod_mox")
    if marker is not None and "verify_on_exit" in marker.kwargs:
        return bool(marker.kwargs["verify_on_exit"])

    param = getattr(request, "param", None)
    if param is not None:
        return _param_verify_on_exit(param)

    config = request.config
    cli_value = config.getoption("mod_mox_verify_on_exit")
    if cli_value is not None:
        return bool(cli_value)

    return bool(config.getini("mod_mox_verify_on_exit"))


def _param_verify_on_exit(param: object) -> bool:
    if isinstance(param, bool):
        return param
    if isinstance(param, dict):
        if "verify_on_exit" in param:
            return bool(param["verify_on_exit"])
        msg = (
            "mod_mox fixture param dict must contain 'verify_on_exit' key, "
            f"got keys: {list(param)}"
        )
        raise TypeError(msg)
    msg = (
        "mod_mox fixture param must be a bool or dict with 'verify_on_exit' key, "
        f"got {type(param).__name__}"
    )
    raise TypeError(msg)


def _call_stage_failed(item: pytest.Item) -> bool:
    """Return ``True`` when the test body has already failed."""
    rep_call = getattr(item, "rep_call", None)
    return bool(rep_call and rep_call.failed)


@pytest.fixture
def mod_mox(request: pytest.FixtureRequest) -> t.Generator[MockSession, None, None]:
    """Provide an active :class:`MockSession`; restore its doubles at teardown."""
    session = MockSession(verify_on_exit=_verify_on_exit_enabled(request))
    session.__enter__()
    try:
        yield session
    finally:
        _teardown_session(request.node, session)


def _teardown_session(item: pytest.Item, session: MockSession) -> None:
    """Exit *session*, reporting validation failures as test failures."""
    if _call_stage_failed(item):
        session.verify_on_exit = False
    try:
        session.__exit__(None, None, None)
    except ValidationFailedError as err:
        logger.exception("Error during mod_mox verification")
        pytest.fail(f"{type(err).__name__}: {err}", pytrace=False)
    except Exception:
        logger.exception("Error during mod_mox fixture cleanup")
        pytest.fail("mod_mox fixture cleanup failed")


def _run_setup(
    setup: t.Callable[..., t.Any] | None, request: pytest.FixtureRequest
) -> t.Any:  # noqa: ANN401
    if setup is None:
        return None
    if inspect.signature(setup).parameters:
        return setup(request)
    return setup()


def setup_with_mocks(
    descriptors: t.Iterable[Descriptor],
    setup: t.Callable[..., t.Any] | None = None,
    *,
    name: str = "mocked",
    autouse: bool = True,
    verify_on_exit: bool = False,
) -> t.Any:  # noqa: ANN401
    """Return a fixture that doubles *descriptors* around every test.

    Assign the result to a module or conftest attribute::

        mocked = setup_with_mocks(
            [(store, ["passthrough"], {"get": lambda key: "<html></html>"})],
            lambda request: {"test": request.node.name},
        )

    ``setup`` runs after the doubles are installed; it receives the pytest
    ``FixtureRequest`` when it accepts an argument and its return value is
    the fixture value. Tests may override a unit again with
    :func:`~mod_mox.controller.with_mock`; the setup-level teardown then finds
    the unit already restored and leaves it alone.
    """
    specs = [MockSpec.coerce(d) for d in descriptors]

    @pytest.fixture(name=name, autouse=autouse)
    def _mocked(request: pytest.FixtureRequest) -> t.Generator[t.Any, None, None]:
        with MockSession(specs, verify_on_exit=verify_on_exit):
            yield _run_setup(setup, request)

    return _mocked


__all__ = ["mod_mox", "setup_with_mocks"]
