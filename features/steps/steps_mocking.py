"""Step definitions for temporary function replacement scenarios."""
# pyright: reportMissingImports=false, reportUnknownMemberType=false

from __future__ import annotations

import typing as t

from behave import given, then, when  # type: ignore[attr-defined]

from mod_mox.assertions import assert_called, assert_called_exactly, call
from mod_mox.controller import MockSession, with_mocks
from mod_mox.engine import passthrough
from mod_mox.registry import MockSpec
from mod_mox.unittests._units import greeter, store, text

_UNITS: dict[str, t.Any] = {"greeter": greeter, "store": store, "text": text}


class BehaveContext(t.Protocol):
    """Behave step context with attributes used in tests."""

    descriptors: list[MockSpec]
    session: MockSession
    result: object
    error: BaseException

    def add_cleanup(self, func: t.Callable[..., object], *args: object) -> None:
        """Register *func* to run when the scenario ends."""


def _descriptors(context: BehaveContext) -> list[MockSpec]:
    if not hasattr(context, "descriptors"):
        context.descriptors = []
    return context.descriptors


def _returning(value: str) -> t.Callable[..., str]:
    def replacement(*args: object, **kwargs: object) -> str:
        del args, kwargs
        return value

    return replacement


@given('"{function}" of "{unit}" is replaced to return "{value}"')
def step_replace_with_value(
    context: BehaveContext, function: str, unit: str, value: str
) -> None:
    """Replace *function* with one returning *value*."""
    _descriptors(context).append(
        MockSpec.build(_UNITS[unit], {function: _returning(value)})
    )


@given('"{function}" of "{unit}" is replaced to double its argument')
def step_replace_with_doubler(context: BehaveContext, function: str, unit: str) -> None:
    """Replace *function* with one returning twice its argument."""
    _descriptors(context).append(
        MockSpec.build(_UNITS[unit], {function: lambda value: value * 2})
    )


@given('"{function}" of "{unit}" appends "{suffix}" to the original result')
def step_replace_with_suffix(
    context: BehaveContext, function: str, unit: str, suffix: str
) -> None:
    """Wrap the original *function*, appending *suffix* to its result."""
    _descriptors(context).append(
        MockSpec.build(
            _UNITS[unit],
            {function: lambda value: passthrough(value) + suffix},
            ["passthrough"],
        )
    )


@when("the mocks are installed")
def step_install_mocks(context: BehaveContext) -> None:
    """Enter a session that lasts until the scenario ends."""
    session = with_mocks(_descriptors(context))
    session.__enter__()
    context.session = session

    def _restore() -> None:
        if session.active:
            session.__exit__(None, None, None)

    context.add_cleanup(_restore)


@when("the mocks are restored")
def step_restore_mocks(context: BehaveContext) -> None:
    """Leave the session."""
    context.session.__exit__(None, None, None)


@when('I call "{function}" of "{unit}" with "{arg}"')
def step_call_function(
    context: BehaveContext, function: str, unit: str, arg: str
) -> None:
    """Call ``unit.function(arg)``."""
    context.result = getattr(_UNITS[unit], function)(arg)


@when('I call "{function}" of "{unit}" {count:d} times with {arg:d}')
def step_call_function_repeatedly(
    context: BehaveContext, function: str, unit: str, count: int, arg: int
) -> None:
    """Call ``unit.function(arg)`` *count* times."""
    for _ in range(count):
        context.result = getattr(_UNITS[unit], function)(arg)


@when('I reverse the value stored under "{key}"')
def step_reverse_stored_value(context: BehaveContext, key: str) -> None:
    """Feed the stored value through ``text.reverse``."""
    context.result = text.reverse(store.get(key))


@when('a body raising "{message}" runs inside the mocks')
def step_run_failing_body(context: BehaveContext, message: str) -> None:
    """Raise from inside a session and keep what reaches the caller."""
    raised = RuntimeError(message)
    try:
        with with_mocks(_descriptors(context)):
            raise raised
    except RuntimeError as exc:
        context.error = exc
    assert context.error is raised  # noqa: S101


@then('the result is "{value}"')
def step_check_result(context: BehaveContext, value: str) -> None:
    """Compare the last call's result."""
    assert context.result == value  # noqa: S101


@then('"{function}" of "{unit}" was called with "{arg}"')
def step_check_called(
    context: BehaveContext, function: str, unit: str, arg: str
) -> None:
    """Assert that a matching call was recorded."""
    del context
    assert_called(getattr(_UNITS[unit], function), arg)


@then('"{function}" of "{unit}" was called exactly {count:d} times with {arg:d}')
def step_check_called_exactly(
    context: BehaveContext, function: str, unit: str, count: int, arg: int
) -> None:
    """Assert the exact number of matching calls."""
    del context
    assert_called_exactly(call(getattr(_UNITS[unit], function), arg), count)


@then('calling "{function}" of "{unit}" with "{arg}" returns "{value}"')
def step_check_call_returns(
    context: BehaveContext, function: str, unit: str, arg: str, value: str
) -> None:
    """Call ``unit.function(arg)`` and compare its result."""
    del context
    assert getattr(_UNITS[unit], function)(arg) == value  # noqa: S101


@then('the error "{message}" reaches the caller unchanged')
def step_check_error(context: BehaveContext, message: str) -> None:
    """The body's exception keeps its type and message."""
    assert type(context.error) is RuntimeError  # noqa: S101
    assert str(context.error) == message  # noqa: S101
