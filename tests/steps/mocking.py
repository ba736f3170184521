"""pytest-bdd steps for doubling units around a protected section."""

from __future__ import annotations

import typing as t

import pytest
from pytest_bdd import given, parsers, then, when

from mod_mox.assertions import assert_called, assert_called_exactly, call
from mod_mox.controller import MockSession, with_mocks
from mod_mox.engine import passthrough
from mod_mox.registry import MockSpec
from mod_mox.unittests._units import greeter, store, text

_UNITS: dict[str, t.Any] = {"greeter": greeter, "store": store, "text": text}


def _returning(value: str) -> t.Callable[..., str]:
    def replacement(*args: object, **kwargs: object) -> str:
        del args, kwargs
        return value

    return replacement


@pytest.fixture
def descriptors() -> list[MockSpec]:
    """Collect the descriptors declared by ``given`` steps."""
    return []


@given(parsers.cfparse('"{function}" of "{unit}" is replaced to return "{value}"'))
def replace_with_value(
    descriptors: list[MockSpec], function: str, unit: str, value: str
) -> None:
    """Replace *function* with one returning *value*."""
    descriptors.append(MockSpec.build(_UNITS[unit], {function: _returning(value)}))


@given(parsers.cfparse('"{function}" of "{unit}" is replaced to double its argument'))
def replace_with_doubler(
    descriptors: list[MockSpec], function: str, unit: str
) -> None:
    """Replace *function* with one returning twice its argument."""
    descriptors.append(
        MockSpec.build(_UNITS[unit], {function: lambda value: value * 2})
    )


@given(
    parsers.cfparse(
        '"{function}" of "{unit}" appends "{suffix}" to the original result'
    )
)
def replace_with_suffix(
    descriptors: list[MockSpec], function: str, unit: str, suffix: str
) -> None:
    """Wrap the original *function*, appending *suffix* to its result."""
    descriptors.append(
        MockSpec.build(
            _UNITS[unit],
            {function: lambda value: passthrough(value) + suffix},
            ["passthrough"],
        )
    )


@when("the mocks are installed", target_fixture="session")
def install_mocks(
    descriptors: list[MockSpec], request: pytest.FixtureRequest
) -> MockSession:
    """Enter a session for the declared descriptors until the scenario ends."""
    session = with_mocks(descriptors)
    session.__enter__()

    def _restore() -> None:
        if session.active:
            session.__exit__(None, None, None)

    request.addfinalizer(_restore)
    return session


@when("the mocks are restored")
def restore_mocks(session: MockSession) -> None:
    """Leave the session."""
    session.__exit__(None, None, None)


@when(
    parsers.cfparse('I call "{function}" of "{unit}" with "{arg}"'),
    target_fixture="result",
)
def call_function(function: str, unit: str, arg: str) -> object:
    """Call ``unit.function(arg)``."""
    return getattr(_UNITS[unit], function)(arg)


@when(
    parsers.cfparse('I call "{function}" of "{unit}" {count:d} times with {arg:d}'),
    target_fixture="result",
)
def call_function_repeatedly(function: str, unit: str, count: int, arg: int) -> object:
    """Call ``unit.function(arg)`` *count* times and keep the last result."""
    result = None
    for _ in range(count):
        result = getattr(_UNITS[unit], function)(arg)
    return result


@when(
    parsers.cfparse('I reverse the value stored under "{key}"'),
    target_fixture="result",
)
def reverse_stored_value(key: str) -> str:
    """Feed the stored value through ``text.reverse``."""
    return text.reverse(store.get(key))


@when(
    parsers.cfparse('a body raising "{message}" runs inside the mocks'),
    target_fixture="error",
)
def run_failing_body(descriptors: list[MockSpec], message: str) -> BaseException:
    """Raise from inside a session and capture what reaches the caller."""
    raised = RuntimeError(message)
    with pytest.raises(RuntimeError) as excinfo:  # noqa: PT012
        with with_mocks(descriptors):
            raise raised
    assert excinfo.value is raised
    return excinfo.value


@then(parsers.cfparse('the result is "{value}"'))
def check_result(result: object, value: str) -> None:
    """Compare the last call's result."""
    assert result == value


@then(parsers.cfparse('"{function}" of "{unit}" was called with "{arg}"'))
def check_called(function: str, unit: str, arg: str) -> None:
    """Assert that a matching call was recorded."""
    assert_called(getattr(_UNITS[unit], function), arg)


@then(
    parsers.cfparse(
        '"{function}" of "{unit}" was called exactly {count:d} times with {arg:d}'
    )
)
def check_called_exactly(function: str, unit: str, count: int, arg: int) -> None:
    """Assert the exact number of matching calls."""
    assert_called_exactly(call(getattr(_UNITS[unit], function), arg), count)


@then(
    parsers.cfparse('calling "{function}" of "{unit}" with "{arg}" returns "{value}"')
)
def check_call_returns(function: str, unit: str, arg: str, value: str) -> None:
    """Call ``unit.function(arg)`` and compare its result."""
    assert getattr(_UNITS[unit], function)(arg) == value


@then(parsers.cfparse('the error "{message}" reaches the caller unchanged'))
def check_error(error: BaseException, message: str) -> None:
    """The body's exception keeps its type and message."""
    assert type(error) is RuntimeError
    assert str(error) == message
    assert not getattr(error, "__notes__", None)

