"""Queries and assertions over the calls recorded by doubles.

Most helpers accept either a :class:`CallPattern` or a doubled function
followed by the argument patterns to look for. The counting assertions take
a :class:`CallPattern` only::

    assert called(text.reverse, 3)
    assert_called(text.reverse, ANY)
    assert_called_exactly(call(text.reverse, 2), 3)
"""

from __future__ import annotations

import dataclasses as dc
import typing as t
from textwrap import indent

from .engine import CallRecord, describe_target, get_engine, unit_name
from .errors import CallAssertionError

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .engine import UnitRef


@dc.dataclass(frozen=True, slots=True)
class CallPattern:
    """A unit, a function name and the argument patterns a call must match."""

    unit: t.Any
    function: str
    args: tuple[object, ...] = ()
    kwargs: dict[str, object] = dc.field(default_factory=dict)

    @classmethod
    def of(
        cls, unit: UnitRef, function: str, *args: object, **kwargs: object
    ) -> CallPattern:
        """Build a pattern from an explicit unit and function name."""
        return cls(get_engine().resolve(unit), function, args, kwargs)

    def describe(self) -> str:
        """Return ``unit.function(patterns)``."""
        parts = [repr(arg) for arg in self.args]
        parts.extend(f"{key}={value!r}" for key, value in self.kwargs.items())
        return f"{unit_name(self.unit)}.{self.function}({', '.join(parts)})"


def call(target: t.Any, *args: object, **kwargs: object) -> CallPattern:  # noqa: ANN401
    """Return a pattern for calls to the doubled function *target*."""
    unit, function = describe_target(target)
    return CallPattern(unit, function, args, kwargs)


def _pattern(
    target: t.Any,  # noqa: ANN401
    args: tuple[object, ...],
    kwargs: dict[str, object],
) -> CallPattern:
    if isinstance(target, CallPattern):
        if args or kwargs:
            msg = "argument patterns cannot be combined with a CallPattern"
            raise TypeError(msg)
        return target
    return call(target, *args, **kwargs)


def _counted_pattern(target: t.Any) -> CallPattern:  # noqa: ANN401
    if not isinstance(target, CallPattern):
        msg = (
            "expected a CallPattern; use call(target, *args) to say which "
            "arguments to count"
        )
        raise TypeError(msg)
    return target


def _times(count: int) -> str:
    return "1 time" if count == 1 else f"{count} times"


def _numbered(records: t.Sequence[CallRecord]) -> str:
    if not records:
        return "(none)"
    return "\n".join(
        f"{index}. {record.describe()}" for index, record in enumerate(records)
    )


def _format_sections(title: str, sections: list[tuple[str, str]]) -> str:
    parts = [title]
    for label, body in sections:
        parts.append("")
        parts.append(f"{label}:")
        parts.append(indent(body, "  "))
    return "\n".join(parts)


def _failure(title: str, pattern: CallPattern) -> CallAssertionError:
    msg = _format_sections(
        title,
        [
            ("Expected", pattern.describe()),
            ("Calls which were received", _numbered(call_history(pattern.unit))),
        ],
    )
    return CallAssertionError(msg)


def call_history(unit: UnitRef) -> list[CallRecord]:
    """Return every recorded call of *unit* in call order."""
    return get_engine().history(unit)


def reset_calls(unit: UnitRef) -> None:
    """Forget the calls recorded so far for *unit*."""
    get_engine().reset(unit)


def call_count(target: t.Any, *args: object, **kwargs: object) -> int:  # noqa: ANN401
    """Return how many recorded calls match the pattern."""
    pattern = _pattern(target, args, kwargs)
    return get_engine().num_calls(
        pattern.unit, pattern.function, pattern.args, pattern.kwargs
    )


def called(target: t.Any, *args: object, **kwargs: object) -> bool:  # noqa: ANN401
    """Return ``True`` if at least one recorded call matches the pattern."""
    pattern = _pattern(target, args, kwargs)
    return get_engine().was_called(
        pattern.unit, pattern.function, pattern.args, pattern.kwargs
    )


def assert_called(target: t.Any, *args: object, **kwargs: object) -> None:  # noqa: ANN401
    """Fail unless a recorded call matches; list received calls on failure."""
    pattern = _pattern(target, args, kwargs)
    if not called(pattern):
        raise _failure("Expected call but did not receive it.", pattern)


def assert_not_called(target: t.Any, *args: object, **kwargs: object) -> None:  # noqa: ANN401
    """Fail if any recorded call matches the pattern."""
    pattern = _pattern(target, args, kwargs)
    actual = call_count(pattern)
    if actual > 0:
        raise _failure(
            f"Expected no matching call but received {_times(actual)}.", pattern
        )


def assert_called_exactly(target: t.Any, times: int) -> None:  # noqa: ANN401
    """Fail unless exactly *times* recorded calls match *target*.

    *target* must be a :class:`CallPattern` built with :func:`call`.
    """
    pattern = _counted_pattern(target)
    actual = call_count(pattern)
    if actual != times:
        raise _failure(
            f"Expected {_times(times)} but was called {_times(actual)}.", pattern
        )


def assert_called_at_least(target: t.Any, times: int) -> None:  # noqa: ANN401
    """Fail if fewer than *times* recorded calls match *target*, a :func:`call`."""
    pattern = _counted_pattern(target)
    actual = call_count(pattern)
    if actual < times:
        raise _failure(
            f"Expected at least {_times(times)} but was called {_times(actual)}.",
            pattern,
        )


__all__ = [
    "CallPattern",
    "assert_called",
    "assert_called_at_least",
    "assert_called_exactly",
    "assert_not_called",
    "call",
    "call_count",
    "call_history",
    "called",
    "reset_calls",
]
