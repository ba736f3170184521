"""Unit tests for argument matchers."""

from __future__ import annotations

import pytest

from mod_mox.comparators import (
    ANY,
    ANY_ARGS,
    Any,
    Contains,
    IsA,
    Matcher,
    Predicate,
    Regex,
    StartsWith,
    _,
    match_args,
    match_value,
)


@pytest.mark.parametrize(
    ("matcher", "value", "expected"),
    [
        (Any(), object(), True),
        (IsA(int), 3, True),
        (IsA(int), "3", False),
        (IsA((int, str)), "3", True),
        (Regex(r"^foo\d+$"), "foo12", True),
        (Regex(r"^foo\d+$"), "bar", False),
        (Regex("x"), 1, False),
        (Contains("bar"), "foobarbaz", True),
        (Contains(2), [1, 2, 3], True),
        (Contains("x"), 5, False),
        (StartsWith("baz"), "bazooka", True),
        (StartsWith("baz"), 7, False),
        (Predicate(str.isupper), "UPPER", True),
        (Predicate(str.isupper), "lower", False),
    ],
)
def test_matchers(matcher: Matcher, value: object, expected: bool) -> None:  # noqa: FBT001
    """Each matcher accepts exactly the values it describes."""
    assert matcher(value) is expected


def test_wildcard_aliases() -> None:
    """``_`` is the same wildcard as ``ANY``."""
    assert _ is ANY
    assert repr(ANY) == "ANY"
    assert repr(ANY_ARGS) == "ANY_ARGS"


def test_callables_are_literals_not_matchers() -> None:
    """Only ``Matcher`` instances are treated as patterns."""
    assert match_value(len, len)
    assert not match_value(len, "abc")


def test_match_args_is_positional_and_arity_sensitive() -> None:
    """Wildcards match one argument each; arity must agree."""
    assert match_args([ANY], ("anything",))
    assert not match_args([ANY], ("a", "b"))
    assert not match_args([ANY, ANY], ("a",))
    assert match_args([1, ANY], (1, "x"))
    assert not match_args([2, ANY], (1, "x"))


def test_match_args_any_args_accepts_every_argument_list() -> None:
    """``ANY_ARGS`` ignores arity entirely."""
    assert match_args([ANY_ARGS], ())
    assert match_args([ANY_ARGS], (1, 2, 3))


def test_match_args_compares_keywords_by_name() -> None:
    """Keyword patterns must name exactly the keywords that were passed."""
    assert match_args([], (), {"key": ANY}, {"key": 1})
    assert not match_args([], (), {"key": 2}, {"key": 1})
    assert not match_args([], (), {}, {"key": 1})
    assert not match_args([], (), {"key": 1}, {})


def test_match_value_survives_failing_equality() -> None:
    """A literal whose ``__eq__`` raises simply does not match."""

    class Grumpy:
        def __eq__(self, other: object) -> bool:
            raise RuntimeError

        __hash__ = object.__hash__

    assert not match_value(Grumpy(), 1)
