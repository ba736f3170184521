"""Unit tests for :class:`mod_mox.clauses.Clauses`."""

from __future__ import annotations

import pytest

from mod_mox.clauses import Clauses
from mod_mox.comparators import ANY, IsA
from mod_mox.controller import with_mock
from mod_mox.engine import get_engine
from mod_mox.errors import NoMatchingClauseError, UnexpectedCallError
from mod_mox.unittests._units import store


def test_first_matching_clause_wins() -> None:
    """Clauses are tried in declaration order."""
    clauses = Clauses(
        (("greeting",), lambda key: "hi"),
        ((IsA(str),), lambda key: f"<{key}>"),
        ((ANY,), lambda key: None),
    )

    assert clauses("greeting") == "hi"
    assert clauses("other") == "<other>"
    assert clauses(3) is None
    assert len(clauses) == 3


def test_no_matching_clause_raises() -> None:
    """Unmatched input is an unexpected call."""
    clauses = Clauses((("greeting",), lambda key: "hi"))

    with pytest.raises(NoMatchingClauseError, match="'other'"):
        clauses("other")
    assert issubclass(NoMatchingClauseError, UnexpectedCallError)


def test_clauses_skip_implementations_that_reject_keywords() -> None:
    """Keyword arguments steer the call to a clause able to take them."""
    clauses = Clauses(
        ((ANY,), lambda key: f"plain {key}"),
        ((ANY,), lambda key, default=None: f"{key} or {default}"),
    )

    assert clauses("a") == "plain a"
    assert clauses("a", default="b") == "a or b"


def test_keywords_no_clause_accepts_raise() -> None:
    """A keyword no clause can take is reported with the call's arguments."""
    clauses = Clauses(((ANY,), lambda key: key))

    with pytest.raises(NoMatchingClauseError, match=r"\('a', strict=True\)"):
        clauses("a", strict=True)


def test_clauses_require_callable_implementations() -> None:
    """Construction validates its clauses."""
    with pytest.raises(ValueError, match="at least one"):
        Clauses()
    with pytest.raises(TypeError):
        Clauses((("a",), "not callable"))  # type: ignore[arg-type]


def test_clause_mismatch_invalidates_the_double() -> None:
    """A replacement that finds no clause marks its double invalid."""
    replacement = Clauses((({}, "http://example.com"), lambda m, url: "<html/>"))
    with with_mock(store, {"get": replacement}):
        assert store.get({}, "http://example.com") == "<html/>"  # type: ignore[arg-type]
        with pytest.raises(NoMatchingClauseError):
            store.get({}, "http://other.example")  # type: ignore[arg-type]
        assert not get_engine().validate(store)
