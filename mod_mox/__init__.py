"""Temporary function replacement for modules and classes under test.

``mod_mox`` doubles a unit (a module or a class), installs replacement
functions on it, records every call for later assertions and restores the
original functions when the protected section ends, including when it raises.
"""

from __future__ import annotations

from .assertions import (
    CallPattern,
    assert_called,
    assert_called_at_least,
    assert_called_exactly,
    assert_not_called,
    call,
    call_count,
    call_history,
    called,
    reset_calls,
)
from .clauses import Clauses
from .comparators import ANY, ANY_ARGS, Any, Contains, IsA, Predicate, Regex, StartsWith
from .controller import MockSession, use_mock, use_mocks, with_mock, with_mocks
from .engine import CallRecord, DoubleEngine, Option, get_engine, passthrough
from .errors import (
    CallAssertionError,
    EngineUnavailableError,
    LifecycleError,
    ModMoxError,
    NoMatchingClauseError,
    NotDoubledError,
    NotPassthroughEnabledError,
    TeardownError,
    UnexpectedCallError,
    ValidationFailedError,
)
from .pytest_plugin import mod_mox as mod_mox_fixture
from .pytest_plugin import setup_with_mocks
from .registry import MockRegistry, MockSpec

__all__ = [
    "ANY",
    "ANY_ARGS",
    "Any",
    "CallAssertionError",
    "CallPattern",
    "CallRecord",
    "Clauses",
    "Contains",
    "DoubleEngine",
    "EngineUnavailableError",
    "IsA",
    "LifecycleError",
    "MockRegistry",
    "MockSession",
    "MockSpec",
    "ModMoxError",
    "NoMatchingClauseError",
    "NotDoubledError",
    "NotPassthroughEnabledError",
    "Option",
    "Predicate",
    "Regex",
    "StartsWith",
    "TeardownError",
    "UnexpectedCallError",
    "ValidationFailedError",
    "assert_called",
    "assert_called_at_least",
    "assert_called_exactly",
    "assert_not_called",
    "call",
    "call_count",
    "call_history",
    "called",
    "get_engine",
    "mod_mox_fixture",
    "passthrough",
    "reset_calls",
    "setup_with_mocks",
    "use_mock",
    "use_mocks",
    "with_mock",
    "with_mocks",
]
