"""Exception hierarchy for :mod:`mod_mox`."""

from __future__ import annotations


class ModMoxError(Exception):
    """Base class for all mod_mox errors."""


class LifecycleError(ModMoxError):
    """Raised when an operation is used outside its valid lifecycle stage."""


class EngineUnavailableError(ModMoxError):
    """Raised when a unit cannot be resolved, doubled or patched."""


class NotDoubledError(ModMoxError):
    """Raised when an operation requires a unit that is not currently doubled."""


class ValidationFailedError(ModMoxError):
    """Raised when a double does not validate after install or on exit."""


class NotPassthroughEnabledError(ModMoxError):
    """Raised when :func:`passthrough` is used on a unit without passthrough."""


class UnexpectedCallError(ModMoxError):
    """Raised when a doubled function is called with no replacement to serve it."""


class NoMatchingClauseError(UnexpectedCallError):
    """Raised when no clause of a :class:`~mod_mox.clauses.Clauses` matches."""


class TeardownError(ModMoxError):
    """Raised when restoring one or more units fails after a clean exit."""


class CallAssertionError(AssertionError):
    """Raised when a recorded-call expectation is not met."""


__all__ = [
    "CallAssertionError",
    "EngineUnavailableError",
    "LifecycleError",
    "ModMoxError",
    "NoMatchingClauseError",
    "NotDoubledError",
    "NotPassthroughEnabledError",
    "TeardownError",
    "UnexpectedCallError",
    "ValidationFailedError",
]
