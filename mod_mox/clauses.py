"""Replacement functions that dispatch on argument patterns."""

from __future__ import annotations

import inspect
import typing as t

from .comparators import match_args
from .errors import NoMatchingClauseError

Clause = tuple[t.Sequence[object], t.Callable[..., t.Any]]


def _signature(impl: t.Callable[..., t.Any]) -> inspect.Signature | None:
    try:
        return inspect.signature(impl)
    except (TypeError, ValueError):
        return None


class Clauses:
    """Ordered ``(patterns, implementation)`` pairs forming one replacement.

    Each call is matched against the clauses in declaration order. A clause is
    chosen when its positional patterns match and its implementation accepts
    the call's positional and keyword arguments; it is then invoked with
    them. Keyword arguments are not pattern matched. Patterns may be literals
    or :class:`~mod_mox.comparators.Matcher` instances::

        get=Clauses(
            (({}, "http://example.com"), lambda mapping, key: "<html></html>"),
            ((ANY, ANY), lambda mapping, key: None),
        )
    """

    def __init__(self, *clauses: Clause) -> None:
        if not clauses:
            msg = "Clauses requires at least one (patterns, implementation) pair"
            raise ValueError(msg)
        for patterns, impl in clauses:
            if not callable(impl):
                msg = f"clause implementation must be callable, got {impl!r}"
                raise TypeError(msg)
        self._clauses: list[
            tuple[tuple[object, ...], t.Callable[..., t.Any], inspect.Signature | None]
        ] = [(tuple(patterns), impl, _signature(impl)) for patterns, impl in clauses]

    def __call__(self, *args: object, **kwargs: object) -> t.Any:  # noqa: ANN401
        """Invoke the first clause matching ``args`` and accepting ``kwargs``."""
        for patterns, impl, signature in self._clauses:
            if match_args(patterns, args) and _binds(signature, args, kwargs):
                return impl(*args, **kwargs)
        shown = [repr(arg) for arg in args]
        shown.extend(f"{key}={value!r}" for key, value in kwargs.items())
        msg = f"no clause matches arguments ({', '.join(shown)})"
        raise NoMatchingClauseError(msg)

    def __len__(self) -> int:
        return len(self._clauses)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        """Return a debug representation."""
        return f"Clauses({len(self._clauses)} clauses)"


def _binds(
    signature: inspect.Signature | None,
    args: tuple[object, ...],
    kwargs: dict[str, object],
) -> bool:
    if signature is None:
        return True
    try:
        signature.bind(*args, **kwargs)
    except TypeError:
        return False
    return True


__all__ = ["Clauses"]
