"""Argument matchers used by call patterns and clause dispatch."""

from __future__ import annotations

import re
import typing as t


class Matcher:
    """Base class for argument patterns that are not compared by equality.

    Only instances of :class:`Matcher` are treated as patterns; any other
    value, callables included, is matched with ``==``.
    """

    def __call__(self, value: object) -> bool:
        """Return ``True`` if *value* satisfies the comparison."""
        raise NotImplementedError


class Any(Matcher):
    """Match any single argument."""

    def __call__(self, value: object) -> bool:
        """Return ``True`` for any input."""
        return True

    def __repr__(self) -> str:
        """Return a debug representation."""
        return "ANY"


class IsA(Matcher):
    """Match instances of ``typ``."""

    def __init__(self, typ: type | tuple[type, ...]) -> None:
        self.typ = typ

    def __call__(self, value: object) -> bool:
        """Return ``True`` when ``value`` is an instance of ``typ``."""
        return isinstance(value, self.typ)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        """Return a debug representation."""
        if isinstance(self.typ, tuple):
            names = ", ".join(typ.__name__ for typ in self.typ)
            return f"IsA(({names}))"
        return f"IsA({self.typ.__name__})"


class Regex(Matcher):
    """Match strings that contain a match for ``pattern``."""

    def __init__(self, pattern: str) -> None:
        self._pattern = re.compile(pattern)

    def __call__(self, value: object) -> bool:
        """Return ``True`` if the regex matches *value*."""
        return isinstance(value, str) and bool(self._pattern.search(value))

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        """Return a debug representation."""
        return f"Regex({self._pattern.pattern!r})"


class Contains(Matcher):
    """Match if ``item`` is found in *value*."""

    def __init__(self, item: object) -> None:
        self.item = item

    def __call__(self, value: object) -> bool:
        """Return ``True`` if ``item`` is in *value*."""
        try:
            return self.item in value  # type: ignore[operator]
        except TypeError:
            return False

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        """Return a debug representation."""
        return f"Contains({self.item!r})"


class StartsWith(Matcher):
    """Match strings beginning with ``prefix``."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix

    def __call__(self, value: object) -> bool:
        """Return ``True`` if *value* starts with ``prefix``."""
        return isinstance(value, str) and value.startswith(self.prefix)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        """Return a debug representation."""
        return f"StartsWith({self.prefix!r})"


class Predicate(Matcher):
    """Use a custom ``func`` to determine a match."""

    def __init__(self, func: t.Callable[[t.Any], bool]) -> None:
        self.func = func

    def __call__(self, value: object) -> bool:
        """Return ``True`` if ``func(value)`` is truthy."""
        return bool(self.func(value))

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        """Return a debug representation."""
        return f"Predicate({self.func})"


class _AnyArgs:
    """Sentinel matching an entire argument list of any length."""

    _instance: t.ClassVar[_AnyArgs | None] = None

    def __new__(cls) -> _AnyArgs:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ANY_ARGS"


ANY = Any()
_ = ANY
ANY_ARGS = _AnyArgs()


def match_value(pattern: object, value: object) -> bool:
    """Return ``True`` when *value* satisfies *pattern*."""
    if isinstance(pattern, Matcher):
        return pattern(value)
    try:
        return bool(pattern == value)
    except Exception:  # noqa: BLE001 - exotic __eq__ implementations
        return False


def match_args(
    patterns: t.Sequence[object],
    args: t.Sequence[object],
    kw_patterns: t.Mapping[str, object] | None = None,
    kwargs: t.Mapping[str, object] | None = None,
) -> bool:
    """Return ``True`` when an argument list satisfies the given patterns.

    Positional patterns are compared position-wise and must have the same
    length as *args*. Keyword patterns must name exactly the keywords that
    were passed. A lone :data:`ANY_ARGS` accepts every argument list.
    """
    if len(patterns) == 1 and patterns[0] is ANY_ARGS and not kw_patterns:
        return True
    if len(patterns) != len(args):
        return False
    if not all(match_value(p, a) for p, a in zip(patterns, args, strict=True)):
        return False
    kw_patterns = kw_patterns or {}
    kwargs = kwargs or {}
    if kw_patterns.keys() != kwargs.keys():
        return False
    return all(match_value(kw_patterns[key], kwargs[key]) for key in kw_patterns)


__all__ = [
    "ANY",
    "ANY_ARGS",
    "Any",
    "Contains",
    "IsA",
    "Matcher",
    "Predicate",
    "Regex",
    "StartsWith",
    "match_args",
    "match_value",
]
