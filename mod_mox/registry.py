"""Mock descriptors and the registry that installs them."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import logging
import typing as t

from .engine import DoubleEngine, get_engine, normalise_options, unit_name
from .errors import ModMoxError, NotDoubledError, ValidationFailedError

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .engine import UnitRef

logger = logging.getLogger(__name__)

Replacements = (
    t.Mapping[str, t.Callable[..., t.Any]]
    | t.Iterable[tuple[str, t.Callable[..., t.Any]]]
    | None
)
CleanupError = tuple[t.Any, Exception]


def _replacement_items(
    replacements: Replacements,
) -> tuple[tuple[str, t.Callable[..., t.Any]], ...]:
    if replacements is None:
        return ()
    if isinstance(replacements, cabc.Mapping):
        return tuple(replacements.items())
    items = tuple(replacements)
    for item in items:
        if not (isinstance(item, tuple) and len(item) == 2):
            msg = f"replacements must be (name, callable) pairs, got {item!r}"
            raise TypeError(msg)
    return items


@dc.dataclass(frozen=True, slots=True)
class MockSpec:
    """What to double: a unit, its options and its function replacements.

    ``replacements`` keeps declaration order so that a later entry for the
    same name and arity overrides an earlier one.
    """

    unit: UnitRef
    options: frozenset[str] = frozenset()
    replacements: tuple[tuple[str, t.Callable[..., t.Any]], ...] = ()

    @classmethod
    def build(
        cls,
        unit: UnitRef,
        replacements: Replacements = None,
        options: str | t.Iterable[str] | None = None,
    ) -> MockSpec:
        """Return a spec, normalising options and replacements."""
        return cls(unit, normalise_options(options), _replacement_items(replacements))

    @classmethod
    def coerce(cls, descriptor: MockSpec | tuple[t.Any, ...]) -> MockSpec:
        """Accept a :class:`MockSpec` or a ``(unit, [options,] replacements)`` tuple."""
        if isinstance(descriptor, MockSpec):
            return descriptor
        if isinstance(descriptor, tuple):
            if len(descriptor) == 3:
                unit, options, replacements = descriptor
                return cls.build(unit, replacements, options)
            if len(descriptor) == 2:
                unit, replacements = descriptor
                return cls.build(unit, replacements)
        msg = (
            "mock descriptors must be MockSpec instances or "
            f"(unit, options, replacements) tuples, got {descriptor!r}"
        )
        raise TypeError(msg)


class MockRegistry:
    """Install doubles for a batch of descriptors and remember what to restore."""

    def __init__(self, engine: DoubleEngine | None = None) -> None:
        self.engine = engine if engine is not None else get_engine()
        self.installed: list[t.Any] = []

    def owns(self, unit: object) -> bool:
        """Return ``True`` if *unit* was installed through this registry."""
        return any(candidate is unit for candidate in self.installed)

    def install(self, descriptor: MockSpec | tuple[t.Any, ...]) -> t.Any:  # noqa: ANN401
        """Double one descriptor's unit and install its replacements.

        A unit seen for the first time is restored if a stale double of it is
        still live, then doubled with the descriptor's options. A unit already
        installed by this registry keeps its first options and gains the new
        replacements.
        """
        spec = MockSpec.coerce(descriptor)
        unit = self.engine.resolve(spec.unit)
        if not self.owns(unit):
            self._discard_stale(unit)
            self.engine.create(unit, spec.options)
            self.installed.append(unit)
        for function, implementation in spec.replacements:
            self.engine.expect(unit, function, implementation)
        if not self.engine.validate(unit):
            msg = f"double of {unit_name(unit)} failed validation after install"
            raise ValidationFailedError(msg)
        return unit

    def install_all(
        self, descriptors: t.Iterable[MockSpec | tuple[t.Any, ...]]
    ) -> list[t.Any]:
        """Install every descriptor in order; return the installed units."""
        for descriptor in descriptors:
            self.install(descriptor)
        return list(self.installed)

    def _discard_stale(self, unit: object) -> None:
        """Restore a double left behind by an earlier, uncleaned run."""
        try:
            self.engine.validate(unit)
        except NotDoubledError:
            return
        logger.debug("Restoring stale double of %s before re-doubling", unit_name(unit))
        self.engine.destroy(unit)

    def invalid_units(self) -> dict[t.Any, list[str]]:
        """Return installed units whose doubles no longer validate."""
        invalid: dict[t.Any, list[str]] = {}
        for unit in self.installed:
            if not self.engine.is_doubled(unit):
                continue
            if not self.engine.validate(unit):
                invalid[unit] = self.engine.failures(unit)
        return invalid

    def restore_all(self) -> list[CleanupError]:
        """Restore every installed unit once; return the failures encountered."""
        errors: list[CleanupError] = []
        while self.installed:
            unit = self.installed.pop()
            try:
                self.engine.destroy(unit)
            except ModMoxError as exc:
                errors.append((unit, exc))
        return errors


__all__ = ["MockRegistry", "MockSpec", "Replacements"]
