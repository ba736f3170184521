"""Mock sessions: install doubles, run a body, always restore."""

from __future__ import annotations

import functools
import logging
import typing as t

from .engine import unit_name
from .errors import LifecycleError, TeardownError, ValidationFailedError
from .registry import CleanupError, MockRegistry, MockSpec

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    import types

    from .engine import DoubleEngine, UnitRef
    from .registry import Replacements

logger = logging.getLogger(__name__)

P = t.ParamSpec("P")
R = t.TypeVar("R")

Descriptor = MockSpec | tuple[t.Any, ...]


class MockSession:
    """Own the doubles installed for one protected section.

    Entering the session installs every descriptor through a
    :class:`~mod_mox.registry.MockRegistry`; leaving it restores every unit the
    session installed, whether the body returned or raised. Sessions are not
    re-entrant.
    """

    def __init__(
        self,
        descriptors: t.Iterable[Descriptor] = (),
        *,
        verify_on_exit: bool = False,
        engine: DoubleEngine | None = None,
    ) -> None:
        """Create a session.

        Parameters
        ----------
        descriptors:
            :class:`~mod_mox.registry.MockSpec` instances or
            ``(unit, options, replacements)`` tuples installed on entry.
        verify_on_exit:
            When ``True``, a body that exits normally is followed by a
            validation of every installed double; doubles that received calls
            no replacement could serve raise
            :class:`~mod_mox.errors.ValidationFailedError`.
        engine:
            Engine to install doubles with. Defaults to the process-wide one.
        """
        self._descriptors = [MockSpec.coerce(d) for d in descriptors]
        self._registry = MockRegistry(engine)
        self.verify_on_exit = verify_on_exit
        self._entered = False

    @property
    def engine(self) -> DoubleEngine:
        """Return the engine this session installs doubles with."""
        return self._registry.engine

    @property
    def installed(self) -> list[t.Any]:
        """Return the units currently owned by this session."""
        return list(self._registry.installed)

    @property
    def active(self) -> bool:
        """Return ``True`` between entry and exit."""
        return self._entered

    # ------------------------------------------------------------------
    # Context manager protocol
    # ------------------------------------------------------------------
    def __enter__(self) -> MockSession:
        """Install every descriptor; restore what was installed on failure."""
        if self._entered:
            msg = "MockSession cannot be nested"
            raise LifecycleError(msg)
        try:
            self._registry.install_all(self._descriptors)
        except BaseException as exc:
            self._handle_cleanup_errors(self._registry.restore_all(), exc)
            raise
        self._entered = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Restore every installed unit, then report verification failures."""
        verify_error: ValidationFailedError | None = None
        if exc is None and self.verify_on_exit:
            verify_error = self._verification_error()
        cleanup_errors = self._registry.restore_all()
        self._entered = False
        self._handle_cleanup_errors(cleanup_errors, exc or verify_error)
        if verify_error is not None:
            raise verify_error

    def _verification_error(self) -> ValidationFailedError | None:
        invalid = self._registry.invalid_units()
        if not invalid:
            return None
        lines = ["Doubles received calls no replacement could serve:"]
        for unit, failures in invalid.items():
            lines.append(f"  {unit_name(unit)}:")
            lines.extend(f"    {failure}" for failure in failures)
        return ValidationFailedError("\n".join(lines))

    def _handle_cleanup_errors(
        self, cleanup_errors: list[CleanupError], primary: BaseException | None
    ) -> None:
        """Log restore failures and attach or raise them."""
        if not cleanup_errors:
            return
        error_msg = _describe_cleanup_errors(cleanup_errors)
        logger.error("MockSession teardown encountered errors: %s", error_msg)
        if primary is not None:
            primary.add_note(f"mod_mox teardown also failed: {error_msg}")
            return
        msg = f"Teardown failed: {error_msg}"
        raise TeardownError(msg) from cleanup_errors[0][1]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def mock(
        self,
        unit: UnitRef,
        replacements: Replacements = None,
        options: str | t.Iterable[str] | None = None,
    ) -> t.Any:  # noqa: ANN401
        """Double *unit* for the rest of the session and return it."""
        if not self._entered:
            msg = "mock() called on a session that is not active"
            raise LifecycleError(msg)
        return self._registry.install(MockSpec.build(unit, replacements, options))

    def run(self, body: t.Callable[P, R], *args: P.args, **kwargs: P.kwargs) -> R:
        """Run *body* exactly once inside the session and return its result."""
        with self:
            return body(*args, **kwargs)


def _describe_cleanup_errors(errors: list[CleanupError]) -> str:
    return "; ".join(f"{unit_name(unit)}: {exc}" for unit, exc in errors)


def with_mocks(
    descriptors: t.Iterable[Descriptor],
    *,
    verify_on_exit: bool = False,
    engine: DoubleEngine | None = None,
) -> MockSession:
    """Return a session doubling every unit in *descriptors*.

    Example
    -------
    ::

        with with_mocks([
            (store, [], {"get": lambda key: "cached"}),
            (text, ["passthrough"], {"reverse": lambda s: s * 2}),
        ]):
            assert store.get("k") == "cached"
    """
    return MockSession(descriptors, verify_on_exit=verify_on_exit, engine=engine)


def with_mock(
    unit: UnitRef,
    replacements: Replacements = None,
    options: str | t.Iterable[str] | None = None,
    *,
    verify_on_exit: bool = False,
    engine: DoubleEngine | None = None,
) -> MockSession:
    """Return a session doubling a single *unit*."""
    return with_mocks(
        [MockSpec.build(unit, replacements, options)],
        verify_on_exit=verify_on_exit,
        engine=engine,
    )


def use_mocks(
    descriptors: t.Iterable[Descriptor], *, verify_on_exit: bool = False
) -> t.Callable[[t.Callable[P, R]], t.Callable[P, R]]:
    """Decorate a function so each call runs inside a fresh session."""
    specs = [MockSpec.coerce(d) for d in descriptors]

    def decorator(func: t.Callable[P, R]) -> t.Callable[P, R]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            return MockSession(specs, verify_on_exit=verify_on_exit).run(
                func, *args, **kwargs
            )

        return wrapper

    return decorator


def use_mock(
    unit: UnitRef,
    replacements: Replacements = None,
    options: str | t.Iterable[str] | None = None,
    *,
    verify_on_exit: bool = False,
) -> t.Callable[[t.Callable[P, R]], t.Callable[P, R]]:
    """Single-unit form of :func:`use_mocks`."""
    return use_mocks(
        [MockSpec.build(unit, replacements, options)], verify_on_exit=verify_on_exit
    )


__all__ = [
    "MockSession",
    "use_mock",
    "use_mocks",
    "with_mock",
    "with_mocks",
]
