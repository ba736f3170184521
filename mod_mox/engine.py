"""Process-wide double engine.

The engine replaces the functions of a *unit* (a module or a class) with
recording dispatchers. A dispatcher routes each call to the replacement whose
signature accepts the arguments, to the original implementation when the
double was created with the ``passthrough`` option, or raises
:class:`~mod_mox.errors.UnexpectedCallError`. Every dispatched call is
appended to the double's history until the unit is restored.

Doubling mutates the unit object itself, so it is visible to every thread
that looks the function up through the unit. Callers must not double the
same unit from concurrently running tests.
"""

from __future__ import annotations

import contextlib
import contextvars
import dataclasses as dc
import enum
import functools
import importlib
import inspect
import logging
import threading
import types
import typing as t

from .clauses import Clauses
from .comparators import match_args
from .errors import (
    EngineUnavailableError,
    LifecycleError,
    NoMatchingClauseError,
    NotDoubledError,
    NotPassthroughEnabledError,
    UnexpectedCallError,
)

logger = logging.getLogger(__name__)

_MISSING: t.Final = object()
DISPATCHER_ATTR: t.Final = "__mod_mox_double__"

UnitRef: t.TypeAlias = str | type | types.ModuleType


class Option(enum.StrEnum):
    """Known double options. Unknown option strings are kept and ignored."""

    PASSTHROUGH = "passthrough"
    NON_STRICT = "non_strict"
    NO_HISTORY = "no_history"


def normalise_options(options: str | t.Iterable[str] | None) -> frozenset[str]:
    """Return *options* as a set of plain option strings."""
    if options is None:
        return frozenset()
    if isinstance(options, str):
        return frozenset([options])
    return frozenset(str(option) for option in options)


def unit_name(unit: object) -> str:
    """Return a readable dotted name for *unit*."""
    if inspect.isclass(unit):
        return f"{unit.__module__}.{unit.__qualname__}"
    return str(getattr(unit, "__name__", repr(unit)))


def _format_args(args: t.Sequence[object], kwargs: t.Mapping[str, object]) -> str:
    parts = [repr(arg) for arg in args]
    parts.extend(f"{key}={value!r}" for key, value in kwargs.items())
    return ", ".join(parts)


@dc.dataclass(frozen=True, slots=True)
class CallRecord:
    """A single invocation observed by a double."""

    thread_id: int
    unit: object
    function: str
    args: tuple[object, ...]
    kwargs: dict[str, object] = dc.field(default_factory=dict)
    result: object = None
    exception: BaseException | None = None

    @property
    def raised(self) -> bool:
        """Return ``True`` when the call ended with an exception."""
        return self.exception is not None

    def matches(
        self,
        function: str,
        args: t.Sequence[object],
        kwargs: t.Mapping[str, object] | None = None,
    ) -> bool:
        """Return ``True`` if this record satisfies the given call pattern."""
        return self.function == function and match_args(
            args, self.args, kwargs, self.kwargs
        )

    def describe(self) -> str:
        """Return ``unit.function(args) (returned value)``."""
        shown = _format_args(self.args, self.kwargs)
        call = f"{unit_name(self.unit)}.{self.function}({shown})"
        if self.exception is not None:
            return f"{call} (raised {self.exception!r})"
        return f"{call} (returned {self.result!r})"


def _callable_of(descriptor: object) -> t.Callable[..., t.Any] | None:
    """Return the function behind *descriptor*, or ``None`` if not callable."""
    if isinstance(descriptor, staticmethod | classmethod):
        return t.cast("t.Callable[..., t.Any]", descriptor.__func__)
    if callable(descriptor):
        return t.cast("t.Callable[..., t.Any]", descriptor)
    return None


def _own_routines(unit: object) -> dict[str, object]:
    """Return the non-dunder routines defined directly on *unit*."""
    found: dict[str, object] = {}
    for name, value in vars(unit).items():
        if name.startswith("__") and name.endswith("__"):
            continue
        if isinstance(value, staticmethod | classmethod) or inspect.isroutine(value):
            found[name] = value
    return found


def _arity(impl: t.Callable[..., t.Any]) -> int | None:
    """Return the positional arity of *impl*, ``None`` when variadic."""
    if isinstance(impl, Clauses):
        return None
    try:
        params = inspect.signature(impl).parameters.values()
    except (TypeError, ValueError):
        return None
    if any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params):
        return None
    return sum(
        p.kind
        in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        for p in params
    )


@dc.dataclass(slots=True)
class _Replacement:
    impl: t.Callable[..., t.Any]
    signature: inspect.Signature | None

    @classmethod
    def of(cls, impl: t.Callable[..., t.Any]) -> _Replacement:
        if isinstance(impl, Clauses):
            return cls(impl, None)
        try:
            signature = inspect.signature(impl)
        except (TypeError, ValueError):
            signature = None
        return cls(impl, signature)

    def accepts(self, args: tuple[object, ...], kwargs: dict[str, object]) -> bool:
        if self.signature is None:
            return True
        try:
            self.signature.bind(*args, **kwargs)
        except TypeError:
            return False
        return True


class _Double:
    """Live state for one doubled unit."""

    def __init__(self, unit: object, options: frozenset[str]) -> None:
        self.unit = unit
        self.options = options
        self.originals: dict[str, object] = {}
        self.callables: dict[str, t.Callable[..., t.Any] | None] = {}
        self.dispatchers: dict[str, object] = {}
        self.expectations: dict[str, dict[int | None, _Replacement]] = {}
        self.history: list[CallRecord] = []
        self.failures: list[str] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return unit_name(self.unit)

    @property
    def passthrough(self) -> bool:
        return Option.PASSTHROUGH in self.options

    @property
    def non_strict(self) -> bool:
        return Option.NON_STRICT in self.options

    @property
    def records_history(self) -> bool:
        return Option.NO_HISTORY not in self.options

    def select(
        self, function: str, args: tuple[object, ...], kwargs: dict[str, object]
    ) -> t.Callable[..., t.Any] | None:
        with self._lock:
            candidates = list(self.expectations.get(function, {}).values())
        for replacement in candidates:
            if replacement.accepts(args, kwargs):
                return replacement.impl
        return None

    def add(
        self, function: str, arity: int | None, replacement: _Replacement
    ) -> None:
        with self._lock:
            self.expectations.setdefault(function, {})[arity] = replacement

    def call_original(
        self, function: str, args: tuple[object, ...], kwargs: dict[str, object]
    ) -> object:
        original = self.callables.get(function)
        if original is None:
            msg = f"{self.name}.{function} has no original implementation"
            raise UnexpectedCallError(msg)
        return original(*args, **kwargs)

    def record(self, entry: CallRecord) -> None:
        if not self.records_history:
            return
        with self._lock:
            self.history.append(entry)

    def fail(self, reason: str) -> None:
        with self._lock:
            self.failures.append(reason)

    def snapshot(self) -> list[CallRecord]:
        with self._lock:
            return list(self.history)

    def clear_history(self) -> None:
        with self._lock:
            self.history.clear()

    def restore(self) -> list[tuple[str, Exception]]:
        """Put every original back; return the failures encountered."""
        errors: list[tuple[str, Exception]] = []
        for function, original in self.originals.items():
            try:
                if original is _MISSING:
                    if function in vars(self.unit):
                        delattr(self.unit, function)
                else:
                    setattr(self.unit, function, original)
            except (AttributeError, TypeError) as exc:
                errors.append((function, exc))
        self.dispatchers.clear()
        with self._lock:
            self.expectations.clear()
            self.history.clear()
        return errors


class _Frame(t.NamedTuple):
    double: _Double
    function: str


_FRAMES: contextvars.ContextVar[tuple[_Frame, ...]] = contextvars.ContextVar(
    "mod_mox_frames", default=()
)


@contextlib.contextmanager
def _running(double: _Double, function: str) -> t.Iterator[None]:
    """Mark *function* of *double* as executing in the current context."""
    token = _FRAMES.set((*_FRAMES.get(), _Frame(double, function)))
    try:
        yield
    finally:
        _FRAMES.reset(token)


def passthrough(*args: object, **kwargs: object) -> t.Any:  # noqa: ANN401
    """Call the original implementation of the executing replacement.

    Only valid from inside a replacement function installed on a unit doubled
    with the ``passthrough`` option::

        with with_mock(text, {"reverse": lambda s: passthrough(s) + "!"},
                       options=["passthrough"]):
            assert text.reverse("abc") == "cba!"

    ``async def`` replacements may call it while they are awaited; the
    original coroutine is returned for the replacement to await. Generator
    replacements run after the call has returned and cannot use it.
    """
    frames = _FRAMES.get()
    if not frames:
        msg = "passthrough() can only be called from inside a replacement function"
        raise LifecycleError(msg)
    double, function = frames[-1]
    if not double.passthrough:
        msg = f"{double.name} was not doubled with the 'passthrough' option"
        raise NotPassthroughEnabledError(msg)
    return double.call_original(function, args, kwargs)


def _import_unit(path: str) -> object:
    try:
        return importlib.import_module(path)
    except ModuleNotFoundError as exc:
        parent, _, attr = path.rpartition(".")
        if not parent:
            msg = f"cannot import unit {path!r}"
            raise EngineUnavailableError(msg) from exc
    container = _import_unit(parent)
    target = getattr(container, attr, _MISSING)
    if inspect.ismodule(target) or inspect.isclass(target):
        return target
    msg = f"{path!r} does not name a module or class"
    raise EngineUnavailableError(msg)


class DoubleEngine:
    """Registry of live doubles keyed by unit identity."""

    def __init__(self) -> None:
        self._doubles: dict[int, _Double] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Unit resolution
    # ------------------------------------------------------------------
    def resolve(self, unit: UnitRef) -> t.Any:  # noqa: ANN401
        """Return the module or class named by *unit*."""
        if isinstance(unit, str):
            return _import_unit(unit)
        if inspect.ismodule(unit) or inspect.isclass(unit):
            return unit
        msg = f"{unit!r} is not a module, class or import path"
        raise EngineUnavailableError(msg)

    def exists(self, unit: UnitRef) -> bool:
        """Return ``True`` when *unit* resolves to a module or class."""
        try:
            self.resolve(unit)
        except EngineUnavailableError:
            return False
        return True

    def is_doubled(self, unit: UnitRef) -> bool:
        """Return ``True`` when *unit* currently has a live double."""
        try:
            target = self.resolve(unit)
        except EngineUnavailableError:
            return False
        with self._lock:
            return id(target) in self._doubles

    def doubled_units(self) -> list[t.Any]:
        """Return every unit with a live double, oldest first."""
        with self._lock:
            return [double.unit for double in self._doubles.values()]

    def _require(self, unit: UnitRef) -> _Double:
        target = self.resolve(unit)
        with self._lock:
            double = self._doubles.get(id(target))
        if double is None:
            msg = f"{unit_name(target)} is not doubled"
            raise NotDoubledError(msg)
        return double

    # ------------------------------------------------------------------
    # Install and restore
    # ------------------------------------------------------------------
    def create(
        self, unit: UnitRef, options: str | t.Iterable[str] | None = None
    ) -> None:
        """Double *unit*, replacing each of its own routines with a dispatcher."""
        target = self.resolve(unit)
        opts = normalise_options(options)
        unknown = opts - set(Option)
        if unknown:
            logger.debug(
                "Ignoring unknown options for %s: %s",
                unit_name(target),
                sorted(unknown),
            )
        with self._lock:
            if id(target) in self._doubles:
                msg = f"{unit_name(target)} is already doubled"
                raise EngineUnavailableError(msg)
            double = _Double(target, opts)
            try:
                for function, descriptor in _own_routines(target).items():
                    self._install_dispatcher(double, function, descriptor)
            except (AttributeError, TypeError) as exc:
                double.restore()
                msg = f"cannot patch {unit_name(target)}: {exc}"
                raise EngineUnavailableError(msg) from exc
            self._doubles[id(target)] = double
        logger.debug(
            "Doubled %s (%d functions, options=%s)",
            double.name,
            len(double.dispatchers),
            sorted(opts),
        )

    def expect(
        self, unit: UnitRef, function: str, implementation: t.Callable[..., t.Any]
    ) -> None:
        """Install *implementation* as a replacement for *function*."""
        if not callable(implementation):
            msg = (
                f"replacement for {function!r} must be callable, "
                f"got {implementation!r}"
            )
            raise TypeError(msg)
        double = self._require(unit)
        with self._lock:
            if function not in double.dispatchers:
                self._install_expected(double, function)
            double.add(
                function, _arity(implementation), _Replacement.of(implementation)
            )
        logger.debug("Expecting %s.%s", double.name, function)

    def _install_expected(self, double: _Double, function: str) -> None:
        unit = double.unit
        descriptor = vars(unit).get(function, _MISSING)
        if descriptor is _MISSING:
            descriptor = inspect.getattr_static(unit, function, _MISSING)
        if descriptor is _MISSING:
            if not double.non_strict:
                msg = (
                    f"{double.name} has no function {function!r}; "
                    "use the 'non_strict' option to add one"
                )
                raise EngineUnavailableError(msg)
        elif _callable_of(descriptor) is None:
            msg = f"{double.name}.{function} is not callable"
            raise EngineUnavailableError(msg)
        try:
            self._install_dispatcher(double, function, descriptor)
        except (AttributeError, TypeError) as exc:
            msg = f"cannot patch {double.name}.{function}: {exc}"
            raise EngineUnavailableError(msg) from exc

    def _install_dispatcher(
        self, double: _Double, function: str, descriptor: object
    ) -> None:
        unit = double.unit
        double.originals[function] = vars(unit).get(function, _MISSING)
        original = None if descriptor is _MISSING else _callable_of(descriptor)
        double.callables[function] = original

        def dispatcher(*args: object, **kwargs: object) -> t.Any:  # noqa: ANN401
            return self._dispatch(double, function, args, kwargs)

        if original is not None and inspect.isroutine(original):
            functools.update_wrapper(dispatcher, original)
        else:
            dispatcher.__name__ = function
            dispatcher.__qualname__ = f"{double.name}.{function}"
        setattr(dispatcher, DISPATCHER_ATTR, (double, function))

        installed: object = dispatcher
        if isinstance(descriptor, staticmethod):
            installed = staticmethod(dispatcher)
        elif isinstance(descriptor, classmethod):
            installed = classmethod(dispatcher)
        elif (
            inspect.isclass(unit)
            and original is not None
            and not inspect.isfunction(original)
        ):
            # builtins and other callables do not bind to instances
            installed = staticmethod(dispatcher)
        setattr(unit, function, installed)
        double.dispatchers[function] = installed

    def destroy(self, unit: UnitRef) -> None:
        """Restore *unit* and discard its history; no-op if it is not doubled."""
        target = self.resolve(unit)
        with self._lock:
            double = self._doubles.pop(id(target), None)
        if double is None:
            logger.debug("%s is not doubled; nothing to restore", unit_name(target))
            return
        errors = double.restore()
        if errors:
            details = "; ".join(f"{name}: {exc}" for name, exc in errors)
            msg = f"failed to restore {double.name}: {details}"
            raise EngineUnavailableError(msg) from errors[0][1]
        logger.debug("Restored %s", double.name)

    def destroy_all(self) -> None:
        """Restore every doubled unit."""
        errors: list[Exception] = []
        for unit in self.doubled_units():
            try:
                self.destroy(unit)
            except EngineUnavailableError as exc:
                logger.exception("Error restoring %s", unit_name(unit))
                errors.append(exc)
        if errors:
            msg = "; ".join(str(exc) for exc in errors)
            raise EngineUnavailableError(msg) from errors[0]

    def validate(self, unit: UnitRef) -> bool:
        """Return ``True`` if every dispatcher is in place and no call failed.

        Raises
        ------
        NotDoubledError
            When *unit* is not currently doubled.
        """
        double = self._require(unit)
        if double.failures:
            logger.debug("%s failed validation: %s", double.name, double.failures)
            return False
        current = vars(double.unit)
        return all(
            current.get(function) is installed
            for function, installed in double.dispatchers.items()
        )

    def failures(self, unit: UnitRef) -> list[str]:
        """Return descriptions of calls that no replacement could serve."""
        double = self._require(unit)
        return list(double.failures)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def _dispatch(
        self,
        double: _Double,
        function: str,
        args: tuple[object, ...],
        kwargs: dict[str, object],
    ) -> object:
        with _running(double, function):
            try:
                result = self._invoke(double, function, args, kwargs)
            except BaseException as exc:
                double.record(
                    self._record(double, function, args, kwargs, exception=exc)
                )
                raise
        if inspect.iscoroutine(result):
            return self._complete(double, function, args, kwargs, result)
        double.record(self._record(double, function, args, kwargs, result=result))
        return result

    async def _complete(
        self,
        double: _Double,
        function: str,
        args: tuple[object, ...],
        kwargs: dict[str, object],
        pending: t.Coroutine[t.Any, t.Any, t.Any],
    ) -> object:
        """Await a coroutine returned by a replacement or original.

        The call stays marked as executing while it is awaited so that
        ``async def`` replacements can use :func:`passthrough`; the awaited
        value is what gets recorded.
        """
        with _running(double, function):
            try:
                result = await pending
            except BaseException as exc:
                double.record(
                    self._record(double, function, args, kwargs, exception=exc)
                )
                raise
        double.record(self._record(double, function, args, kwargs, result=result))
        return result

    def _invoke(
        self,
        double: _Double,
        function: str,
        args: tuple[object, ...],
        kwargs: dict[str, object],
    ) -> object:
        impl = double.select(function, args, kwargs)
        if impl is None:
            if double.passthrough and double.callables.get(function) is not None:
                return double.call_original(function, args, kwargs)
            description = f"{double.name}.{function}({_format_args(args, kwargs)})"
            double.fail(f"unexpected call {description}")
            msg = f"no replacement for {description}"
            raise UnexpectedCallError(msg)
        try:
            return impl(*args, **kwargs)
        except NoMatchingClauseError as exc:
            double.fail(f"{double.name}.{function}: {exc}")
            raise

    @staticmethod
    def _record(
        double: _Double,
        function: str,
        args: tuple[object, ...],
        kwargs: dict[str, object],
        *,
        result: object = None,
        exception: BaseException | None = None,
    ) -> CallRecord:
        return CallRecord(
            thread_id=threading.get_ident(),
            unit=double.unit,
            function=function,
            args=args,
            kwargs=dict(kwargs),
            result=result,
            exception=exception,
        )

    def passthrough(self, *args: object, **kwargs: object) -> t.Any:  # noqa: ANN401
        """Call the original implementation; see :func:`passthrough`."""
        return passthrough(*args, **kwargs)

    # ------------------------------------------------------------------
    # History queries
    # ------------------------------------------------------------------
    def history(self, unit: UnitRef) -> list[CallRecord]:
        """Return the recorded calls of *unit* in call order."""
        return self._require(unit).snapshot()

    def reset(self, unit: UnitRef) -> None:
        """Forget the recorded calls of *unit* while keeping it doubled."""
        self._require(unit).clear_history()

    def num_calls(
        self,
        unit: UnitRef,
        function: str,
        args: t.Sequence[object],
        kwargs: t.Mapping[str, object] | None = None,
    ) -> int:
        """Count recorded calls of ``unit.function`` matching the patterns."""
        return sum(
            record.matches(function, args, kwargs) for record in self.history(unit)
        )

    def was_called(
        self,
        unit: UnitRef,
        function: str,
        args: t.Sequence[object],
        kwargs: t.Mapping[str, object] | None = None,
    ) -> bool:
        """Return ``True`` if a recorded call matches the patterns."""
        return any(
            record.matches(function, args, kwargs) for record in self.history(unit)
        )


def describe_target(target: object) -> tuple[t.Any, str]:
    """Return ``(unit, function)`` for a dispatcher installed by the engine."""
    marker = getattr(target, DISPATCHER_ATTR, None)
    if marker is None:
        msg = f"{target!r} is not a doubled function"
        raise NotDoubledError(msg)
    double, function = marker
    return double.unit, function


_ENGINE = DoubleEngine()


def get_engine() -> DoubleEngine:
    """Return the process-wide engine."""
    return _ENGINE


__all__ = [
    "CallRecord",
    "DoubleEngine",
    "Option",
    "describe_target",
    "get_engine",
    "normalise_options",
    "passthrough",
    "unit_name",
]
