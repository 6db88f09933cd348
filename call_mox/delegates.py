"""Delegate objects and resolution of their replacement methods.

A delegate supplies code to run in place of a mocked member. It may be a
plain callable or an object whose methods are inspected once, when the
delegate is attached to an expectation, to find the single method that fits
the member's parameters. The outcome of that inspection is a
:class:`DelegateMethod`, which the dispatcher calls without looking at the
delegate again.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import functools
import inspect
import logging
import typing as t

from ._typing_utils import (
    EMPTY,
    annotation_names,
    is_assignable,
    is_same_type,
    type_hints,
)
from .errors import (
    AmbiguousDelegateMethodError,
    DelegateResolutionError,
    NoUsableDelegateMethodError,
)
from .invocation import Invocation

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .invocation import Member

logger = logging.getLogger(__name__)

GENERIC_NAME: t.Final[str] = "delegate"
CONSTRUCTOR_NAMES: t.Final[tuple[str, ...]] = ("init", "__init__")
CONTEXT_NAMES: t.Final[frozenset[str]] = frozenset(
    {"invocation", "inv", "context", "ctx"}
)
_MOCK_MARKER: t.Final[str] = "__call_mox_mock__"

_POSITIONAL: t.Final = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)

F = t.TypeVar("F", bound=t.Callable[..., t.Any])


class Delegate:
    """Base class for objects that replace a mocked member's behaviour.

    Subclasses declare one replacement method. When several methods are
    present, mark the replacement with :func:`mock`.
    """


def mock(func: F) -> F:
    """Mark *func* as the replacement method of a :class:`Delegate`."""
    setattr(getattr(func, "__func__", func), _MOCK_MARKER, True)
    return func


def _is_marked(attr: object) -> bool:
    func = _function_of(attr)
    return func is not None and bool(getattr(func, _MOCK_MARKER, False))


def _function_of(attr: object) -> t.Callable[..., object] | None:
    if isinstance(attr, staticmethod | classmethod):
        return attr.__func__
    if inspect.isfunction(attr):
        return attr
    return None


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


class Rank(enum.IntEnum):
    """How well a delegate method's parameters fit the mocked member."""

    CATCH_ALL = 0
    WIDENED = 1
    EXACT = 2


@dc.dataclass(frozen=True, slots=True)
class DelegateMethod:
    """A delegate method resolved against one member.

    Attributes
    ----------
    func:
        The bound callable to invoke.
    name:
        The method's name, used for name preference and messages.
    wants_context:
        ``True`` when the first parameter receives the :class:`Invocation`.
    rank:
        The quality of the parameter match.
    spread:
        ``True`` when the method takes ``*args`` and receives the call as it
        was made rather than one value per declared parameter.
    """

    func: t.Callable[..., object]
    name: str
    wants_context: bool
    rank: Rank
    spread: bool = False

    def invoke(self, context: Invocation) -> object:
        """Call the delegate for the matched call described by *context*."""
        prefix: tuple[object, ...] = (context,) if self.wants_context else ()
        if self.rank is Rank.CATCH_ALL and not self.spread:
            return self.func(*prefix)
        if self.spread:
            args, kwargs = context.invoked_member.expand(context.invoked_arguments)
            return self.func(*prefix, *args, **kwargs)
        return self.func(*prefix, *context.invoked_arguments)


@dc.dataclass(frozen=True, slots=True)
class DelegateViolation:
    """Why a delegate could not be bound to a member."""

    error_type: type[DelegateResolutionError]
    message: str

    def to_error(self) -> DelegateResolutionError:
        """Return the exception describing this violation."""
        return self.error_type(self.message)


def _candidates(delegate: object) -> tuple[list[tuple[str, t.Callable[..., object]]], bool]:
    """Return ``(candidates, marked)`` for *delegate*."""
    if inspect.isroutine(delegate) or isinstance(delegate, functools.partial):
        name = getattr(delegate, "__name__", GENERIC_NAME)
        return [(name, t.cast("t.Callable[..., object]", delegate))], False

    cls = type(delegate)
    marked: list[tuple[str, t.Callable[..., object]]] = []
    seen: set[str] = set()
    for klass in cls.__mro__:
        if klass in (Delegate, object):
            continue
        for name, attr in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            if _is_marked(attr):
                marked.append((name, getattr(delegate, name)))
    if marked:
        return marked, True

    declared = [
        (name, getattr(delegate, name))
        for name, attr in vars(cls).items()
        if not _is_dunder(name) and _function_of(attr) is not None
    ]
    if declared:
        return declared, False
    if callable(delegate):
        return [("__call__", delegate.__call__)], False
    return [], False


def _is_context_annotation(annotation: object) -> bool:
    if annotation is Invocation:
        return True
    return isinstance(annotation, str) and annotation_names(annotation) == "Invocation"


def _context_readings(
    first: inspect.Parameter | None, hints: t.Mapping[str, object]
) -> tuple[bool, ...]:
    """Return the ways the leading parameter may be read, preferred first."""
    if first is None or first.kind not in _POSITIONAL:
        return (False,)
    annotation = hints.get(first.name, EMPTY)
    if _is_context_annotation(annotation):
        return (True,)
    if annotation is EMPTY and first.name in CONTEXT_NAMES:
        return (True, False)
    return (False,)


def _rank_shape(
    params: t.Sequence[inspect.Parameter],
    hints: t.Mapping[str, object],
    member: Member,
) -> tuple[Rank, bool] | None:
    """Rate *params* against *member*; ``None`` means unusable."""
    if any(
        p.kind is inspect.Parameter.KEYWORD_ONLY and p.default is EMPTY for p in params
    ):
        return None
    positional = [p for p in params if p.kind in _POSITIONAL]
    varargs = any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params)
    expected = member.parameter_types

    if not positional:
        if varargs:
            return Rank.WIDENED, True
        return (Rank.EXACT if not expected else Rank.CATCH_ALL), False
    if len(positional) != len(expected):
        return None

    declared = [hints.get(p.name, EMPTY) for p in positional]
    if all(is_same_type(m, d) for m, d in zip(expected, declared, strict=True)):
        return Rank.EXACT, False
    if all(is_assignable(m, d) for m, d in zip(expected, declared, strict=True)):
        return Rank.WIDENED, False
    return None


def _rate(name: str, func: t.Callable[..., object], member: Member) -> DelegateMethod | None:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return None
    params = list(signature.parameters.values())
    hints = type_hints(func)
    first = params[0] if params else None
    best: DelegateMethod | None = None
    for wants_context in _context_readings(first, hints):
        rest = params[1:] if wants_context else params
        shape = _rank_shape(rest, hints, member)
        if shape is None:
            continue
        rank, spread = shape
        # Readings are ordered by preference; a later one must rank higher.
        if best is None or rank > best.rank:
            best = DelegateMethod(
                func=func,
                name=name,
                wants_context=wants_context,
                rank=rank,
                spread=spread,
            )
    return best


def _preferred_names(member: Member) -> tuple[str, ...]:
    if member.is_constructor:
        return (GENERIC_NAME, *CONSTRUCTOR_NAMES)
    return (GENERIC_NAME, member.name)


def _delegate_label(delegate: object) -> str:
    if inspect.isroutine(delegate):
        return getattr(delegate, "__qualname__", repr(delegate))
    return type(delegate).__qualname__


def resolve_delegate(delegate: object, member: Member) -> DelegateMethod | DelegateViolation:
    """Find the one method of *delegate* that can stand in for *member*.

    Candidates are rated by parameter shape. Marked candidates whose name
    matches the member (or the generic ``delegate`` name) are preferred;
    among what remains the best rank must be unique.
    """
    candidates, marked = _candidates(delegate)
    usable = [
        method
        for name, func in candidates
        if (method := _rate(name, func, member)) is not None
    ]
    label = _delegate_label(delegate)
    if not usable:
        names = ", ".join(name for name, _ in candidates) or "(none)"
        msg = (
            f"Delegate {label} has no method usable for "
            f"{member.qualname}{member.signature}; candidates: {names}"
        )
        return DelegateViolation(NoUsableDelegateMethodError, msg)

    if marked:
        preferred = _preferred_names(member)
        named = [method for method in usable if method.name in preferred]
        if named:
            usable = named

    best = max(method.rank for method in usable)
    top = [method for method in usable if method.rank == best]
    if len(top) > 1:
        names = ", ".join(method.name for method in top)
        msg = (
            f"Delegate {label} has more than one method usable for "
            f"{member.qualname}{member.signature}: {names}"
        )
        return DelegateViolation(AmbiguousDelegateMethodError, msg)

    chosen = top[0]
    logger.debug(
        "Resolved delegate %s.%s for %s (rank=%s, context=%s)",
        label,
        chosen.name,
        member.qualname,
        chosen.rank.name,
        chosen.wants_context,
    )
    return chosen


__all__ = [
    "CONTEXT_NAMES",
    "GENERIC_NAME",
    "Delegate",
    "DelegateMethod",
    "DelegateViolation",
    "Rank",
    "mock",
    "resolve_delegate",
]
