"""Result-producing strategies attached to expectations."""

from __future__ import annotations

import dataclasses as dc
import typing as t

from ._typing_utils import EMPTY

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .delegates import DelegateMethod
    from .invocation import Invocation, Member

_DEFAULTS: t.Final[dict[type, t.Callable[[], object]]] = {
    bool: bool,
    int: int,
    float: float,
    complex: complex,
    str: str,
    bytes: bytes,
    bytearray: bytearray,
    list: list,
    dict: dict,
    set: set,
    frozenset: frozenset,
    tuple: tuple,
}


def default_for(annotation: object) -> object:
    """Return the zero value for a declared return type.

    Builtin scalars and containers map to their empty value; ``None``,
    optional and unknown types map to ``None``.
    """
    if annotation is EMPTY or annotation is None:
        return None
    factory = _DEFAULTS.get(t.cast("type", annotation))
    if factory is None:
        factory = _DEFAULTS.get(t.cast("type", t.get_origin(annotation)))
    return None if factory is None else factory()


class ResultProducer(t.Protocol):
    """Strategy turning a matched call into a value or an exception."""

    def produce(self, context: Invocation) -> object:
        """Return the call result or raise."""
        ...


@dc.dataclass(frozen=True, slots=True)
class FixedValue:
    """Return the same stored value for every call."""

    value: object

    def produce(self, context: Invocation) -> object:
        """Return :attr:`value`."""
        return self.value


@dc.dataclass(frozen=True, slots=True)
class Thrown:
    """Raise the stored exception unchanged."""

    exception: BaseException

    def produce(self, context: Invocation) -> t.NoReturn:
        """Raise :attr:`exception`."""
        raise self.exception.with_traceback(None)


@dc.dataclass(frozen=True, slots=True)
class DelegateProducer:
    """Run a resolved delegate method in place of the real member."""

    method: DelegateMethod

    def produce(self, context: Invocation) -> object:
        """Invoke the delegate; its exceptions propagate verbatim."""
        return self.method.invoke(context)


@dc.dataclass(frozen=True, slots=True)
class DefaultBehavior:
    """Return the type-default for the member's declared return kind."""

    member: Member

    def produce(self, context: Invocation) -> object:
        """Return the zero value for :attr:`member`."""
        return default_member_result(self.member)


def default_member_result(member: Member) -> object:
    """Return what an unconfigured call to *member* evaluates to."""
    if member.is_constructor:
        return None
    return default_for(member.return_type)


__all__ = [
    "DefaultBehavior",
    "DelegateProducer",
    "FixedValue",
    "ResultProducer",
    "Thrown",
    "default_for",
    "default_member_result",
]
