"""Call descriptions exchanged between the gateway, matcher and delegates."""

from __future__ import annotations

import dataclasses as dc
import enum
import inspect
import typing as t

from ._typing_utils import EMPTY, type_hints

_REPR_FIELD_LIMIT: t.Final[int] = 80


class MemberKind(enum.StrEnum):
    """How a member is bound to its declaring type."""

    INSTANCE = "instance"
    STATIC = "static"
    CONSTRUCTOR = "constructor"


def _shorten(text: str, limit: int = _REPR_FIELD_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return f"{text[: limit - 3]}..."


def format_arguments(arguments: t.Iterable[object]) -> str:
    """Return a compact, comma separated rendering of *arguments*."""
    return ", ".join(_shorten(repr(arg)) for arg in arguments)


@dc.dataclass(frozen=True, slots=True)
class Member:
    """Identity and declared shape of one intercepted member.

    Two members are equal when they share declaring type, name and kind; the
    signature is descriptive only.
    """

    owner: type
    name: str
    kind: MemberKind
    signature: inspect.Signature = dc.field(compare=False, repr=False)
    parameter_types: tuple[t.Any, ...] = dc.field(compare=False, repr=False)
    return_type: t.Any = dc.field(compare=False, repr=False, default=EMPTY)

    @classmethod
    def from_function(
        cls,
        owner: type,
        name: str,
        func: t.Callable[..., object],
        kind: MemberKind,
        *,
        skip_first: bool = True,
    ) -> Member:
        """Describe *func* as member *name* of *owner*.

        ``skip_first`` drops the receiver (``self`` or ``cls``) from the
        signature so patterns and live arguments line up positionally.
        """
        signature = inspect.signature(func)
        params = list(signature.parameters.values())
        if skip_first and params:
            params = params[1:]
        hints = type_hints(func)
        signature = signature.replace(parameters=params)
        return cls(
            owner=owner,
            name=name,
            kind=kind,
            signature=signature,
            parameter_types=tuple(hints.get(p.name, EMPTY) for p in params),
            return_type=hints.get("return", signature.return_annotation),
        )

    @property
    def parameters(self) -> tuple[inspect.Parameter, ...]:
        """Return the declared parameters, receiver excluded."""
        return tuple(self.signature.parameters.values())

    @property
    def qualname(self) -> str:
        """Return ``Owner.name`` for messages."""
        return f"{self.owner.__qualname__}.{self.name}"

    @property
    def is_constructor(self) -> bool:
        """Return ``True`` for ``__init__`` members."""
        return self.kind is MemberKind.CONSTRUCTOR

    def bind(
        self, args: t.Sequence[object], kwargs: t.Mapping[str, object]
    ) -> tuple[object, ...]:
        """Normalise a call into one value per declared parameter.

        Defaults are applied; ``*args`` collapses into a tuple and
        ``**kwargs`` into a dict. A call that does not fit the signature
        raises :class:`TypeError`, exactly as the real member would.
        """
        bound = self.signature.bind(*args, **kwargs)
        bound.apply_defaults()
        return tuple(bound.arguments[p.name] for p in self.parameters)

    def expand(
        self, arguments: t.Sequence[object]
    ) -> tuple[tuple[object, ...], dict[str, object]]:
        """Invert :meth:`bind`, returning call-ready ``(args, kwargs)``."""
        args: list[object] = []
        kwargs: dict[str, object] = {}
        for param, value in zip(self.parameters, arguments, strict=True):
            if param.kind is inspect.Parameter.VAR_POSITIONAL:
                args.extend(t.cast("t.Iterable[object]", value))
            elif param.kind is inspect.Parameter.VAR_KEYWORD:
                kwargs.update(t.cast("t.Mapping[str, object]", value))
            elif param.kind is inspect.Parameter.KEYWORD_ONLY:
                kwargs[param.name] = value
            else:
                args.append(value)
        return tuple(args), kwargs

    def describe(self, arguments: t.Iterable[object] = ()) -> str:
        """Return ``Owner.name(arg, ...)``."""
        name = self.owner.__qualname__ if self.is_constructor else self.qualname
        return f"{name}({format_arguments(arguments)})"


@dc.dataclass(frozen=True, slots=True, eq=False)
class InvocationEvent:
    """One intercepted call as handed over by the gateway."""

    instance: object | None
    member: Member
    arguments: tuple[object, ...]

    @classmethod
    def from_call(
        cls,
        member: Member,
        instance: object | None,
        args: t.Sequence[object],
        kwargs: t.Mapping[str, object],
    ) -> InvocationEvent:
        """Bind a raw call against *member*'s signature."""
        return cls(instance=instance, member=member, arguments=member.bind(args, kwargs))

    @property
    def is_constructor(self) -> bool:
        """Return ``True`` when the event reports a constructor call."""
        return self.member.is_constructor

    def describe(self) -> str:
        """Return a readable rendering of the call."""
        return self.member.describe(self.arguments)


@dc.dataclass(frozen=True, slots=True, eq=False)
class Invocation:
    """Read-only view of a matched call, passed to delegates on request.

    ``invocation_count`` already includes the current call, so the first
    matching call observes ``1``. ``max_invocations`` is ``-1`` when the
    expectation is unbounded.
    """

    invoked_instance: t.Any
    invoked_arguments: tuple[t.Any, ...]
    invoked_member: Member
    invocation_count: int
    min_invocations: int
    max_invocations: int

    @property
    def invocation_index(self) -> int:
        """Return the zero-based position of this call."""
        return self.invocation_count - 1


__all__ = [
    "Invocation",
    "InvocationEvent",
    "Member",
    "MemberKind",
    "format_arguments",
]
