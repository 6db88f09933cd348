"""Interception stubs that route calls on a Python class into the engine.

:class:`MockedType` replaces the methods a class declares or inherits (instance
methods, static methods, class methods and ``__init__``) with stubs that
describe each call as an :class:`~call_mox.invocation.InvocationEvent` and
hand it to a dispatcher. Whatever the dispatcher returns or raises is what
the caller sees. :meth:`MockedType.restore` puts the original attributes
back.
"""

from __future__ import annotations

import functools
import inspect
import logging
import typing as t

from .errors import LifecycleError
from .invocation import InvocationEvent, Member, MemberKind

logger = logging.getLogger(__name__)

_INSTALLED_ATTR: t.Final[str] = "__call_mox_mocked__"


class Dispatcher(t.Protocol):
    """Receiver of intercepted calls."""

    def dispatch(self, event: InvocationEvent) -> object:
        """Answer *event* with a value or raise."""
        ...


def _is_interceptable(name: str, attr: object) -> bool:
    if name.startswith("__") and name.endswith("__") and name != "__init__":
        return False
    return isinstance(attr, staticmethod | classmethod) or inspect.isfunction(attr)


class MockedType:
    """Interception stubs installed on one class.

    Parameters
    ----------
    cls:
        The class whose members, inherited ones included, are intercepted.
    dispatcher:
        Receives one event per intercepted call.
    members:
        Restrict interception to these member names. All interceptable
        members are stubbed when omitted.
    singleton:
        Reported as the invoked instance for static and class method calls,
        for types whose static API fronts a shared instance.
    """

    def __init__(
        self,
        cls: type,
        dispatcher: Dispatcher,
        *,
        members: t.Iterable[str] | None = None,
        singleton: object | None = None,
    ) -> None:
        self._cls = cls
        self._dispatcher = dispatcher
        self._only = frozenset(members) if members is not None else None
        self._singleton = singleton
        self._saved: dict[str, object] = {}
        self._inherited: set[str] = set()
        self._saved_abstract: frozenset[str] | None = None
        self._members: dict[str, Member] = {}
        self._instance: object | None = None
        self._installed = False

    @property
    def cls(self) -> type:
        """Return the intercepted class."""
        return self._cls

    @property
    def singleton(self) -> object | None:
        """Return the instance reported for type-bound calls."""
        return self._singleton

    @property
    def members(self) -> dict[str, Member]:
        """Return the intercepted members by name."""
        return dict(self._members)

    @property
    def is_installed(self) -> bool:
        """Return ``True`` while the stubs are in place."""
        return self._installed

    @property
    def instance(self) -> t.Any:
        """Return an instance created without running the real constructor."""
        if self._instance is None:
            new = self._cls.__new__
            if new is object.__new__:
                self._instance = object.__new__(self._cls)
            else:
                self._instance = new(self._cls)
        return self._instance

    def install(self) -> None:
        """Replace the class's members, inherited ones included, with stubs."""
        if self._installed:
            return
        if _INSTALLED_ATTR in vars(self._cls):
            msg = f"{self._cls.__qualname__} is already mocked"
            raise LifecycleError(msg)

        for name, attr in list(self._interceptable_members()):
            if name in vars(self._cls):
                self._saved[name] = attr
            else:
                self._inherited.add(name)
            setattr(self._cls, name, self._make_stub(name, attr))

        missing = (self._only or frozenset()) - self._members.keys()
        if missing:
            self._restore_members()
            msg = (
                f"{self._cls.__qualname__} declares no interceptable member named "
                + ", ".join(sorted(missing))
            )
            raise ValueError(msg)
        if not self._members:
            msg = f"{self._cls.__qualname__} has no interceptable members"
            raise ValueError(msg)

        if "__abstractmethods__" in vars(self._cls):
            self._saved_abstract = frozenset(self._cls.__abstractmethods__)
            self._cls.__abstractmethods__ = frozenset()
        setattr(self._cls, _INSTALLED_ATTR, self)
        self._installed = True
        logger.debug(
            "Intercepting %s: %s", self._cls.__qualname__, ", ".join(self._members)
        )

    def _interceptable_members(self) -> t.Iterator[tuple[str, object]]:
        """Yield the nearest definition of each member along the MRO."""
        seen: set[str] = set()
        for klass in self._cls.__mro__:
            if klass is object:
                continue
            for name, attr in vars(klass).items():
                if name in seen:
                    continue
                seen.add(name)
                if self._only is not None and name not in self._only:
                    continue
                if _is_interceptable(name, attr):
                    yield name, attr

    def restore(self) -> None:
        """Put the original members back."""
        if not self._installed:
            return
        self._restore_members()
        if self._saved_abstract is not None:
            self._cls.__abstractmethods__ = self._saved_abstract
            self._saved_abstract = None
        delattr(self._cls, _INSTALLED_ATTR)
        self._installed = False
        logger.debug("Restored %s", self._cls.__qualname__)

    def _restore_members(self) -> None:
        for name, attr in self._saved.items():
            setattr(self._cls, name, attr)
        for name in self._inherited:
            delattr(self._cls, name)
        self._saved.clear()
        self._inherited.clear()
        self._members.clear()

    def _make_stub(self, name: str, attr: object) -> object:
        dispatch = self._dispatcher.dispatch
        singleton = self._singleton

        if isinstance(attr, staticmethod):
            func = attr.__func__
            member = self._describe(name, func, MemberKind.STATIC, skip_first=False)

            @functools.wraps(func)
            def static_stub(*args: object, **kwargs: object) -> object:
                return dispatch(InvocationEvent.from_call(member, singleton, args, kwargs))

            return staticmethod(static_stub)

        if isinstance(attr, classmethod):
            func = attr.__func__
            member = self._describe(name, func, MemberKind.STATIC)

            @functools.wraps(func)
            def class_stub(_cls: type, *args: object, **kwargs: object) -> object:
                return dispatch(InvocationEvent.from_call(member, singleton, args, kwargs))

            return classmethod(class_stub)

        func = t.cast("t.Callable[..., object]", attr)
        if name == "__init__":
            member = self._describe(name, func, MemberKind.CONSTRUCTOR)

            @functools.wraps(func)
            def init_stub(self_: object, *args: object, **kwargs: object) -> None:
                dispatch(InvocationEvent.from_call(member, self_, args, kwargs))

            return init_stub

        member = self._describe(name, func, MemberKind.INSTANCE)

        @functools.wraps(func)
        def instance_stub(self_: object, *args: object, **kwargs: object) -> object:
            return dispatch(InvocationEvent.from_call(member, self_, args, kwargs))

        return instance_stub

    def _describe(
        self,
        name: str,
        func: t.Callable[..., object],
        kind: MemberKind,
        *,
        skip_first: bool = True,
    ) -> Member:
        member = Member.from_function(self._cls, name, func, kind, skip_first=skip_first)
        self._members[name] = member
        return member

    def __repr__(self) -> str:
        """Return a debug representation."""
        state = "installed" if self._installed else "restored"
        return f"MockedType({self._cls.__qualname__}, {state})"


__all__ = ["Dispatcher", "MockedType"]
