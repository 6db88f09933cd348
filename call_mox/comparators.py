"""Argument patterns used in place of exact values when recording."""

from __future__ import annotations

import re
import typing as t


class Comparator:
    """Base class for recorded argument patterns.

    Any recorded argument that is a :class:`Comparator` is consulted with the
    live argument instead of being compared for equality.
    """

    def __call__(self, value: object) -> bool:
        """Return ``True`` if *value* satisfies the comparison."""
        raise NotImplementedError


class Any(Comparator):
    """Match any value, optionally restricted to instances of ``typ``.

    ``None`` always matches, so ``Any(str)`` stands in for an optional string
    argument the same way ``Any()`` stands in for any argument at all.
    """

    def __init__(self, typ: type | tuple[type, ...] | None = None) -> None:
        self.typ = typ

    def __call__(self, value: object) -> bool:
        """Return ``True`` for ``None`` or any value of the configured kind."""
        if value is None or self.typ is None:
            return True
        return isinstance(value, self.typ)

    def __repr__(self) -> str:
        """Return a debug representation."""
        if self.typ is None:
            return "Any()"
        if isinstance(self.typ, tuple):
            names = ", ".join(typ.__name__ for typ in self.typ)
            return f"Any(({names}))"
        return f"Any({self.typ.__name__})"


class IsA(Comparator):
    """Match values that are instances of ``typ``."""

    def __init__(self, typ: type | tuple[type, ...]) -> None:
        self.typ = typ

    def __call__(self, value: object) -> bool:
        """Return ``True`` when ``value`` is an instance of ``typ``."""
        return isinstance(value, self.typ)

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"IsA({self.typ!r})"


class Regex(Comparator):
    """Match if *value* is a string matching ``pattern``."""

    def __init__(self, pattern: str) -> None:
        self._pattern = re.compile(pattern)

    def __call__(self, value: object) -> bool:
        """Return ``True`` if the regex matches *value*."""
        return isinstance(value, str) and bool(self._pattern.search(value))

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"Regex({self._pattern.pattern!r})"


class Contains(Comparator):
    """Match if ``item`` is found in *value*."""

    def __init__(self, item: object) -> None:
        self.item = item

    def __call__(self, value: object) -> bool:
        """Return ``True`` if ``item`` is in *value*."""
        try:
            return self.item in value  # type: ignore[operator]
        except TypeError:
            return False

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"Contains({self.item!r})"


class StartsWith(Comparator):
    """Match if *value* is a string beginning with ``prefix``."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix

    def __call__(self, value: object) -> bool:
        """Return ``True`` if *value* starts with ``prefix``."""
        return isinstance(value, str) and value.startswith(self.prefix)

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"StartsWith({self.prefix!r})"


class Predicate(Comparator):
    """Use a custom ``func`` to determine a match."""

    def __init__(self, func: t.Callable[[t.Any], bool]) -> None:
        self.func = func

    def __call__(self, value: object) -> bool:
        """Return ``True`` if ``func(value)`` is truthy."""
        return bool(self.func(value))

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"Predicate({self.func})"


ANY: t.Final[Any] = Any()
any_int: t.Final[Any] = Any(int)
any_float: t.Final[Any] = Any(float)
any_str: t.Final[Any] = Any(str)
any_bool: t.Final[Any] = Any(bool)
any_bytes: t.Final[Any] = Any(bytes)


__all__ = [
    "ANY",
    "Any",
    "Comparator",
    "Contains",
    "IsA",
    "Predicate",
    "Regex",
    "StartsWith",
    "any_bool",
    "any_bytes",
    "any_float",
    "any_int",
    "any_str",
]
