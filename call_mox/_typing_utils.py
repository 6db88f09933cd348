"""Shared helpers for reading and comparing annotations."""

from __future__ import annotations

import inspect
import types
import typing as t

EMPTY: t.Final = inspect.Parameter.empty


def type_hints(func: t.Callable[..., object]) -> dict[str, t.Any]:
    """Return resolved annotations for *func*.

    Annotations that cannot be evaluated (for example names local to a test
    function under ``from __future__ import annotations``) are returned in
    their string form.
    """
    target = inspect.unwrap(getattr(func, "__func__", func))
    try:
        return t.get_type_hints(target)
    except (NameError, TypeError, AttributeError):
        return dict(getattr(target, "__annotations__", {}))


def annotation_names(annotation: object) -> str:
    """Return the bare name of an annotation for string comparison."""
    if isinstance(annotation, str):
        return annotation.rsplit(".", 1)[-1].strip()
    return getattr(annotation, "__name__", repr(annotation))


def _union_members(annotation: object) -> tuple[object, ...] | None:
    origin = t.get_origin(annotation)
    if origin is t.Union or origin is types.UnionType:
        return t.get_args(annotation)
    return None


def _as_class(annotation: object) -> type | None:
    if annotation is None:
        return type(None)
    if isinstance(annotation, type):
        return annotation
    origin = t.get_origin(annotation)
    if isinstance(origin, type):
        return origin
    return None


def is_unconstrained(annotation: object) -> bool:
    """Return ``True`` when *annotation* places no constraint on a value."""
    return annotation is EMPTY or annotation is t.Any or annotation is object


def is_same_type(source: object, target: object) -> bool:
    """Return ``True`` when both annotations denote the same type."""
    if is_unconstrained(source) or is_unconstrained(target):
        return True
    if isinstance(source, str) or isinstance(target, str):
        return annotation_names(source) == annotation_names(target)
    return source == target


def is_assignable(source: object, target: object) -> bool:
    """Return ``True`` when a value declared as *source* fits *target*.

    This is the widening check used for delegate parameters: ``int`` fits
    ``numbers.Number``, ``bool`` fits ``int | None`` and anything fits an
    unannotated parameter. ``None`` fits every target, so ``str | None`` fits
    ``str``. String annotations are compared by name only.
    """
    if is_same_type(source, target):
        return True
    if isinstance(source, str) or isinstance(target, str):
        return False
    if source is None or source is type(None):
        return True
    source_members = _union_members(source)
    if source_members is not None:
        return all(is_assignable(member, target) for member in source_members)
    target_members = _union_members(target)
    if target_members is not None:
        return any(is_assignable(source, option) for option in target_members)
    source_cls = _as_class(source)
    target_cls = _as_class(target)
    if source_cls is None or target_cls is None:
        return False
    try:
        return issubclass(source_cls, target_cls)
    except TypeError:
        return False
