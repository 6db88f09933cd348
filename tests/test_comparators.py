"""Comparator helpers and expectation matching tests."""

from __future__ import annotations

import re
import typing as t

import pytest

from call_mox import CallMox, UnexpectedInvocationError
from call_mox.comparators import (
    ANY,
    Contains,
    IsA,
    Predicate,
    Regex,
    StartsWith,
    any_bool,
    any_bytes,
    any_float,
    any_int,
    any_str,
)
from call_mox.comparators import (
    Any as AnyComparator,
)
from call_mox.unittests._collaborators import Collaborator, Repository


@pytest.mark.parametrize(
    ("matcher", "good", "bad", "expected_repr"),
    [
        (AnyComparator(), "anything", None, "Any()"),
        (IsA(int), 42, "nope", "IsA(<class 'int'>)"),
        (Contains("bar"), "foobarbaz", "qux", "Contains('bar')"),
        (StartsWith("bar"), "barfly", "foobar", "StartsWith('bar')"),
    ],
)
def test_matchers_match_and_repr(
    matcher: t.Callable[[object], bool],
    good: object,
    bad: object | None,
    expected_repr: str,
) -> None:
    """Matchers evaluate values and provide helpful reprs."""
    assert matcher(good)
    if bad is not None:
        assert not matcher(bad)
    assert repr(matcher) == expected_repr


@pytest.mark.parametrize(
    ("matcher", "good", "bad", "expected_repr"),
    [
        (any_int, 3, "3", "Any(int)"),
        (any_float, 1.5, 1, "Any(float)"),
        (any_str, "s", b"s", "Any(str)"),
        (any_bool, False, 0, "Any(bool)"),
        (any_bytes, b"x", "x", "Any(bytes)"),
        (AnyComparator((int, str)), "x", 1.0, "Any((int, str))"),
    ],
)
def test_typed_any_accepts_none(
    matcher: AnyComparator, good: object, bad: object, expected_repr: str
) -> None:
    """Typed wildcards accept their kind and ``None``, nothing else."""
    assert matcher(good)
    assert matcher(None)
    assert not matcher(bad)
    assert repr(matcher) == expected_repr


def test_any_matches_everything() -> None:
    """The untyped wildcard matches any value at all."""
    assert all(ANY(value) for value in (None, 0, "", object(), [1]))


def test_regex_matches_and_repr() -> None:
    """Regex matches via search and exposes its pattern."""
    pattern = r"^foo\d$"
    matcher = Regex(pattern)
    assert matcher("foo1")
    assert not matcher("bar")
    assert repr(matcher) == f"Regex({pattern!r})"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, False),
        ("", False),
        (123, True),
        (True, True),
        (123.0, False),
        ([], False),
    ],
)
def test_is_a_edge_cases(value: object, *, expected: bool) -> None:
    """IsA is a strict isinstance check; ``None`` never matches."""
    matcher = IsA(int)
    assert matcher(value) is expected


def test_regex_invalid_pattern_raises() -> None:
    """Regex raises an error when the pattern is malformed."""
    with pytest.raises(re.error):
        Regex("[unclosed")


@pytest.mark.parametrize("value", [123, None, ["foo1"]])
def test_regex_non_string_input(value: object) -> None:
    """Regex does not match non-string values."""
    assert not Regex(r"^foo\d$")(value)


def test_contains_unsupported_container() -> None:
    """Contains treats values without membership tests as non-matches."""
    assert not Contains("a")(42)
    assert Contains(2)([1, 2, 3])


def test_predicate_matches_and_repr() -> None:
    """Predicate delegates to the provided function."""
    matcher = Predicate(str.isupper)
    assert matcher("HELLO")
    assert not matcher("hi")
    rep = repr(matcher)
    assert rep.startswith("Predicate(<")
    assert rep.endswith(")")


def test_predicate_raises_exception() -> None:
    """Predicate propagates exceptions from the wrapped function."""

    def raises_exc(_: str) -> bool:
        msg = "Test exception"
        raise ValueError(msg)

    matcher = Predicate(raises_exc)
    with pytest.raises(ValueError, match="Test exception"):
        matcher("anything")


def test_predicate_non_boolean_return() -> None:
    """Predicate coerces the function result to bool."""
    assert Predicate(lambda _: "not a bool")("anything")
    assert not Predicate(lambda _: "")("anything")


def test_expectation_with_matchers() -> None:
    """Recorded comparators match live arguments position by position."""
    with CallMox() as mox:
        target = mox.mocked(Collaborator).instance
        with mox.expectations(strict=True) as rec:
            target.do_something(any_bool, Predicate(lambda v: len(v) == 2), Regex("^ab"))
            rec.result = "matched"

        assert target.do_something(True, [1, 2], "abc") == "matched"


@pytest.mark.parametrize(
    "args",
    [
        ("k", 1),
        ("other", "1"),
    ],
)
def test_expectation_with_matchers_failure(args: tuple[object, ...]) -> None:
    """Calls whose arguments fail a comparator match nothing."""
    mox = CallMox(verify_on_exit=False)
    repo = mox.mocked(Repository).instance
    with mox.expectations(strict=True):
        repo.save(StartsWith("other"), IsA(int))

    with pytest.raises(UnexpectedInvocationError) as excinfo:
        repo.save(*args)
    assert "StartsWith('other'), IsA(<class 'int'>)" in str(excinfo.value)
    mox.__exit__(None, None, None)
