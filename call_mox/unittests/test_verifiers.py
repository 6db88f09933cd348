"""Unit tests for :mod:`call_mox.verifiers`."""

from __future__ import annotations

from call_mox.errors import (
    TooFewInvocationsError,
    TooManyInvocationsError,
    UnexpectedInvocationError,
    VerificationError,
)
from call_mox.expectations import Expectation
from call_mox.invocation import InvocationEvent, Member, MemberKind
from call_mox.unittests._collaborators import Repository
from call_mox.verifiers import (
    CountVerifier,
    TooFewInvocations,
    TooManyInvocations,
    UnmatchedInvocation,
    format_sections,
    too_many_invocations_error,
    unexpected_invocation_error,
    verification_error,
)


def _member(name: str) -> Member:
    return Member.from_function(
        Repository, name, vars(Repository)[name], MemberKind.INSTANCE
    )


def _exp(name: str, *patterns: object, strict: bool = False, **bounds: int) -> Expectation:
    exp = Expectation(id=1, member=_member(name), patterns=patterns, strict=strict)
    exp.set_bounds(**bounds)
    return exp


def _call(name: str, *arguments: object) -> InvocationEvent:
    return InvocationEvent(instance=None, member=_member(name), arguments=arguments)


def test_count_verifier_accepts_counts_within_bounds() -> None:
    """No violations when every count sits inside its bounds."""
    exp = _exp("open", min_times=1, max_times=2)
    exp.invocation_count = 2
    assert CountVerifier().verify([exp, _exp("close")]) == []


def test_count_verifier_reports_too_few_once() -> None:
    """A never-called ``min_times=1`` expectation yields one violation."""
    exp = _exp("open", min_times=1)
    violations = CountVerifier().verify([exp])
    assert violations == [TooFewInvocations(exp, 0, 1)]


def test_count_verifier_reports_too_many() -> None:
    """Counts over the maximum are reported with both numbers."""
    exp = _exp("close", max_times=1)
    exp.invocation_count = 3
    [violation] = CountVerifier().verify([exp])
    assert isinstance(violation, TooManyInvocations)
    assert (violation.actual, violation.expected) == (3, 1)


def test_format_sections_skips_empty_bodies() -> None:
    """Empty sections are omitted and bodies are indented."""
    msg = format_sections("Title.", [("Empty", ""), ("Body", "line 1\nline 2")])
    assert msg == "Title.\n\nBody:\n  line 1\n  line 2"


def test_unexpected_invocation_lists_same_member_expectations() -> None:
    """Plain unmatched calls show the recorded patterns for that member."""
    save_k = _exp("save", "k", 1)
    close = _exp("close")
    err = unexpected_invocation_error(
        UnmatchedInvocation(_call("save", "k", 2)), [save_k, close]
    )
    assert isinstance(err, UnexpectedInvocationError)
    text = str(err)
    assert "Repository.save('k', 2)" in text
    assert "1. Repository.save('k', 1)" in text
    assert "Repository.close()" not in text


def test_unexpected_invocation_out_of_order_names_blocker() -> None:
    """Ordering failures describe the expectation still waiting."""
    opened = _exp("open", strict=True)
    err = unexpected_invocation_error(
        UnmatchedInvocation(_call("close"), blocked_by=opened), [opened]
    )
    text = str(err)
    assert "out of recorded order" in text
    assert "Repository.open()" in text
    assert "expected calls=1..1" in text
    assert "strict" in text


def test_too_many_invocations_error_message() -> None:
    """The error carries the violation and the offending call."""
    exp = _exp("close", max_times=1)
    violation = TooManyInvocations(exp, 2, 1)
    err = too_many_invocations_error(violation, _call("close"))
    assert isinstance(err, TooManyInvocationsError)
    assert err.violations == (violation,)
    assert "2 (expected 1)" in str(err)
    assert "Last call" in str(err)


def test_verification_error_prefers_too_few() -> None:
    """Any too-few violation decides the error type."""
    opened = _exp("open", min_times=1)
    closed = _exp("close", max_times=0)
    violations = [
        TooManyInvocations(closed, 1, 0),
        TooFewInvocations(opened, 0, 1),
        UnmatchedInvocation(_call("save", "x", 1)),
    ]
    err = verification_error(violations, [_call("close")])
    assert isinstance(err, TooFewInvocationsError)
    assert isinstance(err, AssertionError)
    assert len(err.violations) == 3
    text = str(err)
    assert text.startswith("Unfulfilled expectations.")
    assert "Too few invocations:" in text
    assert "Too many invocations:" in text
    assert "Unmatched calls:" in text
    assert "Recorded invocations:\n  Repository.close()" in text


def test_verification_error_unexpected_only() -> None:
    """Only unmatched calls yield an unexpected-invocation error."""
    err = verification_error([UnmatchedInvocation(_call("open"))])
    assert type(err) is UnexpectedInvocationError
    assert isinstance(err, VerificationError)
    assert "Recorded invocations:\n  (none)" in str(err)
