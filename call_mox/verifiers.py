"""Verification of invocation counts and failure message formatting."""

from __future__ import annotations

import dataclasses as dc
import typing as t
from textwrap import indent

from .errors import (
    TooFewInvocationsError,
    TooManyInvocationsError,
    UnexpectedInvocationError,
    VerificationError,
)
from .expectations import UNBOUNDED

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .expectations import Expectation
    from .invocation import InvocationEvent


@dc.dataclass(frozen=True, slots=True)
class TooFewInvocations:
    """An expectation ended its scope under ``min_times``."""

    expectation: Expectation
    actual: int
    expected: int

    def describe(self) -> str:
        """Return a readable summary."""
        return (
            f"{self.expectation.describe()}\n"
            f"observed calls={self.actual} (expected at least {self.expected})"
        )


@dc.dataclass(frozen=True, slots=True)
class TooManyInvocations:
    """An expectation was matched more often than ``max_times``."""

    expectation: Expectation
    actual: int
    expected: int

    def describe(self) -> str:
        """Return a readable summary."""
        return (
            f"{self.expectation.describe()}\n"
            f"observed calls={self.actual} (expected at most {self.expected})"
        )


@dc.dataclass(frozen=True, slots=True)
class UnmatchedInvocation:
    """A replayed call found no expectation."""

    event: InvocationEvent
    blocked_by: Expectation | None = None

    def describe(self) -> str:
        """Return a readable summary."""
        return self.event.describe()


Violation = TooFewInvocations | TooManyInvocations | UnmatchedInvocation


def _numbered(entries: t.Sequence[str], *, start: int = 1) -> str:
    if not entries:
        return "(none)"
    lines: list[str] = []
    for index, entry in enumerate(entries, start=start):
        entry_lines = entry.splitlines() or [""]
        lines.append(f"{index}. {entry_lines[0]}")
        lines.extend(f"   {extra}" for extra in entry_lines[1:])
    return "\n".join(lines)


def _numbered_or_blank(violations: t.Sequence[Violation]) -> str:
    if not violations:
        return ""
    return _numbered([v.describe() for v in violations])


def format_sections(title: str, sections: list[tuple[str, str]]) -> str:
    """Join *title* and labelled, indented *sections* into one message."""
    parts = [title]
    for label, body in sections:
        if not body:
            continue
        parts.append("")
        parts.append(f"{label}:")
        parts.append(indent(body, "  "))
    return "\n".join(parts)


def describe_expectation(exp: Expectation, *, include_count: bool = False) -> str:
    """Return a human readable representation of *exp*."""
    lines = [exp.describe()]
    if include_count:
        lines.append(f"expected calls={exp.describe_bounds()}")
    if exp.strict:
        lines.append("strict")
    return "\n".join(lines)


def describe_events(events: t.Iterable[InvocationEvent]) -> str:
    """Return one line per event, or ``(none)``."""
    rendered = [event.describe() for event in events]
    return "\n".join(rendered) if rendered else "(none)"


def unexpected_invocation_error(
    violation: UnmatchedInvocation,
    expectations: t.Sequence[Expectation],
) -> UnexpectedInvocationError:
    """Build the error raised at the call site for an unmatched call."""
    if violation.blocked_by is not None:
        msg = format_sections(
            "Unexpected invocation out of recorded order.",
            [
                ("Actual call", violation.describe()),
                (
                    "Still waiting for",
                    describe_expectation(violation.blocked_by, include_count=True),
                ),
            ],
        )
    else:
        same_member = [e for e in expectations if e.member == violation.event.member]
        msg = format_sections(
            "Unexpected invocation.",
            [
                ("Actual call", violation.describe()),
                (
                    "Recorded expectations",
                    _numbered([describe_expectation(e) for e in same_member]),
                ),
            ],
        )
    return UnexpectedInvocationError(msg, [violation])


def too_many_invocations_error(
    violation: TooManyInvocations, last_call: InvocationEvent
) -> TooManyInvocationsError:
    """Build the error raised at the call that exceeded ``max_times``."""
    msg = format_sections(
        "Unexpected additional invocation.",
        [
            ("Expected", describe_expectation(violation.expectation, include_count=True)),
            ("Observed calls", f"{violation.actual} (expected {violation.expected})"),
            ("Last call", last_call.describe()),
        ],
    )
    return TooManyInvocationsError(msg, [violation])


class CountVerifier:
    """Check every expectation's final count against its bounds."""

    def verify(self, expectations: t.Iterable[Expectation]) -> list[Violation]:
        """Return one violation per bound an expectation failed."""
        violations: list[Violation] = []
        for exp in expectations:
            lo, hi = exp.bounds()
            actual = exp.invocation_count
            if actual < lo:
                violations.append(TooFewInvocations(exp, actual, lo))
            if hi != UNBOUNDED and actual > hi:
                violations.append(TooManyInvocations(exp, actual, hi))
        return violations


def verification_error(
    violations: t.Sequence[Violation],
    journal: t.Iterable[InvocationEvent] = (),
) -> VerificationError:
    """Summarise every violation found at teardown in one error.

    The error type is :class:`TooFewInvocationsError` when any expectation
    was left under its minimum, otherwise the type of the first violation.
    """
    too_few = [v for v in violations if isinstance(v, TooFewInvocations)]
    too_many = [v for v in violations if isinstance(v, TooManyInvocations)]
    unmatched = [v for v in violations if isinstance(v, UnmatchedInvocation)]
    msg = format_sections(
        "Unfulfilled expectations." if too_few else "Unexpected invocations.",
        [
            ("Too few invocations", _numbered_or_blank(too_few)),
            ("Too many invocations", _numbered_or_blank(too_many)),
            ("Unmatched calls", _numbered_or_blank(unmatched)),
            ("Recorded invocations", describe_events(journal)),
        ],
    )
    error_type: type[VerificationError]
    if too_few:
        error_type = TooFewInvocationsError
    elif too_many:
        error_type = TooManyInvocationsError
    else:
        error_type = UnexpectedInvocationError
    return error_type(msg, violations)


__all__ = [
    "CountVerifier",
    "TooFewInvocations",
    "TooManyInvocations",
    "UnmatchedInvocation",
    "Violation",
    "describe_expectation",
    "format_sections",
    "too_many_invocations_error",
    "unexpected_invocation_error",
    "verification_error",
]
