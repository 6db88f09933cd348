"""Exception hierarchy raised by :mod:`call_mox`."""

from __future__ import annotations

import typing as t

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .verifiers import Violation


class CallMoxError(Exception):
    """Base class for every error raised by the engine."""


class LifecycleError(CallMoxError):
    """Raised when an operation is attempted in the wrong phase."""


class DelegateResolutionError(CallMoxError, ValueError):
    """Raised when a delegate cannot be bound to the recorded member.

    Resolution happens when the delegate is attached to an expectation, so
    these errors always surface while recording, never during replay.
    """


class AmbiguousDelegateMethodError(DelegateResolutionError):
    """More than one delegate method qualifies equally for the member."""


class NoUsableDelegateMethodError(DelegateResolutionError):
    """No delegate method has a parameter shape compatible with the member."""


class VerificationError(CallMoxError, AssertionError):
    """Base class for invocation-count and matching failures.

    Parameters
    ----------
    message:
        Human readable description of the failure.
    violations:
        The individual violations that produced this error.
    """

    def __init__(self, message: str, violations: t.Sequence[Violation] = ()) -> None:
        super().__init__(message)
        self.violations: tuple[Violation, ...] = tuple(violations)


class UnexpectedInvocationError(VerificationError):
    """A replayed call matched no active expectation."""


class TooManyInvocationsError(VerificationError):
    """An expectation was matched more often than its maximum allows."""


class TooFewInvocationsError(VerificationError):
    """At least one expectation was left under its minimum at teardown."""


__all__ = [
    "AmbiguousDelegateMethodError",
    "CallMoxError",
    "DelegateResolutionError",
    "LifecycleError",
    "NoUsableDelegateMethodError",
    "TooFewInvocationsError",
    "TooManyInvocationsError",
    "UnexpectedInvocationError",
    "VerificationError",
]
