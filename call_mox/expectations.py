"""Recorded expectations and positional argument matching."""

from __future__ import annotations

import dataclasses as dc
import typing as t

from .comparators import Comparator
from .invocation import Invocation, format_arguments
from .producers import DefaultBehavior

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .invocation import InvocationEvent, Member
    from .producers import ResultProducer

UNBOUNDED: t.Final[int] = -1


def argument_matches(pattern: object, value: object) -> bool:
    """Return ``True`` if a single live *value* satisfies *pattern*."""
    if isinstance(pattern, Comparator):
        return pattern(value)
    if pattern is None or value is None:
        return pattern is value
    if pattern is value:
        return True
    if bool in (type(pattern), type(value)) and type(pattern) is not type(value):
        return False
    try:
        return bool(pattern == value)
    except Exception:  # noqa: BLE001 - foreign __eq__ may raise
        return False


def arguments_match(patterns: t.Sequence[object], arguments: t.Sequence[object]) -> bool:
    """Return ``True`` if *arguments* satisfy *patterns* position by position.

    A length mismatch is a non-match, never an error.
    """
    if len(patterns) != len(arguments):
        return False
    return all(
        argument_matches(pattern, value)
        for pattern, value in zip(patterns, arguments, strict=True)
    )


def _validate_count(value: int | None, name: str) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an int"
        raise TypeError(msg)
    if value < 0 and not (name == "max_times" and value == UNBOUNDED):
        msg = f"{name} must be >= 0"
        raise ValueError(msg)


@dc.dataclass(slots=True, eq=False)
class Expectation:
    """One recorded invocation pattern and how to answer it.

    ``min_times`` and ``max_times`` report the effective bounds: explicit
    values when set, otherwise the default policy for the recording mode.
    """

    id: int
    member: Member
    patterns: tuple[object, ...]
    strict: bool = False
    producers: list[ResultProducer] = dc.field(default_factory=list)
    invocation_count: int = 0
    explicit_min: int | None = None
    explicit_max: int | None = None
    _frozen_bounds: tuple[int, int] | None = dc.field(default=None, repr=False)

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------
    @property
    def min_times(self) -> int:
        """Return the effective minimum number of calls."""
        return self.bounds()[0]

    @property
    def max_times(self) -> int:
        """Return the effective maximum, or :data:`UNBOUNDED`."""
        return self.bounds()[1]

    @property
    def is_frozen(self) -> bool:
        """Return ``True`` once the recording scope has closed."""
        return self._frozen_bounds is not None

    def bounds(self) -> tuple[int, int]:
        """Return ``(min, max)`` after applying the default policy."""
        if self._frozen_bounds is not None:
            return self._frozen_bounds
        lo, hi = self.explicit_min, self.explicit_max
        if not self.strict:
            return (0 if lo is None else lo, UNBOUNDED if hi is None else hi)
        if lo is None and hi is None:
            return 1, max(1, len(self.producers))
        if hi is None:
            return t.cast("int", lo), UNBOUNDED
        if lo is None:
            return min(1, hi), hi
        return lo, hi

    def set_bounds(self, min_times: int | None = None, max_times: int | None = None) -> None:
        """Override the default policy; ``None`` leaves a bound untouched."""
        if self.is_frozen:
            msg = f"bounds of {self.describe()} are fixed once recording ends"
            raise ValueError(msg)
        _validate_count(min_times, "min_times")
        _validate_count(max_times, "max_times")
        lo = self.explicit_min if min_times is None else min_times
        hi = self.explicit_max if max_times is None else max_times
        if lo is not None and hi is not None and hi != UNBOUNDED and lo > hi:
            msg = f"min_times ({lo}) must not exceed max_times ({hi})"
            raise ValueError(msg)
        self.explicit_min, self.explicit_max = lo, hi

    def freeze(self) -> None:
        """Fix the effective bounds; called when the recording scope closes."""
        if self._frozen_bounds is None:
            self._frozen_bounds = self.bounds()

    def is_exhausted(self) -> bool:
        """Return ``True`` when one more call would exceed ``max_times``."""
        hi = self.max_times
        return hi != UNBOUNDED and self.invocation_count >= hi

    def is_satisfied(self) -> bool:
        """Return ``True`` once ``min_times`` has been reached."""
        return self.invocation_count >= self.min_times

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------
    def matches(self, event: InvocationEvent) -> bool:
        """Return ``True`` if *event* satisfies this expectation."""
        return self._matches_member(event) and arguments_match(
            self.patterns, event.arguments
        )

    def _matches_member(self, event: InvocationEvent) -> bool:
        """Same declaring type, name and static/instance/constructor kind."""
        return event.member == self.member

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------
    def add_producer(self, producer: ResultProducer) -> None:
        """Append *producer* to the chain consumed by successive calls."""
        if self.is_frozen:
            msg = f"results of {self.describe()} are fixed once recording ends"
            raise ValueError(msg)
        self.producers.append(producer)

    def producer_for(self, invocation_count: int) -> ResultProducer:
        """Return the producer for the call numbered *invocation_count*.

        The last producer is sticky and answers every call beyond the chain.
        """
        if not self.producers:
            return DefaultBehavior(self.member)
        index = min(invocation_count - 1, len(self.producers) - 1)
        return self.producers[max(index, 0)]

    def record_call(self, event: InvocationEvent) -> Invocation:
        """Count *event* against this expectation and snapshot the context.

        The caller must hold the matcher lock.
        """
        self.invocation_count += 1
        lo, hi = self.bounds()
        return Invocation(
            invoked_instance=event.instance,
            invoked_arguments=event.arguments,
            invoked_member=event.member,
            invocation_count=self.invocation_count,
            min_invocations=lo,
            max_invocations=hi,
        )

    def describe(self) -> str:
        """Return a readable rendering of the recorded pattern."""
        return self.member.describe(self.patterns)

    def describe_bounds(self) -> str:
        """Return the bounds as ``min..max``."""
        lo, hi = self.bounds()
        return f"{lo}..{'*' if hi == UNBOUNDED else hi}"

    def __repr__(self) -> str:
        """Return a debug representation."""
        return (
            f"Expectation(#{self.id} {self.member.qualname}"
            f"({format_arguments(self.patterns)}), strict={self.strict}, "
            f"calls={self.invocation_count}, bounds={self.describe_bounds()})"
        )


__all__ = [
    "UNBOUNDED",
    "Expectation",
    "argument_matches",
    "arguments_match",
]
