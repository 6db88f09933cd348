"""Selection of the expectation that answers an intercepted call."""

from __future__ import annotations

import dataclasses as dc
import logging
import threading
import typing as t

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from .expectations import Expectation
    from .invocation import Invocation, InvocationEvent

logger = logging.getLogger(__name__)


@dc.dataclass(frozen=True, slots=True)
class Matched:
    """The call was counted against ``expectation`` within its bounds."""

    expectation: Expectation
    context: Invocation


@dc.dataclass(frozen=True, slots=True)
class Excess:
    """The call was counted against ``expectation`` but exceeds its maximum."""

    expectation: Expectation
    context: Invocation


@dc.dataclass(frozen=True, slots=True)
class Unmatched:
    """No expectation accepts the call.

    ``blocked_by`` names the strict expectation still waiting for its
    minimum when the call matched a later strict expectation.
    """

    event: InvocationEvent
    blocked_by: Expectation | None = None

    @property
    def out_of_order(self) -> bool:
        """Return ``True`` when the call was rejected by strict ordering."""
        return self.blocked_by is not None


MatchResult = Matched | Excess | Unmatched


class _Probe(t.NamedTuple):
    chosen: Expectation | None
    exhausted: Expectation | None
    blocked_by: Expectation | None


class StrictSequence:
    """Expectations of one strict scope, consumed in recorded order."""

    def __init__(self, expectations: t.Sequence[Expectation]) -> None:
        self._expectations = list(expectations)
        self._cursor = 0

    @property
    def expectations(self) -> tuple[Expectation, ...]:
        """Return the expectations in recorded order."""
        return tuple(self._expectations)

    @property
    def current(self) -> Expectation | None:
        """Return the expectation at the cursor, if any remain."""
        if self._cursor < len(self._expectations):
            return self._expectations[self._cursor]
        return None

    def probe(self, event: InvocationEvent) -> _Probe:
        """Find where *event* fits without moving the cursor."""
        index = self._cursor
        while index < len(self._expectations):
            exp = self._expectations[index]
            if exp.matches(event):
                if not exp.is_exhausted():
                    return _Probe(exp, None, None)
            elif not exp.is_satisfied():
                later = self._expectations[index + 1 :]
                blocked = exp if any(e.matches(event) for e in later) else None
                return _Probe(None, self._last_exhausted(event), blocked)
            index += 1
        return _Probe(None, self._last_exhausted(event), None)

    def _last_exhausted(self, event: InvocationEvent) -> Expectation | None:
        upto = min(self._cursor + 1, len(self._expectations))
        for exp in reversed(self._expectations[:upto]):
            if exp.matches(event) and exp.is_exhausted():
                return exp
        return None

    def advance_to(self, expectation: Expectation) -> None:
        """Move the cursor onto *expectation*."""
        self._cursor = self._expectations.index(expectation)


class ExpectationMatcher:
    """Arena of active expectations and the matching rules over it.

    Expectations are keyed by a stable id. Selection and the count update
    happen under one lock so bounds and ordering hold with concurrent
    callers; producing the result is left to the caller, outside the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[int, Expectation] = {}
        self._lenient: list[Expectation] = []
        self._strict: list[StrictSequence] = []

    def __len__(self) -> int:
        """Return the number of active expectations."""
        return len(self._entries)

    def __getitem__(self, expectation_id: int) -> Expectation:
        """Return the expectation registered under *expectation_id*."""
        return self._entries[expectation_id]

    @property
    def expectations(self) -> tuple[Expectation, ...]:
        """Return all active expectations in recorded order."""
        return tuple(self._entries[key] for key in sorted(self._entries))

    def activate(self, expectations: t.Sequence[Expectation], *, strict: bool) -> None:
        """Make *expectations* from one closed scope available for matching."""
        with self._lock:
            for exp in expectations:
                self._entries[exp.id] = exp
            if strict:
                if expectations:
                    self._strict.append(StrictSequence(expectations))
            else:
                self._lenient.extend(expectations)

    def has_strict_for(self, owner: type) -> bool:
        """Return ``True`` if a strict expectation targets *owner*."""
        return any(
            exp.member.owner is owner
            for seq in self._strict
            for exp in seq.expectations
        )

    def clear(self) -> None:
        """Discard every active expectation."""
        with self._lock:
            self._entries.clear()
            self._lenient.clear()
            self._strict.clear()

    def match(self, event: InvocationEvent) -> MatchResult:
        """Select, count and snapshot the expectation answering *event*."""
        with self._lock:
            result = self._select(event)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Matched %s -> %s", event.describe(), type(result).__name__)
        return result

    def _select(self, event: InvocationEvent) -> MatchResult:
        exhausted: Expectation | None = None
        blocked_by: Expectation | None = None
        for seq in self._strict:
            probe = seq.probe(event)
            if probe.chosen is not None:
                seq.advance_to(probe.chosen)
                return Matched(probe.chosen, probe.chosen.record_call(event))
            exhausted = exhausted or probe.exhausted
            blocked_by = blocked_by or probe.blocked_by

        candidates = [exp for exp in self._lenient if exp.matches(event)]
        for exp in candidates:
            if not exp.is_exhausted():
                return Matched(exp, exp.record_call(event))

        if blocked_by is not None:
            return Unmatched(event, blocked_by)
        overflow = exhausted or (candidates[0] if candidates else None)
        if overflow is not None:
            return Excess(overflow, overflow.record_call(event))
        return Unmatched(event)


__all__ = [
    "Excess",
    "ExpectationMatcher",
    "MatchResult",
    "Matched",
    "StrictSequence",
    "Unmatched",
]
