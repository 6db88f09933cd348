"""Recording scopes that turn intercepted calls into expectations."""

from __future__ import annotations

import enum
import itertools
import logging
import threading
import typing as t

from typing_extensions import Self

from .delegates import Delegate, DelegateViolation, resolve_delegate
from .errors import LifecycleError
from .expectations import Expectation
from .producers import DelegateProducer, FixedValue, Thrown, default_member_result

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    import types

    from .invocation import InvocationEvent
    from .matcher import ExpectationMatcher
    from .producers import ResultProducer

logger = logging.getLogger(__name__)


class UnmatchedPolicy(enum.StrEnum):
    """What a replayed call that matches no expectation does."""

    FAIL = "fail"
    RETURN_DEFAULT = "return_default"


class RecordingScope:
    """Handle for one open recording window.

    Every intercepted call made while the scope is open (from the thread that
    opened it) records an expectation. Results and bounds set on the scope
    apply to the most recently recorded expectation. Closing the scope, which
    leaving a ``with`` block always does, freezes the recorded expectations
    and makes them available for matching.
    """

    def __init__(
        self,
        recorder: ExpectationRecorder,
        *,
        strict: bool,
        unmatched_policy: UnmatchedPolicy | None = None,
    ) -> None:
        self._recorder = recorder
        self._strict = strict
        self._unmatched_policy = unmatched_policy
        self._expectations: list[Expectation] = []
        self._thread_id = threading.get_ident()
        self._closed = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def strict(self) -> bool:
        """Return ``True`` when call order is enforced for this scope."""
        return self._strict

    @property
    def unmatched_policy(self) -> UnmatchedPolicy | None:
        """Return the policy for unmatched calls on types recorded here.

        Strict scopes always fail unmatched calls. ``None`` defers to the
        controller's policy.
        """
        if self._strict:
            return UnmatchedPolicy.FAIL
        return self._unmatched_policy

    @property
    def expectations(self) -> tuple[Expectation, ...]:
        """Return the expectations recorded so far."""
        return tuple(self._expectations)

    @property
    def is_open(self) -> bool:
        """Return ``True`` until :meth:`close` runs."""
        return not self._closed

    @property
    def last(self) -> Expectation:
        """Return the most recently recorded expectation."""
        if not self._expectations:
            msg = "No invocation has been recorded in this scope yet"
            raise LifecycleError(msg)
        return self._expectations[-1]

    def owns_current_thread(self) -> bool:
        """Return ``True`` when called from the thread that opened the scope."""
        return threading.get_ident() == self._thread_id

    def covers(self, owner: type) -> bool:
        """Return ``True`` if an expectation here targets *owner*."""
        return any(exp.member.owner is owner for exp in self._expectations)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def capture(self, event: InvocationEvent) -> object:
        """Record *event* as a new expectation and return a placeholder."""
        self._require_open("record an invocation")
        exp = Expectation(
            id=self._recorder.next_id(),
            member=event.member,
            patterns=event.arguments,
            strict=self._strict,
        )
        self._expectations.append(exp)
        logger.debug("Recorded %r", exp)
        return default_member_result(event.member)

    @property
    def result(self) -> ResultProducer | None:
        """Return the last producer attached to the latest expectation."""
        producers = self.last.producers
        return producers[-1] if producers else None

    @result.setter
    def result(self, value: object) -> None:
        self._attach(value)

    def returns(self, *values: object) -> Self:
        """Attach one producer per value, consumed by successive calls."""
        if not values:
            msg = "returns() requires at least one value"
            raise ValueError(msg)
        for value in values:
            self._attach(value)
        return self

    def raises(self, exception: BaseException | type[BaseException]) -> Self:
        """Make the next unconsumed call raise *exception*."""
        self._add_producer(Thrown(_exception_instance(exception)))
        return self

    def delegates(self, delegate: object) -> Self:
        """Run *delegate* in place of the member.

        Raises
        ------
        DelegateResolutionError
            When *delegate* has no usable method, or more than one.
        """
        resolved = resolve_delegate(delegate, self.last.member)
        if isinstance(resolved, DelegateViolation):
            raise resolved.to_error()
        self._add_producer(DelegateProducer(resolved))
        return self

    def _attach(self, value: object) -> None:
        if isinstance(value, Delegate):
            self.delegates(value)
        elif isinstance(value, BaseException) or (
            isinstance(value, type) and issubclass(value, BaseException)
        ):
            self.raises(value)
        else:
            self._add_producer(FixedValue(value))

    def _add_producer(self, producer: ResultProducer) -> None:
        self._require_open("attach a result")
        self.last.add_producer(producer)

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------
    @property
    def min_times(self) -> int:
        """Return the latest expectation's effective minimum."""
        return self.last.min_times

    @min_times.setter
    def min_times(self, value: int) -> None:
        self._require_open("set min_times")
        self.last.set_bounds(min_times=value)

    @property
    def max_times(self) -> int:
        """Return the latest expectation's effective maximum."""
        return self.last.max_times

    @max_times.setter
    def max_times(self, value: int) -> None:
        self._require_open("set max_times")
        self.last.set_bounds(max_times=value)

    @property
    def times(self) -> int:
        """Return the exact count when both bounds agree."""
        lo, hi = self.last.bounds()
        if lo != hi:
            msg = f"bounds are a range ({self.last.describe_bounds()}), not an exact count"
            raise ValueError(msg)
        return lo

    @times.setter
    def times(self, value: int) -> None:
        self._require_open("set times")
        self.last.set_bounds(min_times=value, max_times=value)

    def called(self, min_times: int | None = None, max_times: int | None = None) -> Self:
        """Set both bounds of the latest expectation fluently."""
        self._require_open("set bounds")
        self.last.set_bounds(min_times=min_times, max_times=max_times)
        return self

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Freeze the recorded expectations and activate them."""
        if self._closed:
            return
        self._closed = True
        self._recorder.end_scope(self)

    def _require_open(self, action: str) -> None:
        if self._closed:
            msg = f"Cannot {action}: the recording scope is closed"
            raise LifecycleError(msg)

    def __enter__(self) -> Self:
        """Return the open scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Close the scope, whether or not the block raised."""
        self.close()


def _exception_instance(exception: BaseException | type[BaseException]) -> BaseException:
    if isinstance(exception, type):
        return exception()
    return exception


class ExpectationRecorder:
    """Open and close recording scopes for one controller."""

    def __init__(self, matcher: ExpectationMatcher) -> None:
        self._matcher = matcher
        self._ids = itertools.count(1)
        self._current: RecordingScope | None = None
        self._closed_scopes: list[RecordingScope] = []

    @property
    def current(self) -> RecordingScope | None:
        """Return the open scope, if any."""
        return self._current

    @property
    def scopes(self) -> tuple[RecordingScope, ...]:
        """Return the closed scopes in the order they were opened."""
        return tuple(self._closed_scopes)

    def next_id(self) -> int:
        """Return a fresh expectation id."""
        return next(self._ids)

    def begin_scope(
        self, *, strict: bool, unmatched_policy: UnmatchedPolicy | None = None
    ) -> RecordingScope:
        """Open a new scope; scopes do not nest."""
        if self._current is not None:
            msg = "A recording scope is already open"
            raise LifecycleError(msg)
        self._current = RecordingScope(
            self, strict=strict, unmatched_policy=unmatched_policy
        )
        logger.debug("Opened %s recording scope", "strict" if strict else "lenient")
        return self._current

    def end_scope(self, scope: RecordingScope) -> None:
        """Freeze and activate *scope*'s expectations."""
        if scope is not self._current:
            msg = "Only the open recording scope can be closed"
            raise LifecycleError(msg)
        self._current = None
        for exp in scope.expectations:
            exp.freeze()
        self._matcher.activate(scope.expectations, strict=scope.strict)
        self._closed_scopes.append(scope)
        logger.debug("Activated %d expectation(s)", len(scope.expectations))

    def policy_for(self, owner: type) -> UnmatchedPolicy | None:
        """Return the policy of the latest scope recording on *owner*."""
        for scope in reversed(self._closed_scopes):
            policy = scope.unmatched_policy
            if policy is not None and scope.covers(owner):
                return policy
        return None


__all__ = [
    "ExpectationRecorder",
    "RecordingScope",
    "UnmatchedPolicy",
]
