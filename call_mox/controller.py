"""CallMox controller and related helpers."""

from __future__ import annotations

import enum
import logging
import threading
import types  # noqa: TC003
import typing as t
from collections import deque

from .errors import LifecycleError
from .interception import MockedType
from .matcher import Excess, ExpectationMatcher, Unmatched
from .producers import default_member_result
from .recorder import ExpectationRecorder, RecordingScope, UnmatchedPolicy
from .verifiers import (
    CountVerifier,
    TooManyInvocations,
    UnmatchedInvocation,
    Violation,
    too_many_invocations_error,
    unexpected_invocation_error,
    verification_error,
)

if t.TYPE_CHECKING:
    from .expectations import Expectation
    from .invocation import InvocationEvent, Member

logger = logging.getLogger(__name__)


class Phase(enum.StrEnum):
    """Lifecycle phases for :class:`CallMox`."""

    RECORD = "RECORD"
    REPLAY = "REPLAY"
    VERIFY = "VERIFY"


class CallMox:
    """Central orchestrator implementing the record-replay-verify lifecycle."""

    def __init__(
        self,
        *,
        verify_on_exit: bool = True,
        unmatched_policy: UnmatchedPolicy | str = UnmatchedPolicy.RETURN_DEFAULT,
        max_journal_entries: int | None = None,
    ) -> None:
        """Create a new controller.

        Parameters
        ----------
        verify_on_exit:
            When ``True`` (the default), :meth:`__exit__` will automatically
            call :meth:`verify` and restore every mocked type. Disable for
            explicit control.
        unmatched_policy:
            What a replayed call matching no expectation does on types without
            strict expectations, unless a lenient scope recording on that type
            chose otherwise.
        max_journal_entries:
            Maximum number of replayed calls retained in the journal. When
            ``None``, the journal is unbounded.
        """
        if max_journal_entries is not None and max_journal_entries <= 0:
            msg = "max_journal_entries must be positive"
            raise ValueError(msg)

        self._verify_on_exit = verify_on_exit
        self._unmatched_policy = UnmatchedPolicy(unmatched_policy)
        self._matcher = ExpectationMatcher()
        self._recorder = ExpectationRecorder(self._matcher)
        self._mocked: dict[type, MockedType] = {}
        self._unexpected: list[UnmatchedInvocation] = []
        self._unexpected_lock = threading.Lock()
        self._verified = False
        self._entered = False
        self.journal: deque[InvocationEvent] = deque(maxlen=max_journal_entries)

    # ------------------------------------------------------------------
    # Lifecycle state
    # ------------------------------------------------------------------
    @property
    def phase(self) -> Phase:
        """Return the current lifecycle phase."""
        if self._verified:
            return Phase.VERIFY
        if self._recorder.current is not None:
            return Phase.RECORD
        return Phase.REPLAY

    @property
    def unmatched_policy(self) -> UnmatchedPolicy:
        """Return the controller-wide policy for unmatched calls."""
        return self._unmatched_policy

    @property
    def active_expectations(self) -> tuple[Expectation, ...]:
        """Return the expectations available for matching."""
        return self._matcher.expectations

    @property
    def mocked_types(self) -> dict[type, MockedType]:
        """Return the intercepted classes."""
        return dict(self._mocked)

    # ------------------------------------------------------------------
    # Context manager protocol
    # ------------------------------------------------------------------
    def __enter__(self) -> CallMox:
        """Enter context."""
        self._entered = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: types.TracebackType | None,
    ) -> None:
        """Exit context, optionally verifying and cleaning up."""
        scope = self._recorder.current
        if scope is not None:
            scope.close()
        try:
            if self._handle_auto_verify(exc_type):
                return
        finally:
            self._restore_all()
            self._entered = False

    def _handle_auto_verify(self, exc_type: type[BaseException] | None) -> bool:
        """Invoke :meth:`verify` when leaving the replay phase."""
        if not self._verify_on_exit or self.phase is not Phase.REPLAY:
            return False
        verify_error: Exception | None = None
        try:
            self.verify()
        except Exception as err:  # noqa: BLE001
            verify_error = err
        if exc_type is None and verify_error is not None:
            raise verify_error
        if verify_error is not None:
            logger.debug("Verification failed while unwinding: %s", verify_error)
        return True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def mocked(
        self,
        cls: type,
        *,
        members: t.Iterable[str] | None = None,
        singleton: object | None = None,
    ) -> MockedType:
        """Intercept calls on *cls* until this controller finishes.

        Returns the existing handle when *cls* is already mocked here.
        """
        self._require_not_verified("mocked")
        existing = self._mocked.get(cls)
        if existing is not None:
            return existing
        mocked = MockedType(cls, self, members=members, singleton=singleton)
        mocked.install()
        self._mocked[cls] = mocked
        return mocked

    def expectations(
        self,
        *,
        strict: bool = False,
        unmatched_policy: UnmatchedPolicy | str | None = None,
    ) -> RecordingScope:
        """Open a recording scope.

        Use the returned scope as a context manager so it is always closed::

            with mox.expectations(strict=True) as rec:
                Collaborator.static_method(1)
                rec.result = True
        """
        self._require_not_verified("expectations")
        policy = None if unmatched_policy is None else UnmatchedPolicy(unmatched_policy)
        return self._recorder.begin_scope(strict=strict, unmatched_policy=policy)

    def unmatched_policy_for(self, member: Member) -> UnmatchedPolicy:
        """Return the policy applied when a call to *member* matches nothing."""
        if self._matcher.has_strict_for(member.owner):
            return UnmatchedPolicy.FAIL
        return self._recorder.policy_for(member.owner) or self._unmatched_policy

    def dispatch(self, event: InvocationEvent) -> object:
        """Answer one intercepted call.

        While a scope is open, calls from the recording thread become
        expectations. Every other call is replayed against the active
        expectations.
        """
        scope = self._recorder.current
        if scope is not None and scope.owns_current_thread():
            return scope.capture(event)
        return self._replay(event)

    def verify(self) -> None:
        """Check invocation counts, restore mocked types and finish."""
        self._check_verify_preconditions()
        try:
            violations = self._run_verifiers()
        finally:
            self._finalize_verification()
        if violations:
            raise verification_error(violations, self.journal)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _replay(self, event: InvocationEvent) -> object:
        """Match *event*, then run the selected producer outside the lock."""
        self.journal.append(event)
        outcome = self._matcher.match(event)
        if isinstance(outcome, Unmatched):
            return self._handle_unmatched(outcome)
        if isinstance(outcome, Excess):
            exp = outcome.expectation
            violation = TooManyInvocations(
                exp, outcome.context.invocation_count, exp.max_times
            )
            raise too_many_invocations_error(violation, event)
        context = outcome.context
        producer = outcome.expectation.producer_for(context.invocation_count)
        logger.debug(
            "Answering %s with %s (call %d)",
            event.member.qualname,
            type(producer).__name__,
            context.invocation_count,
        )
        return producer.produce(context)

    def _handle_unmatched(self, outcome: Unmatched) -> object:
        event = outcome.event
        policy = self.unmatched_policy_for(event.member)
        if not outcome.out_of_order and policy is UnmatchedPolicy.RETURN_DEFAULT:
            logger.debug("No expectation for %s; returning default", event.describe())
            return default_member_result(event.member)
        violation = UnmatchedInvocation(event, outcome.blocked_by)
        with self._unexpected_lock:
            self._unexpected.append(violation)
        raise unexpected_invocation_error(violation, self._matcher.expectations)

    def _require_not_verified(self, action: str) -> None:
        if self._verified:
            msg = f"Cannot call {action}(): controller already verified"
            raise LifecycleError(msg)

    def _check_verify_preconditions(self) -> None:
        """Ensure verify() is called in the correct phase."""
        if self.phase is not Phase.REPLAY:
            msg = (
                "Cannot call verify(): not in 'replay' phase "
                f"(current phase: {self.phase.name.lower()})"
            )
            raise LifecycleError(msg)

    def _run_verifiers(self) -> list[Violation]:
        """Collect every violation so one run reports them all."""
        violations: list[Violation] = CountVerifier().verify(self._matcher.expectations)
        with self._unexpected_lock:
            violations.extend(self._unexpected)
        return violations

    def _finalize_verification(self) -> None:
        """Restore mocked types, discard expectations and update phase."""
        self._restore_all()
        self._matcher.clear()
        self._verified = True

    def _restore_all(self) -> None:
        for mocked in self._mocked.values():
            mocked.restore()
        self._mocked.clear()


__all__ = ["CallMox", "Phase"]
