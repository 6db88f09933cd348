"""Step definitions for call_mox behavioural tests."""
# pyright: reportMissingImports=false, reportUnknownMemberType=false

from __future__ import annotations

import builtins
import typing as t

from behave import given, then, when  # type: ignore[attr-defined]

import call_mox
from call_mox import CallMox, Delegate, Invocation, VerificationError, mock
from call_mox.unittests import _collaborators


class BehaveContext(t.Protocol):
    """Behave step context with attributes used in tests."""

    mox: CallMox
    target: t.Any
    results: list[object]

    def add_cleanup(self, func: t.Callable[..., object], *args: object) -> None:
        """Run *func* once the scenario finishes."""
        ...


class _Raising(Delegate):
    """Final link of a delegate chain."""

    @mock
    def delegate(self) -> int:
        raise PermissionError


def _exception_type(name: str) -> type[BaseException]:
    return getattr(call_mox, name, None) or getattr(builtins, name)


def _raised(func: t.Callable[[], object]) -> BaseException | None:
    try:
        func()
    except BaseException as err:  # noqa: BLE001
        return err
    return None


@given("a call_mox controller")
def step_create_controller(context: BehaveContext) -> None:
    """Create a :class:`CallMox` instance for the scenario."""
    context.mox = CallMox(verify_on_exit=False).__enter__()
    context.add_cleanup(context.mox.__exit__, None, None, None)


@given("the {name} class is mocked")
def step_mock_class(context: BehaveContext, name: str) -> None:
    """Intercept one of the sample classes."""
    context.target = context.mox.mocked(getattr(_collaborators, name)).instance


@when("{member} is recorded to return {value:d}")
def step_record_fixed_value(context: BehaveContext, member: str, value: int) -> None:
    """Record a lenient expectation answered by one fixed value."""
    with context.mox.expectations() as rec:
        getattr(context.target, member)()
        rec.result = value


@when("{member} is recorded with a counting delegate")
def step_record_counting_delegate(context: BehaveContext, member: str) -> None:
    """Record a lenient expectation answered by a context-reading lambda."""
    with context.mox.expectations() as rec:
        getattr(context.target, member)()
        rec.delegates(lambda inv: inv.invocation_count > 0)


@when("{member} is recorded strictly with a chain of {count:d} delegates")
def step_record_delegate_chain(context: BehaveContext, member: str, count: int) -> None:
    """Record delegates returning their call number, the last one raising."""

    def number(inv: Invocation) -> int:
        return inv.invocation_count

    with context.mox.expectations(strict=True) as rec:
        getattr(context.target, member)()
        for _ in range(count - 1):
            rec.delegates(number)
        rec.result = _Raising()


@when("{member} is recorded with min_times {count:d}")
def step_record_min_times(context: BehaveContext, member: str, count: int) -> None:
    """Record a lenient expectation with a lower bound."""
    with context.mox.expectations() as rec:
        getattr(context.target, member)()
        rec.min_times = count


@when("{first} and {second} are recorded strictly")
def step_record_strict_pair(context: BehaveContext, first: str, second: str) -> None:
    """Record two strict expectations in order."""
    with context.mox.expectations(strict=True):
        getattr(context.target, first)()
        getattr(context.target, second)()


@when("{member} is called {count:d} times")
def step_call_member(context: BehaveContext, member: str, count: int) -> None:
    """Replay *member* and keep what it returns."""
    context.results = [getattr(context.target, member)() for _ in range(count)]


@then('the results are "{expected}"')
def step_check_results(context: BehaveContext, expected: str) -> None:
    """Compare the replayed results with a comma separated rendering."""
    rendered = ", ".join(repr(result) for result in context.results)
    assert rendered == expected  # noqa: S101


@then("the next {member} call raises {error}")
def step_check_next_call_raises(context: BehaveContext, member: str, error: str) -> None:
    """Replay *member* once more and expect *error*."""
    err = _raised(getattr(context.target, member))
    assert isinstance(err, _exception_type(error)), err  # noqa: S101


@then("verification succeeds")
def step_check_verification_succeeds(context: BehaveContext) -> None:
    """Run verification and expect no violations."""
    context.mox.verify()


@then("verification raises {error} with {count:d} violation")
def step_check_verification_fails(context: BehaveContext, error: str, count: int) -> None:
    """Run verification and inspect the reported violations."""
    err = _raised(context.mox.verify)
    assert isinstance(err, _exception_type(error)), err  # noqa: S101
    assert isinstance(err, VerificationError)  # noqa: S101
    assert len(err.violations) == count  # noqa: S101
