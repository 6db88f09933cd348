"""Unit tests for :mod:`call_mox.matcher`."""

from __future__ import annotations

import itertools
import threading

import pytest

from call_mox.comparators import ANY
from call_mox.expectations import Expectation
from call_mox.invocation import InvocationEvent, Member, MemberKind
from call_mox.matcher import Excess, ExpectationMatcher, Matched, Unmatched
from call_mox.unittests._collaborators import Repository

_IDS = itertools.count(1)


def _member(name: str) -> Member:
    return Member.from_function(
        Repository, name, vars(Repository)[name], MemberKind.INSTANCE
    )


def _exp(
    name: str,
    *patterns: object,
    strict: bool = False,
    min_times: int | None = None,
    max_times: int | None = None,
) -> Expectation:
    exp = Expectation(
        id=next(_IDS), member=_member(name), patterns=patterns, strict=strict
    )
    exp.set_bounds(min_times=min_times, max_times=max_times)
    exp.freeze()
    return exp


def _call(name: str, *arguments: object) -> InvocationEvent:
    return InvocationEvent(instance=None, member=_member(name), arguments=arguments)


@pytest.fixture
def matcher() -> ExpectationMatcher:
    """Return an empty matcher."""
    return ExpectationMatcher()


def test_unknown_call_is_unmatched(matcher: ExpectationMatcher) -> None:
    """Calls with no candidate are reported without ordering blame."""
    result = matcher.match(_call("open"))
    assert isinstance(result, Unmatched)
    assert not result.out_of_order


def test_lenient_earliest_non_exhausted_wins(matcher: ExpectationMatcher) -> None:
    """Lenient candidates are tried in recorded order, skipping exhausted ones."""
    first = _exp("save", "k", ANY, max_times=1)
    second = _exp("save", ANY, ANY)
    matcher.activate([first, second], strict=False)

    one = matcher.match(_call("save", "k", 1))
    two = matcher.match(_call("save", "k", 2))
    assert isinstance(one, Matched)
    assert one.expectation is first
    assert isinstance(two, Matched)
    assert two.expectation is second


def test_lenient_excess_is_counted(matcher: ExpectationMatcher) -> None:
    """A call past every candidate's maximum is still counted."""
    exp = _exp("close", max_times=1)
    matcher.activate([exp], strict=False)
    assert isinstance(matcher.match(_call("close")), Matched)

    result = matcher.match(_call("close"))
    assert isinstance(result, Excess)
    assert result.expectation is exp
    assert result.context.invocation_count == 2
    assert exp.invocation_count == 2


def test_strict_sequence_in_order(matcher: ExpectationMatcher) -> None:
    """Strict expectations are consumed in recorded order."""
    opened, saved, closed = (
        _exp("open", strict=True),
        _exp("save", ANY, ANY, strict=True),
        _exp("close", strict=True),
    )
    matcher.activate([opened, saved, closed], strict=True)

    results = [
        matcher.match(_call("open")),
        matcher.match(_call("save", "k", 1)),
        matcher.match(_call("close")),
    ]
    assert [r.expectation for r in results if isinstance(r, Matched)] == [
        opened,
        saved,
        closed,
    ]


def test_strict_out_of_order_is_blocked(matcher: ExpectationMatcher) -> None:
    """Skipping an unsatisfied expectation names it as the blocker."""
    opened, closed = _exp("open", strict=True), _exp("close", strict=True)
    matcher.activate([opened, closed], strict=True)

    result = matcher.match(_call("close"))
    assert isinstance(result, Unmatched)
    assert result.out_of_order
    assert result.blocked_by is opened
    assert closed.invocation_count == 0


def test_strict_satisfied_expectation_can_be_skipped(matcher: ExpectationMatcher) -> None:
    """Optional strict expectations do not block later ones."""
    maybe = _exp("open", strict=True, min_times=0, max_times=1)
    closed = _exp("close", strict=True)
    matcher.activate([maybe, closed], strict=True)

    result = matcher.match(_call("close"))
    assert isinstance(result, Matched)
    assert result.expectation is closed
    assert isinstance(matcher.match(_call("open")), Unmatched)


def test_strict_repeats_until_exhausted(matcher: ExpectationMatcher) -> None:
    """The cursor stays put while the current expectation has room."""
    saved = _exp("save", ANY, ANY, strict=True, max_times=2)
    closed = _exp("close", strict=True)
    matcher.activate([saved, closed], strict=True)

    assert isinstance(matcher.match(_call("save", "a", 1)), Matched)
    assert isinstance(matcher.match(_call("save", "b", 2)), Matched)
    result = matcher.match(_call("save", "c", 3))
    assert isinstance(result, Excess)
    assert result.expectation is saved
    assert result.context.invocation_count == 3


def test_strict_does_not_rewind(matcher: ExpectationMatcher) -> None:
    """Calls to an expectation behind the cursor are excess."""
    opened, closed = _exp("open", strict=True), _exp("close", strict=True)
    matcher.activate([opened, closed], strict=True)
    matcher.match(_call("open"))
    matcher.match(_call("close"))

    result = matcher.match(_call("close"))
    assert isinstance(result, Excess)
    assert result.expectation is closed


def test_strict_then_lenient(matcher: ExpectationMatcher) -> None:
    """Lenient expectations answer what strict sequences do not."""
    strict_open = _exp("open", strict=True)
    lenient_save = _exp("save", ANY, ANY)
    matcher.activate([strict_open], strict=True)
    matcher.activate([lenient_save], strict=False)

    result = matcher.match(_call("save", "k", 1))
    assert isinstance(result, Matched)
    assert result.expectation is lenient_save
    assert matcher.has_strict_for(Repository)
    assert len(matcher) == 2
    assert matcher[strict_open.id] is strict_open


def test_arguments_are_part_of_the_match(matcher: ExpectationMatcher) -> None:
    """A different argument is not the same expectation."""
    exp = _exp("save", "k", 1)
    matcher.activate([exp], strict=False)
    assert isinstance(matcher.match(_call("save", "k", 2)), Unmatched)
    assert isinstance(matcher.match(_call("save", "k", None)), Unmatched)


def test_clear(matcher: ExpectationMatcher) -> None:
    """Cleared matchers hold nothing."""
    matcher.activate([_exp("open", strict=True)], strict=True)
    matcher.clear()
    assert matcher.expectations == ()
    assert not matcher.has_strict_for(Repository)


def test_concurrent_matching_respects_max(matcher: ExpectationMatcher) -> None:
    """Exactly ``max_times`` calls match under contention."""
    exp = _exp("save", ANY, ANY, max_times=50)
    matcher.activate([exp], strict=False)
    results: list[object] = []
    lock = threading.Lock()
    start = threading.Barrier(8)

    def worker() -> None:
        start.wait()
        for i in range(20):
            outcome = matcher.match(_call("save", "k", i))
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(isinstance(r, Matched) for r in results) == 50
    assert sum(isinstance(r, Excess) for r in results) == 110
    counts = sorted(r.context.invocation_count for r in results if isinstance(r, Matched))
    assert counts == list(range(1, 51))
