"""Expectation matching and delegate dispatch for Python test doubles.

Mocked classes route every call into a :class:`CallMox` controller. Inside a
recording scope calls become expectations; afterwards they are matched
against those expectations, answered by fixed values, exceptions or
delegates, and counted so :meth:`CallMox.verify` can check the bounds.
"""

from __future__ import annotations

from .comparators import (
    ANY,
    Any,
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
from .controller import CallMox, Phase
from .delegates import Delegate, mock
from .errors import (
    AmbiguousDelegateMethodError,
    CallMoxError,
    DelegateResolutionError,
    LifecycleError,
    NoUsableDelegateMethodError,
    TooFewInvocationsError,
    TooManyInvocationsError,
    UnexpectedInvocationError,
    VerificationError,
)
from .expectations import UNBOUNDED, Expectation
from .interception import MockedType
from .invocation import Invocation, InvocationEvent, Member, MemberKind
from .pytest_plugin import call_mox as call_mox_fixture
from .recorder import RecordingScope, UnmatchedPolicy

__all__ = [
    "ANY",
    "UNBOUNDED",
    "AmbiguousDelegateMethodError",
    "Any",
    "CallMox",
    "CallMoxError",
    "Contains",
    "Delegate",
    "DelegateResolutionError",
    "Expectation",
    "Invocation",
    "InvocationEvent",
    "IsA",
    "LifecycleError",
    "Member",
    "MemberKind",
    "MockedType",
    "NoUsableDelegateMethodError",
    "Phase",
    "Predicate",
    "RecordingScope",
    "Regex",
    "StartsWith",
    "TooFewInvocationsError",
    "TooManyInvocationsError",
    "UnexpectedInvocationError",
    "UnmatchedPolicy",
    "VerificationError",
    "any_bool",
    "any_bytes",
    "any_float",
    "any_int",
    "any_str",
    "call_mox_fixture",
    "mock",
]
