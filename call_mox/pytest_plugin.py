"""Pytest plugin providing the ``call_mox`` fixture."""

from __future__ import annotations

import logging
import typing as t

import pytest

from .controller import CallMox, Phase
from .errors import LifecycleError
from .recorder import UnmatchedPolicy

logger = logging.getLogger(__name__)

_POLICY_CHOICES: t.Final[tuple[str, ...]] = tuple(policy.value for policy in UnmatchedPolicy)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line and ini options for the plugin."""
    group = parser.getgroup("call_mox")
    group.addoption(
        "--call-mox-auto-verify",
        action="store_true",
        dest="call_mox_auto_verify",
        default=None,
        help=(
            "Verify the call_mox fixture during teardown. Overrides the "
            "pytest.ini setting."
        ),
    )
    group.addoption(
        "--no-call-mox-auto-verify",
        action="store_false",
        dest="call_mox_auto_verify",
        default=None,
        help="Skip verification of the call_mox fixture during teardown.",
    )
    group.addoption(
        "--call-mox-unmatched-policy",
        action="store",
        dest="call_mox_unmatched_policy",
        choices=_POLICY_CHOICES,
        default=None,
        help=(
            "What a call matching no expectation does on types without strict "
            "expectations. Overrides the pytest.ini setting."
        ),
    )
    parser.addini(
        "call_mox_auto_verify",
        "Verify the call_mox fixture during teardown.",
        type="bool",
        default=True,
    )
    parser.addini(
        "call_mox_unmatched_policy",
        "Default policy for unmatched calls: 'return_default' or 'fail'.",
        default=UnmatchedPolicy.RETURN_DEFAULT.value,
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register plugin-specific markers."""
    config.addinivalue_line(
        "markers",
        (
            "call_mox(auto_verify: bool = True, unmatched_policy: str | None = None): "
            "override the call_mox fixture configuration for a single test."
        ),
    )


class _CallMoxItem(t.Protocol):
    """pytest item carrying call_mox lifecycle metadata."""

    _call_mox_instance: CallMox | None
    _call_mox_auto_verify: bool
    _call_mox_verify_error: Exception | None
    _call_mox_verify_should_fail: bool


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[t.Any]
) -> t.Generator[None, None, None]:
    """Attach the call/report objects to each collected test item.

    This enables the fixture teardown to tell whether the test body already
    failed before reporting verification errors.
    """
    del call
    outcome = yield
    rep = outcome.get_result()
    setattr(item, f"rep_{rep.when}", rep)
    if rep.when == "teardown":
        _apply_deferred_verify_failure(item, rep)


def _marker_kwarg(request: pytest.FixtureRequest, key: str) -> t.Any | None:
    """Return a ``call_mox`` marker keyword, if present."""
    marker = request.node.get_closest_marker("call_mox")
    if marker is None or key not in marker.kwargs:
        return None
    return marker.kwargs[key]


def _param_value(request: pytest.FixtureRequest, key: str) -> t.Any | None:
    """Return a fixture parameter override for *key*, if present."""
    param = getattr(request, "param", None)
    if param is None:
        return None
    if isinstance(param, dict):
        return param.get(key)
    if isinstance(param, bool) and key == "auto_verify":
        return param
    if isinstance(param, bool):
        return None
    msg = (
        "call_mox fixture param must be a bool or a dict with 'auto_verify' "
        f"and/or 'unmatched_policy' keys, got {type(param).__name__}"
    )
    raise TypeError(msg)


def _auto_verify_enabled(request: pytest.FixtureRequest) -> bool:
    """Return whether the fixture should verify during teardown."""
    # Priority order: marker > fixture param > CLI option > INI setting
    for value in (
        _marker_kwarg(request, "auto_verify"),
        _param_value(request, "auto_verify"),
        request.config.getoption("call_mox_auto_verify"),
    ):
        if value is not None:
            return bool(value)
    return bool(request.config.getini("call_mox_auto_verify"))


def _unmatched_policy(request: pytest.FixtureRequest) -> UnmatchedPolicy:
    """Return the controller-wide unmatched policy for this test."""
    for value in (
        _marker_kwarg(request, "unmatched_policy"),
        _param_value(request, "unmatched_policy"),
        request.config.getoption("call_mox_unmatched_policy"),
    ):
        if value is not None:
            return UnmatchedPolicy(value)
    return UnmatchedPolicy(str(request.config.getini("call_mox_unmatched_policy")))


def _apply_deferred_verify_failure(
    item: pytest.Item, report: pytest.TestReport
) -> None:
    """Apply any deferred verification error captured during teardown."""
    err: Exception | None = getattr(item, "_call_mox_verify_error", None)
    if err is None:
        return
    delattr(item, "_call_mox_verify_error")
    should_fail = getattr(item, "_call_mox_verify_should_fail", False)
    if hasattr(item, "_call_mox_verify_should_fail"):
        delattr(item, "_call_mox_verify_should_fail")
    if not should_fail:
        report.sections.append(("call_mox verification", f"{type(err).__name__}: {err}"))


@pytest.fixture
def call_mox(request: pytest.FixtureRequest) -> t.Generator[CallMox, None, None]:
    """Provide a :class:`CallMox` controller verified at teardown."""
    mox = CallMox(verify_on_exit=False, unmatched_policy=_unmatched_policy(request))
    auto_verify = _auto_verify_enabled(request)
    try:
        mox.__enter__()
        _attach_node_state(request.node, mox, auto_verify=auto_verify)
        yield mox
    except Exception:
        logger.exception("Error during call_mox fixture setup or test execution")
        raise
    finally:
        _teardown_call_mox(request.node, mox)


def _attach_node_state(item: pytest.Item, mox: CallMox, *, auto_verify: bool) -> None:
    """Expose ``mox`` on the test item for later teardown hooks."""
    typed_item = t.cast("_CallMoxItem", item)
    typed_item._call_mox_instance = mox
    typed_item._call_mox_auto_verify = auto_verify
    typed_item._call_mox_verify_error = None
    typed_item._call_mox_verify_should_fail = False


def _teardown_call_mox(item: pytest.Item, mox: CallMox) -> None:
    """Verify if requested, restore mocked types and clear per-item state."""
    typed_item = t.cast("_CallMoxItem", item)
    auto_verify = getattr(typed_item, "_call_mox_auto_verify", True)
    should_raise = False
    if auto_verify and mox.phase is not Phase.VERIFY:
        try:
            if mox.phase is Phase.RECORD:
                msg = "call_mox fixture torn down with a recording scope still open"
                raise LifecycleError(msg)
            mox.verify()
        except Exception as err:
            logger.exception("Error during call_mox verification")
            typed_item._call_mox_verify_error = err
            should_fail = not _call_stage_failed(item)
            typed_item._call_mox_verify_should_fail = should_fail
            should_raise = should_fail
    try:
        mox.__exit__(None, None, None)
    except Exception:
        logger.exception("Error during call_mox fixture cleanup")
        pytest.fail("call_mox fixture cleanup failed")
    finally:
        _detach_node_state(item, mox)
    if should_raise:
        err = typed_item._call_mox_verify_error
        pytest.fail(f"{type(err).__name__}: {err}")


def _detach_node_state(item: pytest.Item, mox: CallMox) -> None:
    """Remove per-item hooks referencing ``mox``."""
    typed_item = t.cast("_CallMoxItem", item)
    if getattr(typed_item, "_call_mox_instance", None) is mox:
        delattr(typed_item, "_call_mox_instance")
    if hasattr(typed_item, "_call_mox_auto_verify"):
        delattr(typed_item, "_call_mox_auto_verify")


def _call_stage_failed(item: pytest.Item) -> bool:
    """Return ``True`` when the test body has already failed."""
    rep_call = getattr(item, "rep_call", None)
    return bool(rep_call and rep_call.failed)
