"""Steps for testing the pytest plugin."""

from __future__ import annotations

import shutil
import subprocess
import sys
import tempfile
import textwrap
import typing as t
from pathlib import Path

from behave import given, then, when  # type: ignore[attr-defined]


class BehaveContext(t.Protocol):
    """Behave step context for plugin tests."""

    test_file: Path
    tmpdir: Path
    result: subprocess.CompletedProcess[str]


_HEADER = """
from call_mox.unittests._collaborators import Repository

pytest_plugins = ("call_mox.pytest_plugin",)
"""


def _write_test_file(context: BehaveContext, body: str) -> None:
    tmpdir = Path(tempfile.mkdtemp())
    context.tmpdir = tmpdir
    context.test_file = tmpdir / "test_example.py"
    context.test_file.write_text(_HEADER + textwrap.dedent(body))


@given("a temporary test file using the call_mox fixture")
def step_create_test_file(context: BehaveContext) -> None:
    """Write a pytest file that exercises the fixture."""
    _write_test_file(
        context,
        """
        def test_example(call_mox):
            repo = call_mox.mocked(Repository).instance
            with call_mox.expectations(strict=True) as rec:
                repo.save("key", "value")
                rec.result = False
            assert repo.save("key", "value") is False
            call_mox.verify()
        """,
    )


@given("a temporary test file leaving an expectation unmet")
def step_create_unmet_test_file(context: BehaveContext) -> None:
    """Write a pytest file that never makes its expected call."""
    _write_test_file(
        context,
        """
        def test_example(call_mox):
            repo = call_mox.mocked(Repository).instance
            with call_mox.expectations(strict=True):
                repo.open()
        """,
    )


@when("I run pytest on the file")
def step_run_pytest(context: BehaveContext) -> None:
    """Execute pytest on the generated file."""
    result = subprocess.run(  # noqa: S603
        [sys.executable, "-m", "pytest", str(context.test_file)],
        capture_output=True,
        text=True,
    )
    context.result = result
    shutil.rmtree(context.tmpdir)


@then("the run should pass")
def step_check_pass(context: BehaveContext) -> None:
    """Assert that pytest exited successfully."""
    assert context.result.returncode == 0, context.result.stdout  # noqa: S101


@then("the run should report a teardown error")
def step_check_teardown_error(context: BehaveContext) -> None:
    """Assert that verification failed during teardown."""
    assert context.result.returncode != 0  # noqa: S101
    assert "TooFewInvocationsError" in context.result.stdout  # noqa: S101
