"""Global test configuration and shared fixtures."""

from __future__ import annotations

import typing as t

import pytest

from call_mox.interception import MockedType
from call_mox.unittests import _collaborators

pytest_plugins = ("call_mox.pytest_plugin", "pytester")

_MOCKED_ATTR = "__call_mox_mocked__"


def _sample_classes() -> list[type]:
    return [
        value
        for value in vars(_collaborators).values()
        if isinstance(value, type) and value.__module__ == _collaborators.__name__
    ]


@pytest.fixture(autouse=True)
def ensure_sample_classes_restored() -> t.Generator[None, None, None]:
    """Restore any sample class a failing test left intercepted."""
    yield
    for cls in _sample_classes():
        handle = vars(cls).get(_MOCKED_ATTR)
        if isinstance(handle, MockedType):
            handle.restore()
            pytest.fail(f"{cls.__qualname__} was left mocked")
