"""Sample classes mocked by the test suite."""

from __future__ import annotations

import abc


class Collaborator:
    """A class with every kind of member the gateway intercepts."""

    def __init__(self, i: int = 0) -> None:
        self.i = i

    def get_value(self) -> int:
        return -1

    def do_something(self, b: bool, i: list[int] | None, s: str | None) -> str:
        assert i is not None
        return f"{s}{b}{i[0]}"

    def native_method(self, b: bool) -> int:
        return 0 if b else 1

    def _private_method(self) -> float:
        return 1.2

    def describe(self, label: str, *extra: str, sep: str = " ") -> str:
        return sep.join((label, *extra))

    @staticmethod
    def static_method() -> bool:
        return True

    @staticmethod
    def static_check(i: int) -> bool:
        return i > 0

    @classmethod
    def create(cls, i: int) -> Collaborator:
        return cls(i)


class Runtime:
    """A class whose static API fronts a shared instance."""

    _instance: Runtime | None = None

    @classmethod
    def get_runtime(cls) -> Runtime:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @staticmethod
    def run_finalizers_on_exit(value: bool) -> None:
        raise RuntimeError("not supported")

    def exec(self, command: str, envp: list[str] | None = None) -> object:
        raise RuntimeError(f"refusing to run {command}")

    def available_processors(self) -> int:
        return 1


class Task(abc.ABC):
    """An abstract interface with no implementation."""

    @abc.abstractmethod
    def call(self) -> str: ...


class Repository:
    """A collaborator for ordering tests."""

    def open(self) -> None:
        pass

    def save(self, key: str, value: object) -> bool:
        return True

    def close(self) -> None:
        pass


class CachingRepository(Repository):
    """A repository inheriting most of its API."""

    def flush(self) -> int:
        return 0
