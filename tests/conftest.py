"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import pytest


class FakeClock:
    """Monotonic clock whose time only moves when ``sleep`` or ``advance`` is called."""

    def __init__(self) -> None:
        self.now_ms = 0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now_ms / 1000

    def advance(self, milliseconds: int) -> None:
        self.now_ms += milliseconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now_ms += round(seconds * 1000)


class ScriptedCall:
    """Async call function replaying payloads (or raising exceptions) in order.

    The last item repeats once the script is exhausted.
    """

    def __init__(self, *script: Any, clock: FakeClock | None = None, cost_ms: int = 0) -> None:
        self.script = script
        self.attempts: list[int] = []
        self.clock = clock
        self.cost_ms = cost_ms

    async def __call__(self, attempt: int) -> Any:
        self.attempts.append(attempt)
        if self.clock is not None:
            self.clock.advance(self.cost_ms)
        item = self.script[min(len(self.attempts), len(self.script)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def scripted_call() -> Callable[..., ScriptedCall]:
    return ScriptedCall


@pytest.fixture()
def no_sleep() -> Callable[[float], Awaitable[None]]:
    async def _sleep(_seconds: float) -> None:
        return None

    return _sleep
