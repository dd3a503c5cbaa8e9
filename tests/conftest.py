"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Sequence
from typing import Any

import pytest

from recall.models.enums import Direction
from recall.models.message import Message
from recall.sources.base import BaseSource
from recall.sources.channel import MessageChannel


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay.

        await advance()       # 5 yields (default)
        await advance(10)     # 10 yields for heavier workloads
    """

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


def make_message(
    raw: str = "hello",
    direction: Direction = Direction.UPSTREAM,
    session_id: str = "",
    source_name: str = "test",
) -> Message:
    return Message(raw=raw, direction=direction, session_id=session_id, source_name=source_name)


class ListSource(BaseSource):
    """Emits a fixed list of lines, closes, then optionally fails."""

    def __init__(
        self,
        lines: Sequence[str],
        *,
        error: Exception | None = None,
        session_id: str = "",
    ) -> None:
        super().__init__()
        self._lines = list(lines)
        self._fail_with = error
        self._session_id = session_id

    @property
    def name(self) -> str:
        return "list"

    async def run(self, out: MessageChannel, cancel: asyncio.Event) -> None:
        try:
            for line in self._lines:
                await out.send(self._capture(line, Direction.LOG, self._session_id))
        finally:
            out.close()
        if self._fail_with is not None:
            raise self._fail_with


class EndlessSource(BaseSource):
    """Emits numbered lines until cancelled."""

    def __init__(self, *, stop_error: Exception | None = None) -> None:
        super().__init__()
        self._stop_error = stop_error

    @property
    def name(self) -> str:
        return "endless"

    async def run(self, out: MessageChannel, cancel: asyncio.Event) -> None:
        i = 0
        try:
            while not cancel.is_set():
                await out.send(self._capture(f"line {i}", Direction.LOG))
                i += 1
                await asyncio.sleep(0)
        finally:
            out.close()
        if self._stop_error is not None:
            raise self._stop_error
