"""Tests for MessageChannel."""

from __future__ import annotations

import asyncio

import pytest

from recall.core.errors import ChannelClosedError
from recall.sources.channel import DEFAULT_CHANNEL_SIZE, MessageChannel
from tests.conftest import make_message


class TestMessageChannel:
    async def test_fifo(self) -> None:
        ch = MessageChannel()
        msgs = [make_message(f"m{i}") for i in range(3)]
        for m in msgs:
            await ch.send(m)
        assert ch.qsize() == 3
        assert [await ch.receive() for _ in range(3)] == msgs

    async def test_default_size(self) -> None:
        assert MessageChannel().maxsize == DEFAULT_CHANNEL_SIZE == 100

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            MessageChannel(0)

    async def test_closed_and_drained_yields_none(self) -> None:
        ch = MessageChannel()
        m = make_message()
        await ch.send(m)
        ch.close()
        assert ch.closed
        assert ch.qsize() == 1
        assert await ch.receive() is m
        assert await ch.receive() is None
        assert await ch.receive() is None

    async def test_double_close_raises(self) -> None:
        ch = MessageChannel()
        ch.close()
        with pytest.raises(ChannelClosedError):
            ch.close()

    async def test_send_after_close_raises(self) -> None:
        ch = MessageChannel()
        ch.close()
        with pytest.raises(ChannelClosedError):
            await ch.send(make_message())

    async def test_full_channel_blocks_sender(self, advance) -> None:
        ch = MessageChannel(1)
        first, second = make_message("1"), make_message("2")
        await ch.send(first)
        sender = asyncio.create_task(ch.send(second))
        await advance()
        assert not sender.done()

        assert await ch.receive() is first
        await advance()
        assert sender.done()
        assert await ch.receive() is second

    async def test_close_while_sender_blocked(self, advance) -> None:
        ch = MessageChannel(1)
        await ch.send(make_message("1"))
        sender = asyncio.create_task(ch.send(make_message("2")))
        await advance()
        ch.close()

        assert (await ch.receive()).raw == "1"  # type: ignore[union-attr]
        await advance()
        with pytest.raises(ChannelClosedError):
            await sender
        assert await ch.receive() is None

    async def test_receive_nowait(self) -> None:
        ch = MessageChannel()
        assert ch.receive_nowait() is None
        m = make_message()
        await ch.send(m)
        assert ch.receive_nowait() is m
        ch.close()
        assert ch.receive_nowait() is None

    async def test_async_iteration_stops_at_close(self) -> None:
        ch = MessageChannel()
        for i in range(3):
            await ch.send(make_message(str(i)))
        ch.close()
        assert [m.raw async for m in ch] == ["0", "1", "2"]
