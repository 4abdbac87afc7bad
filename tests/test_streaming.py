from __future__ import annotations

import asyncio

import pytest

from docgraph.workflow import ChunkChannel


def test_drain_delivers_chunks_in_order_until_closed() -> None:
    async def scenario() -> tuple[int, list[str]]:
        channel = ChunkChannel()
        seen: list[str] = []
        consumer = asyncio.create_task(channel.drain(seen.append))
        for chunk in ["a", "", "b", "c"]:
            channel.send(chunk)
            await asyncio.sleep(0)
        channel.close()
        return await consumer, seen

    delivered, seen = asyncio.run(scenario())

    assert delivered == 3
    assert seen == ["a", "b", "c"]


def test_drain_awaits_async_callbacks() -> None:
    async def scenario() -> list[str]:
        channel = ChunkChannel()
        seen: list[str] = []

        async def slow(chunk: str) -> None:
            await asyncio.sleep(0)
            seen.append(chunk.upper())

        channel.send("x")
        channel.send("y")
        channel.close()
        await channel.drain(slow)
        return seen

    assert asyncio.run(scenario()) == ["X", "Y"]


def test_send_after_close_raises() -> None:
    async def scenario() -> ChunkChannel:
        channel = ChunkChannel()
        channel.close()
        channel.close()
        return channel

    channel = asyncio.run(scenario())

    assert channel.closed is True
    assert channel.received == 0
    with pytest.raises(RuntimeError):
        channel.send("late")
