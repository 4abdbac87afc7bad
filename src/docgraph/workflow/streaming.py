"""Ordered hand-off of streamed chunks from an engine to the dispatcher."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

__all__ = ["ChunkChannel"]

_CLOSED = object()


class ChunkChannel:
    """Unbounded FIFO between an engine's chunk callback and one consumer.

    ``send`` never blocks, so engines may call it synchronously from inside
    their streaming loop. ``drain`` returns once ``close`` has been called and
    every queued chunk was handed to the callback in arrival order.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self.received = 0

    def send(self, chunk: str) -> None:
        if self._closed:
            raise RuntimeError("Cannot send on a closed chunk channel")
        if chunk:
            self.received += 1
            self._queue.put_nowait(chunk)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    async def drain(self, callback: Callable[[str], Awaitable[None] | None]) -> int:
        delivered = 0
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return delivered
            result = callback(item)  # type: ignore[arg-type]
            if asyncio.iscoroutine(result):
                await result
            delivered += 1
