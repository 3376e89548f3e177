"""Async notice queue decoupling the core from the UI layer."""

import asyncio

from loguru import logger

from gokigen.bus.events import Notice


class MessageBus:
    """
    Queue of notices produced by the core.

    Producers call publish() from the event loop without awaiting; the UI
    layer drains with consume() or pending().
    """

    def __init__(self, maxsize: int = 100):
        self._notices: asyncio.Queue[Notice] = asyncio.Queue(maxsize=maxsize)

    def publish(self, notice: Notice) -> None:
        """Enqueue a notice, dropping the oldest one if the queue is full."""
        if self._notices.full():
            dropped = self._notices.get_nowait()
            logger.debug("Notice queue full, dropped: {}", dropped.message)
        self._notices.put_nowait(notice)

    async def consume(self) -> Notice:
        """Wait for the next notice."""
        return await self._notices.get()

    def pending(self) -> list[Notice]:
        """Drain and return every queued notice without waiting."""
        notices: list[Notice] = []
        while not self._notices.empty():
            notices.append(self._notices.get_nowait())
        return notices

    @property
    def size(self) -> int:
        return self._notices.qsize()
