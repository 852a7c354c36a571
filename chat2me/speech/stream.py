"""Async stream of partial recognition results."""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)

_END = object()


class PartialResultStream:
    """Bridges recognition callbacks (any thread) onto the event loop.

    ``push`` and ``finish`` may be called from any thread. Consumers iterate
    with ``async for`` on the loop the stream was created on; iteration ends
    after ``finish``.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def push(self, text: str) -> None:
        """Deliver a partial result."""
        self._post(text)

    def finish(self) -> None:
        """Signal that no more results will arrive."""
        self._post(_END)

    def _post(self, item: object) -> None:
        try:
            self._loop.call_soon_threadsafe(self._put, item)
        except RuntimeError:
            # Loop already closed during teardown
            logger.debug("Dropping recognition result: event loop is closed")

    def _put(self, item: object) -> None:
        if self._finished:
            return
        if item is _END:
            self._finished = True
        self._queue.put_nowait(item)

    def __aiter__(self) -> "PartialResultStream":
        return self

    async def __anext__(self) -> str:
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        return item
