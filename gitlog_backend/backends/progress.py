"""In-process publish/subscribe bus for generation progress chunks."""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Optional

from gitlog_backend.backends.base import ChunkHandler, Unsubscribe

logger = logging.getLogger("gitlog.progress")


class ProgressBus:
    """Delivers string chunks to every handler subscribed to a channel.

    Handlers run synchronously on the publishing call, so chunks reach a
    subscriber in publish order.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._handlers: dict[str, list[ChunkHandler]] = defaultdict(list)
        self._loop = loop

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def subscribe(self, channel: str, handler: ChunkHandler) -> Unsubscribe:
        self._handlers[channel].append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(channel, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def subscriber_count(self, channel: str) -> int:
        return len(self._handlers.get(channel, []))

    def publish(self, channel: str, chunk: str) -> None:
        for handler in list(self._handlers.get(channel, [])):
            try:
                handler(chunk)
            except Exception as e:
                logger.error(f"Progress handler failed on {channel}: {e}")

    def publish_threadsafe(self, channel: str, chunk: str) -> None:
        """Publish from a worker thread onto the owning event loop."""
        if self._loop is None:
            raise RuntimeError("ProgressBus has no event loop bound")
        self._loop.call_soon_threadsafe(self.publish, channel, chunk)
