"""Aggregates streamed report-generation chunks into one live buffer."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from gitlog_backend import config
from gitlog_backend.backends.base import ProgressChannel, Unsubscribe

logger = logging.getLogger("gitlog.stream")


class StreamAggregator:
    """Owns the process-wide progress subscription and its text buffer.

    One subscription serves every generation in the session: ``begin``
    subscribes only if no handle exists yet, and the handle is released by
    ``unsubscribe`` at shutdown. The buffer is reset once per generation and
    left in place after ``finish`` so the final or partial text stays
    visible. Chunks that arrive outside a generation are dropped.
    """

    def __init__(self, source: ProgressChannel, channel: str | None = None):
        self.source = source
        self.channel = channel or config.PROGRESS_CHANNEL
        self._lock = asyncio.Lock()
        self._unsubscribe: Optional[Unsubscribe] = None
        self._chunks: list[str] = []
        self._active = False

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    @property
    def active(self) -> bool:
        return self._active

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    async def subscribe(self) -> bool:
        """Open the subscription if none exists. Returns True when newly opened."""
        async with self._lock:
            if self._unsubscribe is not None:
                return False
            self._unsubscribe = self.source.subscribe(self.channel, self._on_chunk)
            logger.info(f"Subscribed to progress channel {self.channel}")
            return True

    async def unsubscribe(self) -> None:
        async with self._lock:
            if self._unsubscribe is None:
                return
            self._unsubscribe()
            self._unsubscribe = None
            self._active = False
            logger.info(f"Unsubscribed from progress channel {self.channel}")

    async def begin(self) -> None:
        await self.subscribe()
        self._chunks = []
        self._active = True

    def finish(self) -> None:
        self._active = False

    def _on_chunk(self, chunk: str) -> None:
        if not self._active:
            logger.debug(f"Dropping chunk outside generation ({len(chunk)} chars)")
            return
        self._chunks.append(chunk)

    def snapshot(self) -> dict[str, Any]:
        return {"text": self.text, "active": self._active, "subscribed": self.subscribed}
