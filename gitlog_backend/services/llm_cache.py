"""In-memory LLM response cache with TTL and hit-rate statistics."""
from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from gitlog_backend import config
from gitlog_backend.models import CacheStats
from gitlog_backend.observability import record_llm_cache

logger = logging.getLogger("gitlog.llm_cache")


@dataclass
class _CacheEntry:
    expires_at: float
    content: str


def hash_llm_request(provider_type: str, model: str, temperature: float, template_id: str, prompt: str) -> str:
    payload = f"{provider_type}|{model}|{temperature}|{template_id}|{prompt}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class LLMResponseCache:
    def __init__(self, ttl_seconds: int | None = None, clock: Callable[[], float] = time.time):
        self.ttl_seconds = config.LLM_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry and entry.expires_at > self._clock():
            self._hits += 1
            record_llm_cache("hit")
            return entry.content
        if entry:
            self._entries.pop(key, None)
        self._misses += 1
        record_llm_cache("miss")
        return None

    def put(self, key: str, content: str) -> None:
        self._entries[key] = _CacheEntry(expires_at=self._clock() + self.ttl_seconds, content=content)

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        logger.info("LLM response cache cleared")

    def stats(self) -> CacheStats:
        total = self._hits + self._misses
        memory_bytes = sum(len(entry.content.encode("utf-8")) for entry in self._entries.values())
        return CacheStats(
            llm_count=len(self._entries),
            llm_memory_mb=memory_bytes / 1024.0 / 1024.0,
            llm_hit_rate=(self._hits / total) * 100.0 if total else 0.0,
        )
