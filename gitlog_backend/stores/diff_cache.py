"""Commit diff cache with in-flight request coalescing.

Cache-aside, append-only. At most one outbound fetch exists per hash at any
time; a failed fetch leaves no entry behind so a later ``load`` retries.
Entries are unbounded for the session unless ``max_entries`` is positive,
in which case the oldest inserted entries are dropped first.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from gitlog_backend import config
from gitlog_backend.backends.base import RepositoryBackend
from gitlog_backend.models import CommitRef
from gitlog_backend.observability import record_diff_fetch, start_span

logger = logging.getLogger("gitlog.diff")


class DiffCache:
    def __init__(
        self,
        backend: RepositoryBackend,
        resolve_path: Callable[[str], Optional[str]],
        max_entries: int | None = None,
    ):
        self.backend = backend
        self._resolve_path = resolve_path
        self.max_entries = config.DIFF_CACHE_MAX_ENTRIES if max_entries is None else max_entries
        self._entries: dict[str, str] = {}
        self._inflight: dict[str, asyncio.Task[Optional[str]]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, ref: CommitRef) -> Optional[str]:
        return self._entries.get(ref.hash)

    @property
    def loading(self) -> frozenset[str]:
        return frozenset(self._inflight)

    def is_loading(self, commit_hash: str) -> bool:
        return commit_hash in self._inflight

    async def load(self, ref: CommitRef) -> Optional[str]:
        """Return the diff for ``ref``, fetching it at most once concurrently.

        Late callers for a hash that is already in flight await the same
        fetch instead of issuing another one. Failures resolve to ``None``.
        """
        cached = self._entries.get(ref.hash)
        if cached is not None:
            return cached

        task = self._inflight.get(ref.hash)
        if task is None:
            path = self._resolve_path(ref.repoId)
            if not path:
                logger.warning(f"Cannot load diff {ref.hash[:7]}: repository {ref.repoId} is unknown")
                return None
            task = asyncio.create_task(self._fetch(ref, path))
            self._inflight[ref.hash] = task
        return await asyncio.shield(task)

    async def _fetch(self, ref: CommitRef, path: str) -> Optional[str]:
        started = time.perf_counter()
        try:
            with start_span("diff.fetch", {"commit": ref.hash, "repo_id": ref.repoId}):
                diff = await self.backend.get_commit_diff(path, ref.hash)
        except Exception as e:
            logger.warning(f"Diff fetch failed for {ref.hash[:7]} in {ref.repoId}: {e}")
            record_diff_fetch("error", (time.perf_counter() - started) * 1000)
            return None
        else:
            self._store(ref.hash, diff)
            record_diff_fetch("ok", (time.perf_counter() - started) * 1000)
            return diff
        finally:
            self._inflight.pop(ref.hash, None)

    def _store(self, commit_hash: str, diff: str) -> None:
        self._entries[commit_hash] = diff
        if self.max_entries > 0:
            while len(self._entries) > self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]

    def clear(self) -> None:
        """Drop cached entries; in-flight fetches still complete and store."""
        self._entries.clear()
