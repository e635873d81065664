"""Report backend decorator that memoizes generated content."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Optional

from gitlog_backend import config
from gitlog_backend.backends.base import ReportBackend
from gitlog_backend.backends.progress import ProgressBus
from gitlog_backend.models import AppConfig, CommitGroup, Report, ReportType
from gitlog_backend.services.llm_cache import LLMResponseCache, hash_llm_request

logger = logging.getLogger("gitlog.llm_cache")

DEFAULT_TEMPERATURE = 0.7


class CachingReportBackend:
    """Serves repeated generations for the same prompt from the LLM cache.

    The key hashes the fully rendered prompt, so editing a template or
    changing the selected commits misses the cache.

    A cache hit is replayed onto the progress channel as a single chunk so
    stream consumers see the same text they would on a live generation.
    """

    def __init__(
        self,
        inner: ReportBackend,
        cache: LLMResponseCache,
        get_config: Callable[[], AppConfig],
        bus: ProgressBus,
        channel: str | None = None,
        build_prompt: Optional[Callable[[ReportType, list[CommitGroup], Optional[str]], str]] = None,
    ):
        self.inner = inner
        self._build_prompt = build_prompt or inner.build_prompt
        self.cache = cache
        self._get_config = get_config
        self.bus = bus
        self.channel = channel or config.PROGRESS_CHANNEL

    def cache_key(self, kind: ReportType, commit_groups: list[CommitGroup], template_id: Optional[str]) -> str:
        provider = self._get_config().llm_provider
        return hash_llm_request(
            provider.type,
            provider.model,
            DEFAULT_TEMPERATURE,
            template_id or f"builtin-{kind}",
            self._build_prompt(kind, commit_groups, template_id),
        )

    async def generate_report(
        self,
        kind: ReportType,
        commit_groups: list[CommitGroup],
        template_id: Optional[str] = None,
    ) -> Report:
        key = self.cache_key(kind, commit_groups, template_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Serving {kind} report from LLM cache")
            self.bus.publish(self.channel, cached)
            return Report(
                id=str(uuid.uuid4()),
                type=kind,
                content=cached,
                commits=[c for group in commit_groups for c in group.commits],
                generatedAt=time.time(),
            )

        report = await self.inner.generate_report(kind, commit_groups, template_id)
        if report.content:
            self.cache.put(key, report.content)
        return report
