"""Report session store: the current report plus durable report history."""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from pydantic import BaseModel, Field

from gitlog_backend import config
from gitlog_backend.models import ReportSession
from gitlog_backend.stores.base import PersistedStore, StateStorage

logger = logging.getLogger("gitlog.reports")


class ReportSessionState(BaseModel):
    history: list[ReportSession] = Field(default_factory=list)
    currentReportId: Optional[str] = None


class ReportSessionStore(PersistedStore[ReportSessionState]):
    store_name = "report-session"
    durable_model = ReportSessionState

    def __init__(
        self,
        storage: Optional[StateStorage] = None,
        history_limit: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.history_limit = config.REPORT_HISTORY_LIMIT if history_limit is None else history_limit
        self._clock = clock
        super().__init__(storage)

    def reset_ephemeral(self) -> None:
        self._is_generating = False

    def _after_load(self) -> None:
        current = self.durable.currentReportId
        if current and self.get(current) is None:
            self.durable.currentReportId = None
        self._enforce_cap()

    @property
    def history(self) -> list[ReportSession]:
        return list(self.durable.history)

    @property
    def current(self) -> Optional[ReportSession]:
        if not self.durable.currentReportId:
            return None
        return self.get(self.durable.currentReportId)

    @property
    def current_report_id(self) -> Optional[str]:
        return self.durable.currentReportId

    @property
    def is_generating(self) -> bool:
        return self._is_generating

    def get(self, report_id: str) -> Optional[ReportSession]:
        return next((r for r in self.durable.history if r.id == report_id), None)

    def set_generating(self, generating: bool) -> None:
        # Callers must not start a second generation while this is set.
        self._is_generating = generating

    async def set_current(self, report: Optional[ReportSession]) -> None:
        if report is None:
            self.durable.currentReportId = None
        else:
            # Current is set first so the cap never evicts it.
            self.durable.currentReportId = report.id
            if self.get(report.id) is None:
                self._insert(report)
        await self.save()

    async def add(self, report: ReportSession) -> ReportSession:
        self._insert(report)
        await self.save()
        return report

    async def remove(self, report_id: str) -> bool:
        if self.get(report_id) is None:
            logger.debug(f"Ignoring removal of unknown report {report_id}")
            return False
        self.durable.history = [r for r in self.durable.history if r.id != report_id]
        if self.durable.currentReportId == report_id:
            self.durable.currentReportId = None
        await self.save()
        return True

    async def switch_to(self, report_id: str) -> bool:
        if self.get(report_id) is None:
            logger.debug(f"Ignoring switch to unknown report {report_id}")
            return False
        self.durable.currentReportId = report_id
        await self.save()
        return True

    async def rename(self, report_id: str, name: str) -> Optional[ReportSession]:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValueError("Report name must not be empty")
        report = self.get(report_id)
        if report is None:
            return None
        report.name = cleaned
        report.lastModified = self._clock()
        await self.save()
        return report

    async def edit_content(self, report_id: str, content: str) -> Optional[ReportSession]:
        report = self.get(report_id)
        if report is None:
            return None
        report.content = content
        report.lastModified = self._clock()
        await self.save()
        return report

    def _insert(self, report: ReportSession) -> None:
        self.durable.history = [report, *[r for r in self.durable.history if r.id != report.id]]
        self._enforce_cap()

    def _enforce_cap(self) -> None:
        if self.history_limit <= 0 or len(self.durable.history) <= self.history_limit:
            return
        keep_current = self.durable.currentReportId
        candidates = sorted(
            (r for r in self.durable.history if r.id != keep_current),
            key=lambda r: r.lastModified,
        )
        overflow = len(self.durable.history) - self.history_limit
        dropped = {r.id for r in candidates[:overflow]}
        self.durable.history = [r for r in self.durable.history if r.id not in dropped]
        for report_id in dropped:
            logger.info(f"Evicted report {report_id} from history")
