"""Session controller composing the repository, selection, diff and report stores."""
from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from gitlog_backend import config
from gitlog_backend.backends.base import ProgressChannel, ReportBackend, RepositoryBackend
from gitlog_backend.models import CommitGroup, CommitRef, RepoHistoryItem, ReportSession, ReportType
from gitlog_backend.observability import record_report_generation, start_span
from gitlog_backend.stores.base import StateStorage
from gitlog_backend.stores.config_store import ConfigStore
from gitlog_backend.stores.diff_cache import DiffCache
from gitlog_backend.stores.repo_session import RepoSessionStore
from gitlog_backend.stores.report_session import ReportSessionStore
from gitlog_backend.stores.selection import CommitSelectionManager
from gitlog_backend.stores.stream import StreamAggregator
from gitlog_backend.stores.template_store import TemplateStore

logger = logging.getLogger("gitlog.session")

DAY_SECONDS = 24 * 60 * 60


class GenerationInProgressError(RuntimeError):
    """A report generation is already running for this session."""


class ReportingSession:
    """Wires the stores together and owns the operations that span them."""

    def __init__(
        self,
        repo_backend: RepositoryBackend,
        report_backend: ReportBackend,
        progress: ProgressChannel,
        storage: Optional[StateStorage] = None,
        config_store: Optional[ConfigStore] = None,
        template_store: Optional[TemplateStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self.report_backend = report_backend
        self.repos = RepoSessionStore(repo_backend, storage, clock=clock)
        self.selection = CommitSelectionManager()
        self.diffs = DiffCache(repo_backend, self.repos.resolve_path)
        self.reports = ReportSessionStore(storage, clock=clock)
        self.stream = StreamAggregator(progress)
        self.config = config_store or ConfigStore(storage)
        self.templates = template_store or TemplateStore(storage, clock=clock)

    # ── Lifecycle ──────────────────────────────────────────────────

    async def restore(self) -> None:
        await self.repos.load()
        await self.reports.load()
        await self.config.load()
        await self.templates.load()

        current = self.repos.current_repo_id
        item = self.repos.get_history_item(current) if current else None
        if item is None:
            return
        try:
            await self._activate(item)
        except Exception as e:
            logger.warning(f"Could not restore repository {item.name} ({item.id}): {e}")

    async def close(self) -> None:
        await self.stream.unsubscribe()

    # ── Repositories ───────────────────────────────────────────────

    def default_window(self) -> tuple[int, int]:
        now = int(self._clock())
        return now - config.COMMIT_WINDOW_DAYS * DAY_SECONDS, now

    async def open_repository(self, path: str) -> RepoHistoryItem:
        backend = self.repos.backend
        info = await backend.open_repository(path)
        from_ts, to_ts = self.default_window()
        commits = await backend.get_commits(info.path or path, from_ts, to_ts)
        return await self.repos.register_active(path, info, commits)

    async def reload_repository(self, repo_id: str) -> Optional[RepoHistoryItem]:
        item = self.repos.get_history_item(repo_id)
        if item is None:
            return None
        return await self.open_repository(item.path)

    async def _activate(self, item: RepoHistoryItem) -> None:
        info = await self.repos.backend.open_repository(item.path)
        from_ts, to_ts = self.default_window()
        commits = await self.repos.backend.get_commits(item.path, from_ts, to_ts)
        self.repos.add_active_repo(item.id, info, commits)

    async def load_commits(self, repo_id: str, from_ts: int, to_ts: int) -> bool:
        entry = self.repos.active_repos.get(repo_id)
        if entry is None:
            logger.debug(f"Ignoring commit load for inactive repository {repo_id}")
            return False
        commits = await self.repos.backend.get_commits(entry.repoInfo.path, from_ts, to_ts)
        self.repos.add_active_repo(repo_id, entry.repoInfo, commits)
        return True

    def close_repository(self, repo_id: str) -> bool:
        removed = self.repos.remove_active_repo(repo_id)
        pruned = self.selection.prune(self.repos.active_repos)
        if pruned:
            logger.info(f"Pruned {pruned} selected commit(s) after closing {repo_id}")
        return removed

    async def remove_repository(self, repo_id: str) -> bool:
        self.close_repository(repo_id)
        return await self.repos.remove_from_history(repo_id)

    # ── Diffs ──────────────────────────────────────────────────────

    async def load_diff(self, ref: CommitRef) -> Optional[str]:
        return await self.diffs.load(ref)

    # ── Reports ────────────────────────────────────────────────────

    def build_commit_groups(self, refs: list[CommitRef]) -> list[CommitGroup]:
        wanted: dict[str, set[str]] = {}
        for ref in refs:
            wanted.setdefault(ref.repoId, set()).add(ref.hash)

        groups: list[CommitGroup] = []
        for repo_id, hashes in wanted.items():
            entry = self.repos.active_repos[repo_id]
            groups.append(
                CommitGroup(
                    repoId=repo_id,
                    repoName=entry.repoInfo.name,
                    repoPath=entry.repoInfo.path,
                    commits=[c for c in entry.commits if c.hash in hashes],
                )
            )
        return groups

    async def generate_report(self, kind: ReportType, template_id: Optional[str] = None) -> ReportSession:
        if self.reports.is_generating:
            raise GenerationInProgressError("A report is already being generated")

        refs = self.selection.filter_active(self.repos.active_repos)
        if not refs:
            raise ValueError("No commits selected from open repositories")
        groups = self.build_commit_groups(refs)

        self.reports.set_generating(True)
        await self.stream.begin()
        started = time.perf_counter()
        result = "error"
        try:
            with start_span("report.generate", {"kind": kind, "repos": len(groups)}):
                report = await self.report_backend.generate_report(kind, groups, template_id)
            now = self._clock()
            session = ReportSession(
                id=report.id or str(uuid.uuid4()),
                name=self._default_name(kind, now),
                type=report.type,
                content=report.content,
                commits=report.commits,
                generatedAt=report.generatedAt or now,
                lastModified=now,
                repoIds=[g.repoId for g in groups],
            )
            await self.reports.set_current(session)
            self.selection.clear()
            result = "ok"
            logger.info(f"Generated {kind} report {session.id} from {len(refs)} commit(s)")
            return session
        finally:
            self.reports.set_generating(False)
            self.stream.finish()
            record_report_generation(kind, result, (time.perf_counter() - started) * 1000)

    @staticmethod
    def _default_name(kind: ReportType, timestamp: float) -> str:
        label = {"weekly": "Weekly", "monthly": "Monthly"}.get(kind, "Custom")
        return f"{label} Report {datetime.fromtimestamp(timestamp).strftime('%Y-%m-%d %H:%M')}"
