"""Repository session store: active repositories plus a bounded history."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Optional

from pydantic import BaseModel, Field

from gitlog_backend import config
from gitlog_backend.backends.base import RepositoryBackend
from gitlog_backend.models import ActiveRepoEntry, Commit, RepoHistoryItem, RepoInfo
from gitlog_backend.stores.base import PersistedStore, StateStorage

logger = logging.getLogger("gitlog.repos")


class RepoSessionState(BaseModel):
    history: list[RepoHistoryItem] = Field(default_factory=list)
    currentRepoId: Optional[str] = None


class RepoSessionStore(PersistedStore[RepoSessionState]):
    """Owns the active repository map and the durable repository history.

    History is keyed by path, ordered by ``lastAccessed`` descending and
    capped; the least recently accessed entry is evicted first. The active
    map is runtime-only and never persisted.
    """

    store_name = "repo-session"
    durable_model = RepoSessionState

    def __init__(
        self,
        backend: RepositoryBackend,
        storage: Optional[StateStorage] = None,
        history_limit: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.history_limit = config.REPO_HISTORY_LIMIT if history_limit is None else history_limit
        self._clock = clock
        super().__init__(storage)

    def reset_ephemeral(self) -> None:
        self._active: dict[str, ActiveRepoEntry] = {}

    def _after_load(self) -> None:
        self._enforce_order_and_cap()
        self._drop_dangling_current()

    # ── Read side ──────────────────────────────────────────────────

    @property
    def history(self) -> list[RepoHistoryItem]:
        return list(self.durable.history)

    @property
    def current_repo_id(self) -> Optional[str]:
        return self.durable.currentRepoId

    @property
    def active_repos(self) -> dict[str, ActiveRepoEntry]:
        return dict(self._active)

    @property
    def current_view(self) -> Optional[ActiveRepoEntry]:
        """The single-repo view derived from the current repository."""
        if not self.durable.currentRepoId:
            return None
        return self._active.get(self.durable.currentRepoId)

    def get_history_item(self, repo_id: str) -> Optional[RepoHistoryItem]:
        return next((item for item in self.durable.history if item.id == repo_id), None)

    def is_active(self, repo_id: str) -> bool:
        return repo_id in self._active

    def resolve_path(self, repo_id: str) -> Optional[str]:
        entry = self._active.get(repo_id)
        if entry:
            return entry.repoInfo.path
        item = self.get_history_item(repo_id)
        return item.path if item else None

    def all_commits(self) -> list[Commit]:
        """Commits of every active repository, tagged with their repo id."""
        tagged = [
            commit.model_copy(update={"repoId": repo_id})
            for repo_id, entry in self._active.items()
            for commit in entry.commits
        ]
        tagged.sort(key=lambda c: c.timestamp, reverse=True)
        return tagged

    # ── Mutations ──────────────────────────────────────────────────

    async def open_and_register(self, path: str) -> RepoHistoryItem:
        """Open ``path`` through the backend and register it in history.

        Opening a path that is already in history only touches its
        ``lastAccessed``; the repo id stays stable. Backend failures
        propagate and leave the store untouched.
        """
        info = await self.backend.open_repository(path)
        item = self._register(info, requested_path=path)
        await self.save()
        return item

    async def register_active(self, path: str, info: RepoInfo, commits: list[Commit]) -> RepoHistoryItem:
        """Register an already opened repository, load it and make it current.

        Callers finish every backend call first; all mutations here happen
        in one synchronous step before the save.
        """
        item = self._register(info, requested_path=path)
        self.add_active_repo(item.id, info, commits)
        self.durable.currentRepoId = item.id
        await self.save()
        return item

    def _register(self, info: RepoInfo, requested_path: str) -> RepoHistoryItem:
        key = info.path or requested_path
        now = self._clock()
        existing = next((item for item in self.durable.history if item.path == key), None)
        if existing:
            # Reopen only touches lastAccessed; fresh metadata lives on the active entry.
            existing.lastAccessed = now
            self._move_to_front(existing)
            logger.info(f"Reopened repository {existing.name} ({existing.id})")
            result = existing
        else:
            result = RepoHistoryItem(
                id=f"repo-{uuid.uuid4()}",
                path=key,
                name=info.name,
                branch=info.branch,
                totalCommits=info.totalCommits,
                addedAt=now,
                lastAccessed=now,
            )
            self.durable.history.insert(0, result)
            logger.info(f"Registered repository {result.name} ({result.id})")
        self._enforce_order_and_cap()
        return result

    def add_active_repo(self, repo_id: str, repo_info: RepoInfo, commits: list[Commit]) -> None:
        self._active[repo_id] = ActiveRepoEntry(repoId=repo_id, repoInfo=repo_info, commits=list(commits))

    def remove_active_repo(self, repo_id: str) -> bool:
        return self._active.pop(repo_id, None) is not None

    async def switch_to(self, repo_id: str) -> bool:
        item = self.get_history_item(repo_id)
        if item is None:
            logger.debug(f"Ignoring switch to unknown repository {repo_id}")
            return False
        item.lastAccessed = self._clock()
        self.durable.currentRepoId = repo_id
        self._move_to_front(item)
        self._enforce_order_and_cap()
        await self.save()
        return True

    async def remove_from_history(self, repo_id: str) -> bool:
        item = self.get_history_item(repo_id)
        if item is None:
            logger.debug(f"Ignoring removal of unknown repository {repo_id}")
            return False
        self.durable.history = [h for h in self.durable.history if h.id != repo_id]
        if self.durable.currentRepoId == repo_id:
            self.durable.currentRepoId = None
        await self.save()
        logger.info(f"Removed repository {item.name} ({repo_id}) from history")
        return True

    # ── Invariants ─────────────────────────────────────────────────

    def _move_to_front(self, item: RepoHistoryItem) -> None:
        self.durable.history = [item, *[h for h in self.durable.history if h.id != item.id]]

    def _enforce_order_and_cap(self) -> None:
        # Stable sort: on equal timestamps the more recently touched entry wins.
        self.durable.history.sort(key=lambda h: h.lastAccessed, reverse=True)
        if self.history_limit > 0 and len(self.durable.history) > self.history_limit:
            evicted = self.durable.history[self.history_limit:]
            self.durable.history = self.durable.history[: self.history_limit]
            for item in evicted:
                logger.info(f"Evicted repository {item.name} ({item.id}) from history")
            self._drop_dangling_current()

    def _drop_dangling_current(self) -> None:
        current = self.durable.currentRepoId
        if current and self.get_history_item(current) is None:
            self.durable.currentRepoId = None
