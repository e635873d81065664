"""Collaborator contracts for the session engine.

Every suspension point of the engine is a call through one of these
interfaces; failures surface as ``BackendError`` carrying a readable message.
"""
from __future__ import annotations

from typing import Callable, Optional, Protocol

from gitlog_backend.models import Commit, CommitGroup, RepoInfo, Report, ReportType


class BackendError(RuntimeError):
    """A collaborator call was rejected."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RepositoryBackend(Protocol):
    async def open_repository(self, path: str) -> RepoInfo: ...

    async def get_commits(self, path: str, from_ts: int, to_ts: int) -> list[Commit]: ...

    async def get_commit_diff(self, path: str, commit_hash: str) -> str: ...


class ReportBackend(Protocol):
    async def generate_report(
        self,
        kind: ReportType,
        commit_groups: list[CommitGroup],
        template_id: Optional[str] = None,
    ) -> Report: ...


ChunkHandler = Callable[[str], None]
Unsubscribe = Callable[[], None]


class ProgressChannel(Protocol):
    def subscribe(self, channel: str, handler: ChunkHandler) -> Unsubscribe: ...
