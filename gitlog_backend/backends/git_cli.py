"""Repository backend built on the ``git`` command line."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from gitlog_backend import config
from gitlog_backend.backends.base import BackendError
from gitlog_backend.models import Commit, RepoInfo

logger = logging.getLogger("gitlog.git")

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"%H{_FIELD_SEP}%an{_FIELD_SEP}%ae{_FIELD_SEP}%ct{_FIELD_SEP}%B{_RECORD_SEP}"


def parse_log_output(raw: str) -> list[Commit]:
    """Parse ``git log`` output produced with ``_LOG_FORMAT``."""
    commits: list[Commit] = []
    for record in raw.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue
        parts = record.split(_FIELD_SEP, 4)
        if len(parts) < 5:
            logger.debug(f"Skipping malformed log record: {record[:80]!r}")
            continue
        commit_hash, author, email, epoch, message = parts
        try:
            timestamp = int(epoch.strip())
        except ValueError:
            timestamp = 0
        commits.append(
            Commit(
                hash=commit_hash.strip(),
                author=author or "Unknown",
                email=email,
                timestamp=timestamp,
                message=message.strip(),
            )
        )
    return commits


class GitCliRepositoryBackend:
    """Runs git subcommands in a subprocess per call."""

    def __init__(self, git_binary: str | None = None):
        self.git_binary = git_binary or config.GIT_BINARY

    async def _run(self, path: str, *args: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.git_binary,
                "-C",
                path,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BackendError(f"Failed to run git: {e}") from e
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip() or f"exit code {proc.returncode}"
            raise BackendError(f"git {args[0]} failed: {detail}")
        return stdout.decode("utf-8", errors="replace")

    async def open_repository(self, path: str) -> RepoInfo:
        repo_path = Path(path).expanduser()
        if not repo_path.is_dir():
            raise BackendError(f"Failed to open Git repository: {path} is not a directory")

        inside = await self._run(str(repo_path), "rev-parse", "--is-inside-work-tree")
        if inside.strip().lower() != "true":
            raise BackendError(f"Failed to open Git repository: {path}")

        branch = (await self._run(str(repo_path), "rev-parse", "--abbrev-ref", "HEAD")).strip()
        try:
            total = int((await self._run(str(repo_path), "rev-list", "--count", "HEAD")).strip() or 0)
        except (BackendError, ValueError):
            # Fresh repositories have no HEAD yet.
            total = 0

        return RepoInfo(
            path=str(repo_path),
            name=repo_path.resolve().name or "unknown",
            branch=branch or "unknown",
            totalCommits=total,
        )

    async def get_commits(self, path: str, from_ts: int, to_ts: int) -> list[Commit]:
        raw = await self._run(
            path,
            "log",
            f"--format={_LOG_FORMAT}",
            f"--since=@{int(from_ts)}",
            f"--until=@{int(to_ts)}",
        )
        commits = parse_log_output(raw)
        # Window is inclusive on both ends.
        return [c for c in commits if from_ts <= c.timestamp <= to_ts]

    async def get_commit_diff(self, path: str, commit_hash: str) -> str:
        if not commit_hash or not all(ch in "0123456789abcdefABCDEF" for ch in commit_hash):
            raise BackendError(f"Invalid commit hash: {commit_hash}")
        return await self._run(path, "show", "--format=", "--patch", "--no-color", commit_hash)
