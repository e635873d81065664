"""Cross-repository commit selection used as report input."""
from __future__ import annotations

from typing import Iterable

from gitlog_backend.models import CommitRef


class CommitSelectionManager:
    """Ordered set of ``CommitRef``s; ephemeral, never persisted.

    Refs for repositories that are no longer loaded are allowed here; the
    report call site filters them with ``filter_active``.
    """

    def __init__(self) -> None:
        self._refs: dict[CommitRef, None] = {}

    def __len__(self) -> int:
        return len(self._refs)

    def __contains__(self, ref: CommitRef) -> bool:
        return ref in self._refs

    @property
    def selected(self) -> list[CommitRef]:
        return list(self._refs)

    def toggle(self, ref: CommitRef) -> bool:
        """Add ``ref`` if absent, remove it if present. Returns the new membership."""
        if ref in self._refs:
            del self._refs[ref]
            return False
        self._refs[ref] = None
        return True

    def clear(self) -> None:
        self._refs.clear()

    def filter_active(self, active_repo_ids: Iterable[str]) -> list[CommitRef]:
        active = set(active_repo_ids)
        return [ref for ref in self._refs if ref.repoId in active]

    def prune(self, active_repo_ids: Iterable[str]) -> int:
        active = set(active_repo_ids)
        stale = [ref for ref in self._refs if ref.repoId not in active]
        for ref in stale:
            del self._refs[ref]
        return len(stale)
