"""Repository factory for the persisted store slices."""
from __future__ import annotations

import aiosqlite

from gitlog_backend.db.repositories.state_blobs import SqliteStateBlobRepository


def get_state_blob_repository(db: aiosqlite.Connection) -> SqliteStateBlobRepository:
    return SqliteStateBlobRepository(db)
