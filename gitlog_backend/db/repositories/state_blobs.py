"""SQLite implementation of the per-store state blob repository."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import aiosqlite


class SqliteStateBlobRepository:
    """Key-value JSON blobs addressed by store name."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get(self, store_name: str) -> dict[str, Any] | None:
        async with self.db.execute(
            "SELECT payload_json FROM state_blobs WHERE store_name = ?",
            (store_name,),
        ) as cur:
            row = await cur.fetchone()
        if not row:
            return None
        # Corrupt payloads raise here; callers fall back to defaults.
        parsed = json.loads(row[0])
        return parsed if isinstance(parsed, dict) else None

    async def put(self, store_name: str, payload: dict[str, Any]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        await self.db.execute(
            """INSERT INTO state_blobs (store_name, payload_json, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(store_name) DO UPDATE SET
                payload_json=excluded.payload_json,
                updated_at=excluded.updated_at
            """,
            (store_name, json.dumps(payload), now),
        )
        await self.db.commit()

    async def delete(self, store_name: str) -> None:
        await self.db.execute("DELETE FROM state_blobs WHERE store_name = ?", (store_name,))
        await self.db.commit()

    async def list_store_names(self) -> list[str]:
        async with self.db.execute("SELECT store_name FROM state_blobs ORDER BY store_name") as cur:
            return [row[0] for row in await cur.fetchall()]
