"""Durable/ephemeral split shared by every session store.

Each store owns exactly one pydantic model that is serialized to the state
blob table; everything else lives in runtime attributes that are reset to
defaults whenever the durable slice is (re)loaded.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Generic, Optional, Protocol, TypeVar

import aiosqlite
from pydantic import BaseModel, ValidationError

logger = logging.getLogger("gitlog.stores")

D = TypeVar("D", bound=BaseModel)


class StateStorage(Protocol):
    async def get(self, store_name: str) -> dict[str, Any] | None: ...

    async def put(self, store_name: str, payload: dict[str, Any]) -> None: ...


class PersistedStore(Generic[D]):
    store_name: str = ""
    durable_model: type[D]

    def __init__(self, storage: Optional[StateStorage] = None):
        self.storage = storage
        self.durable: D = self.durable_model()
        self.reset_ephemeral()

    def reset_ephemeral(self) -> None:
        """Restore runtime-only state to its cold-start defaults."""

    def _after_load(self) -> None:
        """Re-establish invariants on a freshly loaded durable slice."""

    async def load(self) -> None:
        self.reset_ephemeral()
        payload: dict[str, Any] | None = None
        if self.storage is not None:
            try:
                payload = await self.storage.get(self.store_name)
            except (aiosqlite.Error, json.JSONDecodeError) as e:
                logger.warning(f"Failed to read state for {self.store_name}, using defaults: {e}")
                payload = None

        if payload is None:
            self.durable = self.durable_model()
        else:
            try:
                self.durable = self.durable_model.model_validate(payload)
            except ValidationError as e:
                logger.warning(f"Discarding invalid state for {self.store_name}: {e}")
                self.durable = self.durable_model()
        self._after_load()

    async def save(self) -> None:
        if self.storage is None:
            return
        try:
            await self.storage.put(self.store_name, self.durable.model_dump(mode="json"))
        except aiosqlite.Error as e:
            logger.error(f"Failed to persist {self.store_name}: {e}")
