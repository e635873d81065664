"""Application configuration store (LLM provider, proxy, export defaults)."""
from __future__ import annotations

import logging
from typing import Optional

from gitlog_backend.models import AppConfig, ExportFormat, ProxyConfig
from gitlog_backend.stores.base import PersistedStore

logger = logging.getLogger("gitlog.config")


def validate_provider(provider) -> None:
    """Reject provider configs that cannot make a request."""
    missing = [name for name in ("base_url", "api_key", "model") if not str(getattr(provider, name, "") or "").strip()]
    if missing:
        raise ValueError(f"{provider.type} provider is missing: {', '.join(missing)}")


class ConfigStore(PersistedStore[AppConfig]):
    store_name = "app-config-v2"
    durable_model = AppConfig

    @property
    def config(self) -> AppConfig:
        return self.durable

    @property
    def proxy_url(self) -> Optional[str]:
        proxy = self.durable.proxy
        if proxy.enabled and proxy.url.strip():
            return proxy.url.strip()
        return None

    async def save_config(self, new_config: AppConfig) -> AppConfig:
        validate_provider(new_config.llm_provider)
        if new_config.proxy.enabled and not new_config.proxy.url.strip():
            raise ValueError("Proxy is enabled but no proxy URL is set")
        self.durable = new_config
        await self.save()
        logger.info(f"Saved configuration (provider={new_config.llm_provider.type})")
        return self.durable

    # Draft updates are persisted without validation; save_config validates.

    async def update_provider(self, provider) -> AppConfig:
        self.durable = self.durable.model_copy(update={"llm_provider": provider})
        await self.save()
        return self.durable

    async def update_export_format(self, export_format: ExportFormat) -> AppConfig:
        self.durable = self.durable.model_copy(update={"exportFormat": export_format})
        await self.save()
        return self.durable

    async def update_timezone(self, timezone: str) -> AppConfig:
        self.durable = self.durable.model_copy(update={"timezone": timezone})
        await self.save()
        return self.durable

    async def update_proxy(self, proxy: ProxyConfig) -> AppConfig:
        self.durable = self.durable.model_copy(update={"proxy": proxy})
        await self.save()
        return self.durable
