"""Configuration and LLM cache API."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from gitlog_backend.backends.llm import check_llm_connection, check_proxy
from gitlog_backend.models import AppConfig, LLMProvider
from gitlog_backend.routers.common import get_session, translate_errors

config_router = APIRouter(prefix="/api/config", tags=["config"])
cache_router = APIRouter(prefix="/api/cache", tags=["cache"])


class ProviderCheckRequest(BaseModel):
    provider: Optional[LLMProvider] = None


class ProxyCheckRequest(BaseModel):
    url: str


def _get_llm_cache(request: Request):
    return getattr(request.app.state, "llm_cache", None)


@config_router.get("")
async def get_config(request: Request):
    return get_session(request).config.config


@config_router.put("")
async def put_config(request: Request, payload: AppConfig):
    with translate_errors():
        return await get_session(request).config.save_config(payload)


@config_router.post("/test-llm")
async def test_llm(request: Request, payload: ProviderCheckRequest):
    store = get_session(request).config
    provider = payload.provider or store.config.llm_provider
    with translate_errors():
        ok = await check_llm_connection(provider, store.proxy_url)
    return {"ok": ok, "provider": provider.type}


@config_router.post("/test-proxy")
async def test_proxy_endpoint(payload: ProxyCheckRequest):
    with translate_errors():
        message = await check_proxy(payload.url)
    return {"ok": True, "message": message}


@cache_router.get("/stats")
async def get_cache_stats(request: Request):
    cache = _get_llm_cache(request)
    session = get_session(request)
    stats = cache.stats().model_dump() if cache else {"llm_count": 0, "llm_memory_mb": 0.0, "llm_hit_rate": 0.0}
    return {**stats, "diff_count": len(session.diffs)}


@cache_router.delete("")
async def clear_cache(request: Request):
    cache = _get_llm_cache(request)
    if cache:
        cache.clear()
    return {"status": "cleared"}
