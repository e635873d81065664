"""GitLog FastAPI backend, main application entry point."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gitlog_backend import config
from gitlog_backend.backends import ProgressBus
from gitlog_backend.backends.caching import CachingReportBackend
from gitlog_backend.backends.git_cli import GitCliRepositoryBackend
from gitlog_backend.backends.llm import LLMReportBackend
from gitlog_backend.db import connection, sqlite_migrations
from gitlog_backend.db.factory import get_state_blob_repository
from gitlog_backend.observability import initialize as initialize_observability, shutdown as shutdown_observability
from gitlog_backend.routers.commits import commits_router
from gitlog_backend.routers.repos import repos_router
from gitlog_backend.routers.reports import reports_router
from gitlog_backend.routers.settings import cache_router, config_router
from gitlog_backend.routers.templates import templates_router
from gitlog_backend.services.llm_cache import LLMResponseCache
from gitlog_backend.services.reporting_session import ReportingSession
from gitlog_backend.stores.config_store import ConfigStore
from gitlog_backend.stores.template_store import TemplateStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("gitlog")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("GitLog backend starting up")
    initialize_observability(app)

    # 1. Initialize DB connection
    db = await connection.get_connection()

    # 2. Run migrations
    await sqlite_migrations.run_migrations(db)

    # 3. Wire collaborators and stores
    storage = get_state_blob_repository(db)
    bus = ProgressBus(asyncio.get_running_loop())
    config_store = ConfigStore(storage)
    template_store = TemplateStore(storage)
    llm_cache = LLMResponseCache()
    report_backend = CachingReportBackend(
        LLMReportBackend(lambda: config_store.config, template_store.get_template, bus),
        llm_cache,
        lambda: config_store.config,
        bus,
    )
    session = ReportingSession(
        GitCliRepositoryBackend(),
        report_backend,
        bus,
        storage=storage,
        config_store=config_store,
        template_store=template_store,
    )

    # 4. Restore persisted session state
    await session.restore()
    app.state.session = session
    app.state.llm_cache = llm_cache
    app.state.progress_bus = bus

    yield

    logger.info("GitLog backend shutting down")
    await session.close()
    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="GitLog API",
    description="Backend API for the GitLog commit report desktop app",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow the desktop shell dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(repos_router)
app.include_router(commits_router)
app.include_router(reports_router)
app.include_router(templates_router)
app.include_router(config_router)
app.include_router(cache_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "db": "connected" if connection.is_connected() else "disconnected",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gitlog_backend.main:app", host=config.HOST, port=config.PORT)
