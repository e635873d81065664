"""Repository session API."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from gitlog_backend.routers.common import get_session, translate_errors

repos_router = APIRouter(prefix="/api/repos", tags=["repos"])


class OpenRepoRequest(BaseModel):
    path: str = Field(..., min_length=1)


class CommitRangeRequest(BaseModel):
    fromTs: int
    toTs: int


def _state(session) -> dict:
    return {
        "currentRepoId": session.repos.current_repo_id,
        "history": session.repos.history,
        "activeRepoIds": list(session.repos.active_repos),
    }


@repos_router.post("/open")
async def open_repo(request: Request, payload: OpenRepoRequest):
    session = get_session(request)
    with translate_errors():
        item = await session.open_repository(payload.path)
    return {"repo": item, **_state(session)}


@repos_router.get("/history")
async def list_history(request: Request):
    return _state(get_session(request))


@repos_router.get("/current")
async def get_current(request: Request):
    session = get_session(request)
    view = session.repos.current_view
    if view is None:
        return {"repoId": None, "repoInfo": None, "commits": []}
    return view


@repos_router.post("/{repo_id}/switch")
async def switch_repo(request: Request, repo_id: str):
    session = get_session(request)
    item = session.repos.get_history_item(repo_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Repository {repo_id} not found")
    with translate_errors():
        if session.repos.is_active(repo_id):
            await session.repos.switch_to(repo_id)
        else:
            await session.reload_repository(repo_id)
    return _state(session)


@repos_router.post("/{repo_id}/reload")
async def reload_repo(request: Request, repo_id: str):
    session = get_session(request)
    with translate_errors():
        item = await session.reload_repository(repo_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Repository {repo_id} not found")
    return {"repo": item, **_state(session)}


@repos_router.delete("/{repo_id}")
async def delete_repo(request: Request, repo_id: str):
    session = get_session(request)
    if not await session.remove_repository(repo_id):
        raise HTTPException(status_code=404, detail=f"Repository {repo_id} not found")
    return _state(session)


@repos_router.post("/{repo_id}/close")
async def close_repo(request: Request, repo_id: str):
    session = get_session(request)
    if not session.close_repository(repo_id):
        raise HTTPException(status_code=404, detail=f"Repository {repo_id} is not open")
    return _state(session)


@repos_router.get("/commits")
async def get_all_commits(request: Request, repo_id: Optional[str] = None):
    session = get_session(request)
    commits = session.repos.all_commits()
    if repo_id:
        commits = [c for c in commits if c.repoId == repo_id]
    return {"count": len(commits), "items": commits}


@repos_router.post("/{repo_id}/commits")
async def load_commit_range(request: Request, repo_id: str, payload: CommitRangeRequest):
    if payload.fromTs > payload.toTs:
        raise HTTPException(status_code=400, detail="fromTs must not be after toTs")
    session = get_session(request)
    with translate_errors():
        loaded = await session.load_commits(repo_id, payload.fromTs, payload.toTs)
    if not loaded:
        raise HTTPException(status_code=404, detail=f"Repository {repo_id} is not open")
    return session.repos.active_repos[repo_id]
