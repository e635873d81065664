"""Commit selection and diff API."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from gitlog_backend.models import CommitRef
from gitlog_backend.routers.common import get_session

commits_router = APIRouter(prefix="/api/commits", tags=["commits"])


@commits_router.get("/selection")
async def get_selection(request: Request):
    session = get_session(request)
    return {"count": len(session.selection), "items": session.selection.selected}


@commits_router.post("/selection/toggle")
async def toggle_selection(request: Request, ref: CommitRef):
    session = get_session(request)
    selected = session.selection.toggle(ref)
    return {"selected": selected, "count": len(session.selection)}


@commits_router.delete("/selection")
async def clear_selection(request: Request):
    session = get_session(request)
    session.selection.clear()
    return {"count": 0}


@commits_router.get("/{repo_id}/{commit_hash}/diff")
async def get_diff(request: Request, repo_id: str, commit_hash: str):
    session = get_session(request)
    diff = await session.load_diff(CommitRef(hash=commit_hash, repoId=repo_id))
    if diff is None:
        raise HTTPException(status_code=404, detail=f"Diff for {commit_hash} is unavailable")
    return {"hash": commit_hash, "repoId": repo_id, "diff": diff}
