"""Report template API."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from gitlog_backend.routers.common import get_session, translate_errors

templates_router = APIRouter(prefix="/api/templates", tags=["templates"])


class CreateTemplateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    content: str


class UpdateTemplateRequest(BaseModel):
    name: Optional[str] = None
    content: Optional[str] = None


@templates_router.get("")
async def list_templates(request: Request):
    return get_session(request).templates.list_templates()


@templates_router.get("/{template_id}")
async def get_template(request: Request, template_id: str):
    with translate_errors():
        return get_session(request).templates.get_template(template_id)


@templates_router.post("")
async def create_template(request: Request, payload: CreateTemplateRequest):
    with translate_errors():
        return await get_session(request).templates.create_template(payload.name, payload.content)


@templates_router.put("/{template_id}")
async def update_template(request: Request, template_id: str, payload: UpdateTemplateRequest):
    with translate_errors():
        return await get_session(request).templates.update_template(template_id, payload.name, payload.content)


@templates_router.delete("/{template_id}")
async def delete_template(request: Request, template_id: str):
    with translate_errors():
        await get_session(request).templates.delete_template(template_id)
    return {"status": "deleted", "id": template_id}
