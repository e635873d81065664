"""Report generation and report history API."""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from gitlog_backend.routers.common import get_session, translate_errors

reports_router = APIRouter(prefix="/api/reports", tags=["reports"])


class GenerateReportRequest(BaseModel):
    type: Literal["weekly", "monthly"] = "weekly"
    templateId: Optional[str] = None


class UpdateReportRequest(BaseModel):
    name: Optional[str] = None
    content: Optional[str] = None


@reports_router.post("/generate")
async def generate_report(request: Request, payload: GenerateReportRequest):
    session = get_session(request)
    with translate_errors():
        report = await session.generate_report(payload.type, payload.templateId)
    return report


@reports_router.get("/history")
async def list_reports(request: Request):
    session = get_session(request)
    return {
        "currentReportId": session.reports.current_report_id,
        "isGenerating": session.reports.is_generating,
        "items": session.reports.history,
    }


@reports_router.get("/current")
async def get_current_report(request: Request):
    return {"report": get_session(request).reports.current}


@reports_router.get("/stream")
async def get_stream(request: Request):
    return get_session(request).stream.snapshot()


@reports_router.post("/{report_id}/switch")
async def switch_report(request: Request, report_id: str):
    session = get_session(request)
    if not await session.reports.switch_to(report_id):
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
    return {"report": session.reports.current}


@reports_router.patch("/{report_id}")
async def update_report(request: Request, report_id: str, payload: UpdateReportRequest):
    session = get_session(request)
    report = session.reports.get(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
    with translate_errors():
        if payload.name is not None:
            report = await session.reports.rename(report_id, payload.name)
        if payload.content is not None:
            report = await session.reports.edit_content(report_id, payload.content)
    return report


@reports_router.delete("/{report_id}")
async def delete_report(request: Request, report_id: str):
    session = get_session(request)
    if not await session.reports.remove(report_id):
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
    return {"currentReportId": session.reports.current_report_id, "count": len(session.reports.history)}
