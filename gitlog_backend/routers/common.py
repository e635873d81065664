"""Shared helpers for the API routers."""
from __future__ import annotations

from contextlib import contextmanager

from fastapi import HTTPException, Request

from gitlog_backend.backends.base import BackendError
from gitlog_backend.services.reporting_session import GenerationInProgressError, ReportingSession


def get_session(request: Request) -> ReportingSession:
    session = getattr(request.app.state, "session", None)
    if not session:
        raise HTTPException(status_code=503, detail="Session not initialized")
    return session


@contextmanager
def translate_errors():
    """Map engine exceptions onto HTTP status codes."""
    try:
        yield
    except GenerationInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except BackendError as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Not found: {e.args[0] if e.args else ''}") from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
