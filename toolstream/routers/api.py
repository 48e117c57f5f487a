"""REST API over the running pipeline."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from toolstream.models import ActiveSession, CorrelationStats, RawEntry, TransformResult
from toolstream.path_codec import decode_project_path, resolve_project_path
from toolstream.transformer import LogTransformer

logger = logging.getLogger("toolstream.api")

status_router = APIRouter(prefix="/api", tags=["status"])
tools_router = APIRouter(prefix="/api/tools", tags=["tools"])
paths_router = APIRouter(prefix="/api/paths", tags=["paths"])


class PathCorrectionRequest(BaseModel):
    token: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)


class TransformRequest(BaseModel):
    call: RawEntry
    result: Optional[RawEntry] = None


def _get_pipeline(request: Request):
    pipeline = getattr(request.app.state, "pipeline", None)
    if not pipeline:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return pipeline


@status_router.get("/health")
def health(request: Request):
    pipeline = _get_pipeline(request)
    return {"status": "ok", **pipeline.status()}


@status_router.get("/sessions", response_model=list[ActiveSession])
def list_sessions(request: Request, active_only: bool = Query(False, alias="activeOnly")):
    """Known session files with their current liveness."""
    sessions = _get_pipeline(request).monitor.get_active_sessions()
    if active_only:
        sessions = [s for s in sessions if s.isActive]
    return sorted(sessions, key=lambda s: s.lastModified, reverse=True)


@status_router.get("/correlation/stats", response_model=CorrelationStats)
def correlation_stats(request: Request):
    return _get_pipeline(request).engine.get_stats()


@tools_router.get("/recent")
def recent_tools(
    request: Request,
    limit: int = Query(50, ge=1, le=1000),
    tool_type: Optional[str] = Query(None, alias="toolType"),
):
    """Most recently completed tool records, newest first."""
    return _get_pipeline(request).recent_records(limit=limit, tool_type=tool_type)


@tools_router.get("/pending")
def pending_tools(request: Request):
    return _get_pipeline(request).engine.pending_calls()


@tools_router.get("/decoders")
def list_decoders(request: Request) -> list[dict[str, Any]]:
    return _get_pipeline(request).engine.registry.describe()


@tools_router.post("/transform", response_model=TransformResult)
def transform(request: Request, payload: TransformRequest):
    """Decode one call (and optional result) without touching pipeline state."""
    transformer = LogTransformer(_get_pipeline(request).engine.registry)
    result = transformer.transform(payload.call, payload.result)
    if result is None:
        raise HTTPException(status_code=422, detail="Entry could not be decoded as a tool call")
    return result


@paths_router.get("/decode")
def decode_path(request: Request, token: str = Query(..., min_length=1)):
    corrections = _get_pipeline(request).corrections
    resolved = resolve_project_path(token, corrections)
    return {
        "token": token,
        "path": resolved,
        "decoded": decode_project_path(token),
        "corrected": token in corrections,
    }


@paths_router.get("/corrections")
def list_corrections(request: Request) -> dict[str, str]:
    return _get_pipeline(request).corrections.all()


@paths_router.put("/corrections")
def set_correction(request: Request, payload: PathCorrectionRequest):
    corrections = _get_pipeline(request).corrections
    try:
        corrections.set(payload.token, payload.path)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        logger.error(f"Failed to persist path correction for {payload.token}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"token": payload.token.strip(), "path": payload.path.strip()}


@paths_router.delete("/corrections/{token}")
def delete_correction(request: Request, token: str):
    corrections = _get_pipeline(request).corrections
    try:
        removed = corrections.remove(token)
    except OSError as e:
        logger.error(f"Failed to persist removal of path correction {token}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail=f"No correction for {token}")
    return {"token": token, "removed": True}
