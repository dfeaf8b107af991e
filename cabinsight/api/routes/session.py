"""Session control endpoints (start / pause / stop / status / report)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from cabinsight.api.routes.stats import stats_schema
from cabinsight.api.schemas.models import ReportSchema, StatusSchema
from cabinsight.api.services.engine import SessionEngine
from cabinsight.api.services.state import get_engine

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/start", response_model=StatusSchema)
def start_session(engine: SessionEngine = Depends(get_engine)) -> StatusSchema:
    """Start or resume playback sampling."""

    engine.start()
    return StatusSchema(**engine.status())


@router.post("/pause", response_model=StatusSchema)
def pause_session(engine: SessionEngine = Depends(get_engine)) -> StatusSchema:
    engine.pause()
    return StatusSchema(**engine.status())


@router.post("/stop", response_model=StatusSchema)
def stop_session(engine: SessionEngine = Depends(get_engine)) -> StatusSchema:
    """Stop sampling; the report is generated in the background."""

    engine.stop()
    return StatusSchema(**engine.status())


@router.get("/status", response_model=StatusSchema)
def session_status(engine: SessionEngine = Depends(get_engine)) -> StatusSchema:
    return StatusSchema(**engine.status())


@router.get("/report", response_model=ReportSchema)
def session_report(engine: SessionEngine = Depends(get_engine)) -> ReportSchema:
    """Return the end-of-session report once it is ready."""

    report = engine.report()
    if report is None:
        raise HTTPException(status_code=404, detail="Report not ready")
    return ReportSchema(
        summary=report.summary,
        summary_source=report.summary_source,
        detection_data=report.detection_data,
        logged=report.logged,
        logging_error=report.logging_error,
        summary_error=report.summary_error,
        stats=stats_schema(report.stats),
    )
