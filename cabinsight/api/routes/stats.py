"""Stats endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from cabinsight.api.schemas.models import StatsSchema
from cabinsight.api.services.engine import SessionEngine
from cabinsight.api.services.state import get_engine
from cabinsight.core.types import SummaryStats

router = APIRouter()


def stats_schema(stats: SummaryStats, error: str | None = None) -> StatsSchema:
    return StatsSchema(
        snapshot_count=stats.snapshot_count,
        unique_timestamps=stats.unique_timestamps,
        mean_confidence=stats.mean_confidence,
        max_simultaneous=stats.max_simultaneous,
        total_detections=stats.total_detections,
        timeline=list(stats.timeline),
        error=error,
    )


@router.get("/stats", response_model=StatsSchema)
def stats(engine: SessionEngine = Depends(get_engine)) -> StatsSchema:
    """Return summary statistics of the current (or last) session."""

    return stats_schema(engine.summary_stats(), error=engine.last_error)
