"""Pydantic models for the HTTP/WS API."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class DetectionSchema(BaseModel):
    """Single person detection payload."""

    bbox: tuple[float, float, float, float]
    confidence: float
    label: str


class TickSchema(BaseModel):
    """Per-tick update payload streamed over the WebSocket."""

    position_ms: int
    position_label: str
    detections: list[DetectionSchema]
    people: int
    snapshot_count: int
    source: str | None = None
    frame_size: tuple[int, int] | list[int]


class StatsSchema(BaseModel):
    """Session summary statistics payload."""

    snapshot_count: int
    unique_timestamps: int
    mean_confidence: float
    max_simultaneous: int
    total_detections: int
    timeline: list[str]
    error: str | None = None


class StatusSchema(BaseModel):
    """Playback/session status payload."""

    state: str
    position_ms: int
    duration_ms: int
    position_label: str
    snapshot_count: int
    current_people: int
    detection_source: str | None = None
    skipped_ticks: int = 0
    error: str | None = None


class ReportSchema(BaseModel):
    """End-of-session report payload."""

    summary: str
    summary_source: str
    detection_data: str
    logged: bool
    logging_error: str | None = None
    summary_error: str | None = None
    stats: StatsSchema


class ConfigSchema(BaseModel):
    """Runtime configuration payload (the API key is write-only)."""

    video_path: str | None = None
    model_path: str | None = None
    model_input_size: int = Field(default=320, gt=0)
    model_boxes_normalized: bool = True
    confidence_threshold: float = Field(default=0.5, gt=0.0, lt=1.0)
    iou_threshold: float = Field(default=0.45, ge=0.0, le=1.0)
    tick_interval_ms: int = Field(default=100, ge=10)
    timeline_sample_size: int = Field(default=10, ge=1)
    synthetic_cycle_source: str = "playback"
    backend_base_url: str = "http://localhost:5000"
    summary_configured: bool = False

    @field_validator("synthetic_cycle_source")
    @classmethod
    def _validate_cycle_source(cls, v: str) -> str:
        v2 = str(v).strip().lower()
        if v2 not in {"playback", "wallclock"}:
            raise ValueError("synthetic_cycle_source must be playback|wallclock")
        return v2
