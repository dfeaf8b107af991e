"""Application configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `CSV_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cabinsight.core.analytics.pipeline import PipelineConfig

GEMINI_API_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
)


class CabinSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `CSV_` env overrides."""

    video_path: str | None = None
    # Missing file => no model => synthetic detections.
    model_path: str | None = Field("models/yolov5n.tflite")
    model_input_size: int = 320
    # TFLite exports emit box fractions; ONNX exports emit input-pixel units.
    model_boxes_normalized: bool = True
    num_records: int = 25200
    num_classes: int = 80
    person_class_index: int = 0
    confidence_threshold: float = 0.5
    iou_threshold: float = 0.45

    # Sampling cadence in playback milliseconds.
    tick_interval_ms: int = 100
    timeline_sample_size: int = 10
    synthetic_cycle_source: str = Field("playback", description="playback|wallclock")

    # Cloud summary service
    summary_api_url: str = GEMINI_API_URL
    summary_api_key: str | None = None
    summary_timeout_s: float = 30.0

    # Results-logging backend
    backend_base_url: str = "http://localhost:5000"
    backend_timeout_s: float = 30.0
    app_version: str = "CabinSight v1.0"

    model_config = SettingsConfigDict(
        env_prefix="CSV_", validate_assignment=True, protected_namespaces=()
    )

    @field_validator("confidence_threshold")
    @classmethod
    def _validate_confidence(cls, v: float) -> float:
        if not 0.0 < float(v) < 1.0:
            raise ValueError("confidence_threshold must be in (0, 1)")
        return float(v)

    @field_validator("iou_threshold")
    @classmethod
    def _validate_iou(cls, v: float) -> float:
        if not 0.0 <= float(v) <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")
        return float(v)

    @field_validator("model_input_size", "num_records", "num_classes")
    @classmethod
    def _validate_positive_int(cls, v: int) -> int:
        if int(v) <= 0:
            raise ValueError("value must be > 0")
        return int(v)

    @field_validator("person_class_index")
    @classmethod
    def _validate_class_index(cls, v: int) -> int:
        if int(v) < 0:
            raise ValueError("person_class_index must be >= 0")
        return int(v)

    @field_validator("tick_interval_ms")
    @classmethod
    def _validate_tick_interval(cls, v: int) -> int:
        if int(v) < 10:
            raise ValueError("tick_interval_ms must be >= 10")
        return int(v)

    @field_validator("timeline_sample_size")
    @classmethod
    def _validate_timeline_sample_size(cls, v: int) -> int:
        if int(v) < 1:
            raise ValueError("timeline_sample_size must be >= 1")
        return int(v)

    @field_validator("synthetic_cycle_source")
    @classmethod
    def _validate_cycle_source(cls, v: str) -> str:
        v2 = str(v).strip().lower()
        if v2 not in {"playback", "wallclock"}:
            raise ValueError("synthetic_cycle_source must be playback|wallclock")
        return v2

    @field_validator("summary_timeout_s", "backend_timeout_s")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if float(v) <= 0:
            raise ValueError("timeouts must be > 0")
        return float(v)

    @field_validator("backend_base_url")
    @classmethod
    def _validate_backend_url(cls, v: str) -> str:
        v2 = str(v).strip().rstrip("/")
        if not v2.startswith(("http://", "https://")):
            raise ValueError("backend_base_url must start with http:// or https://")
        return v2


def settings_to_dict(settings: CabinSettings) -> dict[str, Any]:
    """Convert settings to a plain dict."""

    return settings.model_dump()


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/cabinsight.config.yml)."""

    return Path(os.getenv("CSV_CONFIG", "config/cabinsight.config.yml"))


def load_settings() -> CabinSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = CabinSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged = {**data, **env_overrides}
    return CabinSettings(**merged)


def pipeline_config_from_settings(settings: CabinSettings) -> PipelineConfig:
    """Return the detection thresholds/layout carried by `settings`."""

    return PipelineConfig(
        confidence_threshold=float(settings.confidence_threshold),
        iou_threshold=float(settings.iou_threshold),
        num_records=int(settings.num_records),
        num_classes=int(settings.num_classes),
        person_class_index=int(settings.person_class_index),
        synthetic_cycle_source=str(settings.synthetic_cycle_source),
    )
