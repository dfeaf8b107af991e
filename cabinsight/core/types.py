"""Shared type definitions used across the project.

This module intentionally centralizes small, stable types (boxes, detections,
snapshots, typed results) so decoder/pipeline/aggregator code can stay strongly
typed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

Frame = np.ndarray

BBox = tuple[float, float, float, float]


@dataclass(frozen=True)
class Detection:
    """One detected occupant in pixel coordinates (left, top, right, bottom)."""

    bbox: BBox
    confidence: float
    label: str = "Person"


DetectionSet = tuple[Detection, ...]


@dataclass(frozen=True)
class DetectionSnapshot:
    """Detections recorded for one sampling tick at a playback position."""

    timestamp_ms: int
    detections: DetectionSet
    position_label: str


@dataclass(frozen=True)
class SummaryStats:
    """Aggregated statistics over one playback session."""

    snapshot_count: int = 0
    unique_timestamps: int = 0
    mean_confidence: float = 0.0
    max_simultaneous: int = 0
    total_detections: int = 0
    timeline: tuple[str, ...] = ()


class InferenceFailure(str, Enum):
    """Why the inference collaborator did not produce a raw tensor."""

    UNAVAILABLE = "unavailable"
    ERROR = "error"
    EMPTY_OUTPUT = "empty_output"


@dataclass(frozen=True)
class InferenceResult:
    """Outcome of one model invocation: a raw output array or a failure kind."""

    output: np.ndarray | None = None
    failure: InferenceFailure | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.output is not None

    @classmethod
    def success(cls, output: np.ndarray) -> InferenceResult:
        return cls(output=output)

    @classmethod
    def failed(cls, failure: InferenceFailure, detail: str | None = None) -> InferenceResult:
        return cls(failure=failure, detail=detail)


class DetectionSource(str, Enum):
    MODEL = "model"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class DetectionResult:
    """Pipeline output for one frame, including which path produced it."""

    detections: DetectionSet
    source: DetectionSource
    failure: InferenceFailure | None = None


@dataclass(frozen=True)
class TickUpdate:
    """Message published by the sampling loop after every tick."""

    position_ms: int
    position_label: str
    detections: DetectionSet
    snapshot_count: int
    source: DetectionSource | None = None
    frame_size: tuple[int, int] = (0, 0)
