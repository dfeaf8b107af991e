"""Detection history for one playback session.

The aggregator is driven by a fixed-cadence tick tied to the playback position.
Each tick with at least one detection becomes an immutable snapshot; the
history is summarized once sampling has stopped.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from cabinsight.core.analytics.pipeline import DetectionPipeline
from cabinsight.core.types import DetectionSet, DetectionSnapshot, DetectionSource, Frame, SummaryStats

logger = logging.getLogger(__name__)

TIMELINE_SAMPLE_SIZE = 10


class PositionedFrameSource(Protocol):
    def read_at(self, position_ms: int) -> Frame | None:
        """Return the frame at a playback position, or None when unavailable."""


def format_position(milliseconds: int | float) -> str:
    """Format a playback position as zero-padded "MM:SS"."""

    seconds = max(0, int(milliseconds)) // 1000
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes:02d}:{remaining:02d}"


def summarize_snapshots(
    snapshots: Sequence[DetectionSnapshot],
    timeline_sample_size: int = TIMELINE_SAMPLE_SIZE,
) -> SummaryStats:
    """Compute summary statistics for a sequence of snapshots."""

    if not snapshots:
        return SummaryStats()

    confidences = [d.confidence for s in snapshots for d in s.detections]
    mean_conf = sum(confidences) / len(confidences) if confidences else 0.0
    timeline = tuple(
        f"{s.position_label}: {len(s.detections)} people detected"
        for s in snapshots[: max(0, int(timeline_sample_size))]
    )
    return SummaryStats(
        snapshot_count=len(snapshots),
        unique_timestamps=len({s.timestamp_ms for s in snapshots}),
        mean_confidence=float(mean_conf),
        max_simultaneous=max(len(s.detections) for s in snapshots),
        total_detections=len(confidences),
        timeline=timeline,
    )


class HistoryAggregator:
    """Samples the pipeline per tick and records detection snapshots.

    Only the sampling loop calls `on_tick()` and `reset()`. Readers get tuple
    copies via `snapshots`; `summarize()` must run after sampling stopped.
    """

    def __init__(
        self,
        pipeline: DetectionPipeline,
        frame_source: PositionedFrameSource,
        timeline_sample_size: int = TIMELINE_SAMPLE_SIZE,
    ) -> None:
        self.pipeline = pipeline
        self.frame_source = frame_source
        self.timeline_sample_size = int(timeline_sample_size)
        self._history: list[DetectionSnapshot] = []
        self.last_source: DetectionSource | None = None
        self.last_frame_size: tuple[int, int] = (0, 0)
        self.last_frame: Frame | None = None

    @property
    def snapshots(self) -> tuple[DetectionSnapshot, ...]:
        return tuple(self._history)

    def __len__(self) -> int:
        return len(self._history)

    def reset(self) -> None:
        """Start a new session with an empty history."""

        self._history = []
        self.last_source = None
        self.last_frame_size = (0, 0)
        self.last_frame = None

    def on_tick(self, position_ms: int) -> DetectionSet:
        """Sample one frame at `position_ms` and record it when non-empty.

        A tick without a frame (end of video, decode failure) records nothing
        and returns an empty set.
        """

        position_ms = int(position_ms)
        try:
            frame = self.frame_source.read_at(position_ms)
        except Exception:
            logger.exception("Frame extraction failed at %s ms; skipping tick", position_ms)
            self.last_frame = None
            return ()
        if frame is None:
            logger.debug("No frame at %s ms; skipping tick", position_ms)
            self.last_frame = None
            return ()

        self.last_frame = frame
        result = self.pipeline.detect_with_result(frame, position_ms)
        self.last_source = result.source
        shape = getattr(frame, "shape", (0, 0))
        self.last_frame_size = (int(shape[1]), int(shape[0])) if len(shape) >= 2 else (0, 0)
        if result.detections:
            self._history.append(
                DetectionSnapshot(
                    timestamp_ms=position_ms,
                    detections=tuple(result.detections),
                    position_label=format_position(position_ms),
                )
            )
        return result.detections

    def summarize(self) -> SummaryStats:
        return summarize_snapshots(self._history, self.timeline_sample_size)
