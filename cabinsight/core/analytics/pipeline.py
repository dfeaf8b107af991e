"""Detection pipeline orchestration.

This module ties together inference, decoding and non-maximum suppression into
a single per-frame `detect()` call that always returns a detection set.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from cabinsight.core.detectors.decoder import (
    COCO_NUM_CLASSES,
    CONFIDENCE_THRESHOLD,
    PERSON_CLASS_INDEX,
    YOLOV5_NUM_RECORDS,
    decode_output,
)
from cabinsight.core.detectors.nms import IOU_THRESHOLD, nms_detections
from cabinsight.core.detectors.synthetic import synthetic_detections
from cabinsight.core.geometry import clamp_bbox
from cabinsight.core.types import (
    Detection,
    DetectionResult,
    DetectionSet,
    DetectionSource,
    Frame,
    InferenceFailure,
    InferenceResult,
)

logger = logging.getLogger(__name__)


class InferenceModel(Protocol):
    """Minimal model interface expected by `DetectionPipeline`."""

    def infer(self, frame: Frame) -> InferenceResult:
        """Return the raw output tensor for a frame, or a typed failure."""


@dataclass(frozen=True)
class PipelineConfig:
    confidence_threshold: float = CONFIDENCE_THRESHOLD
    iou_threshold: float = IOU_THRESHOLD
    num_records: int = YOLOV5_NUM_RECORDS
    num_classes: int = COCO_NUM_CLASSES
    person_class_index: int = PERSON_CLASS_INDEX
    # "playback" keys the synthetic cycle off the playback position when one is
    # given; "wallclock" always uses the clock.
    synthetic_cycle_source: str = "playback"


def _frame_size(frame: Frame | None) -> tuple[int, int]:
    """Return (width, height), or (0, 0) for anything that is not an image."""

    shape = getattr(frame, "shape", None)
    if not shape or len(shape) < 2:
        return 0, 0
    return int(shape[1]), int(shape[0])


def _clamped(detections: list[Detection], w: int, h: int) -> DetectionSet:
    return tuple(
        Detection(bbox=clamp_bbox(d.bbox, w, h), confidence=d.confidence, label=d.label)
        for d in detections
    )


class DetectionPipeline:
    """Per-frame person detection with a deterministic fallback.

    Responsibilities:
    - run the model (when present) and decode + suppress its raw output
    - substitute synthetic detections when the model is absent or fails
    - publish the latest detection set as `current_detections`

    `detect()` never raises; every failure degrades to the synthetic path.
    """

    def __init__(
        self,
        model: InferenceModel | None = None,
        config: PipelineConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.model = model
        self.config = config or PipelineConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._current: DetectionSet = ()
        self._last_source: DetectionSource | None = None

    @property
    def current_detections(self) -> DetectionSet:
        """The most recent detection set (immutable, safe to hand to consumers)."""

        with self._lock:
            return self._current

    @property
    def last_source(self) -> DetectionSource | None:
        with self._lock:
            return self._last_source

    def _synthetic_cycle_ms(self, position_ms: int | None) -> float:
        if position_ms is not None and self.config.synthetic_cycle_source == "playback":
            return float(position_ms)
        return self._clock() * 1000.0

    def _run_model(self, frame: Frame, w: int, h: int) -> tuple[list[Detection] | None, InferenceFailure | None]:
        """Return (detections, None) on success or (None, failure)."""

        if self.model is None:
            return None, InferenceFailure.UNAVAILABLE

        try:
            result = self.model.infer(frame)
        except Exception:
            logger.exception("Inference raised; falling back to synthetic detections")
            return None, InferenceFailure.ERROR
        if not result.ok:
            return None, result.failure or InferenceFailure.ERROR

        cfg = self.config
        try:
            candidates = decode_output(
                result.output,
                w,
                h,
                conf_threshold=cfg.confidence_threshold,
                num_records=cfg.num_records,
                num_classes=cfg.num_classes,
                class_index=cfg.person_class_index,
            )
            return nms_detections(candidates, cfg.iou_threshold), None
        except Exception:
            logger.exception("Decoding model output failed; falling back to synthetic detections")
            return None, InferenceFailure.ERROR

    def detect_with_result(self, frame: Frame, position_ms: int | None = None) -> DetectionResult:
        """Detect people in a frame and report which path produced the result.

        Args:
            frame: Decoded image (H, W, C).
            position_ms: Playback position of the frame, used to key the
                synthetic cycle when configured to.
        """

        w, h = _frame_size(frame)
        detections, failure = self._run_model(frame, w, h)
        if detections is not None:
            source = DetectionSource.MODEL
        else:
            logger.debug("Model path unavailable (%s); using synthetic detections", failure)
            detections = synthetic_detections(w, h, self._synthetic_cycle_ms(position_ms))
            source = DetectionSource.SYNTHETIC
            if self._last_source is not DetectionSource.SYNTHETIC:
                logger.warning("Detection fell back to synthetic output (reason=%s)", failure.value)

        out = _clamped(detections, w, h)
        with self._lock:
            self._current = out
            self._last_source = source
        return DetectionResult(detections=out, source=source, failure=failure)

    def detect(self, frame: Frame, position_ms: int | None = None) -> DetectionSet:
        """Return the detection set for one frame (never raises)."""

        return self.detect_with_result(frame, position_ms).detections
