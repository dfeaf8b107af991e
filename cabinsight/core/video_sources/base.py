"""Frame source abstractions.

The sampling loop asks for a frame at a playback position through a small
interface (`FrameSource`) so the decoder implementation can be swapped without
affecting the detection pipeline.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

import cv2

from cabinsight.core.types import Frame

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Base interface for anything that can produce a frame at a position."""

    @property
    @abstractmethod
    def duration_ms(self) -> int:
        """Total playable length in milliseconds (0 when unknown)."""

        raise NotImplementedError

    @abstractmethod
    def read_at(self, position_ms: int) -> Frame | None:
        """Return the frame at `position_ms`, or `None` when unavailable."""

        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any underlying resources."""

        raise NotImplementedError


class VideoFileSource(FrameSource):
    """A `FrameSource` backed by `cv2.VideoCapture` over a video file."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._lock = threading.Lock()
        self.cap = cv2.VideoCapture(path)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {path}")

        # Not all OpenCV backends expose FPS/frame count.
        fps = 0.0
        frames = 0.0
        try:
            fps = float(self.cap.get(cv2.CAP_PROP_FPS) or 0.0)
            frames = float(self.cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0)
        except cv2.error:
            logger.warning("Could not read FPS/frame count for %s", path)
        self.fps = fps if fps > 0.0 else 0.0
        self._duration_ms = int(frames / self.fps * 1000.0) if self.fps > 0.0 and frames > 0.0 else 0

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    def read_at(self, position_ms: int) -> Frame | None:
        """Seek to `position_ms` and decode the frame there."""

        if position_ms < 0:
            return None
        if self._duration_ms and position_ms >= self._duration_ms:
            return None

        with self._lock:
            if self.cap is None:
                return None
            try:
                self.cap.set(cv2.CAP_PROP_POS_MSEC, float(position_ms))
                ok, frame = self.cap.read()
            except cv2.error:
                logger.warning("Frame decode failed at %s ms in %s", position_ms, self._path)
                return None
        if not ok or frame is None:
            return None
        return frame

    def close(self) -> None:
        """Release the underlying OpenCV capture."""

        with self._lock:
            if self.cap is not None:
                self.cap.release()
                self.cap = None
