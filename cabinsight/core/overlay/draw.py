"""Overlay drawing helpers (OpenCV).

Draws detection boxes and "Label: NN%" captions onto a copy of a frame.
"""

from __future__ import annotations

from collections.abc import Sequence

import cv2
import numpy as np

from cabinsight.core.geometry import clamp_bbox
from cabinsight.core.types import Detection

BOX_COLOR = (0, 69, 255)  # orange-red (BGR)
TEXT_COLOR = (255, 255, 255)
BOX_THICKNESS = 2
FONT_SCALE = 0.5


def detection_caption(det: Detection) -> str:
    return f"{det.label}: {int(det.confidence * 100)}%"


def draw_detections(frame: np.ndarray, detections: Sequence[Detection]) -> np.ndarray:
    """Return a copy of `frame` with boxes and captions drawn."""

    if not detections:
        return frame

    img = frame.copy()
    h, w = img.shape[:2]
    for det in detections:
        x1, y1, x2, y2 = map(int, clamp_bbox(det.bbox, w, h))
        cv2.rectangle(img, (x1, y1), (x2, y2), BOX_COLOR, BOX_THICKNESS)

        caption = detection_caption(det)
        (tw, th), baseline = cv2.getTextSize(caption, cv2.FONT_HERSHEY_SIMPLEX, FONT_SCALE, 1)
        # Caption above the box, or below it when too close to the top edge.
        text_y = y1 - 6 if y1 > th + 10 else min(h - 2, y2 + th + 6)
        cv2.rectangle(
            img,
            (x1, max(0, text_y - th - 4)),
            (min(w - 1, x1 + tw + 8), min(h - 1, text_y + baseline)),
            BOX_COLOR,
            -1,
        )
        cv2.putText(
            img,
            caption,
            (x1 + 4, text_y),
            cv2.FONT_HERSHEY_SIMPLEX,
            FONT_SCALE,
            TEXT_COLOR,
            1,
            cv2.LINE_AA,
        )
    return img
