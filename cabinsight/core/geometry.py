from __future__ import annotations

from cabinsight.core.types import BBox


def _clamp(v: float, lo: float, hi: float) -> float:
    return lo if v < lo else hi if v > hi else v


def clamp_bbox(bbox: BBox, frame_w: int | float, frame_h: int | float) -> BBox:
    """Clip a box into [0, frame_w] x [0, frame_h].

    Inverted boxes are normalized so the result always satisfies
    right >= left and bottom >= top.
    """

    x1, y1, x2, y2 = bbox
    x1 = _clamp(float(x1), 0.0, float(frame_w))
    x2 = _clamp(float(x2), 0.0, float(frame_w))
    y1 = _clamp(float(y1), 0.0, float(frame_h))
    y2 = _clamp(float(y2), 0.0, float(frame_h))
    if x2 < x1:
        x1, x2 = x2, x1
    if y2 < y1:
        y1, y2 = y2, y1
    return (x1, y1, x2, y2)


def bbox_area(bbox: BBox) -> float:
    x1, y1, x2, y2 = bbox
    return max(0.0, x2 - x1) * max(0.0, y2 - y1)


def bbox_iou(a: BBox, b: BBox) -> float:
    """Intersection over union of two boxes, in [0, 1]."""

    ax1, ay1, ax2, ay2 = a
    bx1, by1, bx2, by2 = b
    x1 = max(ax1, bx1)
    y1 = max(ay1, by1)
    x2 = min(ax2, bx2)
    y2 = min(ay2, by2)
    inter = max(0.0, x2 - x1) * max(0.0, y2 - y1)
    if inter <= 0.0:
        return 0.0
    union = bbox_area(a) + bbox_area(b) - inter
    if union <= 0.0:
        return 0.0
    return min(1.0, inter / union)
