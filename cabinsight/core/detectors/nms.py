from __future__ import annotations

from collections.abc import Sequence

from cabinsight.core.geometry import bbox_iou
from cabinsight.core.types import Detection

IOU_THRESHOLD = 0.45


def nms_detections(detections: Sequence[Detection], iou_threshold: float = IOU_THRESHOLD) -> list[Detection]:
    """Greedy non-maximum suppression.

    Candidates are visited by descending confidence (ties keep input order); a
    candidate is dropped when its IoU with any already kept detection is
    strictly greater than `iou_threshold`.
    """

    if not detections:
        return []

    thr = float(iou_threshold)
    # sorted() is stable, so equal confidences keep their input order
    dets = sorted(detections, key=lambda d: float(d.confidence), reverse=True)
    kept: list[Detection] = []
    for det in dets:
        suppress = False
        for k in kept:
            if bbox_iou(det.bbox, k.bbox) > thr:
                suppress = True
                break
        if not suppress:
            kept.append(det)
    return kept
