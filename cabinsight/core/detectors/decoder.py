"""Decoding of raw YOLOv5 output tensors.

The model emits N records of ``(cx, cy, w, h, objectness, class_0 .. class_C-1)``
with box parameters expressed as fractions of the input frame. Decoding keeps
only records whose objectness and ``objectness * class_score`` both exceed the
confidence threshold and converts their boxes to pixel corners.
"""

from __future__ import annotations

import numpy as np

from cabinsight.core.types import Detection

CONFIDENCE_THRESHOLD = 0.5
YOLOV5_NUM_RECORDS = 25200
COCO_NUM_CLASSES = 80
PERSON_CLASS_INDEX = 0


def record_stride(num_classes: int) -> int:
    """Number of floats per record: 4 box values, objectness, class scores."""

    return 5 + int(num_classes)


def normalize_boxes(output: np.ndarray, input_size: int, num_classes: int = COCO_NUM_CLASSES) -> np.ndarray:
    """Return a copy of `output` with box columns divided by the model input size.

    ONNX exports emit box parameters in input-pixel units rather than fractions.
    """

    stride = record_stride(num_classes)
    flat = np.asarray(output, dtype=np.float32).reshape(-1)
    usable = (flat.size // stride) * stride
    out = flat.copy()
    if usable and input_size > 0:
        records = out[:usable].reshape(-1, stride)
        records[:, :4] /= float(input_size)
    return out


def decode_output(
    output: np.ndarray,
    image_w: int,
    image_h: int,
    *,
    conf_threshold: float = CONFIDENCE_THRESHOLD,
    num_records: int = YOLOV5_NUM_RECORDS,
    num_classes: int = COCO_NUM_CLASSES,
    class_index: int = PERSON_CLASS_INDEX,
    label: str = "Person",
) -> list[Detection]:
    """Convert a raw output tensor into candidate detections.

    Args:
        output: Raw model output of any shape; it is read as a flat float array
            and never modified.
        image_w: Width of the frame the boxes are scaled to, in pixels.
        image_h: Height of the frame the boxes are scaled to, in pixels.
        conf_threshold: Records must strictly exceed this for both the
            objectness score and the final (objectness * class) confidence.
        num_records: Maximum number of records to read.
        num_classes: Number of class scores per record.
        class_index: Which class score is consulted.
        label: Label attached to every emitted detection.

    Returns:
        Unordered detections, boxes in pixel corners before clamping. Records
        that do not fit entirely in the array are skipped.
    """

    if not 0 <= class_index < num_classes:
        raise ValueError("class_index must be within [0, num_classes)")

    stride = record_stride(num_classes)
    flat = np.asarray(output, dtype=np.float32).reshape(-1)
    n = min(int(num_records), flat.size // stride)
    if n <= 0:
        return []

    records = flat[: n * stride].reshape(n, stride)
    objectness = records[:, 4]
    candidates = np.flatnonzero(objectness > conf_threshold)
    if candidates.size == 0:
        return []

    rows = records[candidates]
    final_conf = rows[:, 4] * rows[:, 5 + class_index]
    keep = final_conf > conf_threshold
    rows = rows[keep]
    final_conf = final_conf[keep]

    w = float(image_w)
    h = float(image_h)
    out: list[Detection] = []
    for row, conf in zip(rows, final_conf, strict=True):
        cx = float(row[0]) * w
        cy = float(row[1]) * h
        bw = float(row[2]) * w
        bh = float(row[3]) * h
        out.append(
            Detection(
                bbox=(cx - bw / 2.0, cy - bh / 2.0, cx + bw / 2.0, cy + bh / 2.0),
                confidence=float(conf),
                label=label,
            )
        )
    return out
