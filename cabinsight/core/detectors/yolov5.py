"""YOLOv5 inference through OpenCV's DNN module.

The model is treated as an opaque capability: given a frame it returns either
the raw output tensor or a typed failure. Decoding and suppression happen in
the pipeline, not here.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import cv2
import numpy as np

from cabinsight.core.detectors.decoder import COCO_NUM_CLASSES, normalize_boxes
from cabinsight.core.types import Frame, InferenceFailure, InferenceResult

logger = logging.getLogger(__name__)

MODEL_INPUT_SIZE = 320


class YoloV5Model:
    """YOLOv5 export (`.tflite` or `.onnx`) loaded with `cv2.dnn.readNet`.

    CPU-only. The number of OpenCV worker threads can be tuned with
    `CSV_CV_THREADS`.
    """

    def __init__(
        self,
        model_path: str,
        input_size: int = MODEL_INPUT_SIZE,
        boxes_normalized: bool = True,
        num_classes: int = COCO_NUM_CLASSES,
    ) -> None:
        """Load the network.

        Args:
            model_path: Path to the exported model.
            input_size: Square input resolution the model was exported with.
            boxes_normalized: Whether the export emits boxes as fractions of the
                input (TFLite exports do). When False, box columns are divided
                by `input_size` so the decoder always sees fractions.
            num_classes: Class scores per output record.
        """

        threads_s = os.getenv("CSV_CV_THREADS")
        if threads_s is not None and threads_s.strip():
            cv2.setNumThreads(max(1, int(threads_s)))

        self.model_path = model_path
        self.input_size = int(input_size)
        self.boxes_normalized = bool(boxes_normalized)
        self.num_classes = int(num_classes)
        self.net = cv2.dnn.readNet(model_path)
        self.net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        self.net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    def _blob(self, frame: Frame) -> np.ndarray:
        """Resize (bilinear) to the model input and pack as an RGB float blob."""

        return cv2.dnn.blobFromImage(
            frame,
            scalefactor=1.0 / 255.0,
            size=(self.input_size, self.input_size),
            swapRB=True,
            crop=False,
        )

    def infer(self, frame: Frame) -> InferenceResult:
        """Run one forward pass and return the raw output tensor."""

        try:
            self.net.setInput(self._blob(frame))
            output = self.net.forward()
        except cv2.error as exc:
            return InferenceResult.failed(InferenceFailure.ERROR, str(exc))

        if output is None or np.size(output) == 0:
            return InferenceResult.failed(InferenceFailure.EMPTY_OUTPUT)
        if not self.boxes_normalized:
            output = normalize_boxes(output, self.input_size, self.num_classes)
        return InferenceResult.success(output)


def load_model(
    model_path: str | None,
    input_size: int = MODEL_INPUT_SIZE,
    boxes_normalized: bool = True,
    num_classes: int = COCO_NUM_CLASSES,
) -> YoloV5Model | None:
    """Load a model, or return None when it is not configured or cannot be read."""

    if not model_path:
        logger.info("No model configured; synthetic detections will be used")
        return None
    if not Path(model_path).exists():
        logger.warning("Model file not found: %s; synthetic detections will be used", model_path)
        return None
    try:
        model = YoloV5Model(
            model_path,
            input_size=input_size,
            boxes_normalized=boxes_normalized,
            num_classes=num_classes,
        )
    except cv2.error:
        logger.exception("Failed to load model %s; synthetic detections will be used", model_path)
        return None
    logger.info("Loaded YOLOv5 model %s (input %sx%s)", model_path, input_size, input_size)
    return model
