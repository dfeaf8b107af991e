import numpy as np

from cabinsight.core.overlay.draw import BOX_COLOR, detection_caption, draw_detections
from cabinsight.core.types import Detection


def test_caption_format():
    assert detection_caption(Detection(bbox=(0, 0, 1, 1), confidence=0.876, label="Driver")) == "Driver: 87%"


def test_no_detections_returns_frame_unchanged():
    frame = np.zeros((40, 40, 3), dtype=np.uint8)

    assert draw_detections(frame, []) is frame


def test_draws_on_copy():
    frame = np.zeros((120, 160, 3), dtype=np.uint8)
    det = Detection(bbox=(20.0, 40.0, 100.0, 110.0), confidence=0.9, label="Person")

    out = draw_detections(frame, [det])

    assert out is not frame
    assert frame.sum() == 0
    assert tuple(out[70, 20]) == BOX_COLOR


def test_out_of_frame_boxes_are_clamped():
    frame = np.zeros((50, 50, 3), dtype=np.uint8)
    det = Detection(bbox=(-30.0, -30.0, 500.0, 500.0), confidence=0.6)

    out = draw_detections(frame, [det])

    assert out.shape == frame.shape
    assert out.any()
