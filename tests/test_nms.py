import random

from cabinsight.core.detectors.nms import IOU_THRESHOLD, nms_detections
from cabinsight.core.geometry import bbox_iou
from cabinsight.core.types import Detection


def _det(box, conf):
    return Detection(bbox=box, confidence=conf)


def test_identical_boxes_keep_highest_confidence():
    box = (10.0, 10.0, 100.0, 200.0)
    kept = nms_detections([_det(box, 0.7), _det(box, 0.9)])

    assert len(kept) == 1
    assert kept[0].confidence == 0.9


def test_non_overlapping_boxes_are_all_kept_in_confidence_order():
    a = _det((0.0, 0.0, 10.0, 10.0), 0.6)
    b = _det((50.0, 50.0, 60.0, 60.0), 0.8)
    kept = nms_detections([a, b])

    assert kept == [b, a]


def test_iou_equal_to_threshold_is_not_suppressed():
    # IoU of these boxes is exactly 0.5.
    a = _det((0.0, 0.0, 30.0, 10.0), 0.9)
    b = _det((10.0, 0.0, 40.0, 10.0), 0.8)
    assert bbox_iou(a.bbox, b.bbox) == 0.5

    assert len(nms_detections([a, b], iou_threshold=0.5)) == 2
    assert len(nms_detections([a, b], iou_threshold=0.49)) == 1


def test_empty_input():
    assert nms_detections([]) == []


def test_nms_properties_on_random_sets():
    rng = random.Random(7)
    dets = []
    for _ in range(40):
        x = rng.uniform(0, 200)
        y = rng.uniform(0, 200)
        dets.append(_det((x, y, x + rng.uniform(10, 80), y + rng.uniform(10, 80)), rng.uniform(0.5, 1.0)))

    kept = nms_detections(dets, IOU_THRESHOLD)

    assert all(k in dets for k in kept)
    confs = [k.confidence for k in kept]
    assert confs == sorted(confs, reverse=True)
    for i, a in enumerate(kept):
        for b in kept[i + 1 :]:
            assert bbox_iou(a.bbox, b.bbox) <= IOU_THRESHOLD
    assert nms_detections(kept, IOU_THRESHOLD) == kept
