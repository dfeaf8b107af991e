import cv2
import numpy as np
import pytest

from cabinsight.core.detectors import yolov5
from cabinsight.core.types import InferenceFailure


class FakeNet:
    def __init__(self, output=None, error=False):
        self.output = output
        self.error = error
        self.inputs = []

    def setPreferableBackend(self, backend):
        pass

    def setPreferableTarget(self, target):
        pass

    def setInput(self, blob):
        self.inputs.append(blob)

    def forward(self):
        if self.error:
            raise cv2.error("forward failed")
        return self.output


def _patch_net(monkeypatch, net):
    monkeypatch.setattr(yolov5.cv2.dnn, "readNet", lambda path: net)


def _frame():
    return np.zeros((480, 640, 3), dtype=np.uint8)


def test_infer_returns_raw_output(monkeypatch):
    out = np.ones((1, 10, 85), dtype=np.float32)
    net = FakeNet(output=out)
    _patch_net(monkeypatch, net)

    result = yolov5.YoloV5Model("m.tflite").infer(_frame())

    assert result.ok
    assert result.output is out
    assert net.inputs[0].shape == (1, 3, 320, 320)


def test_infer_normalizes_pixel_boxes(monkeypatch):
    out = np.zeros((1, 1, 85), dtype=np.float32)
    out[0, 0, :4] = (160.0, 80.0, 32.0, 64.0)
    _patch_net(monkeypatch, FakeNet(output=out))

    result = yolov5.YoloV5Model("m.onnx", boxes_normalized=False).infer(_frame())

    assert result.output.reshape(-1)[:4] == pytest.approx([0.5, 0.25, 0.1, 0.2])


def test_infer_error_is_typed(monkeypatch):
    _patch_net(monkeypatch, FakeNet(error=True))

    result = yolov5.YoloV5Model("m.tflite").infer(_frame())

    assert not result.ok
    assert result.failure is InferenceFailure.ERROR


def test_infer_empty_output(monkeypatch):
    _patch_net(monkeypatch, FakeNet(output=np.zeros((0,), dtype=np.float32)))

    result = yolov5.YoloV5Model("m.tflite").infer(_frame())

    assert result.failure is InferenceFailure.EMPTY_OUTPUT


def test_load_model_missing_file_returns_none(tmp_path):
    assert yolov5.load_model(None) is None
    assert yolov5.load_model(str(tmp_path / "nope.tflite")) is None


def test_load_model_read_error_returns_none(tmp_path, monkeypatch):
    path = tmp_path / "broken.tflite"
    path.write_bytes(b"not a model")

    def raise_error(p):
        raise cv2.error("cannot parse")

    monkeypatch.setattr(yolov5.cv2.dnn, "readNet", raise_error)

    assert yolov5.load_model(str(path)) is None


def test_load_model_success(tmp_path, monkeypatch):
    path = tmp_path / "yolov5n.tflite"
    path.write_bytes(b"\x00")
    _patch_net(monkeypatch, FakeNet(output=np.ones((1, 1, 85), dtype=np.float32)))

    model = yolov5.load_model(str(path), input_size=256)

    assert isinstance(model, yolov5.YoloV5Model)
    assert model.input_size == 256
