import cv2
import numpy as np
import pytest

from cabinsight.core.video_sources import base


class FakeCapture:
    def __init__(self, path, opened=True, fps=25.0, frames=250, fail_read=False):
        self.path = path
        self.opened = opened
        self.props = {cv2.CAP_PROP_FPS: fps, cv2.CAP_PROP_FRAME_COUNT: frames}
        self.fail_read = fail_read
        self.positions = []
        self.released = False

    def isOpened(self):
        return self.opened

    def get(self, prop):
        return self.props.get(prop, 0.0)

    def set(self, prop, value):
        if prop == cv2.CAP_PROP_POS_MSEC:
            self.positions.append(value)
        return True

    def read(self):
        if self.fail_read:
            return False, None
        return True, np.zeros((48, 64, 3), dtype=np.uint8)

    def release(self):
        self.released = True


def _patch(monkeypatch, **kwargs):
    caps = []

    def factory(path):
        cap = FakeCapture(path, **kwargs)
        caps.append(cap)
        return cap

    monkeypatch.setattr(base.cv2, "VideoCapture", factory)
    return caps


def test_duration_from_fps_and_frame_count(monkeypatch):
    _patch(monkeypatch, fps=25.0, frames=250)

    src = base.VideoFileSource("clip.mp4")

    assert src.duration_ms == 10_000


def test_unknown_fps_gives_zero_duration(monkeypatch):
    _patch(monkeypatch, fps=0.0, frames=100)

    assert base.VideoFileSource("clip.mp4").duration_ms == 0


def test_open_failure_raises(monkeypatch):
    _patch(monkeypatch, opened=False)

    with pytest.raises(RuntimeError):
        base.VideoFileSource("missing.mp4")


def test_read_at_seeks_to_position(monkeypatch):
    caps = _patch(monkeypatch)
    src = base.VideoFileSource("clip.mp4")

    frame = src.read_at(1_200)

    assert frame is not None and frame.shape == (48, 64, 3)
    assert caps[0].positions == [1_200.0]


def test_read_outside_video_returns_none(monkeypatch):
    caps = _patch(monkeypatch, fps=10.0, frames=10)
    src = base.VideoFileSource("clip.mp4")

    assert src.read_at(-1) is None
    assert src.read_at(1_000) is None
    assert caps[0].positions == []


def test_failed_decode_returns_none(monkeypatch):
    _patch(monkeypatch, fail_read=True)

    assert base.VideoFileSource("clip.mp4").read_at(0) is None


def test_close_releases_capture(monkeypatch):
    caps = _patch(monkeypatch)
    src = base.VideoFileSource("clip.mp4")

    src.close()
    src.close()

    assert caps[0].released
    assert src.read_at(0) is None
