from pathlib import Path

from cabinsight.api.services import state


def _isolate(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("CSV_CONFIG", str(tmp_path / "missing.yml"))
    monkeypatch.setenv("CSV_MODEL_PATH", str(tmp_path / "no-model.tflite"))
    monkeypatch.setattr(state, "_settings", None)
    monkeypatch.setattr(state, "_engine", None)


def test_get_engine_is_a_singleton(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)

    first = state.get_engine()
    try:
        assert state.get_engine() is first
        assert first.state == "idle"
    finally:
        state.stop_engine()
    assert state._engine is None


def test_reload_settings_applies_patch_and_drops_engine(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    engine = state.get_engine()

    settings = state.reload_settings({"tick_interval_ms": 250})

    assert settings.tick_interval_ms == 250
    assert state.get_settings() is settings
    assert state._engine is None
    assert state.get_engine() is not engine
    state.stop_engine()


class RecordingEngine:
    def __init__(self):
        self.shutdowns = 0

    def shutdown(self):
        self.shutdowns += 1


def test_stop_engine_shuts_down_once_and_tolerates_empty(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    engine = RecordingEngine()
    monkeypatch.setattr(state, "_engine", engine)

    state.stop_engine()
    state.stop_engine()

    assert engine.shutdowns == 1
    assert state._engine is None


def test_reload_settings_shuts_down_running_engine(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    engine = RecordingEngine()
    monkeypatch.setattr(state, "_engine", engine)

    state.reload_settings()

    assert engine.shutdowns == 1
    assert state._engine is None
