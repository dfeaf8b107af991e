import time

from fastapi.testclient import TestClient

from cabinsight.api import main as api_main
from cabinsight.api.main import app
from cabinsight.api.routes import health as health_routes
from cabinsight.api.services import state as engine_state
from cabinsight.api.services.state import get_engine, get_settings
from cabinsight.core.config.settings import CabinSettings
from cabinsight.core.types import Detection, DetectionSource, SummaryStats, TickUpdate
from cabinsight.services.reporting import SessionReport


class DummyEngine:
    def __init__(self, stats=None, report=None, update=None, error=None):
        self._stats = stats or SummaryStats()
        self._report = report
        self._update = update
        self.last_error = error
        self.calls = []

    def start(self):
        self.calls.append("start")

    def pause(self):
        self.calls.append("pause")

    def stop(self):
        self.calls.append("stop")

    def shutdown(self):
        self.calls.append("shutdown")

    def summary_stats(self):
        return self._stats

    def report(self):
        return self._report

    def latest_update(self):
        return self._update

    def next_update(self, timeout=0.5):
        self.calls.append("next_update")
        update, self._update = self._update, None
        if update is None:
            time.sleep(timeout)
        return update

    def status(self):
        return {
            "state": "playing" if "start" in self.calls else "idle",
            "position_ms": 1_500,
            "duration_ms": 60_000,
            "position_label": "00:01",
            "snapshot_count": 3,
            "current_people": 2,
            "detection_source": "synthetic",
            "skipped_ticks": 0,
            "error": self.last_error,
        }


def _override(engine):
    app.dependency_overrides[get_engine] = lambda: engine


def test_health_endpoint():
    client = TestClient(app)
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_session_controls_call_engine():
    client = TestClient(app)
    engine = DummyEngine()
    _override(engine)
    try:
        res = client.post("/session/start")
        assert res.status_code == 200
        assert res.json()["state"] == "playing"
        assert client.post("/session/pause").status_code == 200
        assert client.post("/session/stop").status_code == 200
        status = client.get("/session/status").json()
    finally:
        app.dependency_overrides.pop(get_engine, None)

    assert engine.calls == ["start", "pause", "stop"]
    assert status["position_label"] == "00:01"
    assert status["current_people"] == 2


def test_stats_endpoint():
    client = TestClient(app)
    stats = SummaryStats(
        snapshot_count=4,
        unique_timestamps=4,
        mean_confidence=0.75,
        max_simultaneous=2,
        total_detections=6,
        timeline=("00:00: 1 people detected",),
    )
    _override(DummyEngine(stats=stats, error="Tick processing failed"))
    try:
        data = client.get("/stats").json()
    finally:
        app.dependency_overrides.pop(get_engine, None)

    assert data["snapshot_count"] == 4
    assert data["max_simultaneous"] == 2
    assert data["timeline"] == ["00:00: 1 people detected"]
    assert data["error"] == "Tick processing failed"


def test_report_not_ready_is_404():
    client = TestClient(app)
    _override(DummyEngine())
    try:
        res = client.get("/session/report")
    finally:
        app.dependency_overrides.pop(get_engine, None)

    assert res.status_code == 404


def test_report_when_ready():
    client = TestClient(app)
    report = SessionReport(
        summary="LOCAL AI ANALYSIS REPORT",
        summary_source="local",
        detection_data="Video Analysis Data:",
        stats=SummaryStats(snapshot_count=2),
        logged=False,
        logging_error="Backend returned HTTP 500",
    )
    _override(DummyEngine(report=report))
    try:
        data = client.get("/session/report").json()
    finally:
        app.dependency_overrides.pop(get_engine, None)

    assert data["summary_source"] == "local"
    assert data["logged"] is False
    assert data["logging_error"] == "Backend returned HTTP 500"
    assert data["stats"]["snapshot_count"] == 2


def test_detections_websocket_streams_tick_updates():
    client = TestClient(app)
    update = TickUpdate(
        position_ms=2_000,
        position_label="00:02",
        detections=(Detection(bbox=(1.0, 2.0, 30.0, 40.0), confidence=0.8, label="Driver"),),
        snapshot_count=5,
        source=DetectionSource.SYNTHETIC,
        frame_size=(640, 480),
    )

    previous = engine_state._engine
    dummy = DummyEngine(update=update)
    engine_state._engine = dummy
    try:
        with client.websocket_connect("/stream/detections") as ws:
            data = ws.receive_json()
    finally:
        engine_state._engine = previous

    assert "next_update" in dummy.calls

    assert data["position_label"] == "00:02"
    assert data["people"] == 1
    assert data["detections"][0]["label"] == "Driver"
    assert data["source"] == "synthetic"
    assert data["frame_size"] == [640, 480]


def test_config_validation():
    client = TestClient(app)
    res = client.post("/config", json={"confidence_threshold": 1.2})
    assert res.status_code == 422


def test_config_roundtrip(monkeypatch, tmp_path):
    monkeypatch.setenv("CSV_CONFIG", str(tmp_path / "missing.yml"))
    monkeypatch.setenv("CSV_MODEL_PATH", str(tmp_path / "no-model.tflite"))
    monkeypatch.delenv("CSV_SUMMARY_API_KEY", raising=False)
    monkeypatch.setattr(engine_state, "_settings", None)
    monkeypatch.setattr(engine_state, "_engine", None)
    client = TestClient(app)

    res = client.post("/config", json={"tick_interval_ms": 200, "iou_threshold": 0.3})
    assert res.status_code == 200
    data = client.get("/config").json()

    assert data["tick_interval_ms"] == 200
    assert data["iou_threshold"] == 0.3
    assert data["summary_configured"] is False
    assert "summary_api_key" not in data


class FakeResultsClient:
    healthy = True
    closed = 0

    def __init__(self, base_url, timeout_s=30.0):
        self.base_url = base_url

    def check_health(self):
        return self.healthy

    def close(self):
        FakeResultsClient.closed += 1


def test_backend_health_reports_reachability(monkeypatch):
    monkeypatch.setattr(health_routes, "ResultsClient", FakeResultsClient)
    client = TestClient(app)
    settings = CabinSettings(backend_base_url="http://logs.example.test/")
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        monkeypatch.setattr(FakeResultsClient, "healthy", True)
        up = client.get("/health/backend").json()
        monkeypatch.setattr(FakeResultsClient, "healthy", False)
        down = client.get("/health/backend").json()
    finally:
        app.dependency_overrides.pop(get_settings, None)

    assert up == {"status": "ok", "url": "http://logs.example.test"}
    assert down["status"] == "unreachable"
    assert FakeResultsClient.closed >= 2


def test_app_shutdown_stops_engine(monkeypatch):
    calls = []
    monkeypatch.setattr(api_main, "stop_engine", lambda: calls.append("stop"))

    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok"}
        assert calls == []

    assert calls == ["stop"]
