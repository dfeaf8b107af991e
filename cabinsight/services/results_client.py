"""Client for the results-logging backend (`/api/data`, `/api/health`)."""

from __future__ import annotations

import logging
import platform
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

import httpx

from cabinsight.core.analytics.report import DETECTION_MODEL_NAME, SUMMARY_MODEL_NAME
from cabinsight.core.types import SummaryStats

logger = logging.getLogger(__name__)

USER_AGENT = "CabinSight/1.0"


@dataclass(frozen=True)
class DeviceInfo:
    model: str
    os_version: str
    package_name: str


@dataclass(frozen=True)
class SubmitResult:
    ok: bool
    status_code: int | None = None
    error: str | None = None


def get_device_info() -> DeviceInfo:
    return DeviceInfo(
        model=f"{platform.system()} {platform.machine()}".strip(),
        os_version=platform.release(),
        package_name="cabinsight",
    )


def friendly_error(exc: BaseException) -> str:
    """Map a transport error onto a message suitable for the user."""

    msg = str(exc)
    lowered = msg.lower()
    if isinstance(exc, httpx.TimeoutException) or "timeout" in lowered or "timed out" in lowered:
        return "Backend server timeout. Server may be overloaded."
    if "connection refused" in lowered:
        return "Backend server not running. Please start the results backend."
    if "network is unreachable" in lowered or "no route to host" in lowered:
        return "Cannot reach backend server. Check the backend URL configuration."
    if "connection reset" in lowered:
        return "Backend connection lost. Server may have restarted."
    return f"Backend communication error: {msg}"


def build_results_payload(
    *,
    summary_text: str,
    summary_source: str,
    detection_data: str,
    stats: SummaryStats,
    video_duration_ms: int,
    final_people_detected: int,
    app_version: str,
    device: DeviceInfo | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the structured record posted to the results backend."""

    now = now or datetime.now()
    timestamp_ms = int(now.timestamp() * 1000)
    return {
        "timestamp": timestamp_ms,
        "analysis_completed_at": now.strftime("%Y-%m-%d %H:%M:%S"),
        "ai_summary": summary_text,
        "summary_source": summary_source,
        "session_id": f"cabinsight_session_{timestamp_ms}",
        "app_version": app_version,
        "device": asdict(device or get_device_info()),
        "video_analysis": {
            "video_duration_seconds": max(0, int(video_duration_ms)) // 1000,
            "total_detection_events": stats.snapshot_count,
            "final_people_detected": int(final_people_detected),
            "detection_data_summary": detection_data,
        },
        "analysis_type": "Interior Camera Person Detection",
        "ai_provider": SUMMARY_MODEL_NAME if summary_source == "cloud" else "Local Analysis Engine",
        "detection_model": DETECTION_MODEL_NAME,
    }


class ResultsClient:
    """Posts session results to the logging backend (single attempt, no retries)."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout_s)
        self._client = client
        self._owns_client = client is None

    @property
    def data_url(self) -> str:
        return f"{self.base_url}/api/data"

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                headers={
                    "Accept": "application/json",
                    "User-Agent": USER_AGENT,
                    "Connection": "close",
                },
            )
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def submit(self, payload: dict[str, Any]) -> SubmitResult:
        try:
            res = self._http().post(self.data_url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("Results backend unreachable at %s: %s", self.data_url, exc)
            return SubmitResult(ok=False, error=friendly_error(exc))

        logger.info("Results backend responded %s", res.status_code)
        if res.status_code != 200:
            logger.error("Results backend error %s: %s", res.status_code, res.text[:200])
            return SubmitResult(
                ok=False,
                status_code=res.status_code,
                error=f"Backend returned HTTP {res.status_code}",
            )
        try:
            body = res.json()
        except ValueError:
            # A 200 without a JSON body still means the record was stored.
            return SubmitResult(ok=True, status_code=200)
        status = body.get("status", "") if isinstance(body, dict) else ""
        if status == "success":
            return SubmitResult(ok=True, status_code=200)
        return SubmitResult(
            ok=False,
            status_code=200,
            error=f"Backend reported status '{status or 'unknown'}'",
        )

    def check_health(self) -> bool:
        try:
            res = self._http().get(f"{self.base_url}/api/health", timeout=5.0)
        except httpx.HTTPError:
            return False
        return res.status_code == 200
