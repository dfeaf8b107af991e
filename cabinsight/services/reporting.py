"""End-of-session reporting: summary generation and results submission.

Runs off the sampling loop. Network failures never propagate: the summary
degrades to the local report and a failed submission is reported in the
returned `SessionReport`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from cabinsight.core.analytics.report import build_detection_data, format_cloud_report, local_summary
from cabinsight.core.config.settings import CabinSettings
from cabinsight.core.types import SummaryStats
from cabinsight.services.results_client import ResultsClient, SubmitResult, build_results_payload
from cabinsight.services.summary_client import GeminiSummaryClient, SummaryServiceError

logger = logging.getLogger(__name__)


class SummaryService(Protocol):
    def generate(self, detection_data: str) -> str: ...


class ResultsSink(Protocol):
    def submit(self, payload: dict) -> SubmitResult: ...


@dataclass(frozen=True)
class SessionReport:
    summary: str
    summary_source: str  # "cloud" | "local"
    detection_data: str
    stats: SummaryStats
    logged: bool
    logging_error: str | None = None
    summary_error: str | None = None


def clients_from_settings(settings: CabinSettings) -> tuple[GeminiSummaryClient, ResultsClient]:
    return (
        GeminiSummaryClient(
            settings.summary_api_url,
            settings.summary_api_key,
            timeout_s=settings.summary_timeout_s,
        ),
        ResultsClient(settings.backend_base_url, timeout_s=settings.backend_timeout_s),
    )


def generate_report(
    stats: SummaryStats,
    *,
    settings: CabinSettings,
    video_duration_ms: int,
    final_people_detected: int,
    summary_service: SummaryService | None,
    results_sink: ResultsSink | None,
    now: datetime | None = None,
) -> SessionReport:
    """Summarize a finished session and log it to the results backend.

    Args:
        stats: Statistics computed after sampling stopped.
        settings: Thresholds and cadence rendered into the report text.
        video_duration_ms: Length of the analysed video.
        final_people_detected: Size of the last detection set.
        summary_service: Cloud summary collaborator (None forces the local report).
        results_sink: Results-logging collaborator (None skips submission).
        now: Report timestamp (defaults to the current time).
    """

    now = now or datetime.now()
    detection_data = build_detection_data(
        stats,
        video_duration_ms=video_duration_ms,
        confidence_threshold=settings.confidence_threshold,
        tick_interval_ms=settings.tick_interval_ms,
        input_size=settings.model_input_size,
    )

    summary_error: str | None = None
    summary: str | None = None
    if summary_service is not None:
        try:
            raw = summary_service.generate(detection_data)
            summary = format_cloud_report(
                raw,
                confidence_threshold=settings.confidence_threshold,
                video_duration_ms=video_duration_ms,
                generated_at=now,
                input_size=settings.model_input_size,
            )
        except SummaryServiceError as exc:
            summary_error = str(exc)
            logger.warning("AI unavailable, using local analysis: %s", exc)
    else:
        summary_error = "Summary service not configured"

    source = "cloud"
    if summary is None:
        source = "local"
        summary = local_summary(
            stats,
            video_duration_ms=video_duration_ms,
            confidence_threshold=settings.confidence_threshold,
            tick_interval_ms=settings.tick_interval_ms,
            generated_at=now,
            input_size=settings.model_input_size,
        )

    if results_sink is None:
        return SessionReport(
            summary=summary,
            summary_source=source,
            detection_data=detection_data,
            stats=stats,
            logged=False,
            logging_error="Results backend not configured",
            summary_error=summary_error,
        )

    payload = build_results_payload(
        summary_text=summary,
        summary_source=source,
        detection_data=detection_data,
        stats=stats,
        video_duration_ms=video_duration_ms,
        final_people_detected=final_people_detected,
        app_version=settings.app_version,
        now=now,
    )
    result = results_sink.submit(payload)
    if result.ok:
        logger.info("Analysis complete; results logged to backend")
    else:
        logger.warning("Analysis complete; backend logging failed: %s", result.error)
    return SessionReport(
        summary=summary,
        summary_source=source,
        detection_data=detection_data,
        stats=stats,
        logged=result.ok,
        logging_error=result.error,
        summary_error=summary_error,
    )
