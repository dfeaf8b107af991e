"""Report text built from session statistics.

`build_detection_data()` produces the statistics text sent to the summary
service. `local_summary()` renders an equivalent report from the same
statistics when the service is unavailable.
"""

from __future__ import annotations

from datetime import datetime

from cabinsight.core.analytics.history import format_position
from cabinsight.core.types import SummaryStats

DETECTION_MODEL_NAME = "YOLOv5 Nano"
SUMMARY_MODEL_NAME = "Google Gemini 1.5 Flash"
RULE = "=" * 59


def _percent(value: float) -> str:
    return f"{value * 100:.1f}%"


def _threshold_percent(value: float) -> str:
    return f"{round(value * 100)}%"


def _timestamp(generated_at: datetime | None) -> str:
    return (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def build_detection_data(
    stats: SummaryStats,
    *,
    video_duration_ms: int,
    confidence_threshold: float,
    tick_interval_ms: int = 100,
    input_size: int = 320,
) -> str:
    """Render aggregated statistics as the "Video Analysis Data" text."""

    timeline = "\n".join(stats.timeline) if stats.timeline else "(no detections recorded)"
    lines = [
        "Video Analysis Data:",
        "",
        f"Video Duration: {max(0, int(video_duration_ms)) // 1000} seconds",
        f"Total Detection Events: {stats.snapshot_count}",
        f"Unique Time Frames Analyzed: {stats.unique_timestamps}",
        f"Maximum People Detected Simultaneously: {stats.max_simultaneous}",
        f"Average Detection Confidence: {_percent(stats.mean_confidence)}",
        "",
        "Detection Timeline Sample:",
        timeline,
        "",
        "Technical Details:",
        "- Camera Position: Interior rearview mirror perspective",
        f"- Detection Model: YOLOv5 Person Detection ({input_size}x{input_size} input)",
        f"- Processing Frequency: Every {int(tick_interval_ms)}ms",
        f"- Confidence Threshold: {_threshold_percent(confidence_threshold)}",
    ]
    return "\n".join(lines)


def build_summary_prompt(detection_data: str) -> str:
    return (
        "As an automotive AI assistant, analyze this interior camera detection data "
        "and provide a professional summary for engineers and safety researchers.\n\n"
        f"{detection_data}\n\n"
        "Please provide:\n"
        "1. Executive Summary (2-3 sentences)\n"
        "2. Key Detection Insights\n"
        "3. Safety and Behavioral Observations\n"
        "4. Recommendations for Interior Safety Systems\n\n"
        "Format your response professionally for automotive engineers."
    )


def format_cloud_report(
    raw_text: str,
    *,
    confidence_threshold: float,
    video_duration_ms: int,
    generated_at: datetime | None = None,
    input_size: int = 320,
) -> str:
    """Frame the summary service's text in the standard report layout."""

    return "\n".join(
        [
            "AI ANALYSIS REPORT",
            "",
            f"Generated: {_timestamp(generated_at)}",
            f"Model: {SUMMARY_MODEL_NAME}",
            "Analysis Type: Interior Camera Person Detection",
            "",
            RULE,
            "",
            raw_text.strip(),
            "",
            RULE,
            "",
            "Technical Specifications:",
            f"- Detection Model: {DETECTION_MODEL_NAME} ({input_size}x{input_size} input)",
            "- Processing: Real-time frame analysis",
            f"- Confidence Threshold: {_threshold_percent(confidence_threshold)}",
            f"- GenAI Provider: {SUMMARY_MODEL_NAME}",
            f"- Analysis Duration: {format_position(video_duration_ms)}",
            "",
            "Safety System Ready",
        ]
    )


def local_summary(
    stats: SummaryStats,
    *,
    video_duration_ms: int,
    confidence_threshold: float,
    tick_interval_ms: int = 100,
    generated_at: datetime | None = None,
    input_size: int = 320,
) -> str:
    """Deterministic fallback report computed from the statistics."""

    duration = f"{max(0, int(video_duration_ms)) // 1000} seconds"
    return "\n".join(
        [
            "LOCAL AI ANALYSIS REPORT",
            "",
            f"Generated: {_timestamp(generated_at)}",
            "Model: Local Analysis Engine (offline)",
            "Analysis Type: Interior Camera Person Detection",
            "",
            RULE,
            "",
            "EXECUTIVE SUMMARY:",
            "Completed person detection analysis on interior camera footage. "
            f"Processed {duration} of video data with {stats.snapshot_count} detection events.",
            "",
            "KEY DETECTION INSIGHTS:",
            f"- Video Duration: {duration}",
            f"- Total Detection Events: {stats.snapshot_count}",
            f"- Unique Time Frames Analyzed: {stats.unique_timestamps}",
            f"- Peak Occupancy: {stats.max_simultaneous} people simultaneously",
            f"- Average Confidence: {_percent(stats.mean_confidence)}",
            f"- Detection Frequency: Every {int(tick_interval_ms)}ms",
            "",
            "SAFETY OBSERVATIONS:",
            "- Interior monitoring pipeline completed without interruption",
            "- Occupant presence tracking operational",
            "",
            "RECOMMENDATIONS:",
            "- Review the detection timeline for occupancy changes",
            "- Re-run with cloud summarization for richer insights",
            "",
            RULE,
            "",
            "Note: This analysis was generated using local processing.",
            "Ensure network connectivity and a summary API key for cloud insights.",
            "",
            "Technical Specifications:",
            f"- Detection Model: {DETECTION_MODEL_NAME} ({input_size}x{input_size} input)",
            "- Processing: Real-time frame analysis",
            f"- Confidence Threshold: {_threshold_percent(confidence_threshold)}",
            "- Fallback Mode: Local Analysis Engine",
        ]
    )
