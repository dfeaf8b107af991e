from datetime import datetime

from cabinsight.core.analytics.report import (
    build_detection_data,
    build_summary_prompt,
    format_cloud_report,
    local_summary,
)
from cabinsight.core.types import SummaryStats

STATS = SummaryStats(
    snapshot_count=42,
    unique_timestamps=40,
    mean_confidence=0.8123,
    max_simultaneous=3,
    total_detections=90,
    timeline=("00:00: 2 people detected", "00:01: 3 people detected"),
)
WHEN = datetime(2024, 5, 1, 12, 30, 0)


def test_detection_data_contains_statistics():
    text = build_detection_data(STATS, video_duration_ms=65_900, confidence_threshold=0.5)

    assert text.startswith("Video Analysis Data:")
    assert "Video Duration: 65 seconds" in text
    assert "Total Detection Events: 42" in text
    assert "Unique Time Frames Analyzed: 40" in text
    assert "Maximum People Detected Simultaneously: 3" in text
    assert "Average Detection Confidence: 81.2%" in text
    assert "00:01: 3 people detected" in text
    assert "Every 100ms" in text
    assert "Confidence Threshold: 50%" in text


def test_detection_data_without_timeline():
    text = build_detection_data(SummaryStats(), video_duration_ms=0, confidence_threshold=0.29)

    assert "(no detections recorded)" in text
    assert "Confidence Threshold: 29%" in text
    assert "Average Detection Confidence: 0.0%" in text


def test_summary_prompt_embeds_detection_data():
    prompt = build_summary_prompt("Video Analysis Data:\nfoo")

    assert "Video Analysis Data:\nfoo" in prompt
    assert "Executive Summary" in prompt


def test_cloud_report_layout():
    text = format_cloud_report(
        "  Everything looks fine.  ",
        confidence_threshold=0.5,
        video_duration_ms=125_000,
        generated_at=WHEN,
    )

    assert text.startswith("AI ANALYSIS REPORT")
    assert "Generated: 2024-05-01 12:30:00" in text
    assert "\nEverything looks fine.\n" in text
    assert "Analysis Duration: 02:05" in text
    assert "(320x320 input)" in text


def test_local_summary_uses_statistics():
    text = local_summary(STATS, video_duration_ms=30_000, confidence_threshold=0.5, generated_at=WHEN)

    assert text.startswith("LOCAL AI ANALYSIS REPORT")
    assert "Generated: 2024-05-01 12:30:00" in text
    assert "Processed 30 seconds of video data with 42 detection events." in text
    assert "Peak Occupancy: 3 people simultaneously" in text
    assert "Average Confidence: 81.2%" in text
    assert "Fallback Mode: Local Analysis Engine" in text


def test_local_summary_is_deterministic():
    a = local_summary(STATS, video_duration_ms=30_000, confidence_threshold=0.5, generated_at=WHEN)
    b = local_summary(STATS, video_duration_ms=30_000, confidence_threshold=0.5, generated_at=WHEN)

    assert a == b
