from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path

import cv2
import numpy as np

from cabinsight.core.analytics.history import HistoryAggregator
from cabinsight.core.analytics.pipeline import DetectionPipeline
from cabinsight.core.analytics.report import build_detection_data
from cabinsight.core.config.settings import load_settings, pipeline_config_from_settings
from cabinsight.core.detectors.yolov5 import load_model
from cabinsight.core.overlay.draw import draw_detections
from cabinsight.core.video_sources.base import VideoFileSource
from cabinsight.services.reporting import generate_report
from cabinsight.services.summary_client import GeminiSummaryClient

logger = logging.getLogger("cabinsight.tools.run_on_video")


def _to_jsonable(obj):
    if is_dataclass(obj):
        return _to_jsonable(asdict(obj))
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(v) for v in obj]
    return obj


def run(args) -> dict:
    settings = load_settings()
    interval_ms = int(args.interval_ms)
    if interval_ms <= 0:
        raise SystemExit("--interval-ms must be > 0")

    try:
        source = VideoFileSource(args.input)
    except RuntimeError as exc:
        raise SystemExit(str(exc)) from None

    model = None
    if not args.mock:
        model = load_model(
            args.model or settings.model_path,
            input_size=settings.model_input_size,
            boxes_normalized=settings.model_boxes_normalized,
            num_classes=settings.num_classes,
        )
    pipeline = DetectionPipeline(model=model, config=pipeline_config_from_settings(settings))
    aggregator = HistoryAggregator(
        pipeline, source, timeline_sample_size=settings.timeline_sample_size
    )

    annotate_dir = Path(args.annotate_dir) if args.annotate_dir else None
    if annotate_dir is not None:
        annotate_dir.mkdir(parents=True, exist_ok=True)
    annotated = 0

    duration_ms = source.duration_ms
    ticks = 0
    try:
        position = 0
        while position < duration_ms:
            detections = aggregator.on_tick(position)
            ticks += 1
            if annotate_dir is not None and detections and aggregator.last_frame is not None:
                image = draw_detections(aggregator.last_frame, detections)
                if cv2.imwrite(str(annotate_dir / f"tick_{position:08d}.jpg"), image):
                    annotated += 1
                else:
                    logger.warning("Failed to write annotated frame at %s ms", position)
            if args.max_ticks and ticks >= args.max_ticks:
                break
            position += interval_ms
    finally:
        source.close()

    stats = aggregator.summarize()
    result: dict = {
        "input": str(args.input),
        "duration_ms": duration_ms,
        "interval_ms": interval_ms,
        "ticks": ticks,
        "annotated_frames": annotated,
        "snapshots": _to_jsonable(aggregator.snapshots),
        "stats": _to_jsonable(stats),
        "detection_data": build_detection_data(
            stats,
            video_duration_ms=duration_ms,
            confidence_threshold=settings.confidence_threshold,
            tick_interval_ms=interval_ms,
            input_size=settings.model_input_size,
        ),
    }

    if args.report:
        summary_client = None
        if settings.summary_api_key:
            summary_client = GeminiSummaryClient(
                settings.summary_api_url,
                settings.summary_api_key,
                timeout_s=settings.summary_timeout_s,
            )
        try:
            report = generate_report(
                stats,
                settings=settings,
                video_duration_ms=duration_ms,
                final_people_detected=len(pipeline.current_detections),
                summary_service=summary_client,
                results_sink=None,
            )
        finally:
            if summary_client is not None:
                summary_client.close()
        result["report"] = {
            "summary": report.summary,
            "summary_source": report.summary_source,
            "summary_error": report.summary_error,
        }

    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2)
    logger.info(
        "Wrote %s snapshots from %s ticks to %s", len(result["snapshots"]), ticks, out_path
    )
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sample person detections across a video")
    parser.add_argument("--input", required=True, help="Path to video file")
    parser.add_argument("--output", required=True, help="Where to save JSON output")
    parser.add_argument("--model", default=None, help="Model file (defaults to CSV_MODEL_PATH)")
    parser.add_argument(
        "--mock", action="store_true", help="Skip the model and use synthetic detections"
    )
    parser.add_argument("--interval-ms", type=int, default=100, help="Sampling interval")
    parser.add_argument("--max-ticks", type=int, default=0, help="Limit ticks for quick tests")
    parser.add_argument(
        "--annotate-dir", default=None, help="Write annotated JPEG frames for ticks with detections"
    )
    parser.add_argument(
        "--report", action="store_true", help="Also generate the end-of-session report"
    )
    parser.add_argument("--log-level", default="INFO")
    return parser


if __name__ == "__main__":
    parsed = build_parser().parse_args()
    logging.basicConfig(
        level=getattr(logging, str(parsed.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run(parsed)
