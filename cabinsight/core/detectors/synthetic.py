"""Deterministic stand-in detector used when no model output is available.

It keeps the overlay, aggregation and reporting paths exercisable without a
working model: a driver is always present, a front passenger for most of a
10 second cycle, and a back-seat passenger near the end of the cycle.
"""

from __future__ import annotations

from cabinsight.core.types import Detection

CYCLE_SECONDS = 10


def cycle_phase(cycle_ms: int | float) -> int:
    """Return the whole-second phase (0..9) within the 10 second cycle."""

    try:
        seconds = int(cycle_ms) // 1000
    except (TypeError, ValueError, OverflowError):
        return 0
    return seconds % CYCLE_SECONDS


def synthetic_detections(frame_w: int | float, frame_h: int | float, cycle_ms: int | float) -> list[Detection]:
    """Return 1 to 3 plausible cabin detections for a frame of the given size."""

    w = max(0.0, float(frame_w))
    h = max(0.0, float(frame_h))
    phase = cycle_phase(cycle_ms)

    out = [
        Detection(
            bbox=(w * 0.05, h * 0.15, w * 0.45, h * 0.85),
            confidence=0.75 + phase * 0.02,
            label="Driver",
        )
    ]
    if phase < 7:
        out.append(
            Detection(
                bbox=(w * 0.55, h * 0.20, w * 0.95, h * 0.80),
                confidence=0.68 + phase * 0.025,
                label="Passenger",
            )
        )
    if phase > 8:
        out.append(
            Detection(
                bbox=(w * 0.25, h * 0.35, w * 0.75, h * 0.70),
                confidence=0.62,
                label="Passenger (Back)",
            )
        )
    return out
