from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from queue import Empty, Queue

from cabinsight.core.analytics.history import HistoryAggregator, format_position
from cabinsight.core.analytics.pipeline import DetectionPipeline
from cabinsight.core.config.settings import CabinSettings, pipeline_config_from_settings
from cabinsight.core.detectors.yolov5 import load_model
from cabinsight.core.types import DetectionSet, SummaryStats, TickUpdate
from cabinsight.core.video_sources.base import FrameSource, VideoFileSource
from cabinsight.services.reporting import (
    ResultsSink,
    SessionReport,
    SummaryService,
    clients_from_settings,
    generate_report,
)

logger = logging.getLogger(__name__)

IDLE = "idle"
PLAYING = "playing"
PAUSED = "paused"
REPORTING = "reporting"
COMPLETE = "complete"


class PlaybackClock:
    """Playback position that advances with a monotonic clock only while playing."""

    def __init__(self, duration_ms: int = 0, now: Callable[[], float] = time.monotonic) -> None:
        self.duration_ms = max(0, int(duration_ms))
        self._now = now
        self._lock = threading.Lock()
        self._base_ms = 0.0
        self._started_at: float | None = None

    @property
    def playing(self) -> bool:
        with self._lock:
            return self._started_at is not None

    def play(self) -> None:
        with self._lock:
            if self._started_at is None:
                self._started_at = self._now()

    def pause(self) -> None:
        with self._lock:
            if self._started_at is not None:
                self._base_ms += (self._now() - self._started_at) * 1000.0
                self._started_at = None

    def seek(self, position_ms: int) -> None:
        with self._lock:
            self._base_ms = float(max(0, int(position_ms)))
            if self._started_at is not None:
                self._started_at = self._now()

    def position_ms(self) -> int:
        with self._lock:
            pos = self._base_ms
            if self._started_at is not None:
                pos += (self._now() - self._started_at) * 1000.0
        if self.duration_ms:
            pos = min(pos, float(self.duration_ms))
        return int(pos)


class SessionEngine:
    """Runs one playback session: tick loop → history → end-of-session report.

    The engine is designed around message passing:
    - the tick thread owns the history and publishes `TickUpdate`s on a
      single-slot queue (stale updates are dropped, never queued)
    - reporting runs on a separate single-worker executor after the tick
      thread has exited, so it never observes a partially appended history
    """

    def __init__(
        self,
        settings: CabinSettings,
        pipeline: DetectionPipeline | None = None,
        frame_source: FrameSource | None = None,
        summary_service: SummaryService | None = None,
        results_sink: ResultsSink | None = None,
        clock: PlaybackClock | None = None,
    ) -> None:
        self.settings = settings
        self.pipeline = pipeline or DetectionPipeline(
            model=load_model(
                settings.model_path,
                input_size=settings.model_input_size,
                boxes_normalized=settings.model_boxes_normalized,
                num_classes=settings.num_classes,
            ),
            config=pipeline_config_from_settings(settings),
        )
        self._frame_source = frame_source
        self._summary_service = summary_service
        self._results_sink = results_sink
        self._clock = clock
        self.aggregator: HistoryAggregator | None = None

        self._interval_s = float(settings.tick_interval_ms) / 1000.0
        self._lock = threading.Lock()
        self._state = IDLE
        self._control_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._tick_thread: threading.Thread | None = None
        self._updates: Queue[TickUpdate] = Queue(maxsize=1)
        self._latest_update: TickUpdate | None = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cabinsight-report")
        self._report_future: Future[SessionReport] | None = None
        self._report: SessionReport | None = None
        self._stats: SummaryStats | None = None
        self._skipped_ticks = 0
        self.last_error: str | None = None

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    def _set_state(self, state: str) -> None:
        with self._lock:
            self._state = state

    def _make_source(self) -> FrameSource:
        """Instantiate the configured `FrameSource`."""

        if not self.settings.video_path:
            raise RuntimeError("No video selected")
        video_path = Path(self.settings.video_path)
        if not video_path.exists():
            raise RuntimeError(f"Video path not found: {video_path}")
        return VideoFileSource(str(video_path))

    def start(self) -> None:
        """Start (or resume) playback and sampling.

        Starting from idle or after a completed session clears the history;
        resuming from pause keeps it. Calls while playing are ignored.
        """

        with self._control_lock:
            state = self.state
            if state in (PLAYING, REPORTING):
                return
            # A finished tick thread may still be unwinding after completion.
            self._join_tick_thread()
            if state != PAUSED:
                try:
                    if self._frame_source is None:
                        self._frame_source = self._make_source()
                except Exception:
                    self.last_error = "Failed to initialize video source"
                    logger.exception(self.last_error)
                    return
                if self._clock is None or state == COMPLETE:
                    self._clock = PlaybackClock(self._frame_source.duration_ms)
                if self.aggregator is None:
                    self.aggregator = HistoryAggregator(
                        self.pipeline,
                        self._frame_source,
                        timeline_sample_size=self.settings.timeline_sample_size,
                    )
                self.aggregator.reset()
                with self._lock:
                    self._report = None
                    self._stats = None
                    self._latest_update = None
                    self._skipped_ticks = 0
                while not self._updates.empty():
                    self._updates.get_nowait()

            self.last_error = None
            self._stop_event.clear()
            self._set_state(PLAYING)
            self._clock.play()
            self._tick_thread = threading.Thread(target=self._tick_loop, daemon=True)
            self._tick_thread.start()
            logger.info("Playback started")

    def _join_tick_thread(self) -> None:
        thread = self._tick_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _halt_ticks(self) -> None:
        """Cancel sampling and wait until the tick thread has exited."""

        self._stop_event.set()
        if self._clock is not None:
            self._clock.pause()
        self._join_tick_thread()

    def _claim_completion(self) -> bool:
        """Move an active session to REPORTING; only the first caller wins."""

        with self._lock:
            if self._state not in (PLAYING, PAUSED):
                return False
            self._state = REPORTING
            return True

    def pause(self) -> None:
        """Pause playback; no tick fires until `start()` resumes."""

        with self._control_lock:
            if self.state != PLAYING:
                return
            self._halt_ticks()
            with self._lock:
                # The in-flight tick may have reached the end of the video.
                if self._state != PLAYING:
                    return
                self._state = PAUSED
            logger.info("Playback paused at %s", format_position(self.position_ms()))

    def stop(self) -> None:
        """Stop sampling and generate the end-of-session report."""

        with self._control_lock:
            if self.state not in (PLAYING, PAUSED):
                return
            self._halt_ticks()
            if self._claim_completion():
                self._complete()

    def shutdown(self) -> None:
        """Cancel sampling, release the source and stop the report worker."""

        with self._control_lock:
            self._halt_ticks()
            self._executor.shutdown(wait=False, cancel_futures=True)
            if self._frame_source is not None:
                self._frame_source.close()

    def _complete(self) -> None:
        """Summarize the finished session and hand reporting to the worker.

        Callers must hold the REPORTING claim and the tick thread must no
        longer be sampling.
        """

        agg = self.aggregator
        stats = agg.summarize() if agg is not None else SummaryStats()
        duration_ms = self._clock.duration_ms if self._clock is not None else 0
        final_people = len(self.pipeline.current_detections)
        with self._lock:
            self._stats = stats
        logger.info(
            "Detection complete: %s snapshots, peak %s people; generating summary",
            stats.snapshot_count,
            stats.max_simultaneous,
        )
        self._report_future = self._executor.submit(
            self._run_report, stats, duration_ms, final_people
        )

    def _run_report(self, stats: SummaryStats, duration_ms: int, final_people: int) -> SessionReport | None:
        summary_service = self._summary_service
        results_sink = self._results_sink
        owned = None
        if summary_service is None and results_sink is None:
            owned = clients_from_settings(self.settings)
            summary_service, results_sink = owned
        try:
            report = generate_report(
                stats,
                settings=self.settings,
                video_duration_ms=duration_ms,
                final_people_detected=final_people,
                summary_service=summary_service,
                results_sink=results_sink,
            )
        except Exception:
            self.last_error = "Report generation failed"
            logger.exception(self.last_error)
            self._set_state(COMPLETE)
            return None
        finally:
            if owned is not None:
                for client in owned:
                    client.close()
        with self._lock:
            self._report = report
            self._state = COMPLETE
        if not report.logged and report.logging_error:
            self.last_error = report.logging_error
        return report

    def _publish(self, update: TickUpdate) -> None:
        with self._lock:
            self._latest_update = update
        if self._updates.full():
            try:
                self._updates.get_nowait()
            except Empty:
                pass
        try:
            self._updates.put_nowait(update)
        except Exception:
            logger.exception("Failed to publish tick update")

    def tick(self) -> DetectionSet:
        """Run one sampling tick at the current playback position."""

        agg = self.aggregator
        clock = self._clock
        if agg is None or clock is None:
            return ()
        position = clock.position_ms()
        detections = agg.on_tick(position)
        self._publish(
            TickUpdate(
                position_ms=position,
                position_label=format_position(position),
                detections=detections,
                snapshot_count=len(agg),
                source=agg.last_source,
                frame_size=agg.last_frame_size,
            )
        )
        return detections

    def _reached_end(self) -> bool:
        clock = self._clock
        if clock is None or not clock.duration_ms:
            return False
        return clock.position_ms() >= clock.duration_ms - self.settings.tick_interval_ms

    def _tick_loop(self) -> None:
        """Sample on a fixed cadence; late ticks are coalesced, not queued."""

        logger.debug("Tick loop started")
        next_at = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                self.last_error = "Tick processing failed"
                logger.exception(self.last_error)

            if self._reached_end():
                self._stop_event.set()
                if self._clock is not None:
                    self._clock.pause()
                if self._claim_completion():
                    self._complete()
                return

            next_at += self._interval_s
            now = time.monotonic()
            if next_at < now:
                missed = int((now - next_at) / self._interval_s) + 1
                self._skipped_ticks += missed
                next_at += missed * self._interval_s
            self._stop_event.wait(max(0.0, next_at - now))
        logger.debug("Tick loop stopped")

    def position_ms(self) -> int:
        return self._clock.position_ms() if self._clock is not None else 0

    def duration_ms(self) -> int:
        return self._clock.duration_ms if self._clock is not None else 0

    def latest_update(self) -> TickUpdate | None:
        with self._lock:
            return self._latest_update

    def next_update(self, timeout: float = 0.5) -> TickUpdate | None:
        """Consume the next tick update (single consumer)."""

        try:
            return self._updates.get(timeout=timeout)
        except Empty:
            return None

    def summary_stats(self) -> SummaryStats:
        """Statistics of the finished session (or of the history so far when paused)."""

        with self._lock:
            stats = self._stats
        if stats is not None:
            return stats
        if self.state == PLAYING or self.aggregator is None:
            return SummaryStats(snapshot_count=len(self.aggregator) if self.aggregator else 0)
        return self.aggregator.summarize()

    def report(self) -> SessionReport | None:
        with self._lock:
            return self._report

    def wait_for_report(self, timeout: float | None = None) -> SessionReport | None:
        future = self._report_future
        if future is None:
            return None
        return future.result(timeout=timeout)

    def status(self) -> dict:
        agg = self.aggregator
        update = self.latest_update()
        return {
            "state": self.state,
            "position_ms": self.position_ms(),
            "duration_ms": self.duration_ms(),
            "position_label": format_position(self.position_ms()),
            "snapshot_count": len(agg) if agg is not None else 0,
            "current_people": len(update.detections) if update is not None else 0,
            "detection_source": agg.last_source.value if agg and agg.last_source else None,
            "skipped_ticks": self._skipped_ticks,
            "error": self.last_error,
        }

