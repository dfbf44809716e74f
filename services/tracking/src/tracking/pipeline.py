"""Frame pump: capture → detect → track → re-associate → render / log.

For one video source:
1. Read the next frame (a not-ready frame is retried on the next tick)
2. Run the Detector in an executor and apply the class filter
3. CentroidTracker.update with the detection boxes
4. Join track ids back onto the detections by nearest centroid
5. Optionally draw the overlay and submit the batch to the detection log
6. Update the FPS estimate and advance the frame index

Each run owns a fresh CentroidTracker so identities never leak between runs.
"""
from __future__ import annotations

import asyncio
import time

import cv2
import numpy as np

from objtrack_shared.events.publisher import now_ns
from objtrack_shared.events.schemas import DetectionBatch
from objtrack_shared.logging import get_logger

from tracking.association import assign_track_ids
from tracking.config import TrackingConfig
from tracking.detector import Detection, Detector, TrackedDetection, filter_classes, parse_class_filter
from tracking.frame_source import FrameSource
from tracking.log_sink import DetectionLogSink
from tracking.overlay import draw_detections, draw_fps
from tracking.tracker import CentroidTracker

log = get_logger(__name__)

_WINDOW = "objtrack"


class FramePump:
    """Drives the tracker once per frame, strictly in sequence.

    Args:
        config: Tracking configuration.
        detector: Loaded detector (shared, stateless between frames).
        sink: Detection log; batches are only submitted when
            ``config.log_detections`` is set.
    """

    def __init__(
        self,
        config: TrackingConfig,
        detector: Detector,
        sink: DetectionLogSink | None = None,
    ) -> None:
        self._cfg = config
        self._detector = detector
        self._sink = sink
        self._wanted = parse_class_filter(config.class_filter)
        self._tracker: CentroidTracker | None = None
        self._running = False
        self.frame_index = 0
        self.fps = 0.0
        self.reset()

    @property
    def tracker(self) -> CentroidTracker | None:
        return self._tracker

    @property
    def running(self) -> bool:
        return self._running

    def reset(self) -> None:
        """Discard all identities and start counting frames from zero."""
        self._tracker = CentroidTracker(
            max_disappeared=self._cfg.max_disappeared,
            max_distance=self._cfg.max_distance,
        )
        self.frame_index = 0
        self.fps = 0.0

    def stop(self) -> None:
        self._running = False

    # ------------------------------------------------------------------
    # Per-frame steps
    # ------------------------------------------------------------------

    def track(self, detections: list[Detection]) -> list[TrackedDetection]:
        """Filter, update the tracker and re-associate ids for one frame."""
        if self._tracker is None:
            self.reset()
        kept = filter_classes(detections, self._wanted)
        tracks = self._tracker.update([d.bbox for d in kept])
        return assign_track_ids(kept, tracks)

    def process_frame(self, frame: np.ndarray) -> list[TrackedDetection]:
        """Detect and track one frame synchronously, then advance the frame index."""
        tracked = self.track(self._detector.detect(frame))
        self._emit(frame, tracked)
        self.frame_index += 1
        return tracked

    def _emit(self, frame: np.ndarray, tracked: list[TrackedDetection]) -> None:
        if self._cfg.show:
            canvas = frame.copy()
            draw_detections(canvas, tracked)
            draw_fps(canvas, self.fps)
            cv2.imshow(_WINDOW, canvas)
            if cv2.waitKey(1) & 0xFF == ord("q"):
                self.stop()

        if self._sink is not None and self._cfg.log_detections and tracked:
            self._sink.submit(
                DetectionBatch(
                    camera_id=self._cfg.camera_id,
                    timestamp_ns=now_ns(),
                    frame_index=self.frame_index,
                    detections=[d.to_record(self.frame_index) for d in tracked],
                )
            )

    def _tick(self, frame_time: float) -> None:
        if frame_time > 0:
            self.fps = 0.9 * self.fps + 0.1 * (1.0 / frame_time)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Pump frames until stopped, cancelled, or a file source runs out."""
        self.reset()
        self._running = True
        loop = asyncio.get_running_loop()

        log.info(
            "pump_starting",
            camera_id=self._cfg.camera_id,
            source=self._cfg.video_source,
            class_filter=self._wanted,
            max_disappeared=self._cfg.max_disappeared,
            max_distance=self._cfg.max_distance,
        )
        t_start = time.monotonic()

        try:
            with FrameSource(self._cfg.video_source) as source:
                pending: asyncio.Future | None = None
                try:
                    while self._running:
                        t0 = time.perf_counter()
                        pending = loop.run_in_executor(None, source.read)
                        frame = await asyncio.shield(pending)
                        pending = None
                        if frame is None:
                            if source.is_file:
                                log.info("pump_source_exhausted", camera_id=self._cfg.camera_id)
                                break
                            await asyncio.sleep(self._cfg.idle_sleep_s)
                            continue

                        try:
                            detections = await loop.run_in_executor(
                                None, self._detector.detect, frame
                            )
                            tracked = self.track(detections)
                        except Exception as exc:
                            log.error(
                                "pump_frame_error",
                                camera_id=self._cfg.camera_id,
                                frame_index=self.frame_index,
                                error=str(exc),
                            )
                            await asyncio.sleep(self._cfg.idle_sleep_s)
                            continue

                        self._emit(frame, tracked)
                        self._tick(time.perf_counter() - t0)
                        self.frame_index += 1

                        if self.frame_index % self._cfg.log_interval == 0:
                            elapsed = time.monotonic() - t_start
                            log.info(
                                "pump_throughput",
                                camera_id=self._cfg.camera_id,
                                frames=self.frame_index,
                                fps=round(self.fps, 1),
                                avg_fps=round(self.frame_index / elapsed, 1) if elapsed > 0 else 0,
                                live_tracks=len(self._tracker),
                            )

                        # yield to the sink worker between frames
                        await asyncio.sleep(0)
                finally:
                    if pending is not None and not pending.done():
                        # the executor thread still holds the capture
                        log.info("pump_waiting_for_read", camera_id=self._cfg.camera_id)
                        await asyncio.wait([pending])
        finally:
            self._running = False
            self._tracker = None
            if self._cfg.show:
                cv2.destroyAllWindows()
            log.info("pump_stopped", camera_id=self._cfg.camera_id, frames=self.frame_index)
