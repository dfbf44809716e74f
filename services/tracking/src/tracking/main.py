"""Tracking service entry point."""
from __future__ import annotations

import asyncio
import signal

import redis.asyncio as aioredis

from objtrack_shared.logging import configure_logging, get_logger
from objtrack_shared.settings import settings

from tracking.config import build_config
from tracking.detector import Detector
from tracking.log_sink import DetectionLogSink
from tracking.pipeline import FramePump

log = get_logger(__name__)


async def run() -> None:
    configure_logging(settings.log_format, settings.log_level, service="tracking")
    config = build_config(settings)

    log.info(
        "tracking_service_starting",
        camera_id=config.camera_id,
        source=config.video_source,
        device=config.device,
        model=config.yolo_model,
        log_detections=config.log_detections,
    )

    detector = Detector(
        model_name=config.yolo_model,
        device=config.device,
        confidence=config.yolo_confidence,
    )

    redis = None
    sink = None
    sink_task = None
    if config.log_detections:
        redis = aioredis.from_url(config.redis_url, decode_responses=False)
        sink = DetectionLogSink(config.camera_id, maxsize=config.sink_queue_size)
        sink_task = asyncio.create_task(sink.run(redis), name="detection-log")

    pump = FramePump(config, detector, sink)

    loop = asyncio.get_running_loop()

    def _shutdown(sig, frame):
        log.info("shutdown_signal_received", signal=sig)
        pump.stop()
        for task in asyncio.all_tasks(loop):
            task.cancel()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    try:
        await pump.run()
        if sink is not None:
            await sink.flush()
    except asyncio.CancelledError:
        pass
    finally:
        if sink_task is not None:
            sink_task.cancel()
            await asyncio.gather(sink_task, return_exceptions=True)
        if redis is not None:
            await redis.aclose()
        log.info("tracking_service_stopped")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
