"""Fire-and-forget detection log: a bounded queue drained to a Redis Stream.

The frame pump calls ``submit`` and moves on; a separate worker task
publishes batches so network latency never stalls tracking. Failed
publishes are logged and dropped.
"""
from __future__ import annotations

import asyncio

import redis.asyncio as aioredis

from objtrack_shared.events.publisher import detections_stream, publish
from objtrack_shared.events.schemas import DetectionBatch
from objtrack_shared.logging import get_logger

log = get_logger(__name__)


class DetectionLogSink:
    """Queues DetectionBatches and publishes them from a worker task.

    Args:
        camera_id: Camera whose stream receives the batches.
        maxsize: Queue bound; when full the oldest batch is discarded.
        stream_maxlen: Approximate MAXLEN of the Redis stream.
    """

    def __init__(self, camera_id: str, maxsize: int = 256, stream_maxlen: int = 10_000) -> None:
        self._camera_id = camera_id
        self._stream = detections_stream(camera_id)
        self._stream_maxlen = stream_maxlen
        self._queue: asyncio.Queue[DetectionBatch] = asyncio.Queue(maxsize=maxsize)
        self.published = 0
        self.failed = 0
        self.dropped = 0

    def submit(self, batch: DetectionBatch) -> None:
        """Enqueue without blocking. Empty batches are ignored."""
        if not batch.detections:
            return
        try:
            self._queue.put_nowait(batch)
        except asyncio.QueueFull:
            # Worker is lagging; make room by dropping the oldest batch
            try:
                self._queue.get_nowait()
                self._queue.task_done()
                self.dropped += 1
            except asyncio.QueueEmpty:
                pass
            try:
                self._queue.put_nowait(batch)
            except asyncio.QueueFull:
                self.dropped += 1

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def run(self, redis: aioredis.Redis) -> None:
        """Worker loop: publishes queued batches until cancelled."""
        log.info("detection_log_starting", camera_id=self._camera_id, stream=self._stream)
        try:
            while True:
                batch = await self._queue.get()
                try:
                    await self._publish(redis, batch)
                finally:
                    self._queue.task_done()
        finally:
            log.info(
                "detection_log_stopped",
                camera_id=self._camera_id,
                published=self.published,
                failed=self.failed,
                dropped=self.dropped,
            )

    async def flush(self, timeout: float = 5.0) -> None:
        """Wait until queued batches are handled, or give up after ``timeout``."""
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            log.warning(
                "detection_log_flush_timeout",
                camera_id=self._camera_id,
                pending=self._queue.qsize(),
            )

    async def _publish(self, redis: aioredis.Redis, batch: DetectionBatch) -> None:
        try:
            msg_id = await publish(redis, self._stream, batch, maxlen=self._stream_maxlen)
        except Exception as exc:
            self.failed += 1
            log.warning(
                "detection_log_failed",
                camera_id=self._camera_id,
                frame_index=batch.frame_index,
                error=str(exc),
            )
            return
        self.published += 1
        log.debug(
            "detection_batch_published",
            camera_id=self._camera_id,
            frame_index=batch.frame_index,
            count=len(batch.detections),
            msg_id=msg_id,
        )
