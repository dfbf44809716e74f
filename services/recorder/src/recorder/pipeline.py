"""Recorder pipeline: persist detection batches from Redis Streams.

For each camera:
1. XREADGROUP from `detections:{camera_id}` (consumer group: recorder-workers)
2. Decode DetectionBatch
3. Insert all of its detections in one transaction
4. XACK the processed message
"""
from __future__ import annotations

import time

import redis.asyncio as aioredis

from objtrack_shared.db.session import get_db
from objtrack_shared.events.publisher import (
    GROUP_RECORDER,
    ack,
    detections_stream,
    ensure_consumer_group,
    read_group,
)
from objtrack_shared.events.schemas import DetectionBatch
from objtrack_shared.logging import get_logger

from recorder import store
from recorder.config import RecorderConfig

log = get_logger(__name__)


class RecorderPipeline:
    """Consumes one camera's detection stream into the database."""

    def __init__(self, camera_id: str, config: RecorderConfig) -> None:
        self._camera_id = camera_id
        self._cfg = config
        self._in_stream = detections_stream(camera_id)
        self._batch_count = 0
        self._row_count = 0
        self._t_start = time.monotonic()

    async def run(self, redis: aioredis.Redis) -> None:
        """Main loop: processes batches until cancelled."""
        await ensure_consumer_group(redis, self._in_stream, GROUP_RECORDER)
        log.info(
            "recorder_pipeline_starting",
            camera_id=self._camera_id,
            stream=self._in_stream,
        )
        while True:
            messages = await read_group(
                redis,
                self._in_stream,
                GROUP_RECORDER,
                self._cfg.consumer_name,
                count=self._cfg.read_batch,
                block_ms=self._cfg.block_ms,
            )
            for msg_id, msg_data in messages:
                try:
                    await self._process(msg_data)
                except Exception as exc:
                    log.error(
                        "recorder_pipeline_error",
                        camera_id=self._camera_id,
                        msg_id=msg_id,
                        error=str(exc),
                    )
                # ACK failures too, otherwise a bad batch is redelivered forever
                await ack(redis, self._in_stream, GROUP_RECORDER, msg_id)

    async def _process(self, msg_data: dict) -> int:
        batch = DetectionBatch.model_validate_json(msg_data.get("data", "{}"))
        records = store.records_from_batch(batch)

        async with get_db() as db:
            inserted = await store.insert_detections(db, records)

        self._batch_count += 1
        self._row_count += inserted
        if self._batch_count % 100 == 0:
            elapsed = time.monotonic() - self._t_start
            log.info(
                "recorder_pipeline_throughput",
                camera_id=self._camera_id,
                batches=self._batch_count,
                rows=self._row_count,
                rows_per_s=round(self._row_count / elapsed, 1) if elapsed > 0 else 0,
            )
        return inserted
