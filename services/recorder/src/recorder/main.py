"""Recorder service entry point: stream consumers plus the HTTP API."""
from __future__ import annotations

import asyncio

import redis.asyncio as aioredis
import uvicorn

from objtrack_shared.logging import configure_logging, get_logger
from objtrack_shared.settings import settings

from recorder.api import create_app
from recorder.config import build_config
from recorder.pipeline import RecorderPipeline

log = get_logger(__name__)


async def run() -> None:
    configure_logging(settings.log_format, settings.log_level, service="recorder")
    config = build_config(settings)

    log.info(
        "recorder_service_starting",
        cameras=config.camera_ids,
        api=f"{config.api_host}:{config.api_port}",
    )

    redis = aioredis.from_url(config.redis_url, decode_responses=False)

    pipelines = [RecorderPipeline(cam_id, config) for cam_id in config.camera_ids]
    pipeline_tasks = [
        asyncio.create_task(p.run(redis), name=f"recorder-{cam_id}")
        for p, cam_id in zip(pipelines, config.camera_ids)
    ]

    # uvicorn owns SIGINT/SIGTERM; serve() returns once it has shut down
    server = uvicorn.Server(
        uvicorn.Config(
            create_app(),
            host=config.api_host,
            port=config.api_port,
            log_config=None,
        )
    )

    try:
        await server.serve()
    except asyncio.CancelledError:
        pass
    finally:
        for task in pipeline_tasks:
            task.cancel()
        await asyncio.gather(*pipeline_tasks, return_exceptions=True)
        await redis.aclose()
        log.info("recorder_service_stopped")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
