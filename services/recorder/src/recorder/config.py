"""Recorder service configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RecorderConfig:
    camera_ids: list[str] = field(default_factory=list)
    redis_url: str = "redis://localhost:6379/0"

    api_host: str = "0.0.0.0"
    api_port: int = 4000

    consumer_group: str = "recorder-workers"
    consumer_name: str = "recorder-0"
    read_batch: int = 20
    block_ms: int = 500


def build_config(settings) -> RecorderConfig:
    consumer_name = os.environ.get("RECORDER_CONSUMER_NAME", "recorder-0")
    return RecorderConfig(
        camera_ids=settings.camera_id_list,
        redis_url=settings.redis_url,
        api_host=settings.api_host,
        api_port=settings.api_port,
        consumer_name=consumer_name,
    )
