"""Tracking service configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class TrackingConfig:
    """Configuration for one camera's frame pump."""

    camera_id: str = "cam-01"
    video_source: str = "0"
    redis_url: str = "redis://localhost:6379/0"

    # Model settings
    yolo_model: str = "yolo11n.pt"
    device: str = "cpu"  # "cpu", "cuda", "mps"
    yolo_confidence: float = 0.5
    class_filter: str = ""  # comma separated, empty keeps all classes

    # Tracker settings
    max_disappeared: int = 40
    max_distance: float = 80.0

    # Output
    log_detections: bool = False
    show: bool = False
    sink_queue_size: int = 256

    # Throughput logging interval (frames)
    log_interval: int = 100
    # Sleep between polls when the source has no frame ready
    idle_sleep_s: float = 0.01


def _detect_device() -> str:
    import torch

    if os.environ.get("TRACKING_DEVICE"):
        return os.environ["TRACKING_DEVICE"]
    if torch.cuda.is_available():
        return "cuda"
    if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
        return "mps"
    return "cpu"


def build_config(settings) -> TrackingConfig:
    """Build TrackingConfig from shared Settings.

    The first configured camera id names the run; the capture source comes
    from ``VIDEO_SOURCE``.
    """
    camera_ids = settings.camera_id_list
    return TrackingConfig(
        camera_id=camera_ids[0] if camera_ids else "cam-01",
        video_source=settings.video_source,
        redis_url=settings.redis_url,
        yolo_model=settings.yolo_model,
        device=_detect_device(),
        yolo_confidence=settings.yolo_confidence,
        class_filter=settings.class_filter,
        max_disappeared=settings.max_disappeared,
        max_distance=settings.max_distance,
        log_detections=settings.log_detections,
        show=settings.show_video,
    )
