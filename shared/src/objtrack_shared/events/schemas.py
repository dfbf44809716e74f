"""Pydantic v2 event schemas for Redis Streams messages.

Stream naming convention: {domain}:{camera_id}
  detections:cam-01     per-frame batches of tracked detections
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Tracking → Recorder ───────────────────────────────────────────────────────

class DetectionRecord(_FrozenModel):
    """One detection enriched with the tracker identity it was matched to."""

    track_id: int | None = Field(
        default=None, description="Tracker identity, None when no track is live"
    )
    class_name: str | None = None
    confidence: float = Field(default=0.0, description="Detector score [0,1]")
    x1: int
    y1: int
    x2: int
    y2: int
    frame_index: int = Field(description="0-based frame counter within one tracking run")


class DetectionBatch(_FrozenModel):
    """All enriched detections of a single processed frame.

    Stream: detections:{camera_id}
    Published at most once per frame, only when the frame has detections.
    """

    camera_id: str
    timestamp_ns: int = Field(description="Monotonic nanosecond timestamp")
    frame_index: int
    detections: list[DetectionRecord]
