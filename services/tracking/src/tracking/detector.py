"""YOLO object detector returning labelled pixel boxes.

Wraps ultralytics YOLO (COCO classes) and returns structured Detection
objects. The tracker only consumes the boxes; label and confidence pass
through to the log sink and overlay.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from objtrack_shared.events.schemas import DetectionRecord
from objtrack_shared.logging import get_logger

log = get_logger(__name__)

BBox = tuple[int, int, int, int]  # x1, y1, x2, y2 in pixels


@dataclass(frozen=True)
class Detection:
    """One detected object in a frame (no track ID)."""

    bbox: BBox
    label: str
    confidence: float


@dataclass(frozen=True)
class TrackedDetection:
    """A Detection re-associated with the nearest live track."""

    track_id: int | None
    bbox: BBox
    label: str
    confidence: float

    def to_record(self, frame_index: int) -> DetectionRecord:
        x1, y1, x2, y2 = self.bbox
        return DetectionRecord(
            track_id=self.track_id,
            class_name=self.label,
            confidence=self.confidence,
            x1=x1,
            y1=y1,
            x2=x2,
            y2=y2,
            frame_index=frame_index,
        )


def parse_class_filter(raw: str) -> list[str]:
    """Split a comma-separated class list into lowercase names."""
    return [s.strip().lower() for s in raw.split(",") if s.strip()]


def filter_classes(detections: list[Detection], wanted: list[str]) -> list[Detection]:
    """Keep detections whose label is in ``wanted`` (case-insensitive).

    An empty ``wanted`` list keeps everything.
    """
    if not wanted:
        return list(detections)
    return [d for d in detections if d.label.lower() in wanted]


def _parse_result(result) -> list[Detection]:
    """Parse a single YOLO result into Detection objects."""
    detections: list[Detection] = []

    if result.boxes is None or len(result.boxes) == 0:
        return detections

    boxes_xyxy = result.boxes.xyxy.cpu().numpy()
    confidences = result.boxes.conf.cpu().numpy()
    classes = result.boxes.cls.cpu().numpy().astype(int)
    names = result.names

    for i in range(len(boxes_xyxy)):
        # round half up, like the centroid computation
        x1, y1, x2, y2 = (int(math.floor(float(v) + 0.5)) for v in boxes_xyxy[i])
        detections.append(
            Detection(
                bbox=(x1, y1, x2, y2),
                label=str(names.get(int(classes[i]), classes[i])),
                confidence=float(confidences[i]),
            )
        )
    return detections


class Detector:
    """Loads a YOLO detection model and runs it frame by frame.

    Args:
        model_name: Model filename/path (e.g. "yolo11n.pt").
            ultralytics auto-downloads if not found locally.
        device: Torch device string ("cpu", "cuda", "mps").
        confidence: Minimum detection confidence threshold.
    """

    def __init__(
        self,
        model_name: str = "yolo11n.pt",
        device: str = "cpu",
        confidence: float = 0.5,
    ) -> None:
        from ultralytics import YOLO

        log.info("detector_loading", model=model_name, device=device)
        self._model = YOLO(model_name)
        self._device = device
        self._confidence = confidence
        log.info("detector_ready", model=model_name, device=device)

    def detect(self, frame: np.ndarray) -> list[Detection]:
        """Run detection on a single BGR frame.

        Args:
            frame: HxWx3 uint8 numpy array as returned by OpenCV.
        Returns:
            List of Detection objects with integer pixel boxes.
        """
        results = self._model.predict(
            frame,
            conf=self._confidence,
            device=self._device,
            verbose=False,
        )
        detections: list[Detection] = []
        for result in results:
            detections.extend(_parse_result(result))
        return detections
