"""Draw tracked detections onto frames."""
from __future__ import annotations

from collections.abc import Iterable

import cv2
import numpy as np

from tracking.detector import TrackedDetection

_BOX_COLOR = (0, 255, 0)
_TEXT_COLOR = (0, 0, 0)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_LABEL_H = 20


def label_text(det: TrackedDetection) -> str:
    track = "-" if det.track_id is None else str(det.track_id)
    return f"ID {track} | {det.label} {det.confidence * 100:.1f}%"


def draw_detections(frame: np.ndarray, detections: Iterable[TrackedDetection]) -> None:
    """Draw boxes with an "ID n | class conf%" tag above each (in-place)."""
    for det in detections:
        x1, y1, x2, y2 = det.bbox
        cv2.rectangle(frame, (x1, y1), (x2, y2), _BOX_COLOR, 2)

        text = label_text(det)
        (text_w, _), _ = cv2.getTextSize(text, _FONT, 0.5, 1)
        top = max(0, y1 - _LABEL_H)
        cv2.rectangle(frame, (x1, top), (x1 + text_w + 8, top + _LABEL_H), _BOX_COLOR, -1)
        cv2.putText(frame, text, (x1 + 4, top + _LABEL_H - 5), _FONT, 0.5, _TEXT_COLOR, 1, cv2.LINE_AA)


def draw_fps(frame: np.ndarray, fps: float) -> None:
    cv2.putText(
        frame, f"FPS: {fps:.1f}", (10, 28), _FONT, 0.8, (255, 255, 255), 2, cv2.LINE_AA
    )
