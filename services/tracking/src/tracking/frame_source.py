"""OpenCV video source with scoped acquisition and release."""
from __future__ import annotations

import cv2
import numpy as np

from objtrack_shared.logging import get_logger

log = get_logger(__name__)


class FrameSourceError(RuntimeError):
    """The capture device or file could not be opened."""


def _capture_arg(source: str) -> int | str:
    # "0", "1", ... select local camera devices
    return int(source) if source.isdigit() else source


class FrameSource:
    """Reads BGR frames from a camera index, file or stream URL.

    Use as a context manager; the capture is released on exit whether the
    run stopped normally, was cancelled, or failed.
    """

    def __init__(self, source: str) -> None:
        self._source = source
        self._cap: cv2.VideoCapture | None = None

    def open(self) -> "FrameSource":
        cap = cv2.VideoCapture(_capture_arg(self._source))
        if not cap.isOpened():
            cap.release()
            raise FrameSourceError(f"cannot open video source: {self._source}")
        self._cap = cap
        log.info(
            "frame_source_opened",
            source=self._source,
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            fps=cap.get(cv2.CAP_PROP_FPS),
        )
        return self

    def read(self) -> np.ndarray | None:
        """Next frame, or None if none is ready yet."""
        if self._cap is None:
            raise FrameSourceError("frame source is not open")
        ok, frame = self._cap.read()
        return frame if ok else None

    @property
    def is_file(self) -> bool:
        return not self._source.isdigit() and "://" not in self._source

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            log.info("frame_source_released", source=self._source)

    def __enter__(self) -> "FrameSource":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()
