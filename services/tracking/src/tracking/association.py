"""Re-attach tracker identities to the detections they came from.

The tracker only returns positions, so labels and scores are joined back by
nearest centroid after every update.
"""
from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from tracking.detector import Detection, TrackedDetection
from tracking.tracker import Centroid, centroid, is_finite_box


def nearest_track(point: Centroid, tracks: Mapping[int, Centroid]) -> int | None:
    """Id whose centroid is closest to ``point``; first one wins on ties."""
    best_id = None
    best_dist = math.inf
    for track_id, (tx, ty) in tracks.items():
        d = math.hypot(tx - point[0], ty - point[1])
        if d < best_dist:
            best_dist = d
            best_id = track_id
    return best_id


def assign_track_ids(
    detections: Sequence[Detection],
    tracks: Mapping[int, Centroid],
) -> list[TrackedDetection]:
    """Pair each detection, in order, with the nearest live track id.

    ``tracks`` is the mapping returned by ``CentroidTracker.update`` for the
    same frame. ``track_id`` is None when no object is live, or when the
    box is not finite (the tracker drops those).
    """
    return [
        TrackedDetection(
            track_id=(
                nearest_track(centroid(det.bbox), tracks)
                if is_finite_box(det.bbox)
                else None
            ),
            bbox=det.bbox,
            label=det.label,
            confidence=det.confidence,
        )
        for det in detections
    ]
