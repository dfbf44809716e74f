"""Unit tests for re-associating track ids with detections."""
from __future__ import annotations

import math

from tracking.association import assign_track_ids, nearest_track
from tracking.detector import Detection, TrackedDetection
from tracking.tracker import CentroidTracker


def _det(x1, y1, x2, y2, label="person", conf=0.9) -> Detection:
    return Detection(bbox=(x1, y1, x2, y2), label=label, confidence=conf)


def test_nearest_track_picks_closest():
    tracks = {1: (0, 0), 2: (50, 50), 3: (100, 100)}
    assert nearest_track((48, 55), tracks) == 2


def test_nearest_track_tie_goes_to_first_in_iteration_order():
    assert nearest_track((10, 0), {7: (0, 0), 3: (20, 0)}) == 7
    assert nearest_track((10, 0), {3: (20, 0), 7: (0, 0)}) == 3


def test_nearest_track_without_tracks_is_none():
    assert nearest_track((1, 1), {}) is None


def test_assign_keeps_detection_order_and_payload():
    detections = [
        _det(90, 90, 110, 110, label="car", conf=0.75),
        _det(-10, -10, 10, 10, label="dog", conf=0.5),
    ]
    tracked = assign_track_ids(detections, {1: (0, 0), 2: (100, 100)})

    assert tracked == [
        TrackedDetection(track_id=2, bbox=(90, 90, 110, 110), label="car", confidence=0.75),
        TrackedDetection(track_id=1, bbox=(-10, -10, 10, 10), label="dog", confidence=0.5),
    ]


def test_assign_with_no_live_tracks_leaves_ids_empty():
    tracked = assign_track_ids([_det(0, 0, 4, 4)], {})
    assert tracked[0].track_id is None


def test_assign_after_update_matches_tracker_ids():
    tracker = CentroidTracker(max_disappeared=3, max_distance=50)
    frame1 = [_det(0, 0, 20, 20), _det(200, 200, 220, 220)]
    tracker.update([d.bbox for d in frame1])

    # Objects swap input order and move a little
    frame2 = [_det(205, 203, 225, 223), _det(4, 2, 24, 22)]
    tracks = tracker.update([d.bbox for d in frame2])

    assert [t.track_id for t in assign_track_ids(frame2, tracks)] == [2, 1]


def test_unmatched_stale_track_can_still_be_nearest():
    # id 1 is missed this frame but stays live at its old position, so a
    # detection that spawned id 2 far away still resolves to id 2 only.
    tracker = CentroidTracker(max_disappeared=3, max_distance=10)
    tracker.update([(0, 0, 10, 10)])
    frame = [_det(100, 100, 110, 110)]
    tracks = tracker.update([d.bbox for d in frame])

    assert tracks == {1: (5, 5), 2: (105, 105)}
    assert assign_track_ids(frame, tracks)[0].track_id == 2


def test_non_finite_box_gets_no_id():
    tracker = CentroidTracker(max_disappeared=3, max_distance=50)
    frame = [_det(0, 0, 10, 10), _det(math.nan, 0, 10, 10)]
    tracks = tracker.update([d.bbox for d in frame])

    assert tracks == {1: (5, 5)}
    assert [t.track_id for t in assign_track_ids(frame, tracks)] == [1, None]
