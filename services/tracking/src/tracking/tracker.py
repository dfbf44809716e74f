"""Centroid tracker: assigns stable integer identities to per-frame boxes.

Each call to ``CentroidTracker.update`` consumes the boxes of one frame and
returns the ``id -> centroid`` mapping of every live object afterwards.
Association is a greedy nearest-centroid match: the globally closest
(object, detection) pair is committed first, then the next closest among the
remaining rows and columns, until the closest remaining pair is farther than
``max_distance``. Ties go to the first pair in row-major order, with rows in
object insertion order and columns in input order.

Unmatched objects age by one frame per call and are released once their
``missed_count`` exceeds ``max_disappeared``. Ids are never reused.
"""
from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from objtrack_shared.logging import get_logger

log = get_logger(__name__)

Box = Sequence[float]          # (x1, y1, x2, y2)
Centroid = tuple[int, int]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def centroid(box: Box) -> Centroid:
    """Rounded midpoint of a box's two corners.

    Halves round towards +inf, so (-1 + 0) / 2 gives 0. Inverted or
    zero-area boxes are accepted as-is.
    """
    x1, y1, x2, y2 = box[:4]
    return _round_half_up((x1 + x2) / 2), _round_half_up((y1 + y2) / 2)


def is_finite_box(box: Box) -> bool:
    """True when the box and its midpoint are finite (no NaN or inf)."""
    x1, y1, x2, y2 = box[:4]
    return math.isfinite((x1 + x2) / 2) and math.isfinite((y1 + y2) / 2)


@dataclass
class TrackedObject:
    """A persistent identity and its last known position."""

    id: int
    centroid: Centroid
    missed_count: int = 0


class CentroidTracker:
    """Greedy centroid tracker with miss-count aging.

    Objects live in an arena of slots. ``_slot_of`` maps a live id to its slot
    and ``_order`` lists live ids in registration order; that list fixes the
    row order of the distance matrix and of the returned mapping. Freed slots
    are recycled for new objects, ids are not.

    Args:
        max_disappeared: Consecutive unmatched frames an object survives.
            It is removed on the first frame its missed_count exceeds this.
        max_distance: Largest centroid distance (input units) accepted
            as a match.

    Raises:
        ValueError: If either threshold is not positive.
    """

    def __init__(self, max_disappeared: int = 40, max_distance: float = 80.0) -> None:
        if not max_disappeared > 0:
            raise ValueError(f"max_disappeared must be positive, got {max_disappeared}")
        if not max_distance > 0:
            raise ValueError(f"max_distance must be positive, got {max_distance}")
        self.max_disappeared = max_disappeared
        self.max_distance = max_distance

        self._next_id = 1
        self._slots: list[TrackedObject | None] = []
        self._free_slots: list[int] = []
        self._slot_of: dict[int, int] = {}
        self._order: list[int] = []

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._slot_of

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def objects(self) -> dict[int, Centroid]:
        """Copy of the live id -> centroid mapping, in iteration order."""
        return {oid: self._get(oid).centroid for oid in self._order}

    def get(self, object_id: int) -> TrackedObject | None:
        """Snapshot of one live object, or None if it is not tracked."""
        slot = self._slot_of.get(object_id)
        if slot is None:
            return None
        obj = self._slots[slot]
        return TrackedObject(obj.id, obj.centroid, obj.missed_count)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register(self, point: Centroid) -> int:
        """Start tracking a new object at ``point`` and return its id."""
        object_id = self._next_id
        self._next_id += 1

        obj = TrackedObject(id=object_id, centroid=point)
        if self._free_slots:
            slot = self._free_slots.pop()
            self._slots[slot] = obj
        else:
            slot = len(self._slots)
            self._slots.append(obj)
        self._slot_of[object_id] = slot
        self._order.append(object_id)

        log.debug("track_registered", track_id=object_id, centroid=point)
        return object_id

    def deregister(self, object_id: int) -> None:
        """Stop tracking ``object_id``; its slot is freed, the id is retired."""
        slot = self._slot_of.pop(object_id)
        self._slots[slot] = None
        self._free_slots.append(slot)
        self._order.remove(object_id)
        log.debug("track_deregistered", track_id=object_id)

    # ------------------------------------------------------------------
    # Per-frame update
    # ------------------------------------------------------------------

    def update(self, boxes: Sequence[Box]) -> dict[int, Centroid]:
        """Consume one frame of boxes and return all live objects.

        Calls must be made strictly in frame order; aging and id
        assignment depend on it.

        Boxes with a NaN or infinite coordinate are dropped before
        matching, as if they had not been detected.
        """
        boxes = list(boxes)
        finite = [box for box in boxes if is_finite_box(box)]
        if len(finite) != len(boxes):
            log.warning("non_finite_boxes_dropped", dropped=len(boxes) - len(finite))
        inputs = [centroid(box) for box in finite]

        if not self._order:
            for point in inputs:
                self.register(point)
            return self.objects

        if not inputs:
            for object_id in list(self._order):
                self._mark_missed(object_id)
            return self.objects

        object_ids = list(self._order)
        matches = self._greedy_match(
            [self._get(oid).centroid for oid in object_ids], inputs
        )

        matched_rows = set()
        matched_cols = set()
        for row, col in matches:
            obj = self._get(object_ids[row])
            obj.centroid = inputs[col]
            obj.missed_count = 0
            matched_rows.add(row)
            matched_cols.add(col)

        for row, object_id in enumerate(object_ids):
            if row not in matched_rows:
                self._mark_missed(object_id)

        for col, point in enumerate(inputs):
            if col not in matched_cols:
                self.register(point)

        return self.objects

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get(self, object_id: int) -> TrackedObject:
        return self._slots[self._slot_of[object_id]]

    def _mark_missed(self, object_id: int) -> None:
        obj = self._get(object_id)
        obj.missed_count += 1
        if obj.missed_count > self.max_disappeared:
            self.deregister(object_id)

    def _greedy_match(
        self, rows: list[Centroid], cols: list[Centroid]
    ) -> list[tuple[int, int]]:
        """Repeatedly commit the smallest remaining distance within the gate.

        Assigned rows and columns are masked with +inf; ``argmin`` returns
        the first minimum in row-major order.
        """
        a = np.asarray(rows, dtype=np.float64)
        b = np.asarray(cols, dtype=np.float64)
        dist = np.hypot(a[:, None, 0] - b[None, :, 0], a[:, None, 1] - b[None, :, 1])

        matches: list[tuple[int, int]] = []
        for _ in range(min(dist.shape)):
            flat = int(np.argmin(dist))
            row, col = divmod(flat, dist.shape[1])
            best = dist[row, col]
            if math.isinf(best) or best > self.max_distance:
                break
            matches.append((row, col))
            dist[row, :] = np.inf
            dist[:, col] = np.inf
        return matches
