"""Detection log persistence.

Payloads from the HTTP API are loosely typed, so every field is coerced
the same way regardless of source: missing ids and class names become NULL,
unparseable confidences become 0.0, and coordinates / frame indices are
truncated to integers (0 when missing or unparseable) and wrapped into the
signed 32-bit range of the integer columns.
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from objtrack_shared.db.models import DetectionRow
from objtrack_shared.events.schemas import DetectionBatch

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

_COORDS = ("x1", "y1", "x2", "y2")


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _int32(value: float) -> int:
    return (int(value) + 2**31) % 2**32 - 2**31


def _as_int(value: Any) -> int:
    result = _as_float(value)
    return _int32(result) if result is not None else 0


def _as_optional_int(value: Any) -> int | None:
    if value is None:
        return None
    result = _as_float(value)
    return _int32(result) if result is not None else None


def record_from_payload(payload: Mapping[str, Any], camera_id: str | None = None) -> dict[str, Any]:
    """Normalise one detection dict into DetectionRow column values.

    Accepts both ``conf`` and ``confidence`` for the score.
    """
    conf = payload.get("conf", payload.get("confidence"))
    class_name = payload.get("class_name")
    values: dict[str, Any] = {
        "camera_id": camera_id,
        "track_id": _as_optional_int(payload.get("track_id")),
        "class_name": None if class_name is None else str(class_name),
        "conf": _as_float(conf) or 0.0,
        "frame_index": _as_int(payload.get("frame_index")),
    }
    for key in _COORDS:
        values[key] = _as_int(payload.get(key))
    return values


def records_from_batch(batch: DetectionBatch) -> list[dict[str, Any]]:
    return [
        record_from_payload(record.model_dump(), camera_id=batch.camera_id)
        for record in batch.detections
    ]


def clamp_limit(raw: Any) -> int:
    """Parse a ``limit`` query value: default 100, bounded to [0, 1000]."""
    if raw is None or raw == "":
        return DEFAULT_LIMIT
    try:
        limit = int(str(raw).strip())
    except ValueError:
        return DEFAULT_LIMIT
    return max(0, min(limit, MAX_LIMIT))


async def insert_detections(session: AsyncSession, records: Iterable[Mapping[str, Any]]) -> int:
    """Add rows to the session's current transaction and flush; returns the count."""
    rows = [DetectionRow(**dict(r)) for r in records]
    if not rows:
        return 0
    session.add_all(rows)
    await session.flush()
    return len(rows)


async def recent_detections(session: AsyncSession, limit: int = DEFAULT_LIMIT) -> list[DetectionRow]:
    """Newest rows first."""
    stmt = select(DetectionRow).order_by(DetectionRow.id.desc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
