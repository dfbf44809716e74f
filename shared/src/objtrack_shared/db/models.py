"""SQLAlchemy 2.0 ORM models for the detection log.

All models use the modern Mapped[T] / mapped_column() style.
Schema changes go through Alembic migrations.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _now() -> datetime:
    return datetime.utcnow()


# ── Detection ─────────────────────────────────────────────────────────────────

class DetectionRow(Base):
    """One logged detection: a box, its class and the track it belonged to."""

    __tablename__ = "detections"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    camera_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    track_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    class_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    conf: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    x1: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    y1: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    x2: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    y2: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    frame_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, server_default=func.now(), nullable=False
    )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "camera_id": self.camera_id,
            "track_id": self.track_id,
            "class_name": self.class_name,
            "conf": self.conf,
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "frame_index": self.frame_index,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<DetectionRow id={self.id} track_id={self.track_id} "
            f"class={self.class_name!r} frame={self.frame_index}>"
        )
