"""create_detections

Revision ID: 3b9e1c7a5f20
Revises:
Create Date: 2026-10-17

Creates the detections log table written by the recorder service.
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "3b9e1c7a5f20"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "detections",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("camera_id", sa.String(64), nullable=True),
        sa.Column("track_id", sa.Integer, nullable=True),
        sa.Column("class_name", sa.String(128), nullable=True),
        sa.Column("conf", sa.Float, nullable=False, server_default="0"),
        sa.Column("x1", sa.Integer, nullable=False, server_default="0"),
        sa.Column("y1", sa.Integer, nullable=False, server_default="0"),
        sa.Column("x2", sa.Integer, nullable=False, server_default="0"),
        sa.Column("y2", sa.Integer, nullable=False, server_default="0"),
        sa.Column("frame_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_detections_camera_id", "detections", ["camera_id"])
    op.create_index("ix_detections_track_id", "detections", ["track_id"])


def downgrade() -> None:
    op.drop_index("ix_detections_track_id", table_name="detections")
    op.drop_index("ix_detections_camera_id", table_name="detections")
    op.drop_table("detections")
