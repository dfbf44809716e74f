"""HTTP API over the detection log.

  GET  /api/health         liveness
  POST /api/detections     {"detections": [...]} → {"inserted": n}
  GET  /api/detections     newest rows first, ?limit= (default 100, max 1000)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from objtrack_shared.db.session import close_engine, db_session, ping
from objtrack_shared.logging import get_logger

from recorder import store

log = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    try:
        await ping()
        log.info("database_connected")
    except Exception as exc:
        # The API still starts; requests report db_error until the DB is up
        log.error("database_connection_failed", error=str(exc))
    yield
    await close_engine()


def create_app(lifespan=_lifespan) -> FastAPI:
    app = FastAPI(title="objtrack recorder", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health() -> dict:
        return {"ok": True}

    @app.post("/api/detections")
    async def post_detections(
        body: Any = Body(default=None),
        session: AsyncSession = Depends(db_session),
    ):
        detections = body.get("detections") if isinstance(body, dict) else None
        if not isinstance(detections, list):
            return JSONResponse(
                status_code=400, content={"error": "detections must be an array"}
            )

        records = [
            store.record_from_payload(d if isinstance(d, dict) else {})
            for d in detections
        ]
        try:
            inserted = await store.insert_detections(session, records)
            await session.commit()
        except Exception as exc:
            await session.rollback()
            log.error("detections_insert_failed", count=len(records), error=str(exc))
            return JSONResponse(
                status_code=500, content={"error": "db_error", "details": str(exc)}
            )
        return {"inserted": inserted}

    @app.get("/api/detections")
    async def get_detections(
        limit: str | None = None,
        session: AsyncSession = Depends(db_session),
    ):
        rows = await store.recent_detections(session, store.clamp_limit(limit))
        return [row.as_dict() for row in rows]

    return app


app = create_app()
