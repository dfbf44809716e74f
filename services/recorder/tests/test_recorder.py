"""Unit tests for the recorder: payload coercion, persistence and HTTP API."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

import recorder.pipeline as pipeline_module
from objtrack_shared.db.models import DetectionRow
from objtrack_shared.db.session import db_session
from objtrack_shared.events.schemas import DetectionBatch, DetectionRecord
from recorder import store
from recorder.api import create_app
from recorder.config import RecorderConfig
from recorder.pipeline import RecorderPipeline


class FakeSession:
    """Just enough of AsyncSession for the store helpers."""

    def __init__(self, fail_on_flush: Exception | None = None):
        self.added: list[DetectionRow] = []
        self.commits = 0
        self.rollbacks = 0
        self._fail = fail_on_flush

    def add_all(self, rows):
        self.added.extend(rows)

    async def flush(self):
        if self._fail is not None:
            raise self._fail

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


# ── Payload coercion ──────────────────────────────────────────────────────────

def test_record_from_payload_full():
    values = store.record_from_payload(
        {"track_id": 3, "class_name": "person", "conf": 0.87,
         "x1": 1, "y1": 2, "x2": 30, "y2": 40, "frame_index": 9},
        camera_id="cam-01",
    )
    assert values == {
        "camera_id": "cam-01", "track_id": 3, "class_name": "person", "conf": 0.87,
        "x1": 1, "y1": 2, "x2": 30, "y2": 40, "frame_index": 9,
    }


def test_record_from_payload_missing_fields_default():
    values = store.record_from_payload({})
    assert values["track_id"] is None
    assert values["class_name"] is None
    assert values["conf"] == 0.0
    assert (values["x1"], values["y1"], values["x2"], values["y2"]) == (0, 0, 0, 0)
    assert values["frame_index"] == 0


def test_record_from_payload_coerces_loose_types():
    values = store.record_from_payload(
        {"track_id": "7", "conf": "0.5", "x1": 10.9, "y1": "-3.7", "x2": "abc",
         "y2": None, "frame_index": "12"}
    )
    assert values["track_id"] == 7
    assert values["conf"] == 0.5
    assert values["x1"] == 10
    assert values["y1"] == -3
    assert values["x2"] == 0
    assert values["y2"] == 0
    assert values["frame_index"] == 12


def test_record_from_payload_wraps_into_int32():
    values = store.record_from_payload(
        {"track_id": 2**31, "x1": 1e10, "y1": -1e10, "x2": 2**31 - 1, "frame_index": 2**32 + 5}
    )
    assert values["track_id"] == -(2**31)
    assert values["x1"] == 1410065408
    assert values["y1"] == -1410065408
    assert values["x2"] == 2**31 - 1
    assert values["frame_index"] == 5


def test_record_from_payload_accepts_confidence_key():
    assert store.record_from_payload({"confidence": 0.25})["conf"] == 0.25
    assert store.record_from_payload({"conf": "nope"})["conf"] == 0.0


def test_records_from_batch_tags_camera():
    batch = DetectionBatch(
        camera_id="cam-02",
        timestamp_ns=1,
        frame_index=4,
        detections=[
            DetectionRecord(track_id=None, class_name="cup", confidence=0.4,
                            x1=0, y1=0, x2=5, y2=5, frame_index=4),
        ],
    )
    (values,) = store.records_from_batch(batch)
    assert values["camera_id"] == "cam-02"
    assert values["track_id"] is None
    assert values["conf"] == 0.4


@pytest.mark.parametrize(
    "raw, expected",
    [(None, 100), ("", 100), ("25", 25), ("5000", 1000), ("-4", 0), ("lots", 100)],
)
def test_clamp_limit(raw, expected):
    assert store.clamp_limit(raw) == expected


# ── Persistence ───────────────────────────────────────────────────────────────

def test_insert_detections_adds_rows():
    session = FakeSession()
    records = [store.record_from_payload({"class_name": "car", "x2": 4})] * 3

    inserted = asyncio.run(store.insert_detections(session, records))

    assert inserted == 3
    assert all(isinstance(r, DetectionRow) for r in session.added)
    assert session.added[0].class_name == "car"


def test_insert_nothing_skips_flush():
    session = FakeSession(fail_on_flush=RuntimeError("should not flush"))
    assert asyncio.run(store.insert_detections(session, [])) == 0


def test_recorder_pipeline_persists_batch(monkeypatch):
    session = FakeSession()

    @asynccontextmanager
    async def fake_get_db():
        yield session
        await session.commit()

    monkeypatch.setattr(pipeline_module, "get_db", fake_get_db)
    batch = DetectionBatch(
        camera_id="cam-01",
        timestamp_ns=1,
        frame_index=0,
        detections=[
            DetectionRecord(track_id=1, class_name="person", confidence=0.9,
                            x1=0, y1=0, x2=10, y2=10, frame_index=0),
            DetectionRecord(track_id=2, class_name="dog", confidence=0.6,
                            x1=5, y1=5, x2=9, y2=9, frame_index=0),
        ],
    )
    pipe = RecorderPipeline("cam-01", RecorderConfig(camera_ids=["cam-01"]))

    inserted = asyncio.run(pipe._process({"data": batch.model_dump_json()}))

    assert inserted == 2
    assert session.commits == 1
    assert [r.track_id for r in session.added] == [1, 2]
    assert all(r.camera_id == "cam-01" for r in session.added)


# ── HTTP API ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def client(session) -> TestClient:
    app = create_app()

    async def _override():
        yield session

    app.dependency_overrides[db_session] = _override
    return TestClient(app)


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_post_detections_inserts_and_commits(client, session):
    resp = client.post(
        "/api/detections",
        json={"detections": [
            {"track_id": 1, "class_name": "person", "conf": 0.9,
             "x1": 0, "y1": 0, "x2": 10, "y2": 10, "frame_index": 0},
            {"track_id": None, "class_name": "car", "conf": "0.4",
             "x1": 1.5, "y1": 2, "x2": 3, "y2": 4, "frame_index": 0},
        ]},
    )
    assert resp.status_code == 200
    assert resp.json() == {"inserted": 2}
    assert session.commits == 1
    assert session.added[1].conf == 0.4
    assert session.added[1].x1 == 1


def test_post_detections_rejects_non_array(client, session):
    resp = client.post("/api/detections", json={"detections": {"track_id": 1}})
    assert resp.status_code == 400
    assert resp.json() == {"error": "detections must be an array"}
    assert session.added == []


def test_post_detections_empty_array(client, session):
    resp = client.post("/api/detections", json={"detections": []})
    assert resp.status_code == 200
    assert resp.json() == {"inserted": 0}


def test_post_detections_db_error_rolls_back():
    session = FakeSession(fail_on_flush=RuntimeError("connection lost"))
    app = create_app()

    async def _override():
        yield session

    app.dependency_overrides[db_session] = _override
    resp = TestClient(app).post("/api/detections", json={"detections": [{"x1": 1}]})

    assert resp.status_code == 500
    assert resp.json() == {"error": "db_error", "details": "connection lost"}
    assert session.rollbacks == 1
    assert session.commits == 0


def test_get_detections_clamps_limit(client, monkeypatch):
    seen = {}
    row = DetectionRow(
        id=5, camera_id="cam-01", track_id=2, class_name="person", conf=0.8,
        x1=0, y1=0, x2=1, y2=1, frame_index=3,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )

    async def fake_recent(session, limit):
        seen["limit"] = limit
        return [row]

    monkeypatch.setattr(store, "recent_detections", fake_recent)

    resp = client.get("/api/detections?limit=99999")

    assert resp.status_code == 200
    assert seen["limit"] == 1000
    body = resp.json()
    assert body[0]["id"] == 5
    assert body[0]["track_id"] == 2
    assert body[0]["created_at"].startswith("2026-01-01")


def test_get_detections_default_limit(client, monkeypatch):
    seen = {}

    async def fake_recent(session, limit):
        seen["limit"] = limit
        return []

    monkeypatch.setattr(store, "recent_detections", fake_recent)

    assert client.get("/api/detections").json() == []
    assert seen["limit"] == 100
