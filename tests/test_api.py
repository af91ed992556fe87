"""HTTP and WebSocket tests against the FastAPI app (no models loaded)."""
import json

import numpy as np
import pytest
from fastapi.testclient import TestClient

from speakerstream.diarization.speaker_clusterer import ClustererConfig, SpeakerClusterer
from speakerstream.main import app
from speakerstream.pipeline.orchestrator import ChunkOrchestrator, ChunkResult, LabeledPhrase
from speakerstream.pipeline.worker import DiarizationWorker
from speakerstream.session_store import Session, delete_session, register_session
from speakerstream.storage.enrollment_store import JsonEnrollmentStore
from speakerstream.transcript.merger import TranscriptMerger

from conftest import SAMPLE_RATE, FakeASREngine, FakeEmbeddingEngine, make_words, unit


def pcm(seconds):
    return np.zeros(int(seconds * SAMPLE_RATE), dtype=np.int16).tobytes()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def session():
    orchestrator = ChunkOrchestrator(
        FakeASREngine(),
        embedding_engine=FakeEmbeddingEngine(),
        clusterer=SpeakerClusterer(ClustererConfig()),
        sample_rate=SAMPLE_RATE,
    )
    s = Session(session_id="test-session", worker=DiarizationWorker(orchestrator), merger=TranscriptMerger(lambda m: None))
    register_session(s)
    yield s
    delete_session(s.session_id)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["asr_backend"] == "cloudflare"
    assert data["embedding_backend"] == "none"


class TestEmbeddingRoute:
    def test_unavailable_without_model(self, client):
        resp = client.post("/api/embedding", content=pcm(1.0))
        assert resp.status_code == 503

    def test_short_audio_rejected(self, client):
        client.app.state.embedding_engine = FakeEmbeddingEngine(embedding=[0.1, 0.2])
        resp = client.post("/api/embedding", content=pcm(0.25))
        assert resp.status_code == 422
        assert "too short" in resp.json()["detail"]
        assert client.app.state.embedding_engine.embedding_calls == 0

    def test_embedding_returned(self, client):
        client.app.state.embedding_engine = FakeEmbeddingEngine(embedding=[0.1, 0.2, 0.3])
        resp = client.post("/api/embedding", content=pcm(1.0))
        assert resp.status_code == 200
        assert resp.json() == {"embedding": pytest.approx([0.1, 0.2, 0.3]), "dimensions": 3}

    def test_no_embedding_from_model(self, client):
        client.app.state.embedding_engine = FakeEmbeddingEngine(embedding=None)
        assert client.post("/api/embedding", content=pcm(1.0)).status_code == 503


class TestEnrollmentRoutes:
    def test_create_list_delete(self, client):
        resp = client.post("/api/enrollments", json={"name": " Alice ", "embeddings": [[1.0, 0.0], [1.0, 0.1]]})
        assert resp.status_code == 201
        body = resp.json()
        assert body["sample_count"] == 2
        assert body["used_fallback"] is False
        enrollment = body["enrollment"]
        assert enrollment["name"] == "Alice"
        assert enrollment["colorIndex"] == 0

        listed = client.get("/api/enrollments").json()
        assert [e["id"] for e in listed] == [enrollment["id"]]

        assert client.delete(f"/api/enrollments/{enrollment['id']}").status_code == 200
        assert client.delete(f"/api/enrollments/{enrollment['id']}").status_code == 404
        assert client.get("/api/enrollments").json() == []

    def test_invalid_bodies(self, client):
        assert client.post("/api/enrollments", json={"name": "A", "embeddings": []}).status_code == 422
        assert client.post("/api/enrollments", json={"name": "", "embeddings": [[1.0]]}).status_code == 422
        mismatched = {"name": "A", "embeddings": [[1.0, 0.0], [1.0, 0.0, 0.0]]}
        assert client.post("/api/enrollments", json=mismatched).status_code == 422

    def test_limit_conflict(self, client, monkeypatch):
        monkeypatch.setenv("ENROLLMENT_MAX_SPEAKERS", "1")
        assert client.post("/api/enrollments", json={"name": "A", "embeddings": [[1.0]]}).status_code == 201
        assert client.post("/api/enrollments", json={"name": "B", "embeddings": [[1.0]]}).status_code == 409

    def test_clear(self, client):
        client.post("/api/enrollments", json={"name": "A", "embeddings": [[1.0, 0.0]]})
        client.post("/api/enrollments", json={"name": "B", "embeddings": [[0.0, 1.0]]})
        assert client.delete("/api/enrollments").json() == {"deleted": 2}


class TestSessionRoutes:
    def test_unknown_session(self, client):
        assert client.get("/api/sessions/nope/speakers").status_code == 404
        assert client.post("/api/sessions/nope/reset").status_code == 404

    def test_speakers(self, client, session):
        session.worker.clusterer.assign_speaker(unit(4, 0))
        resp = client.get(f"/api/sessions/{session.session_id}/speakers")
        assert resp.status_code == 200
        data = resp.json()
        assert data["num_speakers"] == 2
        assert data["speakers"][0]["label"] == "Speaker 1"

    def test_import_stored_enrollments(self, client, session):
        store = JsonEnrollmentStore()
        store.add("Alice", [1.0, 0.0])
        store.add("Alicia", [0.99, 0.05])
        resp = client.post(f"/api/sessions/{session.session_id}/enrollments")
        assert resp.status_code == 200
        data = resp.json()
        assert data["enrolled_count"] == 2
        assert len(data["warnings"]) == 1
        assert session.worker.clusterer.get_speaker_label(0) == "Alice"

    def test_reset(self, client, session):
        session.worker.clusterer.import_enrolled_speakers([{"id": "a", "name": "A", "centroid": [1.0, 0.0]}])
        session.worker.clusterer.assign_speaker([0.0, 1.0])
        resp = client.post(f"/api/sessions/{session.session_id}/reset", json={"preserve_enrolled": True})
        assert resp.status_code == 200
        assert resp.json()["speaker_count"] == 1
        resp = client.post(f"/api/sessions/{session.session_id}/reset")
        assert resp.json()["speaker_count"] == 0

    def test_transcript(self, client, session):
        phrase = LabeledPhrase(
            start=0.0,
            end=0.5,
            words=make_words(("Hi", 0.0, 0.5)),
            speaker_id=0,
            speaker_label="Speaker 1",
            reason="new_speaker",
        )
        session.merger.on_chunk_result(
            ChunkResult(chunk_index=0, phrases=[phrase], split_point=0.5, carryover_duration=0.5, chunk_duration=0.5)
        )
        resp = client.get(f"/api/sessions/{session.session_id}/transcript")
        assert resp.status_code == 200
        assert resp.json()["text"] == "[Speaker 1] Hi"
        assert resp.json()["phrases"][0]["speaker_id"] == 0


class TestWebSocket:
    def test_session_and_control_messages(self, client):
        with client.websocket_connect("/ws/diarize") as ws:
            hello = ws.receive_json()
            assert hello["type"] == "session"
            assert hello["session_id"]

            ws.send_text(json.dumps({"type": "get_speakers"}))
            speakers = ws.receive_json()
            assert speakers == {"type": "speakers", "speakers": [], "num_speakers": 2}

            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"

            ws.send_text(json.dumps({"type": "set_num_speakers", "value": 3}))
            assert ws.receive_json() == {"type": "num_speakers", "num_speakers": 3}

    def test_stored_enrollments_imported_on_connect(self, client):
        JsonEnrollmentStore().add("Alice", [1.0, 0.0])
        with client.websocket_connect("/ws/diarize") as ws:
            assert ws.receive_json()["type"] == "session"
            imported = ws.receive_json()
            assert imported["type"] == "enrollments_imported"
            assert imported["enrolled_count"] == 1

            ws.send_text(json.dumps({"type": "export_enrollments"}))
            exported = ws.receive_json()
            assert exported["type"] == "enrollments"
            assert exported["enrollments"][0]["name"] == "Alice"
