"""
In-memory registry of live diarization sessions. session_id is generated on the backend (WebSocket).

Each session owns its worker (and through it the clusterer); HTTP session routes look the
session up here and submit requests to the same worker, so they queue behind any chunk in flight.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field

from speakerstream.pipeline.worker import DiarizationWorker
from speakerstream.transcript.merger import TranscriptMerger


@dataclass
class Session:
    session_id: str
    worker: DiarizationWorker
    merger: TranscriptMerger
    created_at: float = field(default_factory=time.time)


_session_store: dict[str, Session] = {}


def generate_session_id() -> str:
    """Generate a new session_id (UUID hex, 12 chars). Backend only."""
    return uuid.uuid4().hex[:12]


def get_session(session_id: str) -> Session | None:
    """Return session or None if not found."""
    return _session_store.get(session_id)


def register_session(session: Session) -> None:
    """Store or overwrite session."""
    _session_store[session.session_id] = session


def delete_session(session_id: str) -> bool:
    """Remove session from store. Return True if it existed."""
    return _session_store.pop(session_id, None) is not None


def list_session_ids() -> list[str]:
    return list(_session_store)
