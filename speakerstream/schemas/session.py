"""Schemas for live-session routes (/api/sessions/{session_id}/...)."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SpeakerInfo(BaseModel):
    id: int
    label: str
    enrolled: bool
    enrollment_id: str | None = None
    color_index: int
    sample_count: int


class SessionSpeakersResponse(BaseModel):
    session_id: str
    num_speakers: int = Field(..., description="Cap on discovered (non-enrolled) speakers")
    speakers: list[SpeakerInfo]


class ResetSessionRequest(BaseModel):
    preserve_enrolled: bool = Field(False, description="Keep enrolled speakers, drop discovered ones")


class ResetSessionResponse(BaseModel):
    session_id: str
    preserve_enrolled: bool
    speaker_count: int


class SimilarityWarningOut(BaseModel):
    speaker1: str | None
    speaker2: str | None
    similarity: float


class ImportEnrollmentsResponse(BaseModel):
    session_id: str
    enrolled_count: int
    warnings: list[SimilarityWarningOut] = Field(default_factory=list)


class SessionTranscriptResponse(BaseModel):
    session_id: str
    text: str = Field(..., description="One line per speaker turn")
    phrases: list[dict[str, Any]]
