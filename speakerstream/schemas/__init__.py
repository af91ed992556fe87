"""Pydantic request / response models for the HTTP API."""
from .enrollment import EmbeddingResponse, Enrollment, EnrollmentCreateRequest, EnrollmentCreateResponse
from .session import (
    ImportEnrollmentsResponse,
    ResetSessionRequest,
    ResetSessionResponse,
    SessionSpeakersResponse,
    SessionTranscriptResponse,
    SimilarityWarningOut,
    SpeakerInfo,
)

__all__ = [
    "EmbeddingResponse",
    "Enrollment",
    "EnrollmentCreateRequest",
    "EnrollmentCreateResponse",
    "ImportEnrollmentsResponse",
    "ResetSessionRequest",
    "ResetSessionResponse",
    "SessionSpeakersResponse",
    "SessionTranscriptResponse",
    "SimilarityWarningOut",
    "SpeakerInfo",
]
