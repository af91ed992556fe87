"""
Closed set of worker requests and responses.

Each variant is a dataclass with a fixed `type` tag; JSON control frames from the
WebSocket are parsed into requests with request_from_json. Responses serialise with to_dict().
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

import numpy as np

from speakerstream.diarization.models import SimilarityWarning
from speakerstream.diarization.speaker_clusterer import ClustererConfig
from speakerstream.pipeline.orchestrator import ChunkResult


# ---------------------------------------------------------------- requests


@dataclass
class ProcessChunkRequest:
    type: ClassVar[str] = "process_chunk"
    audio: np.ndarray
    is_final: bool = False


@dataclass
class ResetRequest:
    type: ClassVar[str] = "reset"
    preserve_enrolled: bool = False


@dataclass
class SetNumSpeakersRequest:
    type: ClassVar[str] = "set_num_speakers"
    num_speakers: int


@dataclass
class ImportEnrollmentsRequest:
    type: ClassVar[str] = "import_enrollments"
    enrollments: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ExportEnrollmentsRequest:
    type: ClassVar[str] = "export_enrollments"


@dataclass
class GetSpeakersRequest:
    type: ClassVar[str] = "get_speakers"


Request = Union[
    ProcessChunkRequest,
    ResetRequest,
    SetNumSpeakersRequest,
    ImportEnrollmentsRequest,
    ExportEnrollmentsRequest,
    GetSpeakersRequest,
]


# --------------------------------------------------------------- responses


@dataclass
class ChunkResponse:
    type: ClassVar[str] = "chunk"
    result: ChunkResult

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.result.to_dict()}


@dataclass
class ResetResponse:
    type: ClassVar[str] = "reset"
    preserve_enrolled: bool
    speaker_count: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "preserve_enrolled": self.preserve_enrolled, "speaker_count": self.speaker_count}


@dataclass
class NumSpeakersResponse:
    type: ClassVar[str] = "num_speakers"
    num_speakers: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "num_speakers": self.num_speakers}


@dataclass
class ImportEnrollmentsResponse:
    type: ClassVar[str] = "enrollments_imported"
    enrolled_count: int
    warnings: list[SimilarityWarning] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "enrolled_count": self.enrolled_count,
            "warnings": [
                {"speaker1": w.speaker1, "speaker2": w.speaker2, "similarity": w.similarity} for w in self.warnings
            ],
        }


@dataclass
class ExportEnrollmentsResponse:
    type: ClassVar[str] = "enrollments"
    enrollments: list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "enrollments": self.enrollments}


@dataclass
class SpeakersResponse:
    type: ClassVar[str] = "speakers"
    speakers: list[dict[str, Any]]
    num_speakers: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "speakers": self.speakers, "num_speakers": self.num_speakers}


@dataclass
class ErrorResponse:
    type: ClassVar[str] = "error"
    message: str
    chunk_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "chunk_index": self.chunk_index}


Response = Union[
    ChunkResponse,
    ResetResponse,
    NumSpeakersResponse,
    ImportEnrollmentsResponse,
    ExportEnrollmentsResponse,
    SpeakersResponse,
    ErrorResponse,
]


def request_from_json(data: dict[str, Any]) -> Request:
    """Parse a WebSocket control frame. Raises ValueError for unknown or malformed messages."""
    kind = data.get("type")
    if kind == ResetRequest.type:
        return ResetRequest(preserve_enrolled=bool(data.get("preserve_enrolled", False)))
    if kind == SetNumSpeakersRequest.type:
        # Accepts a bare count or a clusterer config object {"num_speakers": n, ...}
        value = data.get("value", data.get("num_speakers"))
        if value is None:
            raise ValueError("set_num_speakers needs a value")
        try:
            config = ClustererConfig.coerce(value)
        except TypeError as e:
            raise ValueError(str(e)) from e
        return SetNumSpeakersRequest(num_speakers=config.num_speakers)
    if kind == ImportEnrollmentsRequest.type:
        enrollments = data.get("enrollments")
        if not isinstance(enrollments, list):
            raise ValueError("import_enrollments needs an enrollments list")
        return ImportEnrollmentsRequest(enrollments=[e for e in enrollments if isinstance(e, dict)])
    if kind == ExportEnrollmentsRequest.type:
        return ExportEnrollmentsRequest()
    if kind == GetSpeakersRequest.type:
        return GetSpeakersRequest()
    raise ValueError(f"unknown message type: {kind!r}")
