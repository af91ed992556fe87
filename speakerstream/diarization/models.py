"""
Data structures shared by phrase detection, frame pooling and speaker clustering.

- Word: one recognised word with start/end seconds, relative to its chunk's audio.
- Phrase: a time-bounded run of words; carries the pooled embedding once extracted.
- FrameTensor: F x D acoustic frames sampled uniformly over one chunk.
- Speaker: a clustered identity (discovered or enrolled) with its centroid.

Words and phrases are chunk-scoped; speakers live for the whole session.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

# Sentinel id for phrases that could not be attributed to any speaker
UNKNOWN_SPEAKER_ID = -1

UNKNOWN_LABEL = "Unknown"


@dataclass(frozen=True)
class Word:
    """Single word with start/end in seconds. start/end may be None when the ASR gave no timestamp."""

    text: str
    start: float | None
    end: float | None

    @property
    def has_timestamps(self) -> bool:
        return self.start is not None and self.end is not None

    def shifted(self, offset: float) -> "Word":
        """Copy with both timestamps moved by offset seconds."""
        if not self.has_timestamps:
            return self
        return Word(text=self.text, start=self.start + offset, end=self.end + offset)

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "start": self.start, "end": self.end}


@dataclass
class Phrase:
    """
    A maximal run of words separated by gaps below the phrase threshold.

    start == words[0].start and end == words[-1].end.
    embedding: pooled frame vector, or None when frames were unavailable.
    low_confidence: phrase shorter than the minimum duration; embedding may be unreliable.
    """

    start: float
    end: float
    words: list[Word]
    embedding: np.ndarray | None = None
    frame_count: int = 0
    low_confidence: bool = False
    embedding_error: str | None = None

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def text(self) -> str:
        return "".join(w.text for w in self.words).strip()


@dataclass
class FrameTensor:
    """
    Frame-level hidden states for one chunk: data has shape (num_frames, dim).
    Frames are assumed to be spread uniformly over the chunk duration.
    """

    data: np.ndarray

    def __post_init__(self) -> None:
        data = np.asarray(self.data)
        # Models usually return [batch=1, frames, dim]
        if data.ndim == 3 and data.shape[0] == 1:
            data = data[0]
        if data.ndim != 2:
            raise ValueError(f"frame tensor must be 2-D (frames, dim), got shape {data.shape}")
        self.data = data

    @property
    def num_frames(self) -> int:
        return int(self.data.shape[0])

    @property
    def dim(self) -> int:
        return int(self.data.shape[1])

    def frame_rate(self, duration_seconds: float) -> float:
        """Frames per second over a chunk of the given duration."""
        return self.num_frames / duration_seconds


@dataclass
class Speaker:
    """
    One speaker identity.

    Discovered speakers: centroid is the running mean of assigned (normalised) embeddings.
    Enrolled speakers: centroid is fixed; sample_count never changes.
    A placeholder speaker (created before any embedding arrived) has centroid None.
    """

    id: int
    centroid: np.ndarray | None
    enrolled: bool = False
    name: str | None = None
    color_index: int = 0
    sample_count: int = 0
    enrollment_id: str | None = None


@dataclass(frozen=True)
class SpeakerSimilarity:
    """One row of the per-speaker similarity breakdown."""

    speaker_id: int
    label: str
    similarity: float
    enrolled: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "speaker_id": self.speaker_id,
            "label": self.label,
            "similarity": self.similarity,
            "enrolled": self.enrolled,
        }


@dataclass
class AssignmentDebug:
    """Why a phrase went to a speaker. reason is one of the clusterer's REASON_* values."""

    reason: str
    similarity: float = 0.0
    second_best_similarity: float = 0.0
    margin: float = 0.0
    is_enrolled: bool = False
    second_best_speaker: str | None = None
    all_similarities: list[SpeakerSimilarity] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "similarity": self.similarity,
            "second_best_similarity": self.second_best_similarity,
            "margin": self.margin,
            "is_enrolled": self.is_enrolled,
            "second_best_speaker": self.second_best_speaker,
            "all_similarities": [s.to_dict() for s in self.all_similarities],
        }


@dataclass(frozen=True)
class Assignment:
    """Result of SpeakerClusterer.assign_speaker. debug is set only when requested."""

    speaker_id: int
    reason: str
    debug: AssignmentDebug | None = None


@dataclass(frozen=True)
class SimilarityWarning:
    """Two enrolled speakers whose centroids are close enough to be confused."""

    speaker1: str | None
    speaker2: str | None
    similarity: float
