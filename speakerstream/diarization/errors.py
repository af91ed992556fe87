"""
Error types for the diarization pipeline.

All failures are request/chunk scoped: raising one of these never leaves
clusterer state half-updated.
"""
from __future__ import annotations

__all__ = [
    "DiarizationError",
    "AudioTooShortError",
    "ChunkProcessingError",
    "EmbeddingUnavailableError",
]


class DiarizationError(Exception):
    """Base class for diarization failures."""


class AudioTooShortError(DiarizationError, ValueError):
    """Enrollment audio below the minimum duration; raised before the embedding model runs."""

    def __init__(self, duration_seconds: float, min_seconds: float) -> None:
        self.duration_seconds = duration_seconds
        self.min_seconds = min_seconds
        super().__init__(
            f"Audio too short ({duration_seconds:.2f}s, minimum {min_seconds:.2f} seconds)"
        )


class ChunkProcessingError(DiarizationError):
    """A chunk failed upstream (ASR). Carries the chunk index so callers can report it."""

    def __init__(self, chunk_index: int, message: str) -> None:
        self.chunk_index = chunk_index
        super().__init__(f"Chunk {chunk_index}: {message}")


class EmbeddingUnavailableError(DiarizationError):
    """The acoustic model returned no embedding where one is required (enrollment capture)."""
