"""
Enrollment capture: turn a few recorded samples of one voice into a reference centroid.

- Capture audio is checked for minimum length before any model call (AudioTooShortError).
- Audio is peak-normalised so quiet microphones give comparable embeddings.
- EnrollmentBuilder averages L2-normalised sample embeddings, drops samples that disagree
  with the initial mean (outliers), and falls back to all samples when fewer than two remain.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from speakerstream.config import get_settings
from speakerstream.diarization.embedding_utils import cosine_similarity, is_valid_vector, l2_normalize
from speakerstream.diarization.errors import AudioTooShortError

logger = logging.getLogger(__name__)

PEAK_TARGET = 0.95


def validate_enrollment_audio(
    audio: np.ndarray,
    sample_rate: int | None = None,
    min_seconds: float | None = None,
) -> float:
    """Return the audio duration in seconds; raise AudioTooShortError below min_seconds."""
    settings = get_settings()
    sample_rate = sample_rate or settings.SAMPLE_RATE
    min_seconds = settings.ENROLLMENT_MIN_AUDIO_SECONDS if min_seconds is None else min_seconds
    duration = len(audio) / float(sample_rate)
    if duration < min_seconds:
        raise AudioTooShortError(duration, min_seconds)
    return duration


def peak_normalize(audio: np.ndarray, target: float = PEAK_TARGET) -> np.ndarray:
    """Scale float audio so its absolute peak equals target. Silence is returned unchanged."""
    samples = np.asarray(audio, dtype=np.float32)
    peak = float(np.max(np.abs(samples))) if samples.size else 0.0
    if peak <= 0.0:
        return samples.copy()
    return (samples * (target / peak)).astype(np.float32)


@dataclass
class EnrollmentResult:
    """centroid is unit length. used_fallback: outliers could not be dropped, or most samples were outliers."""

    centroid: np.ndarray
    sample_count: int
    rejected_count: int
    used_fallback: bool


class EnrollmentBuilder:
    """Collects sample embeddings for one speaker and builds a centroid with outlier rejection."""

    def __init__(self, outlier_threshold: float | None = None, min_samples: int | None = None) -> None:
        settings = get_settings()
        self.outlier_threshold = (
            settings.ENROLLMENT_OUTLIER_THRESHOLD if outlier_threshold is None else outlier_threshold
        )
        self.min_samples = settings.ENROLLMENT_MIN_SAMPLES if min_samples is None else min_samples
        self._samples: list[np.ndarray] = []
        self.rejected_count = 0
        self.used_fallback = False

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def can_complete(self) -> bool:
        return len(self._samples) >= max(1, self.min_samples)

    def add_sample(self, embedding: Sequence[float] | np.ndarray) -> None:
        if not is_valid_vector(embedding):
            raise ValueError("sample embedding must be a non-empty finite vector")
        if self._samples and len(embedding) != self._samples[0].shape[0]:
            raise ValueError(
                f"sample dimension {len(embedding)} does not match {self._samples[0].shape[0]}"
            )
        normalized = l2_normalize(embedding)
        if normalized is None:
            raise ValueError("sample embedding must not be all zeros")
        self._samples.append(normalized)

    def add_samples(self, embeddings: Iterable[Sequence[float] | np.ndarray]) -> None:
        for embedding in embeddings:
            self.add_sample(embedding)

    def build(self) -> EnrollmentResult:
        """Compute the centroid. Raises ValueError when fewer than min_samples were added."""
        if not self.can_complete():
            raise ValueError(
                f"need at least {max(1, self.min_samples)} sample(s), have {len(self._samples)}"
            )

        initial = l2_normalize(_mean(self._samples))
        if initial is None:
            raise ValueError("samples cancel out, no speaker direction to enroll")
        kept: list[np.ndarray] = []
        rejected = 0
        for index, sample in enumerate(self._samples):
            similarity = cosine_similarity(sample, initial)
            if similarity >= self.outlier_threshold:
                kept.append(sample)
            else:
                rejected += 1
                logger.warning(
                    "Enrollment sample %d rejected (similarity %.3f < %.3f)",
                    index + 1,
                    similarity,
                    self.outlier_threshold,
                )

        fell_back = len(kept) < 2 and rejected > 0
        if fell_back:
            logger.warning("Too many enrollment outliers (%d/%d), using all samples", rejected, len(self._samples))
            kept = list(self._samples)
        elif rejected / len(self._samples) > 0.5:
            fell_back = True
            logger.warning("High enrollment outlier rate (%d/%d rejected)", rejected, len(self._samples))
        if not kept:
            kept = list(self._samples)

        self.rejected_count = rejected
        self.used_fallback = fell_back
        return EnrollmentResult(
            centroid=l2_normalize(_mean(kept)),
            sample_count=len(kept),
            rejected_count=rejected,
            used_fallback=fell_back,
        )

    def reset(self) -> None:
        self._samples = []
        self.rejected_count = 0
        self.used_fallback = False


def _mean(vectors: list[np.ndarray]) -> np.ndarray:
    total = np.zeros_like(vectors[0])
    for vec in vectors:
        total = total + vec
    return total / len(vectors)
