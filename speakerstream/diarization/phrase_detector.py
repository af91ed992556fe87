"""
PhraseDetector: split a chunk's words into phrases on silence gaps, then attach
one pooled acoustic embedding per phrase.

- A gap (next.start - previous.end) >= gap_threshold starts a new phrase.
- Phrases shorter than min_phrase_duration still get an embedding but are flagged
  low_confidence so callers can discount them.
- Without a usable frame tensor, or when pooling yields NaN/inf, a phrase gets
  embedding=None; the clusterer handles that as its "no_embedding" path.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Iterable

from speakerstream.config import Settings, get_settings
from speakerstream.diarization.embedding_utils import is_valid_vector
from speakerstream.diarization.frame_aligner import pool_interval
from speakerstream.diarization.models import FrameTensor, Phrase, Word

logger = logging.getLogger(__name__)

# embedding_error value when frames were missing or unusable
NO_FRAMES = "no_frames"

# Absorbs float error in end/start subtraction (2.3 - 2.0 < 0.3)
_GAP_EPSILON = 1e-12


@dataclass(frozen=True)
class PhraseDetectorConfig:
    gap_threshold: float = 0.300
    min_phrase_duration: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PhraseDetectorConfig":
        settings = settings or get_settings()
        return cls(
            gap_threshold=settings.PHRASE_GAP_THRESHOLD_SECONDS,
            min_phrase_duration=settings.PHRASE_MIN_DURATION_SECONDS,
        )


class PhraseDetector:
    """Gap-based phrase segmentation plus per-phrase frame pooling. Stateless between chunks."""

    def __init__(self, config: PhraseDetectorConfig | None = None) -> None:
        self.config = config or PhraseDetectorConfig.from_settings()

    def detect_phrases(self, words: Iterable[Word]) -> list[Phrase]:
        """
        Group time-ordered words into phrases.
        Words without timestamps are skipped; empty input gives no phrases.
        """
        phrases: list[Phrase] = []
        current: list[Word] = []

        for word in words:
            if not word.has_timestamps:
                continue
            if current and word.start - current[-1].end >= self.config.gap_threshold - _GAP_EPSILON:
                phrases.append(_make_phrase(current))
                current = []
            current.append(word)

        if current:
            phrases.append(_make_phrase(current))
        return phrases

    def extract_phrase_embeddings(
        self,
        frame_tensor: FrameTensor | None,
        phrases: list[Phrase],
        chunk_duration: float,
    ) -> list[Phrase]:
        """
        Return copies of phrases with embedding, frame_count and low_confidence set.
        Input phrases are not modified.
        """
        if frame_tensor is None:
            return [self._without_embedding(p) for p in phrases]

        out: list[Phrase] = []
        for phrase in phrases:
            try:
                embedding, frame_count = pool_interval(frame_tensor, phrase.start, phrase.end, chunk_duration)
            except ValueError as e:
                logger.warning("Frame pooling failed for phrase %.2f-%.2fs: %s", phrase.start, phrase.end, e)
                out.append(self._without_embedding(phrase))
                continue
            if not is_valid_vector(embedding):
                logger.warning("Non-finite frames pooled for phrase %.2f-%.2fs", phrase.start, phrase.end)
                out.append(self._without_embedding(phrase))
                continue
            out.append(
                dataclasses.replace(
                    phrase,
                    words=list(phrase.words),
                    embedding=embedding,
                    frame_count=frame_count,
                    low_confidence=self._is_short(phrase),
                    embedding_error=None,
                )
            )
        return out

    def process(
        self,
        words: Iterable[Word],
        frame_tensor: FrameTensor | None,
        chunk_duration: float,
    ) -> list[Phrase]:
        """detect_phrases followed by extract_phrase_embeddings."""
        return self.extract_phrase_embeddings(frame_tensor, self.detect_phrases(words), chunk_duration)

    @staticmethod
    def phrase_text(phrase: Phrase) -> str:
        """Combined text of the phrase's words (ASR words carry their own leading spaces)."""
        return phrase.text

    def _is_short(self, phrase: Phrase) -> bool:
        return phrase.duration < self.config.min_phrase_duration

    def _without_embedding(self, phrase: Phrase) -> Phrase:
        return dataclasses.replace(
            phrase,
            words=list(phrase.words),
            embedding=None,
            frame_count=0,
            low_confidence=self._is_short(phrase),
            embedding_error=NO_FRAMES,
        )


def _make_phrase(words: list[Word]) -> Phrase:
    return Phrase(start=words[0].start, end=words[-1].end, words=list(words))
