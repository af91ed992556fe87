"""
ChunkOrchestrator: one chunk end to end.

Per chunk:
1. Prepend carried-over audio from the previous chunk.
2. Run ASR and frame extraction concurrently; join both before alignment.
   - Frame extraction failure: logged, frames=None, every phrase takes the no_embedding path.
   - ASR failure: ChunkProcessingError; the clusterer is not touched, the audio is dropped.
3. Drop blank-audio markers, split words into final / carried over.
4. Detect phrases on the final words and pool one embedding per phrase.
5. Environmental-only phrases are emitted unlabeled; the rest are clustered in order.
6. Rebase times to the session clock and keep the audio after the split point.

Owns the session's SpeakerClusterer and carryover state; chunks must be submitted one at a time.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from speakerstream.asr import markers
from speakerstream.asr.base import ASREngine, ASRResult
from speakerstream.config import get_settings
from speakerstream.diarization.errors import ChunkProcessingError
from speakerstream.diarization.models import AssignmentDebug, FrameTensor, Phrase, Word
from speakerstream.diarization.phrase_detector import PhraseDetector
from speakerstream.diarization.speaker_clusterer import SpeakerClusterer
from speakerstream.embedding.base import EmbeddingEngine
from speakerstream.embedding.null import NullEmbeddingEngine
from speakerstream.pipeline.carryover import ChunkCarryoverState, split_for_carryover

logger = logging.getLogger(__name__)

REASON_ENVIRONMENTAL = "environmental"


@dataclass
class LabeledPhrase:
    """A phrase with session-relative times and its speaker (None for environmental sounds)."""

    start: float
    end: float
    words: list[Word]
    speaker_id: int | None
    speaker_label: str | None
    reason: str
    embedding: np.ndarray | None = None
    frame_count: int = 0
    low_confidence: bool = False
    embedding_error: str | None = None
    category: str = markers.SPEECH
    debug: AssignmentDebug | None = None

    @property
    def text(self) -> str:
        return "".join(w.text for w in self.words).strip()

    def to_dict(self, include_embedding: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "words": [w.to_dict() for w in self.words],
            "speaker_id": self.speaker_id,
            "speaker_label": self.speaker_label,
            "reason": self.reason,
            "frame_count": self.frame_count,
            "low_confidence": self.low_confidence,
            "embedding_error": self.embedding_error,
            "category": self.category,
        }
        if include_embedding:
            data["embedding"] = None if self.embedding is None else [float(v) for v in self.embedding]
        if self.debug is not None:
            data["debug"] = self.debug.to_dict()
        return data


@dataclass
class ChunkResult:
    chunk_index: int
    phrases: list[LabeledPhrase]
    split_point: float
    carryover_duration: float
    chunk_duration: float
    is_final: bool = False
    is_effectively_empty: bool = False
    text: str = ""
    carried_words: list[Word] = field(default_factory=list)

    def to_dict(self, include_embedding: bool = False) -> dict[str, Any]:
        return {
            "chunk_index": self.chunk_index,
            "phrases": [p.to_dict(include_embedding) for p in self.phrases],
            "split_point": self.split_point,
            "carryover_duration": self.carryover_duration,
            "chunk_duration": self.chunk_duration,
            "is_final": self.is_final,
            "is_effectively_empty": self.is_effectively_empty,
            "text": self.text,
        }


class ChunkOrchestrator:
    """Runs chunks through ASR, frame extraction, phrase detection and clustering for one session."""

    def __init__(
        self,
        asr_engine: ASREngine,
        embedding_engine: EmbeddingEngine | None = None,
        clusterer: SpeakerClusterer | None = None,
        detector: PhraseDetector | None = None,
        sample_rate: int | None = None,
        carryover_max_seconds: float | None = None,
        debug: bool = False,
    ) -> None:
        settings = get_settings()
        self.asr_engine = asr_engine
        self.embedding_engine = embedding_engine or NullEmbeddingEngine()
        self.clusterer = clusterer or SpeakerClusterer()
        self.detector = detector or PhraseDetector()
        self.sample_rate = sample_rate or settings.SAMPLE_RATE
        self.carryover_max_seconds = (
            settings.CARRYOVER_MAX_SECONDS if carryover_max_seconds is None else carryover_max_seconds
        )
        self.debug = debug
        self.state = ChunkCarryoverState()
        self._carry_audio = np.zeros(0, dtype=np.float32)
        self._next_chunk_index = 0

    @property
    def carry_seconds(self) -> float:
        return len(self._carry_audio) / float(self.sample_rate)

    def reset(self, preserve_enrolled: bool = False) -> None:
        """Forget carried audio, the session clock and (discovered) speakers."""
        self._carry_audio = np.zeros(0, dtype=np.float32)
        self.state.reset()
        self._next_chunk_index = 0
        self.clusterer.reset(preserve_enrolled=preserve_enrolled)

    async def process_chunk(self, audio: np.ndarray, is_final: bool = False) -> ChunkResult:
        """Process one chunk of float32 mono audio. Raises ChunkProcessingError when ASR fails."""
        chunk_index = self._next_chunk_index
        self._next_chunk_index += 1

        combined = np.concatenate([self._carry_audio, np.asarray(audio, dtype=np.float32)])
        duration = len(combined) / float(self.sample_rate)
        if duration <= 0:
            return ChunkResult(
                chunk_index=chunk_index,
                phrases=[],
                split_point=0.0,
                carryover_duration=self.state.carryover_duration,
                chunk_duration=0.0,
                is_final=is_final,
            )

        asr_result, frames = await asyncio.gather(
            self.asr_engine.transcribe(combined),
            self._extract_frames(combined, chunk_index),
            return_exceptions=True,
        )
        for outcome in (asr_result, frames):
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
        if isinstance(frames, Exception):
            frames = None
        if isinstance(asr_result, Exception):
            logger.error("ASR failed for chunk %d", chunk_index, exc_info=asr_result)
            # The chunk is lost; keep later timestamps on the session clock
            self._carry_audio = np.zeros(0, dtype=np.float32)
            self.state.skip(duration)
            raise ChunkProcessingError(chunk_index, f"ASR failed: {asr_result}") from asr_result

        return self._finish_chunk(chunk_index, combined, duration, asr_result, frames, is_final)

    async def _extract_frames(self, audio: np.ndarray, chunk_index: int) -> FrameTensor | None:
        try:
            return await self.embedding_engine.extract_frames(audio)
        except Exception as e:
            logger.warning("Frame extraction failed for chunk %d, phrases get no embedding: %s", chunk_index, e)
            return None

    def _finish_chunk(
        self,
        chunk_index: int,
        combined: np.ndarray,
        duration: float,
        asr_result: ASRResult,
        frames: FrameTensor | None,
        is_final: bool,
    ) -> ChunkResult:
        words = markers.join_split_bracketed_markers(asr_result.words)
        effectively_empty = markers.is_effectively_empty(words)
        timed = [w for w in markers.drop_blank_markers(words) if w.has_timestamps]

        split = split_for_carryover(timed, duration, is_final)
        phrases = self.detector.process(split.kept, frames, duration)

        labeled = [self._label(phrase) for phrase in phrases]

        self.state.advance(split.split_point)
        if is_final:
            self._carry_audio = np.zeros(0, dtype=np.float32)
        else:
            split_sample = min(int(round(split.split_point * self.sample_rate)), len(combined))
            self._carry_audio = combined[split_sample:]
            self._cap_carryover()

        logger.debug(
            "Chunk %d: %.2fs, %d words, %d phrases, split at %.2fs, carry %.2fs",
            chunk_index,
            duration,
            len(timed),
            len(labeled),
            split.split_point,
            self.carry_seconds,
        )
        return ChunkResult(
            chunk_index=chunk_index,
            phrases=labeled,
            split_point=split.split_point,
            carryover_duration=self.state.carryover_duration,
            chunk_duration=duration,
            is_final=is_final,
            is_effectively_empty=effectively_empty,
            text=" ".join(p.text for p in labeled if p.text),
            carried_words=split.carried,
        )

    def _label(self, phrase: Phrase) -> LabeledPhrase:
        """Call before state.advance(): session times use the carryover offset of this chunk."""
        category = markers.categorize_words(phrase.words)
        common = dict(
            start=self.state.rebase_time(phrase.start),
            end=self.state.rebase_time(phrase.end),
            words=self.state.rebase(phrase.words),
            embedding=phrase.embedding,
            frame_count=phrase.frame_count,
            low_confidence=phrase.low_confidence,
            embedding_error=phrase.embedding_error,
            category=category,
        )
        if category == markers.ENVIRONMENTAL:
            return LabeledPhrase(speaker_id=None, speaker_label=None, reason=REASON_ENVIRONMENTAL, **common)

        assignment = self.clusterer.assign_speaker(phrase.embedding, debug=self.debug)
        return LabeledPhrase(
            speaker_id=assignment.speaker_id,
            speaker_label=self.clusterer.get_speaker_label(assignment.speaker_id),
            reason=assignment.reason,
            debug=assignment.debug,
            **common,
        )

    def _cap_carryover(self) -> None:
        max_samples = int(self.carryover_max_seconds * self.sample_rate)
        excess = len(self._carry_audio) - max_samples
        if excess > 0:
            self._carry_audio = self._carry_audio[excess:]
            dropped = excess / float(self.sample_rate)
            self.state.skip(dropped)
            logger.warning("Carryover audio over %.1fs, dropped oldest %.2fs", self.carryover_max_seconds, dropped)
