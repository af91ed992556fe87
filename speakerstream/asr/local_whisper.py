"""
LocalWhisperEngine: word-timestamped ASR using faster-whisper.

- Model loaded ONCE at startup (singleton, injected at construction).
- Every call decodes with word_timestamps=True; phrase detection needs them.
- Audio: float32 mono [-1, 1]; PCM bytes converted with pcm_bytes_to_float32.
- Runs in executor so event loop stays responsive.
"""
from __future__ import annotations

import asyncio
from typing import Any

import numpy as np

from speakerstream.asr.base import ASREngine, ASRResult
from speakerstream.asr.markers import join_split_bracketed_markers
from speakerstream.config import get_settings
from speakerstream.diarization.models import Word

# Type for shared WhisperModel (loaded at startup)
WhisperModelT = Any


def pcm_bytes_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """Convert PCM 16-bit mono bytes to float32 [-1.0, 1.0]."""
    samples = np.frombuffer(pcm_bytes, dtype=np.int16)
    return samples.astype(np.float32) / 32768.0


def float32_to_pcm_bytes(audio: np.ndarray) -> bytes:
    """Convert float32 [-1, 1] to PCM 16-bit mono bytes."""
    samples = (np.asarray(audio, dtype=np.float32) * 32767).clip(-32768, 32767).astype(np.int16)
    return samples.tobytes()


class LocalWhisperEngine(ASREngine):
    """
    Local Whisper via faster-whisper. Uses shared model (singleton).
    transcribe() is async; heavy work runs in executor.
    """

    def __init__(self, model: WhisperModelT | None = None, beam_size: int | None = None) -> None:
        """
        model: shared WhisperModel instance (loaded at app startup).
        If None, transcribe() returns an empty result.
        """
        self._model = model
        self._beam_size = beam_size or get_settings().LOCAL_WHISPER_BEAM_SIZE

    def _transcribe_sync(self, audio: np.ndarray) -> ASRResult:
        """Synchronous transcribe; run from executor."""
        if self._model is None:
            return ASRResult(text="")

        segments, info = self._model.transcribe(
            audio,
            beam_size=self._beam_size,
            vad_filter=True,
            vad_parameters=dict(min_silence_duration_ms=300, speech_pad_ms=100),
            condition_on_previous_text=False,
            word_timestamps=True,
        )

        parts: list[str] = []
        words: list[Word] = []
        for seg in segments:
            t = (seg.text or "").strip()
            if t:
                parts.append(t)
            for w in getattr(seg, "words", None) or []:
                words.append(Word(text=w.word or "", start=w.start, end=w.end))

        return ASRResult(
            text=" ".join(parts).strip(),
            words=join_split_bracketed_markers(words),
            language=getattr(info, "language", None),
        )

    async def transcribe(self, audio: np.ndarray) -> ASRResult:
        """Run _transcribe_sync in executor so event loop is not blocked."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._transcribe_sync, audio)

    @property
    def sample_rate(self) -> int:
        return get_settings().SAMPLE_RATE
