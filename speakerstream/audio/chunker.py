"""
Chunkers turn a stream of 20ms frames into ASR-sized chunks.

SpeechChunker (CHUNK_MODE=vad):
1. Before speech, keep the last VAD_PRE_SPEECH_PAD_MS of frames in a ring buffer.
2. On speech onset, start a chunk with that padding.
3. End the chunk after VAD_REDEMPTION_MS of continuous silence. Chunks with less than
   VAD_MIN_SPEECH_SECONDS of speech frames are discarded as misfires.
4. A chunk reaching VAD_MAX_SPEECH_SECONDS is emitted immediately and speech continues
   in a new chunk; the carryover policy downstream takes care of the cut word.

FixedChunker (CHUNK_MODE=fixed): emits every CHUNK_FIXED_SECONDS regardless of speech.

Both call on_chunk(pcm_bytes) synchronously and return leftover audio from flush().
"""
from __future__ import annotations

from collections import deque
from typing import Callable

from speakerstream.config import Settings, get_settings


class SpeechChunker:
    def __init__(
        self,
        on_chunk: Callable[[bytes], None],
        frame_ms: int | None = None,
        min_speech_seconds: float | None = None,
        max_speech_seconds: float | None = None,
        redemption_ms: int | None = None,
        pre_speech_pad_ms: int | None = None,
    ) -> None:
        settings = get_settings()
        self._on_chunk = on_chunk
        self._frame_ms = frame_ms or settings.FRAME_MS
        min_speech = settings.VAD_MIN_SPEECH_SECONDS if min_speech_seconds is None else min_speech_seconds
        max_speech = max_speech_seconds or settings.VAD_MAX_SPEECH_SECONDS
        redemption = settings.VAD_REDEMPTION_MS if redemption_ms is None else redemption_ms
        pre_pad = settings.VAD_PRE_SPEECH_PAD_MS if pre_speech_pad_ms is None else pre_speech_pad_ms

        self._min_speech_frames = int(round(min_speech * 1000 / self._frame_ms))
        self._max_frames = max(1, int(round(max_speech * 1000 / self._frame_ms)))
        self._redemption_frames = max(1, redemption // self._frame_ms)
        self._pre_pad: deque[bytes] = deque(maxlen=max(1, pre_pad // self._frame_ms))

        self._chunk: list[bytes] = []
        self._in_speech = False
        self._speech_frames = 0
        self._silence_frames = 0

    @property
    def in_speech(self) -> bool:
        return self._in_speech

    def push(self, frame: bytes, is_speech: bool) -> None:
        """Push one frame and its VAD result. May call on_chunk."""
        if not self._in_speech:
            if not is_speech:
                self._pre_pad.append(frame)
                return
            self._in_speech = True
            self._chunk = list(self._pre_pad)
            self._pre_pad.clear()
            self._speech_frames = 0
            self._silence_frames = 0

        self._chunk.append(frame)
        if is_speech:
            self._speech_frames += 1
            self._silence_frames = 0
        else:
            self._silence_frames += 1

        if self._silence_frames >= self._redemption_frames:
            if self._speech_frames >= self._min_speech_frames:
                self._on_chunk(b"".join(self._chunk))
            self._end_speech()
        elif len(self._chunk) >= self._max_frames:
            self._on_chunk(b"".join(self._chunk))
            self._chunk = []
            self._speech_frames = 0
            self._silence_frames = 0

    def flush(self) -> bytes | None:
        """Audio of an unfinished speech chunk (e.g. on disconnect), else None."""
        chunk = b"".join(self._chunk) if self._in_speech and self._speech_frames > 0 else None
        self._end_speech()
        self._pre_pad.clear()
        return chunk or None

    def _end_speech(self) -> None:
        self._in_speech = False
        self._chunk = []
        self._speech_frames = 0
        self._silence_frames = 0


class FixedChunker:
    def __init__(
        self,
        on_chunk: Callable[[bytes], None],
        frame_ms: int | None = None,
        chunk_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self._on_chunk = on_chunk
        frame_ms = frame_ms or settings.FRAME_MS
        seconds = chunk_seconds or settings.CHUNK_FIXED_SECONDS
        self._frames_per_chunk = max(1, int(round(seconds * 1000 / frame_ms)))
        self._chunk: list[bytes] = []

    def push(self, frame: bytes, is_speech: bool = True) -> None:
        self._chunk.append(frame)
        if len(self._chunk) >= self._frames_per_chunk:
            self._on_chunk(b"".join(self._chunk))
            self._chunk = []

    def flush(self) -> bytes | None:
        if not self._chunk:
            return None
        chunk = b"".join(self._chunk)
        self._chunk = []
        return chunk


def create_chunker(
    on_chunk: Callable[[bytes], None],
    settings: Settings | None = None,
) -> SpeechChunker | FixedChunker:
    """Chunker for CHUNK_MODE."""
    settings = settings or get_settings()
    if settings.CHUNK_MODE == "fixed":
        return FixedChunker(on_chunk)
    return SpeechChunker(on_chunk)
