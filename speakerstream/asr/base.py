"""
ASREngine: abstract interface for word-timestamped speech recognition.

Implementations: LocalWhisperEngine (faster-whisper), CloudflareWhisperEngine.
All run heavy work in executor to avoid blocking the event loop.
Word times are seconds relative to the start of the audio passed in.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from speakerstream.diarization.models import Word

if TYPE_CHECKING:
    import numpy as np


@dataclass
class ASRResult:
    """Result of one ASR transcribe call."""

    text: str
    words: list[Word] = field(default_factory=list)
    language: str | None = None

    @property
    def has_words(self) -> bool:
        return bool(self.words)


class ASREngine(ABC):
    """
    Abstract ASR engine. Accepts float32 mono audio (normalized [-1, 1]).
    transcribe() is async; implementations may run sync work in executor.
    Errors propagate to the caller, which reports them per chunk.
    """

    @abstractmethod
    async def transcribe(self, audio: "np.ndarray") -> ASRResult:
        """Transcribe one chunk of audio with word-level timestamps."""
        ...

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """Expected sample rate (e.g. 16000)."""
        ...
