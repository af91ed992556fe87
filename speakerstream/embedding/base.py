"""
EmbeddingEngine: abstract interface for the frame-level acoustic model.

Two uses:
- extract_frames(chunk audio) -> FrameTensor for per-phrase pooling during diarization.
- extract_embedding(segment audio) -> one pooled vector, used for enrollment capture.

Implementations: WavLMEngine (transformers + torch), NullEmbeddingEngine (no model).
Heavy work runs in executor to avoid blocking the event loop.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np

    from speakerstream.diarization.models import FrameTensor


class EmbeddingEngine(ABC):
    """Accepts float32 mono audio (normalized [-1, 1]) at sample_rate."""

    @abstractmethod
    async def extract_frames(self, audio: "np.ndarray") -> "FrameTensor | None":
        """Hidden-state frames for the whole chunk, or None when the model produced nothing."""
        ...

    @abstractmethod
    async def extract_embedding(self, audio: "np.ndarray") -> "np.ndarray | None":
        """One speaker embedding for the whole segment, or None."""
        ...

    @property
    def available(self) -> bool:
        """False when no model is loaded; enrollment routes answer 503."""
        return True

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """Expected sample rate (e.g. 16000)."""
        ...
