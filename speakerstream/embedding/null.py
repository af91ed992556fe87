"""NullEmbeddingEngine: no acoustic model. Every phrase takes the clusterer's no_embedding path."""
from __future__ import annotations

import numpy as np

from speakerstream.config import get_settings
from speakerstream.diarization.models import FrameTensor
from speakerstream.embedding.base import EmbeddingEngine


class NullEmbeddingEngine(EmbeddingEngine):
    async def extract_frames(self, audio: np.ndarray) -> FrameTensor | None:
        return None

    async def extract_embedding(self, audio: np.ndarray) -> np.ndarray | None:
        return None

    @property
    def available(self) -> bool:
        return False

    @property
    def sample_rate(self) -> int:
        return get_settings().SAMPLE_RATE
