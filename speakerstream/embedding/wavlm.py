"""
WavLMEngine: speaker-verification WavLM via Hugging Face transformers.

- Model and feature extractor loaded ONCE at startup (load_wavlm), injected at construction.
- extract_frames: last hidden state, shape (frames, dim), roughly 50 frames per second.
- extract_embedding: the model's x-vector head; mean of the frames if the head is missing.
- Runs in executor so event loop stays responsive.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import numpy as np

from speakerstream.config import get_settings
from speakerstream.diarization.models import FrameTensor
from speakerstream.embedding.base import EmbeddingEngine

logger = logging.getLogger(__name__)


def load_wavlm(model_name: str | None = None, device: str | None = None) -> tuple[Any, Any]:
    """Load (model, feature_extractor). Called at startup when EMBEDDING_BACKEND=wavlm."""
    try:
        from transformers import AutoFeatureExtractor, WavLMForXVector
    except ImportError as err:
        raise ImportError(
            "transformers and torch are required for EMBEDDING_BACKEND=wavlm. "
            "Install with: pip install torch transformers"
        ) from err
    settings = get_settings()
    model_name = model_name or settings.EMBEDDING_MODEL
    device = device or settings.EMBEDDING_DEVICE
    logger.info("Loading embedding model %s on %s", model_name, device)
    feature_extractor = AutoFeatureExtractor.from_pretrained(model_name)
    model = WavLMForXVector.from_pretrained(model_name)
    model.to(device)
    model.eval()
    return model, feature_extractor


class WavLMEngine(EmbeddingEngine):
    """Frame and segment embeddings from one shared WavLM x-vector model."""

    def __init__(self, model: Any, feature_extractor: Any, device: str | None = None) -> None:
        self._model = model
        self._feature_extractor = feature_extractor
        self._device = device or get_settings().EMBEDDING_DEVICE

    def _forward(self, audio: np.ndarray) -> Any:
        import torch

        inputs = self._feature_extractor(
            np.asarray(audio, dtype=np.float32),
            sampling_rate=self.sample_rate,
            return_tensors="pt",
        )
        inputs = {k: v.to(self._device) for k, v in inputs.items()}
        with torch.no_grad():
            return self._model(**inputs, output_hidden_states=True)

    def _frames_sync(self, audio: np.ndarray) -> FrameTensor | None:
        output = self._forward(audio)
        hidden_states = getattr(output, "hidden_states", None)
        if not hidden_states:
            return None
        frames = hidden_states[-1].detach().cpu().numpy().astype(np.float64)
        tensor = FrameTensor(frames)
        return tensor if tensor.num_frames > 0 else None

    def _embedding_sync(self, audio: np.ndarray) -> np.ndarray | None:
        output = self._forward(audio)
        embeddings = getattr(output, "embeddings", None)
        if embeddings is not None:
            return embeddings.detach().cpu().numpy().astype(np.float64).reshape(-1)
        hidden_states = getattr(output, "hidden_states", None)
        if not hidden_states:
            return None
        frames = hidden_states[-1].detach().cpu().numpy().astype(np.float64)
        return FrameTensor(frames).data.mean(axis=0)

    async def extract_frames(self, audio: np.ndarray) -> FrameTensor | None:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._frames_sync, audio)

    async def extract_embedding(self, audio: np.ndarray) -> np.ndarray | None:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._embedding_sync, audio)

    @property
    def sample_rate(self) -> int:
        return get_settings().SAMPLE_RATE
