"""Embedding: frame-level acoustic models for phrase pooling and enrollment."""
from .base import EmbeddingEngine
from .null import NullEmbeddingEngine
from .wavlm import WavLMEngine, load_wavlm

__all__ = [
    "EmbeddingEngine",
    "NullEmbeddingEngine",
    "WavLMEngine",
    "load_wavlm",
]
