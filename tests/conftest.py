"""Shared fixtures: isolated settings and fake engines."""
from __future__ import annotations

from typing import Callable, Sequence

import numpy as np
import pytest

from speakerstream.asr.base import ASREngine, ASRResult
from speakerstream.diarization.models import FrameTensor, Word
from speakerstream.embedding.base import EmbeddingEngine

SAMPLE_RATE = 16000


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """No model loading, no transcript files, enrollments in a temp file."""
    monkeypatch.setenv("ASR_BACKEND", "cloudflare")
    monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", "")
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "")
    monkeypatch.setenv("EMBEDDING_BACKEND", "none")
    monkeypatch.setenv("TRANSCRIPT_SAVE_ENABLED", "false")
    monkeypatch.setenv("TRANSCRIPT_DIR", str(tmp_path / "transcripts"))
    monkeypatch.setenv("ENROLLMENT_STORE_PATH", str(tmp_path / "enrollments.json"))
    monkeypatch.setenv("LOG_FILE", "")
    yield


def make_words(*items: tuple[str, float, float]) -> list[Word]:
    return [Word(text=text, start=start, end=end) for text, start, end in items]


def seconds_of_audio(seconds: float) -> np.ndarray:
    return np.zeros(int(round(seconds * SAMPLE_RATE)), dtype=np.float32)


def unit(dim: int, index: int) -> np.ndarray:
    vec = np.zeros(dim, dtype=np.float64)
    vec[index] = 1.0
    return vec


class FakeASREngine(ASREngine):
    """Returns queued results (or raises queued exceptions) in order; records audio lengths."""

    def __init__(self, results: Sequence[ASRResult | Exception] = ()) -> None:
        self.results = list(results)
        self.calls: list[int] = []

    async def transcribe(self, audio: np.ndarray) -> ASRResult:
        self.calls.append(len(audio))
        if not self.results:
            return ASRResult(text="")
        item = self.results.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def sample_rate(self) -> int:
        return SAMPLE_RATE


class FakeEmbeddingEngine(EmbeddingEngine):
    """frames_fn(audio) builds the frame tensor; embedding is returned for every segment."""

    def __init__(
        self,
        frames_fn: Callable[[np.ndarray], FrameTensor | None] | None = None,
        embedding: Sequence[float] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.frames_fn = frames_fn
        self.embedding = None if embedding is None else np.asarray(embedding, dtype=np.float64)
        self.error = error
        self.embedding_calls = 0

    async def extract_frames(self, audio: np.ndarray) -> FrameTensor | None:
        if self.error is not None:
            raise self.error
        return self.frames_fn(audio) if self.frames_fn else None

    async def extract_embedding(self, audio: np.ndarray) -> np.ndarray | None:
        self.embedding_calls += 1
        return self.embedding

    @property
    def sample_rate(self) -> int:
        return SAMPLE_RATE


def constant_frames(vector: Sequence[float], frames_per_second: int = 50) -> Callable[[np.ndarray], FrameTensor]:
    """Frame tensor where every frame equals vector, sized to the audio."""

    def build(audio: np.ndarray) -> FrameTensor:
        count = max(1, int(len(audio) / SAMPLE_RATE * frames_per_second))
        return FrameTensor(np.tile(np.asarray(vector, dtype=np.float64), (count, 1)))

    return build
