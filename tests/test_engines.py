"""Tests for the local Whisper and WavLM engines with stand-in models."""
from types import SimpleNamespace

import numpy as np
import pytest

from speakerstream.asr.local_whisper import LocalWhisperEngine, float32_to_pcm_bytes, pcm_bytes_to_float32
from speakerstream.embedding.null import NullEmbeddingEngine


class FakeWhisperModel:
    def __init__(self, segments):
        self.segments = segments
        self.kwargs = None

    def transcribe(self, audio, **kwargs):
        self.kwargs = kwargs
        return iter(self.segments), SimpleNamespace(language="en")


def segment(text, *words):
    return SimpleNamespace(text=text, words=[SimpleNamespace(word=w, start=s, end=e) for w, s, e in words])


def test_pcm_conversion():
    audio = np.array([0.0, 0.5, -1.0], dtype=np.float32)
    back = pcm_bytes_to_float32(float32_to_pcm_bytes(audio))
    np.testing.assert_allclose(back, audio, atol=1e-4)


@pytest.mark.asyncio
async def test_local_whisper_words():
    model = FakeWhisperModel(
        [
            segment(" Hello there.", (" Hello", 0.0, 0.4), (" there.", 0.5, 0.9)),
            segment(" [BLANK_AUDIO]", (" [BLANK", 1.0, 1.2), ("_AUDIO]", 1.2, 2.0)),
        ]
    )
    result = await LocalWhisperEngine(model=model, beam_size=1).transcribe(np.zeros(16000, dtype=np.float32))
    assert model.kwargs["word_timestamps"] is True
    assert model.kwargs["beam_size"] == 1
    assert result.text == "Hello there. [BLANK_AUDIO]"
    assert [w.text for w in result.words] == [" Hello", " there.", " [BLANK_AUDIO]"]
    assert result.words[2].end == 2.0
    assert result.language == "en"


@pytest.mark.asyncio
async def test_local_whisper_without_model():
    result = await LocalWhisperEngine(model=None).transcribe(np.zeros(160, dtype=np.float32))
    assert result.text == ""
    assert not result.has_words


@pytest.mark.asyncio
async def test_null_embedding_engine():
    engine = NullEmbeddingEngine()
    assert engine.available is False
    assert await engine.extract_frames(np.zeros(160, dtype=np.float32)) is None
    assert await engine.extract_embedding(np.zeros(160, dtype=np.float32)) is None


class TestWavLMEngine:
    @pytest.fixture
    def torch(self):
        return pytest.importorskip("torch")

    def build(self, torch, embeddings=True):
        from speakerstream.embedding.wavlm import WavLMEngine

        def feature_extractor(audio, sampling_rate, return_tensors):
            return {"input_values": torch.zeros(1, len(audio))}

        def model(input_values, output_hidden_states):
            hidden = torch.arange(40, dtype=torch.float32).reshape(1, 10, 4)
            return SimpleNamespace(
                hidden_states=(torch.zeros(1, 10, 4), hidden),
                embeddings=torch.ones(1, 3) if embeddings else None,
            )

        return WavLMEngine(model, feature_extractor, device="cpu")

    @pytest.mark.asyncio
    async def test_frames_from_last_hidden_state(self, torch):
        tensor = await self.build(torch).extract_frames(np.zeros(16000, dtype=np.float32))
        assert (tensor.num_frames, tensor.dim) == (10, 4)
        assert tensor.data.dtype == np.float64
        np.testing.assert_allclose(tensor.data[1], [4.0, 5.0, 6.0, 7.0])

    @pytest.mark.asyncio
    async def test_embedding_prefers_xvector(self, torch):
        embedding = await self.build(torch).extract_embedding(np.zeros(16000, dtype=np.float32))
        np.testing.assert_allclose(embedding, [1.0, 1.0, 1.0])

    @pytest.mark.asyncio
    async def test_embedding_falls_back_to_frame_mean(self, torch):
        embedding = await self.build(torch, embeddings=False).extract_embedding(np.zeros(16000, dtype=np.float32))
        np.testing.assert_allclose(embedding, [18.0, 19.0, 20.0, 21.0])
