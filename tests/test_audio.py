"""Tests for frame buffering, VAD and the chunkers."""
import pytest

from speakerstream.audio.chunker import FixedChunker, SpeechChunker, create_chunker
from speakerstream.audio.receiver import AudioReceiver
from speakerstream.audio.vad import VADProcessor
from speakerstream.config import get_settings


def frame(i):
    return bytes([i % 256]) * 4


class TestAudioReceiver:
    def test_frames_and_remainder(self):
        receiver = AudioReceiver(frame_bytes=640)
        frames = receiver.feed(b"\x01" * 1000)
        assert len(frames) == 1
        assert len(frames[0]) == 640
        assert receiver.remaining_bytes() == 360

    def test_frames_across_messages(self):
        receiver = AudioReceiver(frame_bytes=640)
        assert receiver.feed(b"\x00" * 400) == []
        assert len(receiver.feed(b"\x00" * 900)) == 2
        assert receiver.remaining_bytes() == 20

    def test_remainder_trimmed_to_whole_samples(self):
        receiver = AudioReceiver(frame_bytes=640)
        receiver.feed(b"\x00" * 101)
        assert len(receiver.take_remainder()) == 100
        assert receiver.remaining_bytes() == 0


class TestVADProcessor:
    def test_silence_is_not_speech(self):
        assert VADProcessor(aggressiveness=3).is_speech(b"\x00" * 640) is False

    def test_wrong_frame_size_is_not_speech(self):
        assert VADProcessor().is_speech(b"\x00" * 100) is False


class TestSpeechChunker:
    @pytest.fixture
    def chunks(self):
        return []

    @pytest.fixture
    def chunker(self, chunks):
        return SpeechChunker(
            chunks.append,
            frame_ms=20,
            min_speech_seconds=0.1,
            max_speech_seconds=1.0,
            redemption_ms=60,
            pre_speech_pad_ms=40,
        )

    def test_chunk_includes_padding_and_trailing_silence(self, chunker, chunks):
        pattern = [False] * 3 + [True] * 10 + [False] * 3
        for i, is_speech in enumerate(pattern):
            chunker.push(frame(i), is_speech)
        [chunk] = chunks
        # 2 pad frames + 10 speech + 3 silence
        assert chunk == b"".join(frame(i) for i in range(1, 16))
        assert chunker.in_speech is False

    def test_short_speech_discarded(self, chunker, chunks):
        for is_speech in [False] * 3 + [True] * 2 + [False] * 3:
            chunker.push(frame(0), is_speech)
        assert chunks == []
        assert chunker.flush() is None

    def test_long_speech_split_at_max(self, chunker, chunks):
        for i in range(55):
            chunker.push(frame(i), True)
        assert len(chunks) == 1
        assert len(chunks[0]) == 50 * 4
        rest = chunker.flush()
        assert rest == b"".join(frame(i) for i in range(50, 55))

    def test_flush_without_speech(self, chunker):
        chunker.push(frame(0), False)
        assert chunker.flush() is None


class TestFixedChunker:
    def test_emits_every_n_frames(self):
        chunks = []
        chunker = FixedChunker(chunks.append, frame_ms=20, chunk_seconds=0.1)
        for i in range(12):
            chunker.push(frame(i))
        assert len(chunks) == 2
        assert chunks[1] == b"".join(frame(i) for i in range(5, 10))
        assert chunker.flush() == frame(10) + frame(11)
        assert chunker.flush() is None


def test_create_chunker_follows_mode(monkeypatch):
    assert isinstance(create_chunker(lambda chunk: None), SpeechChunker)
    monkeypatch.setenv("CHUNK_MODE", "fixed")
    assert isinstance(create_chunker(lambda chunk: None, get_settings()), FixedChunker)
