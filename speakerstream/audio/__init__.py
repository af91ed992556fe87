"""Audio pipeline: receive, VAD, chunk."""
from .receiver import AudioReceiver
from .vad import VADProcessor
from .chunker import FixedChunker, SpeechChunker, create_chunker

__all__ = [
    "AudioReceiver",
    "VADProcessor",
    "FixedChunker",
    "SpeechChunker",
    "create_chunker",
]
