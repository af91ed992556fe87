"""ASR: swappable word-timestamped Whisper engines."""
from .base import ASREngine, ASRResult
from .local_whisper import LocalWhisperEngine, float32_to_pcm_bytes, pcm_bytes_to_float32
from .cloudflare import CloudflareWhisperEngine

__all__ = [
    "ASREngine",
    "ASRResult",
    "LocalWhisperEngine",
    "CloudflareWhisperEngine",
    "float32_to_pcm_bytes",
    "pcm_bytes_to_float32",
]
