"""Per-frame speech decision for SpeechChunker, backed by webrtcvad."""
from __future__ import annotations

import webrtcvad

from speakerstream.config import get_settings

# webrtcvad only accepts these frame lengths
SUPPORTED_FRAME_MS = (10, 20, 30)


class VADProcessor:
    """
    aggressiveness 0-3: higher classifies more frames as non-speech.
    Frames are FRAME_MS of 16-bit mono PCM at SAMPLE_RATE.
    """

    def __init__(self, aggressiveness: int | None = None) -> None:
        settings = get_settings()
        if settings.FRAME_MS not in SUPPORTED_FRAME_MS:
            raise ValueError(f"FRAME_MS must be one of {SUPPORTED_FRAME_MS}, got {settings.FRAME_MS}")
        self._vad = webrtcvad.Vad(settings.VAD_AGGRESSIVENESS if aggressiveness is None else aggressiveness)
        self._rate = settings.SAMPLE_RATE
        self._expected_len = settings.FRAME_BYTES

    def is_speech(self, frame: bytes) -> bool:
        # Trailing partial frames are treated as silence
        if len(frame) != self._expected_len:
            return False
        return self._vad.is_speech(frame, self._rate)
