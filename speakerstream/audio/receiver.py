"""
AudioReceiver: accepts raw PCM audio from WebSocket and cuts it into frames.

- Expects PCM 16-bit mono 16kHz.
- Emits fixed-size frames (20ms = 640 bytes) for VAD/chunking.
- Partial frames stay buffered until more bytes arrive or the stream ends.
"""
from __future__ import annotations

from speakerstream.config import get_settings


class AudioReceiver:
    """Buffers incoming binary WebSocket messages into fixed-size PCM frames."""

    def __init__(self, frame_bytes: int | None = None) -> None:
        settings = get_settings()
        self._frame_bytes = frame_bytes or settings.FRAME_BYTES
        self._buffer = bytearray()

    def feed(self, data: bytes) -> list[bytes]:
        """Append raw PCM bytes and return every complete frame now available."""
        self._buffer.extend(data)
        return self.drain_frames()

    def drain_frames(self) -> list[bytes]:
        """Complete frames in arrival order; the remainder stays in the buffer."""
        out: list[bytes] = []
        while len(self._buffer) >= self._frame_bytes:
            out.append(bytes(self._buffer[: self._frame_bytes]))
            del self._buffer[: self._frame_bytes]
        return out

    def take_remainder(self) -> bytes:
        """Incomplete trailing bytes (end of stream), trimmed to whole 16-bit samples."""
        usable = len(self._buffer) - (len(self._buffer) % 2)
        rest = bytes(self._buffer[:usable])
        self._buffer.clear()
        return rest

    def remaining_bytes(self) -> int:
        """Bytes left in buffer (incomplete frame)."""
        return len(self._buffer)
