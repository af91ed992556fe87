"""
TranscriptMerger: turns chunk results into client messages and a running session transcript.

- One PhraseMessage per labeled phrase, in chunk order, sent as soon as the chunk finishes.
- Times are session-relative seconds; timestamp is wall-clock unix ms at emission.
- format_transcript() joins consecutive phrases of the same speaker into one line.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

from speakerstream.pipeline.orchestrator import ChunkResult, LabeledPhrase


@dataclass
class PhraseMessage:
    """
    Message sent to client over WebSocket for each phrase.
    speaker_id / speaker_label are None for environmental sounds ([music] ...).
    """

    text: str
    speaker_id: int | None
    speaker_label: str | None
    start_time: float
    end_time: float
    chunk_index: int
    reason: str
    timestamp: int  # unix_ms
    low_confidence: bool = False
    category: str = "speech"
    is_final: bool = False
    words: list[dict[str, Any]] = field(default_factory=list)
    debug: dict[str, Any] | None = None
    type: str = "phrase"

    def to_dict(self) -> dict[str, Any]:
        data = {
            "type": self.type,
            "text": self.text,
            "speaker_id": self.speaker_id,
            "speaker_label": self.speaker_label,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "chunk_index": self.chunk_index,
            "reason": self.reason,
            "timestamp": self.timestamp,
            "low_confidence": self.low_confidence,
            "category": self.category,
            "is_final": self.is_final,
            "words": self.words,
        }
        if self.debug is not None:
            data["debug"] = self.debug
        return data


def _unix_ms() -> int:
    return int(time.time() * 1000)


class TranscriptMerger:
    """Receives chunk results and invokes callback with one PhraseMessage per phrase."""

    def __init__(self, on_message: Callable[[PhraseMessage], None]) -> None:
        self._on_message = on_message
        self._messages: list[PhraseMessage] = []

    def on_chunk_result(self, result: ChunkResult) -> list[PhraseMessage]:
        emitted: list[PhraseMessage] = []
        for phrase in result.phrases:
            if not phrase.text:
                continue
            message = self._to_message(phrase, result)
            self._messages.append(message)
            emitted.append(message)
            self._on_message(message)
        return emitted

    @staticmethod
    def _to_message(phrase: LabeledPhrase, result: ChunkResult) -> PhraseMessage:
        return PhraseMessage(
            text=phrase.text,
            speaker_id=phrase.speaker_id,
            speaker_label=phrase.speaker_label,
            start_time=phrase.start,
            end_time=phrase.end,
            chunk_index=result.chunk_index,
            reason=phrase.reason,
            timestamp=_unix_ms(),
            low_confidence=phrase.low_confidence,
            category=phrase.category,
            is_final=result.is_final,
            words=[w.to_dict() for w in phrase.words],
            debug=phrase.debug.to_dict() if phrase.debug is not None else None,
        )

    @property
    def messages(self) -> list[PhraseMessage]:
        return list(self._messages)

    def format_transcript(self) -> str:
        """One line per speaker turn: "[Label] text". Environmental sounds stand alone."""
        lines: list[str] = []
        current_label: str | None = None
        current_parts: list[str] = []
        for message in self._messages:
            label = message.speaker_label
            if label is not None and label == current_label:
                current_parts.append(message.text)
                continue
            if current_parts:
                lines.append(_turn_line(current_label, current_parts))
            current_label = label
            current_parts = [message.text]
        if current_parts:
            lines.append(_turn_line(current_label, current_parts))
        return "\n".join(lines)

    def clear(self) -> None:
        self._messages = []


def _turn_line(label: str | None, parts: list[str]) -> str:
    text = " ".join(parts)
    return f"[{label}] {text}" if label else text
