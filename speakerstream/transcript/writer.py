"""
Session transcript files: TRANSCRIPT_DIR/{session_id}.txt, one line per labeled phrase.

Line format: "[MM:SS.ss] [Label] text". The time is the phrase's session-relative start.
Environmental sounds have no label and are written as bare text.

append() only enqueues; a background task drains everything queued so far and writes it
in one go. File errors are logged and the session keeps running without a transcript.
"""
from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import IO, Optional

from speakerstream.config import get_settings
from speakerstream.transcript.merger import PhraseMessage

logger = logging.getLogger(__name__)

_CLOSE_TIMEOUT_SECONDS = 5.0


def _format_elapsed(seconds: float) -> str:
    minutes, rest = divmod(max(0.0, seconds), 60)
    return f"[{int(minutes):02d}:{rest:05.2f}]"


def format_phrase_line(
    text: str,
    start_time: Optional[float],
    speaker_label: Optional[str],
    add_timestamps: bool,
) -> str:
    """[MM:SS.ss] [Label] text, with either prefix omitted when not available."""
    prefix = []
    if add_timestamps and start_time is not None:
        prefix.append(_format_elapsed(start_time))
    if speaker_label:
        prefix.append(f"[{speaker_label}]")
    return " ".join(prefix + [text.strip()])


class TranscriptWriterBase(ABC):
    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    def append(self, message: PhraseMessage) -> None:
        """Queue one phrase. Never blocks, never raises."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class NoOpTranscriptWriter(TranscriptWriterBase):
    """TRANSCRIPT_SAVE_ENABLED=false."""

    async def start(self) -> None:
        pass

    def append(self, message: PhraseMessage) -> None:
        pass

    async def close(self) -> None:
        pass


class TranscriptWriter(TranscriptWriterBase):
    def __init__(
        self,
        session_id: str,
        transcript_dir: Optional[str] = None,
        add_timestamps: Optional[bool] = None,
    ) -> None:
        settings = get_settings()
        directory = transcript_dir or settings.TRANSCRIPT_DIR
        self._directory = directory
        self._path = os.path.join(directory, f"{session_id}.txt")
        self._add_timestamps = settings.TRANSCRIPT_ADD_TIMESTAMPS if add_timestamps is None else add_timestamps
        self._lines: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._handle: Optional[IO[str]] = None
        self._drain_task: Optional[asyncio.Task] = None

    @property
    def path(self) -> str:
        return self._path

    async def start(self) -> None:
        if self._drain_task is not None:
            return
        try:
            os.makedirs(self._directory, exist_ok=True)
            self._handle = open(self._path, "a", encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot open transcript %s, phrases will not be saved: %s", self._path, e)
        self._drain_task = asyncio.create_task(self._drain())

    def append(self, message: PhraseMessage) -> None:
        text = (message.text or "").strip()
        if text:
            self._lines.put_nowait(
                format_phrase_line(text, message.start_time, message.speaker_label, self._add_timestamps)
            )

    async def _drain(self) -> None:
        """Write queued lines in batches until the None sentinel, then close the file."""
        done = False
        while not done:
            batch = [await self._lines.get()]
            while not self._lines.empty():
                batch.append(self._lines.get_nowait())
            if None in batch:
                done = True
                batch = batch[: batch.index(None)]
            self._write(batch)
        if self._handle is not None:
            try:
                self._handle.close()
            except OSError as e:
                logger.warning("Closing transcript %s failed: %s", self._path, e)
            self._handle = None

    def _write(self, lines: list[str]) -> None:
        if not lines or self._handle is None:
            return
        try:
            self._handle.write("".join(line + "\n" for line in lines))
            self._handle.flush()
        except OSError as e:
            logger.warning("Transcript write to %s failed (%d lines lost): %s", self._path, len(lines), e)

    async def close(self) -> None:
        task, self._drain_task = self._drain_task, None
        if task is None:
            return
        self._lines.put_nowait(None)
        try:
            await asyncio.wait_for(task, timeout=_CLOSE_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Transcript %s did not flush within %.0fs", self._path, _CLOSE_TIMEOUT_SECONDS)


def create_transcript_writer(session_id: str) -> TranscriptWriterBase:
    if not get_settings().TRANSCRIPT_SAVE_ENABLED:
        return NoOpTranscriptWriter()
    return TranscriptWriter(session_id=session_id)
