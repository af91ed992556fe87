"""
WebSocketManager: one WebSocket = one diarization session.

Receive loop:
- Binary frames: PCM 16-bit mono 16kHz -> 20ms frames -> VAD -> chunker -> queue.
- Text frames: JSON control messages (reset, set_num_speakers, import_enrollments,
  export_enrollments, get_speakers) -> queue.

A single consumer task drains the queue into the session's worker, so chunks and
control messages are handled strictly in arrival order, one at a time.
On disconnect the chunker is flushed and a final chunk (is_final=True) is processed
so carried-over words are not lost.

Server -> client JSON:
    {"type": "session", "session_id": ...}
    {"type": "phrase", "text", "speaker_id", "speaker_label", "start_time", "end_time", ...}
    {"type": "chunk", "chunk_index", "split_point", "carryover_duration", "is_final", ...}
    {"type": "error", "message", "chunk_index"} and one reply per control message.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import numpy as np
from fastapi import WebSocket

from speakerstream.asr.local_whisper import pcm_bytes_to_float32
from speakerstream.audio import AudioReceiver, VADProcessor, create_chunker
from speakerstream.config import get_settings
from speakerstream.pipeline.messages import (
    ChunkResponse,
    ErrorResponse,
    ImportEnrollmentsRequest,
    ProcessChunkRequest,
    Request,
    Response,
    request_from_json,
)
from speakerstream.pipeline.worker import DiarizationWorker
from speakerstream.session_store import Session, delete_session, generate_session_id, register_session
from speakerstream.transcript.merger import PhraseMessage, TranscriptMerger
from speakerstream.transcript.writer import TranscriptWriterBase, create_transcript_writer

logger = logging.getLogger(__name__)


class WebSocketManager:
    def __init__(
        self,
        websocket: WebSocket,
        worker: DiarizationWorker,
        enrollments: list[dict[str, Any]] | None = None,
    ) -> None:
        self._ws = websocket
        self._worker = worker
        self._enrollments = enrollments or []
        self._settings = get_settings()
        self._receiver = AudioReceiver()
        self._vad = VADProcessor()
        self._chunker = create_chunker(self._on_chunk, self._settings)
        self._queue: asyncio.Queue[Request | None] = asyncio.Queue()
        self._consumer_task: asyncio.Task[Any] | None = None
        self._closed = False

        self._session_id = generate_session_id()
        self._transcript_writer: TranscriptWriterBase | None = None
        self._merger = TranscriptMerger(on_message=self._write_phrase)

    @property
    def session_id(self) -> str:
        return self._session_id

    async def _send_json(self, payload: dict[str, Any]) -> None:
        if self._closed:
            return
        try:
            await self._ws.send_text(json.dumps(payload))
        except Exception:
            self._closed = True

    def _write_phrase(self, message: PhraseMessage) -> None:
        if self._transcript_writer is not None:
            self._transcript_writer.append(message)

    def _on_chunk(self, chunk: bytes) -> None:
        """Called by the chunker for every finished chunk."""
        self._queue.put_nowait(ProcessChunkRequest(audio=pcm_bytes_to_float32(chunk), is_final=False))

    async def _consumer(self) -> None:
        """Drain the queue into the worker until the None sentinel."""
        while True:
            request = await self._queue.get()
            if request is None:
                break
            try:
                response = await self._worker.handle(request)
            except Exception as e:
                logger.exception("Session %s: request %s failed", self._session_id, request.type)
                response = ErrorResponse(message=str(e))
            await self._deliver(response)

    async def _deliver(self, response: Response) -> None:
        if isinstance(response, ChunkResponse):
            for message in self._merger.on_chunk_result(response.result):
                await self._send_json(message.to_dict())
            summary = response.to_dict()
            summary.pop("phrases", None)
            await self._send_json(summary)
            return
        if isinstance(response, ErrorResponse):
            logger.warning("Session %s: %s", self._session_id, response.message)
        await self._send_json(response.to_dict())

    async def _handle_text(self, text: str) -> None:
        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("control message must be a JSON object")
            request = request_from_json(data)
        except ValueError as e:
            await self._send_json(ErrorResponse(message=str(e)).to_dict())
            return
        self._queue.put_nowait(request)

    def _handle_audio(self, data: bytes) -> None:
        for frame in self._receiver.feed(data):
            is_speech = self._settings.CHUNK_MODE == "fixed" or self._vad.is_speech(frame)
            self._chunker.push(frame, is_speech)

    def _flush_final(self) -> None:
        """Remaining chunker audio plus any partial frame, processed as the final chunk."""
        parts = [self._chunker.flush() or b"", self._receiver.take_remainder()]
        tail = b"".join(parts)
        audio = pcm_bytes_to_float32(tail) if tail else np.zeros(0, dtype=np.float32)
        self._queue.put_nowait(ProcessChunkRequest(audio=audio, is_final=True))

    async def run(self) -> None:
        """Main loop: receive frames, feed chunker, run consumer; flush on disconnect."""
        self._transcript_writer = create_transcript_writer(self._session_id)
        await self._transcript_writer.start()
        register_session(Session(session_id=self._session_id, worker=self._worker, merger=self._merger))
        logger.info("Session %s started", self._session_id)
        await self._send_json({"type": "session", "session_id": self._session_id})

        if self._enrollments:
            self._queue.put_nowait(ImportEnrollmentsRequest(enrollments=list(self._enrollments)))
        self._consumer_task = asyncio.create_task(self._consumer())

        try:
            while not self._closed:
                try:
                    msg = await self._ws.receive()
                except Exception:
                    break
                if msg.get("type") == "websocket.disconnect":
                    break
                if msg.get("bytes") is not None:
                    self._handle_audio(msg["bytes"])
                elif msg.get("text") is not None:
                    await self._handle_text(msg["text"])
        finally:
            self._flush_final()
            self._queue.put_nowait(None)
            if self._consumer_task:
                try:
                    await asyncio.wait_for(self._consumer_task, timeout=300.0)
                except (asyncio.CancelledError, asyncio.TimeoutError):
                    self._consumer_task.cancel()
                    try:
                        await self._consumer_task
                    except asyncio.CancelledError:
                        pass
            self._closed = True
            if self._transcript_writer:
                await self._transcript_writer.close()
            delete_session(self._session_id)
            logger.info("Session %s ended", self._session_id)
