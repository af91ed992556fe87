"""
DiarizationWorker: the single entry point to a session's pipeline.

One handler per request variant. Requests are handled strictly one at a time, so a
reset or enrollment import never lands in the middle of a chunk.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from speakerstream.diarization.errors import ChunkProcessingError
from speakerstream.pipeline.messages import (
    ChunkResponse,
    ErrorResponse,
    ExportEnrollmentsRequest,
    ExportEnrollmentsResponse,
    GetSpeakersRequest,
    ImportEnrollmentsRequest,
    ImportEnrollmentsResponse,
    NumSpeakersResponse,
    ProcessChunkRequest,
    Request,
    ResetRequest,
    ResetResponse,
    Response,
    SetNumSpeakersRequest,
    SpeakersResponse,
)
from speakerstream.pipeline.orchestrator import ChunkOrchestrator

logger = logging.getLogger(__name__)


class DiarizationWorker:
    def __init__(self, orchestrator: ChunkOrchestrator) -> None:
        self.orchestrator = orchestrator
        self._lock = asyncio.Lock()
        self._handlers: dict[type, Callable[..., Awaitable[Response]]] = {
            ProcessChunkRequest: self._process_chunk,
            ResetRequest: self._reset,
            SetNumSpeakersRequest: self._set_num_speakers,
            ImportEnrollmentsRequest: self._import_enrollments,
            ExportEnrollmentsRequest: self._export_enrollments,
            GetSpeakersRequest: self._get_speakers,
        }

    @property
    def clusterer(self):
        return self.orchestrator.clusterer

    async def handle(self, request: Request) -> Response:
        """Dispatch one request. Chunk failures come back as ErrorResponse; unknown request types raise TypeError."""
        handler = self._handlers.get(type(request))
        if handler is None:
            raise TypeError(f"unsupported request: {type(request).__name__}")
        async with self._lock:
            return await handler(request)

    async def _process_chunk(self, request: ProcessChunkRequest) -> Response:
        try:
            result = await self.orchestrator.process_chunk(request.audio, is_final=request.is_final)
        except ChunkProcessingError as e:
            return ErrorResponse(message=str(e), chunk_index=e.chunk_index)
        return ChunkResponse(result=result)

    async def _reset(self, request: ResetRequest) -> Response:
        self.orchestrator.reset(preserve_enrolled=request.preserve_enrolled)
        return ResetResponse(
            preserve_enrolled=request.preserve_enrolled,
            speaker_count=self.clusterer.detected_speaker_count,
        )

    async def _set_num_speakers(self, request: SetNumSpeakersRequest) -> Response:
        self.clusterer.set_num_speakers(request.num_speakers)
        return NumSpeakersResponse(num_speakers=self.clusterer.num_speakers)

    async def _import_enrollments(self, request: ImportEnrollmentsRequest) -> Response:
        warnings = self.clusterer.import_enrolled_speakers(request.enrollments)
        return ImportEnrollmentsResponse(enrolled_count=self.clusterer.get_enrolled_count(), warnings=warnings)

    async def _export_enrollments(self, request: ExportEnrollmentsRequest) -> Response:
        return ExportEnrollmentsResponse(enrollments=self.clusterer.export_enrolled_speakers())

    async def _get_speakers(self, request: GetSpeakersRequest) -> Response:
        return SpeakersResponse(speakers=self.clusterer.speakers_summary(), num_speakers=self.clusterer.num_speakers)
