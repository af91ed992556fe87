"""
FastAPI app: WebSocket endpoint for streaming phrase-level speaker diarization;
HTTP API for enrollment capture, stored enrollments and live-session control.

Client sends binary PCM 16-bit mono 16kHz over /ws/diarize. Server responds with JSON:
{ "type": "phrase", "text": "...", "speaker_id": 0, "speaker_label": "Speaker 1", "start_time": ..., ... }
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect

from speakerstream.asr.base import ASREngine
from speakerstream.asr.cloudflare import CloudflareWhisperEngine
from speakerstream.asr.local_whisper import LocalWhisperEngine, pcm_bytes_to_float32
from speakerstream.config import configure_logging, get_settings
from speakerstream.diarization.enrollment import EnrollmentBuilder, peak_normalize, validate_enrollment_audio
from speakerstream.diarization.errors import AudioTooShortError, EmbeddingUnavailableError
from speakerstream.diarization.speaker_clusterer import ClustererConfig, SpeakerClusterer
from speakerstream.embedding.base import EmbeddingEngine
from speakerstream.embedding.null import NullEmbeddingEngine
from speakerstream.embedding.wavlm import WavLMEngine, load_wavlm
from speakerstream.pipeline.messages import (
    GetSpeakersRequest,
    ImportEnrollmentsRequest,
    ResetRequest,
)
from speakerstream.pipeline.orchestrator import ChunkOrchestrator
from speakerstream.pipeline.worker import DiarizationWorker
from speakerstream.schemas.enrollment import (
    EmbeddingResponse,
    Enrollment,
    EnrollmentCreateRequest,
    EnrollmentCreateResponse,
)
from speakerstream.schemas.session import (
    ImportEnrollmentsResponse,
    ResetSessionRequest,
    ResetSessionResponse,
    SessionSpeakersResponse,
    SessionTranscriptResponse,
    SimilarityWarningOut,
)
from speakerstream.session_store import Session, get_session, list_session_ids
from speakerstream.storage.enrollment_store import EnrollmentLimitError, JsonEnrollmentStore
from speakerstream.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

# Set in lifespan so WebSocket route can get engines without Request
_current_app: FastAPI | None = None


def get_asr_engine(app: FastAPI | None = None) -> ASREngine:
    """Return ASR engine based on config. Local uses singleton model from app.state."""
    a = app or _current_app
    if a is None:
        raise RuntimeError("App not initialized (lifespan not run?)")
    settings = get_settings()
    if settings.ASR_BACKEND == "cloudflare":
        return CloudflareWhisperEngine()
    model = getattr(a.state, "whisper_model", None)
    return LocalWhisperEngine(model=model)


def get_embedding_engine(app: FastAPI | None = None) -> EmbeddingEngine:
    """Shared embedding engine built at startup; NullEmbeddingEngine when none is loaded."""
    a = app or _current_app
    if a is None:
        raise RuntimeError("App not initialized (lifespan not run?)")
    return getattr(a.state, "embedding_engine", None) or NullEmbeddingEngine()


def get_enrollment_store() -> JsonEnrollmentStore:
    return JsonEnrollmentStore()


def _load_whisper_model():
    """Load faster-whisper model once. Called at startup when ASR_BACKEND=local."""
    try:
        from faster_whisper import WhisperModel
    except ImportError as err:
        raise ImportError(
            "faster-whisper is required for ASR_BACKEND=local. "
            "Install with: pip install faster-whisper"
        ) from err
    settings = get_settings()
    logger.info("Loading Whisper model %s on %s", settings.LOCAL_WHISPER_MODEL, settings.LOCAL_WHISPER_DEVICE)
    return WhisperModel(
        settings.LOCAL_WHISPER_MODEL,
        device=settings.LOCAL_WHISPER_DEVICE,
        compute_type=settings.LOCAL_WHISPER_COMPUTE_TYPE,
    )


def _build_embedding_engine() -> EmbeddingEngine:
    settings = get_settings()
    if settings.EMBEDDING_BACKEND == "wavlm":
        model, feature_extractor = load_wavlm()
        return WavLMEngine(model, feature_extractor)
    logger.info("EMBEDDING_BACKEND=none: phrases are labeled without acoustic embeddings")
    return NullEmbeddingEngine()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _current_app
    _current_app = app
    settings = get_settings()
    configure_logging(settings)
    # Models are loaded once at startup and shared by all sessions
    if settings.ASR_BACKEND == "local":
        app.state.whisper_model = _load_whisper_model()
    else:
        app.state.whisper_model = None
    app.state.embedding_engine = _build_embedding_engine()
    yield
    app.state.whisper_model = None
    app.state.embedding_engine = None
    _current_app = None


app = FastAPI(
    title="Streaming Speaker Diarization",
    description="WebSocket phrase-level diarization on word-timestamped ASR and WavLM frame embeddings",
    lifespan=lifespan,
)


def _build_worker(debug: bool = False) -> DiarizationWorker:
    """Fresh per-session pipeline: own clusterer, own carryover state."""
    orchestrator = ChunkOrchestrator(
        asr_engine=get_asr_engine(),
        embedding_engine=get_embedding_engine(),
        clusterer=SpeakerClusterer(ClustererConfig.from_settings()),
        debug=debug,
    )
    return DiarizationWorker(orchestrator)


@app.websocket("/ws/diarize")
async def websocket_diarize(websocket: WebSocket) -> None:
    """
    WebSocket: client sends raw PCM 16-bit mono 16kHz (binary) and JSON control messages (text).
    Stored enrollments are imported into the session before the first chunk.
    ?debug=1 adds the per-speaker similarity breakdown to every phrase.
    """
    await websocket.accept()
    debug = websocket.query_params.get("debug") in ("1", "true")
    manager = WebSocketManager(
        websocket,
        _build_worker(debug=debug),
        enrollments=get_enrollment_store().list(),
    )
    try:
        await manager.run()
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WebSocket session %s failed", manager.session_id)
        try:
            await websocket.close()
        except Exception:
            pass


@app.get("/health")
async def health() -> dict:
    settings = get_settings()
    return {
        "status": "ok",
        "asr_backend": settings.ASR_BACKEND,
        "embedding_backend": settings.EMBEDDING_BACKEND,
        "sessions": len(list_session_ids()),
    }


# --------------------------------------------------------------- enrollment


@app.post("/api/embedding", response_model=EmbeddingResponse)
async def extract_embedding(request: Request) -> EmbeddingResponse:
    """
    One speaker embedding for a raw PCM body (16-bit mono 16kHz).
    Used to capture enrollment samples; audio shorter than the minimum is rejected before the model runs.
    """
    engine = get_embedding_engine(request.app)
    if not engine.available:
        raise HTTPException(status_code=503, detail="Embedding model not loaded")
    body = await request.body()
    audio = pcm_bytes_to_float32(body[: len(body) - (len(body) % 2)])
    try:
        validate_enrollment_audio(audio, engine.sample_rate)
    except AudioTooShortError as e:
        raise HTTPException(status_code=422, detail=str(e))
    try:
        embedding = await engine.extract_embedding(peak_normalize(audio))
        if embedding is None:
            raise EmbeddingUnavailableError("embedding model returned no embedding")
    except EmbeddingUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Embedding extraction failed: %s", e)
        raise HTTPException(status_code=502, detail="Embedding extraction failed")
    return EmbeddingResponse(embedding=[float(v) for v in embedding], dimensions=len(embedding))


@app.get("/api/enrollments", response_model=list[Enrollment])
async def list_enrollments() -> list[Enrollment]:
    return [Enrollment.model_validate(e) for e in get_enrollment_store().list() if e.get("centroid") is not None]


@app.post("/api/enrollments", response_model=EnrollmentCreateResponse, status_code=201)
async def create_enrollment(body: EnrollmentCreateRequest) -> EnrollmentCreateResponse:
    """Build a centroid from sample embeddings (outlier rejection) and store it."""
    builder = EnrollmentBuilder()
    try:
        builder.add_samples(body.embeddings)
        result = builder.build()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    try:
        entry = get_enrollment_store().add(body.name.strip(), result.centroid)
    except EnrollmentLimitError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return EnrollmentCreateResponse(
        enrollment=Enrollment.model_validate(entry),
        sample_count=result.sample_count,
        rejected_count=result.rejected_count,
        used_fallback=result.used_fallback,
    )


@app.delete("/api/enrollments/{enrollment_id}")
async def delete_enrollment(enrollment_id: str) -> dict:
    if not get_enrollment_store().remove(enrollment_id):
        raise HTTPException(status_code=404, detail="Enrollment not found")
    return {"deleted": enrollment_id}


@app.delete("/api/enrollments")
async def clear_enrollments() -> dict:
    store = get_enrollment_store()
    count = len(store.list())
    store.clear()
    return {"deleted": count}


# ------------------------------------------------------------- live sessions


def _require_session(session_id: str) -> Session:
    session = get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found; connect WebSocket first to create session")
    return session


@app.get("/api/sessions/{session_id}/speakers", response_model=SessionSpeakersResponse)
async def session_speakers(session_id: str) -> SessionSpeakersResponse:
    session = _require_session(session_id)
    response = await session.worker.handle(GetSpeakersRequest())
    return SessionSpeakersResponse(
        session_id=session_id,
        num_speakers=response.num_speakers,
        speakers=response.speakers,
    )


@app.post("/api/sessions/{session_id}/reset", response_model=ResetSessionResponse)
async def reset_session(session_id: str, body: ResetSessionRequest | None = None) -> ResetSessionResponse:
    session = _require_session(session_id)
    preserve = body.preserve_enrolled if body is not None else False
    response = await session.worker.handle(ResetRequest(preserve_enrolled=preserve))
    session.merger.clear()
    return ResetSessionResponse(
        session_id=session_id,
        preserve_enrolled=response.preserve_enrolled,
        speaker_count=response.speaker_count,
    )


@app.post("/api/sessions/{session_id}/enrollments", response_model=ImportEnrollmentsResponse)
async def import_session_enrollments(session_id: str) -> ImportEnrollmentsResponse:
    """Replace the session's enrolled speakers with the stored enrollments."""
    session = _require_session(session_id)
    response = await session.worker.handle(ImportEnrollmentsRequest(enrollments=get_enrollment_store().list()))
    return ImportEnrollmentsResponse(
        session_id=session_id,
        enrolled_count=response.enrolled_count,
        warnings=[
            SimilarityWarningOut(speaker1=w.speaker1, speaker2=w.speaker2, similarity=w.similarity)
            for w in response.warnings
        ],
    )


@app.get("/api/sessions/{session_id}/transcript", response_model=SessionTranscriptResponse)
async def session_transcript(session_id: str) -> SessionTranscriptResponse:
    session = _require_session(session_id)
    return SessionTranscriptResponse(
        session_id=session_id,
        text=session.merger.format_transcript(),
        phrases=[m.to_dict() for m in session.merger.messages],
    )
