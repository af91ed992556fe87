"""Application configuration. Loads from env vars."""
from __future__ import annotations

import logging
import os
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings. Override via environment variables."""

    # Audio: PCM 16-bit mono, 16kHz
    SAMPLE_RATE: int = 16000
    SAMPLE_WIDTH: int = 2  # 16-bit
    CHANNELS: int = 1

    # Frame: 20ms @ 16kHz = 320 samples = 640 bytes
    FRAME_MS: int = 20
    FRAME_BYTES: int = 640  # 320 * 2

    # Chunking: "vad" = speech-triggered chunks, "fixed" = constant-length chunks
    CHUNK_MODE: Literal["vad", "fixed"] = "vad"
    CHUNK_FIXED_SECONDS: float = 5.0
    VAD_AGGRESSIVENESS: int = 2  # webrtcvad 0-3
    VAD_MIN_SPEECH_SECONDS: float = 1.0  # do not emit a chunk with less speech than this
    VAD_MAX_SPEECH_SECONDS: float = 15.0  # force a chunk boundary after this much audio
    VAD_REDEMPTION_MS: int = 300  # trailing silence that ends a speech chunk
    VAD_PRE_SPEECH_PAD_MS: int = 250  # audio kept before speech onset
    # Carried-over audio (no words recognised) is capped to this length
    CARRYOVER_MAX_SECONDS: float = 30.0

    # Phrase detection on word timestamps
    PHRASE_GAP_THRESHOLD_SECONDS: float = 0.300  # gap >= this starts a new phrase
    PHRASE_MIN_DURATION_SECONDS: float = 0.5  # shorter phrases are flagged low-confidence

    # Online speaker clustering (cosine similarity on pooled frame embeddings)
    CLUSTER_NUM_SPEAKERS: int = 2  # cap on discovered (non-enrolled) speakers
    CLUSTER_SIMILARITY_THRESHOLD: float = 0.75
    CLUSTER_FALLBACK_THRESHOLD: float = 0.5
    CLUSTER_FALLBACK_POLICY: Literal["best_match", "unknown"] = "best_match"
    CLUSTER_CONFIDENCE_MARGIN: float = 0.0  # 0 disables the ambiguous-match check
    CLUSTER_MAX_SPEAKERS: int = 10
    CLUSTER_INTER_ENROLLMENT_WARNING_THRESHOLD: float = 0.72

    # Enrollment capture and storage
    ENROLLMENT_MIN_AUDIO_SECONDS: float = 0.5
    ENROLLMENT_MIN_SAMPLES: int = 1
    ENROLLMENT_OUTLIER_THRESHOLD: float = 0.7
    ENROLLMENT_MAX_SPEAKERS: int = 6
    ENROLLMENT_STORE_PATH: str = "./enrollments.json"

    # ASR backend: "local" | "cloudflare"
    ASR_BACKEND: Literal["local", "cloudflare"] = "local"

    # Cloudflare Workers AI Whisper (when ASR_BACKEND=cloudflare)
    CLOUDFLARE_ACCOUNT_ID: str = ""
    CLOUDFLARE_API_TOKEN: str = ""

    # Local Whisper (when ASR_BACKEND=local); model loaded once at startup
    LOCAL_WHISPER_MODEL: str = "base"  # base | small | medium | large-v3
    LOCAL_WHISPER_DEVICE: Literal["cpu", "cuda"] = "cpu"
    LOCAL_WHISPER_COMPUTE_TYPE: Literal["int8", "float16"] = "int8"
    LOCAL_WHISPER_BEAM_SIZE: int = 5

    # Frame-level acoustic model: "wavlm" | "none" (none = every phrase has no embedding)
    EMBEDDING_BACKEND: Literal["wavlm", "none"] = "wavlm"
    EMBEDDING_MODEL: str = "microsoft/wavlm-base-plus-sv"
    EMBEDDING_DEVICE: Literal["cpu", "cuda"] = "cpu"

    # Session transcript storage: one .txt per WebSocket, append-only (labeled phrases only).
    TRANSCRIPT_SAVE_ENABLED: bool = True
    TRANSCRIPT_DIR: str = "./transcripts"
    TRANSCRIPT_ADD_TIMESTAMPS: bool = True  # prefix each line with [MM:SS.ss]

    # Logging: level (DEBUG, INFO, WARNING, ERROR); empty LOG_FILE = console only
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings | None = None) -> None:
    """Install console (and optional file) handlers on the package logger."""
    settings = settings or get_settings()
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger("speakerstream")
    root.setLevel(level)
    # Idempotent: lifespan may run more than once in tests
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_LOG_FORMAT)
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(settings.LOG_FILE, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
