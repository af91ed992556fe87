"""Diarization: phrase detection, frame pooling and online speaker clustering."""
from .enrollment import EnrollmentBuilder, EnrollmentResult, peak_normalize, validate_enrollment_audio
from .errors import AudioTooShortError, ChunkProcessingError, DiarizationError, EmbeddingUnavailableError
from .models import (
    UNKNOWN_LABEL,
    UNKNOWN_SPEAKER_ID,
    Assignment,
    AssignmentDebug,
    FrameTensor,
    Phrase,
    SimilarityWarning,
    Speaker,
    SpeakerSimilarity,
    Word,
)
from .phrase_detector import PhraseDetector, PhraseDetectorConfig
from .speaker_clusterer import ClustererConfig, SpeakerClusterer

__all__ = [
    "UNKNOWN_LABEL",
    "UNKNOWN_SPEAKER_ID",
    "Assignment",
    "AssignmentDebug",
    "AudioTooShortError",
    "ChunkProcessingError",
    "ClustererConfig",
    "DiarizationError",
    "EmbeddingUnavailableError",
    "EnrollmentBuilder",
    "EnrollmentResult",
    "FrameTensor",
    "Phrase",
    "PhraseDetector",
    "PhraseDetectorConfig",
    "SimilarityWarning",
    "Speaker",
    "SpeakerClusterer",
    "SpeakerSimilarity",
    "Word",
    "peak_normalize",
    "validate_enrollment_audio",
]
