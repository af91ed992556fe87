"""Transcript handling: phrase messages and optional session transcript persistence."""
from .merger import PhraseMessage, TranscriptMerger
from .writer import TranscriptWriter, TranscriptWriterBase, create_transcript_writer

__all__ = [
    "PhraseMessage",
    "TranscriptMerger",
    "TranscriptWriter",
    "TranscriptWriterBase",
    "create_transcript_writer",
]
