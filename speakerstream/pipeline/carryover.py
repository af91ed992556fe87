"""
Chunk-boundary carryover.

The last word of a non-final chunk may be clipped by the hard chunk edge, so it is not
finalized: everything after the end of the second-to-last word is re-recognised with
the next chunk. Chunks with fewer than two words are carried over whole.

Timestamps: a chunk's audio starts carryover_duration seconds into the session, so kept
words are rebased by adding it; afterwards carryover_duration grows by the split point.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from speakerstream.diarization.models import Word


@dataclass(frozen=True)
class CarryoverSplit:
    kept: list[Word]
    carried: list[Word]
    split_point: float


def split_for_carryover(words: Sequence[Word], chunk_duration: float, is_final: bool) -> CarryoverSplit:
    """
    is_final: keep everything, split at chunk_duration.
    >= 2 words: keep all but the last, split at the second-to-last word's end.
    0 or 1 words: keep nothing, split at 0.
    """
    words = list(words)
    if is_final:
        return CarryoverSplit(kept=words, carried=[], split_point=chunk_duration)
    if len(words) >= 2:
        kept = words[:-1]
        split_point = kept[-1].end
        if split_point is None:
            ends = [w.end for w in kept if w.end is not None]
            if not ends:
                return CarryoverSplit(kept=[], carried=words, split_point=0.0)
            split_point = max(ends)
        return CarryoverSplit(kept=kept, carried=words[-1:], split_point=min(split_point, chunk_duration))
    return CarryoverSplit(kept=[], carried=words, split_point=0.0)


@dataclass
class ChunkCarryoverState:
    """split_point: of the last chunk (chunk-relative). carryover_duration: session time where the next chunk's audio starts."""

    split_point: float = 0.0
    carryover_duration: float = 0.0

    def rebase(self, words: Sequence[Word]) -> list[Word]:
        return [w.shifted(self.carryover_duration) for w in words]

    def rebase_time(self, seconds: float) -> float:
        return seconds + self.carryover_duration

    def advance(self, split_point: float) -> None:
        self.split_point = split_point
        self.carryover_duration += split_point

    def skip(self, seconds: float) -> None:
        """Audio that will never be re-processed (dropped carryover, failed chunk)."""
        self.carryover_duration += seconds

    def reset(self) -> None:
        self.split_point = 0.0
        self.carryover_duration = 0.0
