"""Pipeline: chunk orchestration, carryover and the per-session worker."""
from .carryover import CarryoverSplit, ChunkCarryoverState, split_for_carryover
from .orchestrator import ChunkOrchestrator, ChunkResult, LabeledPhrase
from .worker import DiarizationWorker

__all__ = [
    "CarryoverSplit",
    "ChunkCarryoverState",
    "ChunkOrchestrator",
    "ChunkResult",
    "DiarizationWorker",
    "LabeledPhrase",
    "split_for_carryover",
]
