"""
FrameAligner: map a time interval onto acoustic frames and mean-pool them.

Frames are spread uniformly over the chunk, so frame rate = num_frames / chunk duration.
For an interval [start, end):
    first = floor(start / duration * num_frames)
    last  = ceil(end / duration * num_frames)
clamped to [0, num_frames), always covering at least one frame.
"""
from __future__ import annotations

import math

import numpy as np

from speakerstream.diarization.models import FrameTensor


def frame_range(
    start: float,
    end: float,
    duration_seconds: float,
    num_frames: int,
) -> tuple[int, int]:
    """
    Half-open frame index range [first, last) covering the interval.
    Raises ValueError when there are no frames or the duration is not positive.
    """
    if num_frames <= 0:
        raise ValueError("frame tensor has no frames")
    if duration_seconds <= 0:
        raise ValueError(f"chunk duration must be positive, got {duration_seconds}")

    first = math.floor(start / duration_seconds * num_frames)
    last = math.ceil(end / duration_seconds * num_frames)

    first = min(max(first, 0), num_frames - 1)
    last = min(max(last, 0), num_frames)
    # Degenerate (zero-length or out-of-range) intervals still get one frame
    if last <= first:
        last = first + 1
    return first, last


def mean_pool(frames: np.ndarray, first: int, last: int) -> np.ndarray:
    """
    Elementwise mean of frames[first:last] as a float64 vector.
    Summing along axis 0 adds frames one after another in index order.
    """
    window = np.asarray(frames[first:last], dtype=np.float64)
    if window.shape[0] == 0:
        raise ValueError(f"empty frame range [{first}, {last})")
    return window.sum(axis=0) / window.shape[0]


def pool_interval(
    tensor: FrameTensor,
    start: float,
    end: float,
    duration_seconds: float,
) -> tuple[np.ndarray, int]:
    """Pool the frames overlapping [start, end]. Returns (embedding, frame_count)."""
    first, last = frame_range(start, end, duration_seconds, tensor.num_frames)
    return mean_pool(tensor.data, first, last), last - first
