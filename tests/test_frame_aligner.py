"""Tests for frame range mapping and mean pooling."""
import numpy as np
import pytest

from speakerstream.diarization.frame_aligner import frame_range, mean_pool, pool_interval
from speakerstream.diarization.models import FrameTensor


class TestFrameRange:
    def test_interval_maps_proportionally(self):
        assert frame_range(0.0, 1.0, 2.0, 100) == (0, 50)

    def test_floor_start_and_ceil_end(self):
        assert frame_range(0.25, 0.55, 1.0, 10) == (2, 6)

    def test_zero_length_interval_gets_one_frame(self):
        assert frame_range(0.5, 0.5, 1.0, 10) == (5, 6)

    def test_end_clamped_to_frame_count(self):
        assert frame_range(1.5, 3.0, 2.0, 10) == (7, 10)

    def test_start_past_end_of_audio_still_one_frame(self):
        assert frame_range(2.5, 3.0, 2.0, 10) == (9, 10)

    def test_negative_start_clamped(self):
        assert frame_range(-0.5, 0.2, 1.0, 10) == (0, 2)

    def test_no_frames_raises(self):
        with pytest.raises(ValueError):
            frame_range(0.0, 1.0, 1.0, 0)

    def test_non_positive_duration_raises(self):
        with pytest.raises(ValueError):
            frame_range(0.0, 1.0, 0.0, 10)


class TestMeanPool:
    def test_mean_of_rows(self):
        frames = np.arange(12, dtype=np.float32).reshape(4, 3)
        pooled = mean_pool(frames, 1, 3)
        assert pooled.dtype == np.float64
        np.testing.assert_allclose(pooled, [4.5, 5.5, 6.5])

    def test_empty_range_raises(self):
        with pytest.raises(ValueError):
            mean_pool(np.ones((4, 3)), 2, 2)

    def test_pooling_is_deterministic(self):
        rng = np.random.default_rng(7)
        frames = rng.standard_normal((200, 64)).astype(np.float32)
        first = mean_pool(frames, 13, 177)
        second = mean_pool(frames, 13, 177)
        assert np.array_equal(first, second)


class TestPoolInterval:
    def test_returns_embedding_and_frame_count(self):
        data = np.vstack([np.full((5, 2), 1.0), np.full((5, 2), 3.0)])
        tensor = FrameTensor(data)
        embedding, count = pool_interval(tensor, 0.0, 0.5, 1.0)
        assert count == 5
        np.testing.assert_allclose(embedding, [1.0, 1.0])

    def test_batched_tensor_is_squeezed(self):
        tensor = FrameTensor(np.ones((1, 8, 4)))
        assert tensor.num_frames == 8
        assert tensor.dim == 4
        assert tensor.frame_rate(2.0) == pytest.approx(4.0)

    def test_three_dimensional_batch_rejected(self):
        with pytest.raises(ValueError):
            FrameTensor(np.ones((2, 8, 4)))
