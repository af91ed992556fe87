"""Tests for enrollment audio checks and centroid building."""
import numpy as np
import pytest

from speakerstream.diarization.enrollment import (
    EnrollmentBuilder,
    peak_normalize,
    validate_enrollment_audio,
)
from speakerstream.diarization.errors import AudioTooShortError

from conftest import unit


class TestEnrollmentAudio:
    def test_too_short_audio_rejected(self):
        with pytest.raises(AudioTooShortError) as exc_info:
            validate_enrollment_audio(np.zeros(7999, dtype=np.float32), sample_rate=16000, min_seconds=0.5)
        assert exc_info.value.min_seconds == 0.5
        assert "too short" in str(exc_info.value)

    def test_minimum_length_accepted(self):
        duration = validate_enrollment_audio(np.zeros(8000, dtype=np.float32), sample_rate=16000, min_seconds=0.5)
        assert duration == pytest.approx(0.5)

    def test_defaults_come_from_settings(self, monkeypatch):
        monkeypatch.setenv("ENROLLMENT_MIN_AUDIO_SECONDS", "2.0")
        with pytest.raises(AudioTooShortError):
            validate_enrollment_audio(np.zeros(16000, dtype=np.float32))

    def test_peak_normalize(self):
        out = peak_normalize(np.array([0.1, -0.5, 0.25], dtype=np.float32))
        assert float(np.max(np.abs(out))) == pytest.approx(0.95)
        assert out.dtype == np.float32

    def test_peak_normalize_silence_unchanged(self):
        silence = np.zeros(10, dtype=np.float32)
        np.testing.assert_array_equal(peak_normalize(silence), silence)


class TestEnrollmentBuilder:
    def test_outlier_rejected(self):
        builder = EnrollmentBuilder(outlier_threshold=0.7)
        builder.add_samples([unit(4, 0), unit(4, 0), unit(4, 0), unit(4, 1)])
        result = builder.build()
        assert result.rejected_count == 1
        assert result.sample_count == 3
        assert result.used_fallback is False
        np.testing.assert_allclose(result.centroid, unit(4, 0))

    def test_falls_back_to_all_samples(self):
        builder = EnrollmentBuilder(outlier_threshold=0.7)
        builder.add_samples([unit(3, 0), unit(3, 1), unit(3, 2)])
        result = builder.build()
        assert result.used_fallback is True
        assert result.sample_count == 3
        assert result.rejected_count == 3
        np.testing.assert_allclose(result.centroid, np.ones(3) / np.sqrt(3))

    def test_centroid_is_unit_length(self):
        builder = EnrollmentBuilder()
        builder.add_samples([[3.0, 4.0], [6.0, 8.5]])
        result = builder.build()
        assert float(np.linalg.norm(result.centroid)) == pytest.approx(1.0)
        assert result.used_fallback is False

    def test_sample_magnitude_ignored(self):
        builder = EnrollmentBuilder()
        builder.add_samples([[10.0, 0.0], [0.1, 0.0]])
        np.testing.assert_allclose(builder.build().centroid, [1.0, 0.0])

    def test_build_without_samples_raises(self):
        with pytest.raises(ValueError):
            EnrollmentBuilder().build()

    def test_min_samples(self):
        builder = EnrollmentBuilder(min_samples=2)
        builder.add_sample(unit(3, 0))
        assert builder.can_complete() is False
        builder.add_sample(unit(3, 0))
        assert builder.can_complete() is True

    def test_dimension_mismatch_rejected(self):
        builder = EnrollmentBuilder()
        builder.add_sample(unit(3, 0))
        with pytest.raises(ValueError):
            builder.add_sample(unit(4, 0))

    def test_invalid_sample_rejected(self):
        with pytest.raises(ValueError):
            EnrollmentBuilder().add_sample([float("nan"), 1.0])

    def test_zero_sample_rejected(self):
        with pytest.raises(ValueError):
            EnrollmentBuilder().add_sample([0.0, 0.0])

    def test_opposite_samples_cannot_build(self):
        builder = EnrollmentBuilder()
        builder.add_samples([[1.0, 0.0], [-1.0, 0.0]])
        with pytest.raises(ValueError):
            builder.build()

    def test_reset(self):
        builder = EnrollmentBuilder()
        builder.add_sample(unit(3, 0))
        builder.reset()
        assert builder.sample_count == 0
