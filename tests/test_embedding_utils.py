"""Tests for embedding vector helpers."""
import numpy as np
import pytest

from speakerstream.diarization.embedding_utils import cosine_similarity, is_valid_vector, l2_normalize


class TestL2Normalize:
    def test_unit_length_copy(self):
        source = np.array([3.0, 4.0])
        out = l2_normalize(source)
        np.testing.assert_allclose(out, [0.6, 0.8])
        np.testing.assert_array_equal(source, [3.0, 4.0])

    @pytest.mark.parametrize(
        "values",
        [[], [0.0, 0.0, 0.0], [1e-12, 0.0], [float("nan"), 1.0], [float("inf"), 0.0]],
        ids=["empty", "zero", "tiny", "nan", "inf"],
    )
    def test_unusable_input_gives_none(self, values):
        assert l2_normalize(values) is None


def test_cosine_similarity_edge_cases():
    assert cosine_similarity([1.0, 0.0], [0.0, 0.0]) == 0.0
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0
    assert cosine_similarity([2.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)


def test_is_valid_vector():
    assert is_valid_vector([0.1, 0.2])
    assert not is_valid_vector(None)
    assert not is_valid_vector([])
    assert not is_valid_vector([[1.0, 2.0]])
    assert not is_valid_vector([float("nan")])
    assert not is_valid_vector("abc")
