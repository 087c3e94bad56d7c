"""Tests for softmax and top-K ranking."""

from __future__ import annotations

import numpy as np
import pytest

from nutrilens.ml.errors import InvalidArgumentError
from nutrilens.ml.ranking import Prediction, rank, softmax

LABELS = ["cat", "dog", "bird", "fish"]


class TestSoftmax:
    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_sums_to_one(self, seed: int) -> None:
        scores = np.random.default_rng(seed).normal(scale=10.0, size=1000)
        assert softmax(scores).sum() == pytest.approx(1.0, abs=1e-5)

    def test_large_logits_do_not_overflow(self) -> None:
        probabilities = softmax([1000.0, 1000.0])
        assert probabilities.tolist() == pytest.approx([0.5, 0.5])

    def test_accepts_batched_vector(self) -> None:
        probabilities = softmax(np.array([[0.0, 0.0, 0.0, 0.0]]))
        assert probabilities.shape == (4,)
        assert probabilities.tolist() == pytest.approx([0.25] * 4)

    def test_empty_vector_rejected(self) -> None:
        with pytest.raises(InvalidArgumentError):
            softmax([])


class TestRank:
    def test_golden_example(self) -> None:
        predictions = rank([5.0, 1.0, 1.0, 0.0], LABELS, 2)

        total = 1.0 + 2 * np.exp(-4.0) + np.exp(-5.0)
        assert [p.label for p in predictions] == ["cat", "dog"]
        assert predictions[0].confidence == pytest.approx(100.0 / total)
        assert predictions[1].confidence == pytest.approx(100.0 * np.exp(-4.0) / total)
        assert predictions[0].confidence == pytest.approx(95.843, abs=1e-3)

    def test_ties_broken_by_lower_index(self) -> None:
        predictions = rank([1.0, 2.0, 2.0, 2.0], LABELS, 4)
        assert [p.label for p in predictions] == ["dog", "bird", "fish", "cat"]

    def test_all_equal_scores_keep_index_order(self) -> None:
        predictions = rank([0.0, 0.0, 0.0, 0.0], LABELS, 4)
        assert [p.label for p in predictions] == LABELS

    def test_confidences_non_increasing(self) -> None:
        scores = np.random.default_rng(5).normal(size=50)
        labels = [f"class_{i}" for i in range(50)]
        confidences = [p.confidence for p in rank(scores, labels, 50)]
        assert confidences == sorted(confidences, reverse=True)

    def test_confidence_is_percentage_over_all_classes(self) -> None:
        predictions = rank([0.0, 0.0, 0.0, 0.0], LABELS, 1)
        assert predictions == [Prediction(label="cat", confidence=pytest.approx(25.0))]

    @pytest.mark.parametrize("k", [1, 2, 3, 4])
    def test_returns_exactly_k(self, k: int) -> None:
        assert len(rank([0.3, 0.1, 0.2, 0.4], LABELS, k)) == k

    @pytest.mark.parametrize("k", [0, -1, 5])
    def test_invalid_k_rejected(self, k: int) -> None:
        with pytest.raises(InvalidArgumentError):
            rank([0.3, 0.1, 0.2, 0.4], LABELS, k)

    def test_invalid_k_is_a_value_error(self) -> None:
        with pytest.raises(ValueError, match="k must be between 1 and 4"):
            rank([0.3, 0.1, 0.2, 0.4], LABELS, 0)

    def test_default_k_is_three(self) -> None:
        assert len(rank([0.3, 0.1, 0.2, 0.4], LABELS)) == 3

    def test_missing_label_becomes_unknown(self) -> None:
        predictions = rank([0.0, 0.0, 9.0], ["cat", "dog"], 2)
        assert predictions[0].label == "unknown"
        assert predictions[1].label == "cat"
