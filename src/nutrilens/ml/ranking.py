"""Turning raw model scores into ranked, labelled predictions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from nutrilens.ml.constants import DEFAULT_TOP_K, UNKNOWN_LABEL
from nutrilens.ml.errors import InvalidArgumentError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True)
class Prediction:
    """A single classification prediction. Confidence is a percentage."""

    label: str
    confidence: float


def softmax(scores: ArrayLike) -> NDArray[np.float64]:
    """Numerically stable softmax over a 1-D score vector."""
    logits = np.asarray(scores, dtype=np.float64).ravel()
    if logits.size == 0:
        raise InvalidArgumentError("Cannot apply softmax to an empty score vector")
    shifted = np.exp(logits - logits.max())
    return shifted / shifted.sum()


def rank(scores: ArrayLike, labels: Sequence[str], k: int = DEFAULT_TOP_K) -> list[Prediction]:
    """Return the ``k`` most probable classes, highest first.

    Probabilities are computed over the whole score vector. Equal
    probabilities are ordered by ascending class index. Indices beyond the
    end of ``labels`` are reported as ``"unknown"``.

    Raises:
        InvalidArgumentError: If ``k`` is not in ``[1, len(scores)]``.
    """
    probabilities = softmax(scores)
    n = probabilities.size
    if k < 1 or k > n:
        raise InvalidArgumentError(f"k must be between 1 and {n}, got {k}")

    # Stable sort on negated probabilities keeps lower indices first on ties.
    order = np.argsort(-probabilities, kind="stable")[:k]
    return [
        Prediction(
            label=labels[index] if index < len(labels) else UNKNOWN_LABEL,
            confidence=float(probabilities[index]) * 100.0,
        )
        for index in order
    ]
