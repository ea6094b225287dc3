"""k-nearest-neighbour voice screening model.

Query vectors are z-scored with the corpus statistics and compared to every
normalised reference sample by Euclidean distance. The k nearest vote;
ties go to the affected class. A pluggable confidence adjustment then runs
on the vote-based probability: by default it damps the probability when the
query sits far from all its neighbours, which usually means the recording
setup differs from the one used to build the corpus.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

import numpy as np
from sklearn.metrics import accuracy_score
from sklearn.model_selection import LeaveOneOut

from . import config
from .data_loader import NormalizedSample
from .errors import ModelNotReady

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Neighbour:
    label: str
    distance: float


@dataclass(frozen=True)
class Prediction:
    label: str
    probability: float                   # of the affected class, after adjustment
    neighbours: tuple[Neighbour, ...]    # nearest first
    k: int                               # effective k
    raw_probability: float = 0.0
    mean_distance: float = 0.0
    scale_mismatch: bool = False

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "probability": round(self.probability, 4),
            "raw_probability": round(self.raw_probability, 4),
            "k": self.k,
            "mean_distance": round(self.mean_distance, 4),
            "scale_mismatch": self.scale_mismatch,
            "neighbours": [
                {"label": n.label, "distance": round(n.distance, 4)} for n in self.neighbours
            ],
        }


@dataclass(frozen=True)
class ModelMetadata:
    k: int
    accuracy: Optional[float]
    sample_count: int
    feature_names: tuple[str, ...] = config.FEATURE_COLUMNS
    class_counts: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "k": self.k,
            "accuracy": self.accuracy,
            "sample_count": self.sample_count,
            "feature_names": list(self.feature_names),
            "class_counts": dict(self.class_counts),
        }


# --- Confidence adjustment policies ---

class ConfidenceAdjustment(Protocol):
    def __call__(self, probability: float, neighbours: Sequence[Neighbour]) -> tuple[float, bool]:
        """Return (adjusted probability, whether the adjustment fired)."""
        ...


class NoAdjustment:
    """Leave the vote-based probability untouched."""

    def __call__(self, probability, neighbours):
        return probability, False


class ScaleMismatchDamping:
    """Damp the affected-class probability when neighbours are all far away.

    A mean neighbour distance above ``threshold`` (in normalised units)
    suggests the query was recorded under different conditions than the
    corpus. The probability is then multiplied by ``factor``, so the model
    under-calls rather than over-calls the affected class.
    """

    def __init__(
        self,
        threshold: float = config.SCALE_MISMATCH_DISTANCE,
        factor: float = config.SCALE_MISMATCH_FACTOR,
    ):
        if not 0.0 <= factor <= 1.0:
            raise ValueError(f"Damping factor must be within [0, 1], got {factor}")
        self.threshold = threshold
        self.factor = factor

    def __call__(self, probability, neighbours):
        if not neighbours:
            return probability, False
        mean_distance = float(np.mean([n.distance for n in neighbours]))
        if mean_distance <= self.threshold:
            return probability, False
        logger.warning(
            "Scale mismatch: mean neighbour distance %.1f > %.1f, "
            "damping probability %.3f by %.2f",
            mean_distance, self.threshold, probability, self.factor,
        )
        return probability * self.factor, True

    def __repr__(self):
        return f"ScaleMismatchDamping(threshold={self.threshold}, factor={self.factor})"


# --- Distance / classifier ---

def euclidean_distance(a: np.ndarray, b: np.ndarray):
    """Euclidean distance along the last axis; leading axes broadcast.

    Two vectors give a float, a (n, d) matrix against a vector gives n distances.
    """
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    distance = np.sqrt(np.einsum("...i,...i->...", diff, diff))
    return float(distance) if distance.ndim == 0 else distance


def effective_k(k: int, sample_count: int) -> int:
    """Clamp k to [1, sample_count]."""
    return min(max(int(k), 1), sample_count)


class KNNClassifier:
    """Nearest-neighbour vote over normalised reference samples."""

    def __init__(
        self,
        samples: Sequence[NormalizedSample],
        k: int = config.DEFAULT_K,
        adjustment: Optional[ConfidenceAdjustment] = None,
    ):
        self.samples = list(samples)
        self.k = k
        self.adjustment = adjustment if adjustment is not None else ScaleMismatchDamping()
        if self.samples:
            self._matrix = np.vstack([s.vector for s in self.samples])
            self._labels = np.array([s.label for s in self.samples])
        else:
            self._matrix = np.empty((0, len(config.FEATURE_COLUMNS)))
            self._labels = np.array([], dtype=str)

    def __len__(self) -> int:
        return len(self.samples)

    def distances(self, vector: np.ndarray) -> np.ndarray:
        return euclidean_distance(self._matrix, vector)

    def predict_vector(self, vector: np.ndarray, k: Optional[int] = None) -> Prediction:
        """Classify an already-normalised vector."""
        if not self.samples:
            raise ModelNotReady("The KNN model has no reference samples. Load a dataset first.")

        k_eff = effective_k(self.k if k is None else k, len(self.samples))
        distances = self.distances(vector)
        order = np.argsort(distances, kind="stable")[:k_eff]
        neighbours = tuple(
            Neighbour(label=str(self._labels[i]), distance=float(distances[i])) for i in order
        )

        affected_votes = sum(1 for n in neighbours if n.label == config.LABEL_AFFECTED)
        raw_probability = affected_votes / k_eff
        probability, mismatch = self.adjustment(raw_probability, neighbours)

        # >= so that an even vote split resolves to the affected class
        label = config.LABEL_AFFECTED if probability >= 0.5 else config.LABEL_HEALTHY

        return Prediction(
            label=label,
            probability=probability,
            neighbours=neighbours,
            k=k_eff,
            raw_probability=raw_probability,
            mean_distance=float(np.mean([n.distance for n in neighbours])),
            scale_mismatch=mismatch,
        )


def leave_one_out_accuracy(
    samples: Sequence[NormalizedSample],
    k: int,
    adjustment: Optional[ConfidenceAdjustment] = None,
) -> Optional[float]:
    """Fraction of samples classified correctly against the other N-1.

    Returns None when the corpus has fewer than two samples.
    """
    samples = list(samples)
    if len(samples) < 2:
        return None

    adjustment = adjustment if adjustment is not None else ScaleMismatchDamping()
    y_true, y_pred = [], []
    for train_idx, test_idx in LeaveOneOut().split(np.arange(len(samples))):
        held_out = samples[test_idx[0]]
        classifier = KNNClassifier([samples[i] for i in train_idx], k=k, adjustment=adjustment)
        y_true.append(held_out.label)
        y_pred.append(classifier.predict_vector(held_out.vector).label)
    return float(accuracy_score(y_true, y_pred))


def sweep_k(
    samples: Sequence[NormalizedSample],
    ks: Sequence[int] = config.SWEEP_K_VALUES,
    adjustment: Optional[ConfidenceAdjustment] = None,
) -> dict[int, Optional[float]]:
    """Leave-one-out accuracy for each candidate k."""
    results = {}
    for k in ks:
        results[k] = leave_one_out_accuracy(samples, k, adjustment)
        logger.info("k=%d leave-one-out accuracy=%s", k,
                    "n/a" if results[k] is None else f"{results[k]:.2%}")
    return results
