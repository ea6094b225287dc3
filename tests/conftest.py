"""Shared fixtures: synthetic reference corpora in the CSV layout."""

import numpy as np
import pytest

from voice_screening import config

# Two well separated centroids in raw feature units
AFFECTED_CENTROID = np.array([
    0.0080, 0.0010, 0.60, 4.5e-5, 0.30, 0.35, 0.90, 4.0, 0.40,
    2.0, 2.5, 3.5, 6.0, 0.95, 0.05, 20.0,
])
HEALTHY_CENTROID = np.array([
    0.0060, 0.0004, 0.25, 1.5e-5, 0.12, 0.15, 0.36, 2.0, 0.18,
    1.0, 1.2, 1.8, 3.0, 0.98, 0.02, 24.0,
])


def _build_csv(rows, labels, columns=config.FEATURE_COLUMNS, leading_lines=()):
    """Render rows of feature values and labels as corpus CSV text."""
    header = ["id", *columns, "class"]
    lines = list(leading_lines) + [",".join(header)]
    for i, (row, label) in enumerate(zip(rows, labels)):
        cells = [str(i)] + [repr(float(v)) for v in row] + [str(label)]
        lines.append(",".join(cells))
    return "\n".join(lines) + "\n"


def _clustered_rows(n_per_class=2, spread=0.01, seed=0):
    """Rows jittered around the two centroids; affected rows first."""
    rng = np.random.RandomState(seed)
    rows, labels = [], []
    for centroid, label in ((AFFECTED_CENTROID, 1), (HEALTHY_CENTROID, 0)):
        for _ in range(n_per_class):
            rows.append(centroid * (1 + spread * rng.uniform(-1, 1, size=centroid.shape)))
            labels.append(label)
    return rows, labels


@pytest.fixture
def make_csv():
    return _build_csv


@pytest.fixture
def make_rows():
    return _clustered_rows


@pytest.fixture
def corpus_text():
    """4-row corpus: 2 affected, 2 healthy."""
    rows, labels = _clustered_rows()
    return _build_csv(rows, labels)
