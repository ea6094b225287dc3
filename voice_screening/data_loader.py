"""Reference corpus loading and normalisation statistics.

The corpus is a comma-separated table with a ``class`` label column and the
16 feature columns. Parsing is strict about structure (header, column
count) and permissive about cell contents: unparsable feature cells become
0 and are counted in a ``ParseReport`` rather than rejecting the row.
"""

import asyncio
import csv
import io
import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from . import config
from .errors import DatasetUnavailable, EmptyDataset, MalformedRow, MissingFeatureColumn
from .feature_extractor import FeatureVector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetSample:
    features: FeatureVector
    label: str


@dataclass(frozen=True)
class NormalizedSample:
    vector: np.ndarray
    label: str


@dataclass(frozen=True)
class ParseReport:
    """Diagnostics for the permissive cell parsing policy."""

    rows_parsed: int = 0
    defaulted_cells: int = 0
    defaulted_labels: int = 0
    defaulted_by_column: dict = field(default_factory=dict)


@dataclass(frozen=True)
class NormalizationStats:
    """Per-feature corpus mean and floored sample standard deviation."""

    mean: np.ndarray
    std: np.ndarray

    def __post_init__(self):
        for name in ("mean", "std"):
            array = np.array(getattr(self, name), dtype=np.float64)
            array.flags.writeable = False
            object.__setattr__(self, name, array)

    def normalize(self, features: FeatureVector) -> np.ndarray:
        """Z-score a feature vector with these statistics."""
        return (features.as_array() - self.mean) / self.std

    def normalize_samples(self, samples: Sequence[DatasetSample]) -> list[NormalizedSample]:
        normalized = []
        for sample in samples:
            vector = self.normalize(sample.features)
            vector.flags.writeable = False
            normalized.append(NormalizedSample(vector=vector, label=sample.label))
        return normalized

    def describe(self) -> dict[str, dict[str, float]]:
        return {
            name: {"mean": float(m), "std": float(s)}
            for name, m, s in zip(config.FEATURE_COLUMNS, self.mean, self.std)
        }


def _parse_float(cell: str) -> Optional[float]:
    try:
        value = float(cell)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _is_blank(cells: list[str]) -> bool:
    return not cells or (len(cells) == 1 and not cells[0].strip())


def _find_header(reader) -> list[str]:
    for row in reader:
        cells = [cell.strip() for cell in row]
        if any(cells) and config.LABEL_COLUMN in cells:
            return cells
    raise MissingFeatureColumn(config.LABEL_COLUMN)


def parse_dataset(text: str) -> tuple[list[DatasetSample], ParseReport]:
    """Parse CSV text into labelled samples.

    Raises
    ------
    EmptyDataset
        If the text is blank or holds no data rows.
    MissingFeatureColumn
        If the label column or any feature column is absent.
    MalformedRow
        If a data row's field count differs from the header's.
    """
    if not text.strip():
        raise EmptyDataset("The reference dataset is empty.")

    reader = csv.reader(io.StringIO(text, newline=""))
    headers = _find_header(reader)

    # Last "class" column carries the label
    label_index = len(headers) - 1 - headers[::-1].index(config.LABEL_COLUMN)
    feature_indices = []
    for column in config.FEATURE_COLUMNS:
        if column not in headers:
            raise MissingFeatureColumn(column)
        feature_indices.append(headers.index(column))

    samples = []
    defaulted = Counter()
    defaulted_labels = 0
    for cells in reader:
        if _is_blank(cells):
            continue
        if len(cells) != len(headers):
            raise MalformedRow(reader.line_num, len(cells), len(headers))

        label_value = _parse_float(cells[label_index])
        if label_value is None:
            defaulted_labels += 1
            label_value = 0.0
        label = config.LABEL_AFFECTED if label_value >= config.LABEL_THRESHOLD else config.LABEL_HEALTHY

        values = []
        for column, index in zip(config.FEATURE_COLUMNS, feature_indices):
            value = _parse_float(cells[index])
            if value is None:
                defaulted[column] += 1
                value = 0.0
            values.append(value)
        samples.append(DatasetSample(features=FeatureVector(tuple(values)), label=label))

    if not samples:
        raise EmptyDataset("No data rows were found in the reference dataset.")

    report = ParseReport(
        rows_parsed=len(samples),
        defaulted_cells=sum(defaulted.values()),
        defaulted_labels=defaulted_labels,
        defaulted_by_column=dict(defaulted),
    )
    if report.defaulted_cells or report.defaulted_labels:
        logger.warning(
            "Dataset parsing defaulted %d feature cell(s) and %d label(s) to 0: %s",
            report.defaulted_cells, report.defaulted_labels, report.defaulted_by_column,
        )
    return samples, report


def compute_stats(samples: Sequence[DatasetSample]) -> NormalizationStats:
    """Corpus mean and sample std (n-1) per feature, std floored to avoid /0."""
    if not samples:
        raise EmptyDataset("Cannot compute statistics of an empty dataset.")
    X = np.vstack([sample.features.as_array() for sample in samples])
    mean = X.mean(axis=0)
    if len(samples) < 2:
        std = np.zeros_like(mean)
    else:
        std = X.std(axis=0, ddof=1)
    std = np.where(std < config.STD_FLOOR, config.STD_FLOOR, std)
    return NormalizationStats(mean=mean, std=std)


def class_counts(samples: Sequence[DatasetSample]) -> dict[str, int]:
    counts = Counter(sample.label for sample in samples)
    return {
        config.LABEL_AFFECTED: counts.get(config.LABEL_AFFECTED, 0),
        config.LABEL_HEALTHY: counts.get(config.LABEL_HEALTHY, 0),
    }


def read_dataset_text(path: Path) -> str:
    """Read the corpus as UTF-8 text."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DatasetUnavailable(
            f"Failed to load the reference dataset from {path}: {e}"
        ) from e


async def load_dataset_text(path: Path = config.DATASET_PATH) -> str:
    """Read the corpus in a worker thread (I/O boundary)."""
    logger.info("Loading reference dataset from %s", path)
    return await asyncio.to_thread(read_dataset_text, path)
