"""Acoustic feature extraction for voice screening.

Turns the per-frame pitch track into the fixed 16-dimensional vector of
jitter, shimmer and harmonicity measures used by the reference corpus.
Everything here is deterministic: no randomness, no I/O.
"""

import logging
from dataclasses import dataclass
from typing import Mapping

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from . import config
from .pitch_analyzer import PitchPeriodAnalyzer, PitchTrack
from .signal_conditioner import Waveform, condition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureVector:
    """Immutable, ordered set of the 16 named acoustic features."""

    values: tuple

    def __post_init__(self):
        values = tuple(float(v) for v in self.values)
        if len(values) != len(config.FEATURE_COLUMNS):
            raise ValueError(
                f"Expected {len(config.FEATURE_COLUMNS)} features, got {len(values)}"
            )
        object.__setattr__(self, "values", values)

    @classmethod
    def from_mapping(cls, features: Mapping[str, float]) -> "FeatureVector":
        missing = [name for name in config.FEATURE_COLUMNS if name not in features]
        if missing:
            raise KeyError(f"Missing features: {', '.join(missing)}")
        return cls(tuple(features[name] for name in config.FEATURE_COLUMNS))

    def __getitem__(self, name: str) -> float:
        return self.values[config.FEATURE_COLUMNS.index(name)]

    def __len__(self) -> int:
        return len(self.values)

    def as_array(self) -> np.ndarray:
        array = np.array(self.values, dtype=np.float64)
        array.flags.writeable = False
        return array

    def to_dict(self) -> dict[str, float]:
        return dict(zip(config.FEATURE_COLUMNS, self.values))


def get_feature_names() -> list[str]:
    """Return the feature names in vector order."""
    return list(config.FEATURE_COLUMNS)


# --- Perturbation statistics ---

def mean_absolute_difference(values: np.ndarray) -> float:
    """Mean of |x[i] - x[i+1]| over successive pairs."""
    if len(values) < 2:
        return 0.0
    return float(np.mean(np.abs(np.diff(values))))


def sample_std(values: np.ndarray) -> float:
    if len(values) < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def perturbation_quotient(values: np.ndarray, reference_mean: float, window_size: int) -> float:
    """Mean |centre - window mean| over all centred windows, relative to ``reference_mean``.

    RAP and PPQ5 are this quotient on periods with windows of 3 and 5;
    APQ3/5/11 are the same on amplitudes.
    """
    if len(values) < window_size or reference_mean == 0:
        return 0.0
    half = window_size // 2
    windows = sliding_window_view(values, window_size)
    deviations = np.abs(values[half:len(values) - half] - windows.mean(axis=1))
    return float(deviations.mean() / reference_mean)


def shimmer_db(amplitudes: np.ndarray) -> float:
    """Mean |20 log10(a[i+1] / a[i])| with a small epsilon guarding log(0)."""
    if len(amplitudes) < 2:
        return 0.0
    eps = config.SHIMMER_DB_EPSILON
    ratios = (amplitudes[1:] + eps) / (amplitudes[:-1] + eps)
    return float(np.mean(np.abs(20.0 * np.log10(ratios))))


def harmonicity(mean_correlation: float) -> tuple[float, float]:
    """Return (NHR, HNR) derived from the mean peak autocorrelation."""
    harmonic = min(max(mean_correlation, config.HARMONIC_FLOOR), 1.0)
    noise = max(1.0 - harmonic, config.HARMONIC_FLOOR)
    nhr = noise / harmonic
    return nhr, 1.0 / max(nhr, config.HARMONIC_FLOOR)


def compute_features(track: PitchTrack) -> FeatureVector:
    """Derive the 16-feature vector from a pitch track."""
    periods = np.asarray(track.periods, dtype=np.float64)
    amplitudes = np.asarray(track.amplitudes, dtype=np.float64)
    correlations = np.asarray(track.correlations, dtype=np.float64)

    mean_period = float(np.mean(periods)) if len(periods) else 0.0
    mean_amplitude = float(np.mean(amplitudes)) if len(amplitudes) else 0.0
    mean_correlation = float(np.mean(correlations)) if len(correlations) else 0.0

    # Jitter
    jitter_abs = mean_absolute_difference(periods)
    jitter_pct = jitter_abs / mean_period * 100 if mean_period else 0.0
    rap = perturbation_quotient(periods, mean_period, 3) * 100
    ppq5 = perturbation_quotient(periods, mean_period, 5) * 100

    # Shimmer
    shimmer_pct = (
        mean_absolute_difference(amplitudes) / mean_amplitude * 100 if mean_amplitude else 0.0
    )
    apq3 = perturbation_quotient(amplitudes, mean_amplitude, 3) * 100
    apq5 = perturbation_quotient(amplitudes, mean_amplitude, 5) * 100
    apq11 = perturbation_quotient(amplitudes, mean_amplitude, 11) * 100

    nhr, hnr = harmonicity(mean_correlation)

    return FeatureVector((
        mean_period,
        sample_std(periods),
        jitter_pct,
        jitter_abs,
        rap,
        ppq5,
        3 * rap,                 # DDP
        shimmer_pct,
        shimmer_db(amplitudes),
        apq3,
        apq5,
        apq11,
        3 * apq3,                # DDA
        mean_correlation,
        nhr,
        hnr,
    ))


def extract_features(
    waveform: Waveform,
    analyzer: PitchPeriodAnalyzer | None = None,
) -> FeatureVector:
    """Condition the waveform, track pitch and compute the feature vector.

    Raises
    ------
    InsufficientVoicedSignal
        If the recording has too few voiced frames.
    """
    analyzer = analyzer or PitchPeriodAnalyzer()
    signal = condition(waveform)
    track = analyzer.analyze(signal, waveform.sample_rate)
    logger.debug(
        "Voiced frames: %d of %d (%.0f%%)",
        len(track), track.frames_analyzed, track.voiced_fraction * 100,
    )
    return compute_features(track)
