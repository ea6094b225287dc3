"""Frame-wise pitch period analysis by normalised autocorrelation.

The waveform is cut into overlapping frames; each frame is Hann-windowed,
DC-corrected and searched for the autocorrelation peak inside the human
voice range. Frames without a confident peak are treated as unvoiced and
dropped. The surviving per-frame period, amplitude and peak correlation
sequences feed the perturbation statistics in ``feature_extractor``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.signal import correlate
from scipy.signal.windows import hann

from . import config
from .errors import InsufficientVoicedSignal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameEstimate:
    frequency: Optional[float]  # None = unvoiced / unreliable
    correlation: float
    rms: float


@dataclass(frozen=True)
class PitchTrack:
    """Parallel per-frame sequences for accepted (voiced) frames."""

    pitches: np.ndarray
    periods: np.ndarray
    amplitudes: np.ndarray
    correlations: np.ndarray
    frames_analyzed: int = 0

    def __len__(self) -> int:
        return len(self.periods)

    @property
    def voiced_fraction(self) -> float:
        if self.frames_analyzed == 0:
            return 0.0
        return len(self) / self.frames_analyzed


class PitchPeriodAnalyzer:
    """Autocorrelation pitch tracker with unvoiced-frame rejection."""

    def __init__(
        self,
        frame_size: int = config.FRAME_SIZE,
        hop_length: int = config.HOP_LENGTH,
        min_frequency: float = config.MIN_FREQUENCY,
        max_frequency: float = config.MAX_FREQUENCY,
        min_correlation: float = config.MIN_CORRELATION,
        min_voiced_frames: int = config.MIN_VOICED_FRAMES,
    ):
        self.frame_size = frame_size
        self.hop_length = hop_length
        self.min_frequency = min_frequency
        self.max_frequency = max_frequency
        self.min_correlation = min_correlation
        self.min_voiced_frames = min_voiced_frames
        self._window = hann(frame_size, sym=True)

    def lag_range(self, sample_rate: int) -> tuple[int, int]:
        """Inclusive autocorrelation lag search range in samples."""
        min_lag = max(1, int(np.floor(sample_rate / self.max_frequency)))
        max_lag = max(min_lag + 1, int(np.floor(sample_rate / self.min_frequency)))
        return min_lag, max_lag

    def analyze_frame(
        self,
        frame: np.ndarray,
        sample_rate: int,
        min_lag: int,
        max_lag: int,
    ) -> FrameEstimate:
        """Estimate the fundamental frequency of one frame."""
        if len(frame) == 0:
            return FrameEstimate(None, 0.0, 0.0)

        window = self._window if len(frame) == self.frame_size else hann(len(frame), sym=True)
        windowed = frame * window
        windowed = windowed - windowed.mean()

        energy = float(np.dot(windowed, windowed))
        rms = float(np.sqrt(energy / len(windowed)))
        if energy <= config.MIN_FRAME_ENERGY:
            return FrameEstimate(None, 0.0, rms)

        # acf[lag] = sum_i x[i] * x[i + lag], for lag = 0 .. n-1
        acf = correlate(windowed, windowed, mode="full")[len(windowed) - 1:]
        upper = min(max_lag, len(acf) - 1)
        if upper < min_lag:
            return FrameEstimate(None, 0.0, rms)

        normalized = acf[min_lag:upper + 1] / energy
        best = int(np.argmax(normalized))
        best_correlation = float(normalized[best])
        if best_correlation <= 0 or best_correlation < self.min_correlation:
            return FrameEstimate(None, max(best_correlation, 0.0), rms)

        frequency = sample_rate / (min_lag + best)
        if frequency < config.MIN_VALID_FREQUENCY or frequency > config.MAX_VALID_FREQUENCY:
            return FrameEstimate(None, best_correlation, rms)

        return FrameEstimate(frequency, best_correlation, rms)

    def analyze(self, signal: np.ndarray, sample_rate: int) -> PitchTrack:
        """Track pitch across the whole signal.

        Raises
        ------
        InsufficientVoicedSignal
            If fewer than ``min_voiced_frames`` frames were accepted.
        """
        signal = np.asarray(signal, dtype=np.float64)
        min_lag, max_lag = self.lag_range(sample_rate)

        pitches, periods, amplitudes, correlations = [], [], [], []
        n_frames = 0
        for start in range(0, len(signal) - self.frame_size + 1, self.hop_length):
            n_frames += 1
            estimate = self.analyze_frame(
                signal[start:start + self.frame_size], sample_rate, min_lag, max_lag,
            )
            if estimate.frequency is None:
                continue
            pitches.append(estimate.frequency)
            periods.append(1.0 / estimate.frequency)
            amplitudes.append(estimate.rms)
            correlations.append(estimate.correlation)

        logger.debug(
            "Pitch analysis: %d/%d frames voiced (lags %d-%d at %d Hz)",
            len(pitches), n_frames, min_lag, max_lag, sample_rate,
        )

        if len(pitches) < self.min_voiced_frames:
            raise InsufficientVoicedSignal(len(pitches), self.min_voiced_frames)

        return PitchTrack(
            pitches=np.array(pitches),
            periods=np.array(periods),
            amplitudes=np.array(amplitudes),
            correlations=np.array(correlations),
            frames_analyzed=n_frames,
        )
