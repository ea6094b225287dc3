"""Tests for autocorrelation pitch period analysis."""

import numpy as np
import pytest

from voice_screening.errors import InsufficientVoicedSignal
from voice_screening.pitch_analyzer import PitchPeriodAnalyzer


def _make_sine(f0=150.0, sr=16000, duration=1.0, amplitude=0.5, n_samples=None):
    n_samples = n_samples if n_samples is not None else int(sr * duration)
    t = np.arange(n_samples) / sr
    return amplitude * np.sin(2 * np.pi * f0 * t), sr


class TestLagRange:
    def test_16k(self):
        assert PitchPeriodAnalyzer().lag_range(16000) == (40, 266)

    def test_44k(self):
        assert PitchPeriodAnalyzer().lag_range(44100) == (110, 735)

    def test_low_rate_keeps_valid_range(self):
        min_lag, max_lag = PitchPeriodAnalyzer().lag_range(100)
        assert min_lag == 1
        assert max_lag == 2


class TestFrameAnalysis:
    def test_sine_frame(self):
        signal, sr = _make_sine()
        analyzer = PitchPeriodAnalyzer()
        min_lag, max_lag = analyzer.lag_range(sr)
        estimate = analyzer.analyze_frame(signal[:2048], sr, min_lag, max_lag)
        assert estimate.frequency == pytest.approx(150.0, abs=2.0)
        assert estimate.correlation > 0.8
        assert estimate.rms > 0

    def test_silent_frame_unvoiced(self):
        analyzer = PitchPeriodAnalyzer()
        estimate = analyzer.analyze_frame(np.zeros(2048), 16000, 40, 266)
        assert estimate.frequency is None
        assert estimate.rms == 0.0

    def test_empty_frame(self):
        estimate = PitchPeriodAnalyzer().analyze_frame(np.array([]), 16000, 40, 266)
        assert estimate.frequency is None

    def test_frequency_outside_accepted_range(self):
        # Widened search range lets an 800 Hz peak be found; it must still be rejected
        analyzer = PitchPeriodAnalyzer(min_frequency=20.0, max_frequency=1000.0)
        signal, sr = _make_sine(f0=800.0)
        min_lag, max_lag = analyzer.lag_range(sr)
        estimate = analyzer.analyze_frame(signal[:2048], sr, min_lag, max_lag)
        assert estimate.frequency is None
        assert estimate.correlation >= 0.3


class TestAnalyze:
    def test_sine_track(self):
        signal, sr = _make_sine()
        track = PitchPeriodAnalyzer().analyze(signal, sr)
        # (16000 - 2048) // 512 + 1 frames fit
        assert track.frames_analyzed == 28
        assert len(track) == 28
        assert track.voiced_fraction == pytest.approx(1.0)
        np.testing.assert_allclose(track.pitches, 150.0, atol=2.0)
        np.testing.assert_allclose(track.periods, 1.0 / track.pitches)
        assert len(track.amplitudes) == len(track.correlations) == len(track.periods)

    def test_silence_raises(self):
        with pytest.raises(InsufficientVoicedSignal) as exc_info:
            PitchPeriodAnalyzer().analyze(np.zeros(16000), 16000)
        assert exc_info.value.voiced_frames == 0
        assert exc_info.value.required == 5

    def test_white_noise_raises(self):
        rng = np.random.RandomState(42)
        with pytest.raises(InsufficientVoicedSignal):
            PitchPeriodAnalyzer().analyze(rng.randn(16000) * 0.3, 16000)

    def test_too_short_raises(self):
        signal, sr = _make_sine(duration=0.1)
        with pytest.raises(InsufficientVoicedSignal):
            PitchPeriodAnalyzer().analyze(signal, sr)

    def test_minimum_voiced_frames(self):
        # Exactly five frames fit: 2048 + 4 * 512 samples
        signal, sr = _make_sine(n_samples=2048 + 4 * 512)
        track = PitchPeriodAnalyzer().analyze(signal, sr)
        assert len(track) == 5
