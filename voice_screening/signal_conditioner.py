"""Signal conditioning ahead of pitch analysis.

Reduces a decoded recording to a mono, silence-trimmed, duration-capped
float signal. None of these steps fail: at worst the input comes back
unchanged.
"""

from dataclasses import dataclass

import numpy as np

from . import config


@dataclass(frozen=True)
class Waveform:
    """Decoded audio: one sample array per channel plus the sampling rate."""

    channels: np.ndarray  # shape (n_channels, n_samples)
    sample_rate: int

    def __post_init__(self):
        channels = np.atleast_2d(np.asarray(self.channels))
        if channels.ndim != 2:
            raise ValueError(f"Expected (channels, samples) audio, got shape {channels.shape}")
        if self.sample_rate <= 0:
            raise ValueError(f"Invalid sample rate: {self.sample_rate}")
        object.__setattr__(self, "channels", channels)

    @property
    def n_channels(self) -> int:
        return self.channels.shape[0]

    @property
    def n_samples(self) -> int:
        return self.channels.shape[1]

    @property
    def duration(self) -> float:
        return self.n_samples / self.sample_rate


def audio_to_float(audio: np.ndarray) -> np.ndarray:
    """Convert integer PCM to float64 in [-1.0, 1.0]; float input is copied."""
    audio = np.asarray(audio)
    if audio.dtype == np.int16:
        return audio.astype(np.float64) / 32768.0
    if np.issubdtype(audio.dtype, np.floating):
        return audio.astype(np.float64)
    if np.issubdtype(audio.dtype, np.unsignedinteger):
        # Unsigned PCM is offset binary around the midpoint
        info = np.iinfo(audio.dtype)
        mid = (int(info.max) + 1) / 2.0
        return (audio.astype(np.float64) - mid) / mid
    return audio.astype(np.float64) / np.iinfo(audio.dtype).max


def mix_down(waveform: Waveform) -> np.ndarray:
    """Average all channels into one. Mono input is copied, never aliased."""
    channels = audio_to_float(waveform.channels)
    if waveform.n_channels == 1:
        return channels[0].copy()
    return channels.mean(axis=0)


def trim_silence(signal: np.ndarray, threshold: float = config.SILENCE_THRESHOLD) -> np.ndarray:
    """Drop leading and trailing samples quieter than ``threshold``.

    Returns the input unchanged when trimming would leave fewer than two
    loud samples bounding the kept region.
    """
    loud = np.flatnonzero(np.abs(signal) >= threshold)
    if loud.size == 0 or loud[-1] <= loud[0]:
        return signal
    return signal[loud[0]:loud[-1] + 1].copy()


def limit_duration(
    signal: np.ndarray,
    sample_rate: int,
    max_seconds: float = config.MAX_DURATION_SEC,
) -> np.ndarray:
    """Truncate to at most ``max_seconds`` of audio."""
    max_samples = int(np.floor(sample_rate * max_seconds))
    if len(signal) <= max_samples:
        return signal
    return signal[:max_samples].copy()


def condition(waveform: Waveform) -> np.ndarray:
    """Full conditioning chain: mixdown, silence trim, duration cap."""
    mono = mix_down(waveform)
    trimmed = trim_silence(mono)
    return limit_duration(trimmed, waveform.sample_rate)
