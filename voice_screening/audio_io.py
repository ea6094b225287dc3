"""Audio decoding boundary.

Container and codec parsing is delegated to librosa; the rest of the engine
only sees a :class:`Waveform`. The async wrappers run decoding in a worker
thread so callers can await it alongside other I/O.
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Union

import librosa

from .errors import AudioDecodeError
from .signal_conditioner import Waveform

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def decode_file(path: PathLike) -> Waveform:
    """Decode an audio file at its native sample rate, keeping all channels."""
    try:
        audio, sr = librosa.load(str(path), sr=None, mono=False)
    except Exception as e:
        raise AudioDecodeError(
            f"Could not read audio from {path}. WAV, FLAC and OGG are supported. Error: {e}"
        ) from e

    waveform = Waveform(audio, int(sr))
    logger.info(
        "Audio decoded: %.2f sec, %d Hz, %d channel(s)",
        waveform.duration, waveform.sample_rate, waveform.n_channels,
    )
    return waveform


def decode_bytes(file_bytes: bytes, filename: str = "recording.wav") -> Waveform:
    """Decode in-memory audio by spooling it to a temporary file."""
    suffix = Path(filename).suffix or ".wav"
    try:
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
            tmp.write(file_bytes)
            tmp_path = Path(tmp.name)
    except OSError as e:
        raise AudioDecodeError(f"Could not buffer audio for decoding: {e}") from e

    try:
        return decode_file(tmp_path)
    finally:
        tmp_path.unlink(missing_ok=True)


async def load_waveform(path: PathLike) -> Waveform:
    return await asyncio.to_thread(decode_file, path)


async def load_waveform_bytes(file_bytes: bytes, filename: str = "recording.wav") -> Waveform:
    return await asyncio.to_thread(decode_bytes, file_bytes, filename)
