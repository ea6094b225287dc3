"""Configuration for the voice screening engine."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    """Integer environment override; invalid values fall back to ``default``."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %d", name, raw, default)
        return default


# --- Paths ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# Reference corpus (UTF-8 CSV with a "class" column and the 16 feature columns)
DATASET_PATH = Path(
    os.environ.get("VOICE_SCREENING_DATASET", DATA_DIR / "pd_speech_features.csv")
)

# --- Labels ---
LABEL_AFFECTED = "Affected"
LABEL_HEALTHY = "Healthy"
LABEL_COLUMN = "class"
LABEL_THRESHOLD = 0.5            # label cell >= this → affected

# --- Signal conditioning ---
SILENCE_THRESHOLD = 0.01         # fraction of full scale
MAX_DURATION_SEC = 15.0

# --- Pitch analysis ---
FRAME_SIZE = 2048
HOP_LENGTH = 512
MIN_FREQUENCY = 60.0             # lag search range
MAX_FREQUENCY = 400.0
MIN_VALID_FREQUENCY = 50.0       # accepted pitch range
MAX_VALID_FREQUENCY = 500.0
MIN_FRAME_ENERGY = 1e-9
MIN_CORRELATION = 0.3
MIN_VOICED_FRAMES = 5

# --- Features ---
FEATURE_COLUMNS = (
    "meanPeriodPulses",
    "stdDevPeriodPulses",
    "locPctJitter",
    "locAbsJitter",
    "rapJitter",
    "ppq5Jitter",
    "ddpJitter",
    "locShimmer",
    "locDbShimmer",
    "apq3Shimmer",
    "apq5Shimmer",
    "apq11Shimmer",
    "ddaShimmer",
    "meanAutoCorrHarmonicity",
    "meanNoiseToHarmHarmonicity",
    "meanHarmToNoiseHarmonicity",
)
SHIMMER_DB_EPSILON = 1e-8
HARMONIC_FLOOR = 1e-6
STD_FLOOR = 1e-6

# --- Model ---
DEFAULT_K = _env_int("VOICE_SCREENING_K", 5)
SWEEP_K_VALUES = (1, 3, 5, 7, 9)

# Scale-mismatch damping (empirical, not calibrated)
SCALE_MISMATCH_DISTANCE = 10.0
SCALE_MISMATCH_FACTOR = 0.3
