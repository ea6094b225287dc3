"""Translate a prediction and its feature vector into a readable screening report.

Three pieces are produced:
  1. Risk level: High / Medium / Low from the affected-class probability
  2. Symptom flags: perturbation measures outside typical healthy ranges
  3. Recommendations: follow-up actions scaled to the risk level

The thresholds are screening heuristics, not diagnostic cut-offs.
"""

from dataclasses import dataclass

from . import config
from .feature_extractor import FeatureVector
from .model import Prediction

RISK_HIGH = "High"
RISK_MEDIUM = "Medium"
RISK_LOW = "Low"

# (feature, upper limit, message when exceeded)
SYMPTOM_RULES = [
    ("locPctJitter", 1.2, "Elevated jitter suggests tremor during sustained phonation."),
    ("ppq5Jitter", 0.6, "Perturbation quotient shows irregular pitch periods."),
    ("locShimmer", 1.5, "Increased shimmer highlights amplitude instability."),
    ("apq5Shimmer", 3.0, "Voice amplitude variability (APQ5) exceeds healthy limits."),
    ("meanNoiseToHarmHarmonicity", 0.25,
     "Noise-to-harmonics ratio indicates breathiness or vocal fatigue."),
]
NO_SYMPTOMS = "Voice parameters remain within expected healthy ranges."

FEATURE_LABELS = {
    "meanPeriodPulses": "Mean period (pulses)",
    "stdDevPeriodPulses": "Std dev period (pulses)",
    "locPctJitter": "Local jitter %",
    "locAbsJitter": "Local jitter (abs)",
    "rapJitter": "RAP jitter %",
    "ppq5Jitter": "PPQ5 jitter %",
    "ddpJitter": "DDP jitter %",
    "locShimmer": "Local shimmer %",
    "locDbShimmer": "Local shimmer (dB)",
    "apq3Shimmer": "APQ3 shimmer %",
    "apq5Shimmer": "APQ5 shimmer %",
    "apq11Shimmer": "APQ11 shimmer %",
    "ddaShimmer": "DDA shimmer %",
    "meanAutoCorrHarmonicity": "Mean autocorrelation harmonicity",
    "meanNoiseToHarmHarmonicity": "Mean noise-to-harmonics",
    "meanHarmToNoiseHarmonicity": "Mean harmonics-to-noise",
}


@dataclass
class ScreeningReport:
    risk_level: str
    summary: str
    symptom_flags: list[str]
    recommendations: list[str]
    reliability_note: str | None = None


def risk_level(probability: float) -> str:
    if probability >= 0.7:
        return RISK_HIGH
    if probability >= 0.4:
        return RISK_MEDIUM
    return RISK_LOW


def describe_symptoms(features: FeatureVector) -> list[str]:
    flags = [message for name, limit, message in SYMPTOM_RULES if features[name] > limit]
    return flags or [NO_SYMPTOMS]


def build_recommendations(level: str) -> list[str]:
    if level == RISK_HIGH:
        follow_up = "Arrange a comprehensive neurological and speech-language evaluation within 14 days."
    elif level == RISK_MEDIUM:
        follow_up = "Book a clinical follow-up within the next month to confirm findings."
    else:
        follow_up = "Repeat the voice screening monthly to monitor any emerging changes."

    recommendations = [
        "Share this screening summary with your neurologist or speech therapist.",
        follow_up,
        "Practice daily vocal warm-up and breath support exercises for at least 10 minutes.",
    ]
    if level != RISK_LOW:
        recommendations.append(
            "Keep a brief symptom journal (voice fatigue, tremors, medication changes) "
            "to review with your care team."
        )
    return recommendations


def interpret(prediction: Prediction, features: FeatureVector) -> ScreeningReport:
    """Build the user-facing report for one prediction."""
    level = risk_level(prediction.probability)
    percent = f"{prediction.probability * 100:.1f}"
    if prediction.label == config.LABEL_AFFECTED:
        summary = (
            f"Voice screening indicates a {level.lower()} risk for speech changes "
            f"associated with the affected class (probability {percent}%)."
        )
    else:
        summary = (
            "Voice screening suggests low likelihood of speech changes associated "
            f"with the affected class (probability {percent}%)."
        )

    note = None
    if prediction.scale_mismatch:
        note = (
            f"Average distance to the reference recordings is {prediction.mean_distance:.1f}. "
            "The recording setup likely differs from the reference corpus, so this "
            "result has low reliability."
        )

    return ScreeningReport(
        risk_level=level,
        summary=summary,
        symptom_flags=describe_symptoms(features),
        recommendations=build_recommendations(level),
        reliability_note=note,
    )


def feature_label(name: str) -> str:
    return FEATURE_LABELS.get(name, name)


def format_feature_value(value: float) -> str:
    magnitude = abs(value)
    if magnitude >= 100:
        return f"{value:.0f}"
    if magnitude >= 10:
        return f"{value:.1f}"
    if magnitude >= 1:
        return f"{value:.2f}"
    return f"{value:.3f}"
