"""High-level pipeline that ties together all components.

The three entry points the rest of an application may depend on are
``extract_features``, ``predict`` and ``ensure_model``. Audio decoding and
dataset fetching are the only awaited operations; everything numeric in
between is synchronous.
"""

import logging
from pathlib import Path
from typing import Mapping, Optional, Union

from . import config
from .audio_io import load_waveform, load_waveform_bytes
from .data_loader import load_dataset_text
from .feature_extractor import FeatureVector, extract_features
from .interpreter import interpret
from .model import ConfidenceAdjustment, ModelMetadata, Prediction, sweep_k
from .model_cache import DatasetFetcher, ModelCache
from .pitch_analyzer import PitchPeriodAnalyzer
from .signal_conditioner import Waveform

logger = logging.getLogger(__name__)


class VoiceScreeningPipeline:
    """End-to-end pipeline for voice screening."""

    def __init__(
        self,
        cache: Optional[ModelCache] = None,
        analyzer: Optional[PitchPeriodAnalyzer] = None,
    ):
        self.cache = cache or ModelCache()
        self.analyzer = analyzer or PitchPeriodAnalyzer()

    @classmethod
    def from_dataset(
        cls,
        path: Union[str, Path] = config.DATASET_PATH,
        k: int = config.DEFAULT_K,
        adjustment: Optional[ConfidenceAdjustment] = None,
    ) -> "VoiceScreeningPipeline":
        async def fetch() -> str:
            return await load_dataset_text(Path(path))

        return cls(cache=ModelCache(fetch=fetch, k=k, adjustment=adjustment))

    @classmethod
    def from_fetcher(
        cls,
        fetch: DatasetFetcher,
        k: int = config.DEFAULT_K,
        adjustment: Optional[ConfidenceAdjustment] = None,
    ) -> "VoiceScreeningPipeline":
        return cls(cache=ModelCache(fetch=fetch, k=k, adjustment=adjustment))

    # ---- Entry points ----

    def extract_features(self, waveform: Waveform) -> FeatureVector:
        return extract_features(waveform, self.analyzer)

    async def ensure_model(self, k: Optional[int] = None) -> ModelMetadata:
        return await self.cache.ensure_model(k)

    async def predict(
        self,
        features: Union[FeatureVector, Mapping[str, float]],
        k: Optional[int] = None,
    ) -> Prediction:
        if not isinstance(features, FeatureVector):
            features = FeatureVector.from_mapping(features)
        prediction = await self.cache.predict(features, k)
        logger.info(
            "Prediction: %s (p=%.3f, raw=%.3f, k=%d, mean distance=%.2f)",
            prediction.label, prediction.probability, prediction.raw_probability,
            prediction.k, prediction.mean_distance,
        )
        return prediction

    # ---- Convenience ----

    async def extract_features_from_file(self, audio_path: Union[str, Path]) -> FeatureVector:
        waveform = await load_waveform(audio_path)
        return self.extract_features(waveform)

    async def analyze_waveform(self, waveform: Waveform, k: Optional[int] = None) -> dict:
        """Extract, predict and interpret one decoded recording."""
        features = self.extract_features(waveform)
        prediction = await self.predict(features, k)
        report = interpret(prediction, features)
        return {
            "prediction": prediction.to_dict(),
            "features": features.to_dict(),
            "risk_level": report.risk_level,
            "summary": report.summary,
            "symptom_flags": report.symptom_flags,
            "recommendations": report.recommendations,
            "reliability_note": report.reliability_note,
            "model": self.cache.state.metadata.to_dict(),
        }

    async def analyze_file(self, audio_path: Union[str, Path], k: Optional[int] = None) -> dict:
        waveform = await load_waveform(audio_path)
        return await self.analyze_waveform(waveform, k)

    async def analyze_bytes(
        self,
        file_bytes: bytes,
        filename: str = "recording.wav",
        k: Optional[int] = None,
    ) -> dict:
        """Same as :meth:`analyze_file` for an in-memory upload."""
        waveform = await load_waveform_bytes(file_bytes, filename)
        return await self.analyze_waveform(waveform, k)

    async def sweep_k(self, ks=config.SWEEP_K_VALUES) -> dict:
        """Leave-one-out accuracy for several k over the loaded corpus."""
        await self.ensure_model()
        state = self.cache.state
        return {
            "accuracy_by_k": sweep_k(state.normalized, ks, self.cache.adjustment),
            "class_counts": state.metadata.class_counts,
            "sample_count": state.metadata.sample_count,
        }

    def reset(self) -> None:
        self.cache.reset()

    def status(self) -> dict:
        result = {"model_loaded": self.cache.is_loaded}
        if self.cache.is_loaded:
            state = self.cache.state
            result["metadata"] = state.metadata.to_dict()
            result["parse_report"] = {
                "rows_parsed": state.report.rows_parsed,
                "defaulted_cells": state.report.defaulted_cells,
                "defaulted_labels": state.report.defaulted_labels,
            }
            result["normalization"] = state.stats.describe()
            result["adjustment"] = repr(self.cache.adjustment)
        return result
