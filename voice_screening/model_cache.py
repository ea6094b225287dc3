"""Lazily populated, shared holder of the loaded reference model.

The first ``ensure_model`` call fetches and parses the corpus, computes the
normalisation statistics and the leave-one-out accuracy. Concurrent callers
arriving while that runs await the same initialisation task instead of
starting their own. Once populated the state is immutable and read without
locking; ``reset`` drops it so the next call reloads from source.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, Optional

from . import config
from .data_loader import (
    DatasetSample,
    NormalizationStats,
    NormalizedSample,
    ParseReport,
    class_counts,
    compute_stats,
    load_dataset_text,
    parse_dataset,
)
from .errors import ModelNotReady
from .feature_extractor import FeatureVector
from .model import (
    ConfidenceAdjustment,
    KNNClassifier,
    ModelMetadata,
    Prediction,
    ScaleMismatchDamping,
    leave_one_out_accuracy,
)

logger = logging.getLogger(__name__)

DatasetFetcher = Callable[[], Awaitable[str]]


def _failed(future: asyncio.Future) -> bool:
    return future.done() and (future.cancelled() or future.exception() is not None)


@dataclass(frozen=True)
class ModelState:
    """Everything derived from one load of the reference corpus."""

    samples: tuple[DatasetSample, ...]
    normalized: tuple[NormalizedSample, ...]
    stats: NormalizationStats
    metadata: ModelMetadata
    report: ParseReport
    classifier: KNNClassifier

    def predict(self, features: FeatureVector, k: Optional[int] = None) -> Prediction:
        vector = self.stats.normalize(features)
        return self.classifier.predict_vector(vector, k=self.metadata.k if k is None else k)


def build_model_state(
    text: str,
    k: int = config.DEFAULT_K,
    adjustment: Optional[ConfidenceAdjustment] = None,
) -> ModelState:
    """Parse, normalise and self-evaluate a corpus. Pure and synchronous."""
    adjustment = adjustment if adjustment is not None else ScaleMismatchDamping()
    start = time.monotonic()

    samples, report = parse_dataset(text)
    counts = class_counts(samples)
    logger.info(
        "Dataset parsed: %d samples (%s=%d, %s=%d)",
        len(samples),
        config.LABEL_AFFECTED, counts[config.LABEL_AFFECTED],
        config.LABEL_HEALTHY, counts[config.LABEL_HEALTHY],
    )

    stats = compute_stats(samples)
    normalized = stats.normalize_samples(samples)
    accuracy = leave_one_out_accuracy(normalized, k, adjustment)

    metadata = ModelMetadata(
        k=k,
        accuracy=accuracy,
        sample_count=len(normalized),
        feature_names=config.FEATURE_COLUMNS,
        class_counts=counts,
    )
    logger.info(
        "Model ready in %.2fs: k=%d, leave-one-out accuracy=%s",
        time.monotonic() - start, k, "n/a" if accuracy is None else f"{accuracy:.3f}",
    )
    return ModelState(
        samples=tuple(samples),
        normalized=tuple(normalized),
        stats=stats,
        metadata=metadata,
        report=report,
        classifier=KNNClassifier(normalized, k=k, adjustment=adjustment),
    )


class ModelCache:
    """Single-flight cache around :func:`build_model_state`."""

    def __init__(
        self,
        fetch: Optional[DatasetFetcher] = None,
        k: int = config.DEFAULT_K,
        adjustment: Optional[ConfidenceAdjustment] = None,
    ):
        self._fetch = fetch or partial(load_dataset_text, config.DATASET_PATH)
        self.default_k = k
        self.adjustment = adjustment if adjustment is not None else ScaleMismatchDamping()
        self._state: Optional[ModelState] = None
        self._pending: Optional[asyncio.Future] = None
        self._generation = 0

    @property
    def is_loaded(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> ModelState:
        if self._state is None:
            raise ModelNotReady("The reference model is not loaded. Call ensure_model() first.")
        return self._state

    async def _populate(self, k: int) -> ModelState:
        text = await self._fetch()
        return build_model_state(text, k=k, adjustment=self.adjustment)

    def _discard_stale_pending(self) -> None:
        """Forget an in-flight load that can no longer deliver a state."""
        pending = self._pending
        if pending is None:
            return
        if pending.get_loop() is not asyncio.get_running_loop() or _failed(pending):
            logger.info("Discarding interrupted model load; starting a new one.")
            self._pending = None

    async def _ensure_state(self, k: Optional[int] = None) -> ModelState:
        if self._state is not None:
            return self._state

        self._discard_stale_pending()
        if self._pending is None:
            self._pending = asyncio.ensure_future(
                self._populate(self.default_k if k is None else k)
            )
        pending = self._pending
        generation = self._generation

        try:
            state = await asyncio.shield(pending)
        except BaseException:
            # A cancelled waiter leaves a still-running load for the others
            if self._pending is pending and _failed(pending):
                self._pending = None
            raise

        if generation == self._generation and self._pending is pending:
            self._state = state
            self._pending = None
        return state

    async def ensure_model(self, k: Optional[int] = None) -> ModelMetadata:
        """Load the model on first use; later calls return the cached metadata."""
        state = await self._ensure_state(k)
        return state.metadata

    def reset(self) -> None:
        """Discard cached state; an in-flight load will not be installed."""
        self._state = None
        self._pending = None
        self._generation += 1
        logger.info("Model cache reset.")

    async def predict(self, features: FeatureVector, k: Optional[int] = None) -> Prediction:
        state = await self._ensure_state(k)
        return state.predict(features, k=k)
