"""Tests for the KNN model (voting, confidence adjustment, leave-one-out)."""

import numpy as np
import pytest

from voice_screening.data_loader import NormalizedSample
from voice_screening.errors import ModelNotReady
from voice_screening.model import (
    KNNClassifier,
    Neighbour,
    NoAdjustment,
    ScaleMismatchDamping,
    effective_k,
    euclidean_distance,
    leave_one_out_accuracy,
    sweep_k,
)


def _sample(offset, label, dim=16):
    vector = np.zeros(dim)
    vector[0] = offset
    return NormalizedSample(vector=vector, label=label)


def _clusters(n=6, seed=42):
    rng = np.random.RandomState(seed)
    samples = []
    for center, label in ((3.0, "Affected"), (-3.0, "Healthy")):
        for _ in range(n):
            samples.append(NormalizedSample(vector=center + 0.2 * rng.randn(16), label=label))
    return samples


class TestDistance:
    def test_symmetric_and_zero_on_identity(self):
        rng = np.random.RandomState(0)
        a, b = rng.randn(16), rng.randn(16)
        assert euclidean_distance(a, b) == pytest.approx(euclidean_distance(b, a))
        assert euclidean_distance(a, a) == 0.0
        assert euclidean_distance(np.zeros(2), np.array([3.0, 4.0])) == pytest.approx(5.0)

    def test_classifier_distances_symmetric_and_zero_on_identity(self):
        rng = np.random.RandomState(1)
        a, b = rng.randn(16), rng.randn(16)
        from_a = KNNClassifier([NormalizedSample(vector=a, label="Affected")]).distances(b)
        from_b = KNNClassifier([NormalizedSample(vector=b, label="Healthy")]).distances(a)
        assert from_a[0] == pytest.approx(from_b[0])
        assert from_a[0] == pytest.approx(euclidean_distance(a, b))
        assert KNNClassifier([NormalizedSample(vector=a, label="Affected")]).distances(a)[0] == 0.0

    def test_classifier_distances_match_pairwise(self):
        samples = _clusters(n=3)
        query = np.linspace(-1.0, 1.0, 16)
        distances = KNNClassifier(samples).distances(query)
        assert distances.shape == (6,)
        for sample, distance in zip(samples, distances):
            assert distance == pytest.approx(euclidean_distance(sample.vector, query))

    def test_effective_k(self):
        assert effective_k(1000, 188) == 188
        assert effective_k(0, 10) == 1
        assert effective_k(-3, 10) == 1
        assert effective_k(5, 10) == 5


class TestKNNClassifier:
    def test_empty_model_not_ready(self):
        with pytest.raises(ModelNotReady):
            KNNClassifier([]).predict_vector(np.zeros(16))

    def test_neighbours_sorted_nearest_first(self):
        samples = [_sample(5.0, "Healthy"), _sample(1.0, "Affected"), _sample(3.0, "Healthy")]
        prediction = KNNClassifier(samples, k=3).predict_vector(np.zeros(16))
        assert [n.distance for n in prediction.neighbours] == [1.0, 3.0, 5.0]
        assert prediction.neighbours[0].label == "Affected"
        assert prediction.k == 3
        assert prediction.mean_distance == pytest.approx(3.0)

    def test_majority_vote(self):
        samples = [_sample(1.0, "Affected"), _sample(1.1, "Affected"), _sample(4.0, "Healthy")]
        prediction = KNNClassifier(samples, k=3).predict_vector(np.zeros(16))
        assert prediction.label == "Affected"
        assert prediction.probability == pytest.approx(2 / 3)

    def test_tie_goes_to_affected(self):
        samples = [_sample(1.0, "Affected"), _sample(-1.0, "Healthy")]
        prediction = KNNClassifier(samples, k=2).predict_vector(np.zeros(16))
        assert prediction.probability == pytest.approx(0.5)
        assert prediction.label == "Affected"

    def test_equal_distances_keep_corpus_order(self):
        samples = [_sample(1.0, "Healthy"), _sample(-1.0, "Affected"), _sample(2.0, "Affected")]
        prediction = KNNClassifier(samples, k=1, adjustment=NoAdjustment()).predict_vector(np.zeros(16))
        assert prediction.neighbours[0].label == "Healthy"
        assert prediction.label == "Healthy"

    def test_k_clamped_to_corpus(self):
        samples = [_sample(1.0, "Affected"), _sample(2.0, "Healthy"), _sample(3.0, "Healthy")]
        prediction = KNNClassifier(samples, k=1000).predict_vector(np.zeros(16))
        assert prediction.k == 3
        assert len(prediction.neighbours) == 3

    def test_per_call_k_override(self):
        samples = [_sample(1.0, "Affected"), _sample(2.0, "Healthy"), _sample(3.0, "Healthy")]
        classifier = KNNClassifier(samples, k=3)
        assert classifier.predict_vector(np.zeros(16), k=1).label == "Affected"
        assert classifier.predict_vector(np.zeros(16)).label == "Healthy"

    def test_probability_bounds(self):
        classifier = KNNClassifier(_clusters(), k=5)
        rng = np.random.RandomState(1)
        for _ in range(20):
            prediction = classifier.predict_vector(rng.randn(16) * 5)
            assert 0.0 <= prediction.probability <= 1.0
            assert prediction.label in ("Affected", "Healthy")


class TestScaleMismatchDamping:
    def test_far_query_is_damped(self):
        samples = [_sample(0.0, "Affected"), _sample(0.5, "Affected")]
        query = np.full(16, 20.0)
        prediction = KNNClassifier(samples, k=2).predict_vector(query)
        assert prediction.raw_probability == 1.0
        assert prediction.probability == pytest.approx(0.3)
        assert prediction.probability == prediction.raw_probability * 0.3
        assert prediction.scale_mismatch
        assert prediction.label == "Healthy"

    def test_near_query_untouched(self):
        samples = [_sample(9.0, "Affected"), _sample(10.0, "Affected")]
        prediction = KNNClassifier(samples, k=2).predict_vector(np.zeros(16))
        # mean distance 9.5 stays under the threshold
        assert not prediction.scale_mismatch
        assert prediction.probability == 1.0

    def test_no_adjustment_keeps_label(self):
        samples = [_sample(0.0, "Affected"), _sample(0.5, "Affected")]
        prediction = KNNClassifier(samples, k=2, adjustment=NoAdjustment()).predict_vector(
            np.full(16, 20.0)
        )
        assert prediction.probability == 1.0
        assert prediction.label == "Affected"
        assert not prediction.scale_mismatch

    def test_policy_call(self):
        damping = ScaleMismatchDamping(threshold=1.0, factor=0.5)
        assert damping(0.8, [Neighbour("Affected", 2.0)]) == (pytest.approx(0.4), True)
        assert damping(0.8, [Neighbour("Affected", 0.5)]) == (0.8, False)
        assert damping(0.8, []) == (0.8, False)

    def test_mean_distance_at_threshold_not_damped(self):
        damping = ScaleMismatchDamping()
        assert damping(0.8, [Neighbour("Affected", 10.0)]) == (0.8, False)
        assert damping(0.8, [Neighbour("Affected", 9.0), Neighbour("Healthy", 11.0)]) == (0.8, False)
        probability, fired = damping(0.8, [Neighbour("Affected", 10.5)])
        assert fired
        assert probability == pytest.approx(0.24)

    def test_classifier_at_threshold_keeps_probability(self):
        samples = [_sample(10.0, "Affected"), _sample(-10.0, "Affected")]
        prediction = KNNClassifier(samples, k=2).predict_vector(np.zeros(16))
        assert prediction.mean_distance == 10.0
        assert not prediction.scale_mismatch
        assert prediction.probability == 1.0

    def test_invalid_factor(self):
        with pytest.raises(ValueError):
            ScaleMismatchDamping(factor=1.5)
        with pytest.raises(ValueError):
            ScaleMismatchDamping(factor=-0.1)

    def test_to_dict(self):
        samples = [_sample(1.0, "Affected"), _sample(-1.0, "Healthy")]
        result = KNNClassifier(samples, k=2).predict_vector(np.zeros(16)).to_dict()
        assert result["label"] == "Affected"
        assert result["k"] == 2
        assert len(result["neighbours"]) == 2


class TestLeaveOneOut:
    def test_single_sample_has_no_accuracy(self):
        assert leave_one_out_accuracy([_sample(0.0, "Affected")], k=1) is None

    def test_two_opposite_samples(self):
        samples = [_sample(1.0, "Affected"), _sample(-1.0, "Healthy")]
        assert leave_one_out_accuracy(samples, k=1) == 0.0

    def test_separated_clusters(self):
        assert leave_one_out_accuracy(_clusters(), k=3) == 1.0

    def test_sweep_k(self):
        results = sweep_k(_clusters(), ks=(1, 3, 5))
        assert list(results) == [1, 3, 5]
        assert all(accuracy == 1.0 for accuracy in results.values())
