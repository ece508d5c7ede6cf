"""Tests for the Gaussian naive Bayes classifier."""

from __future__ import annotations

import json
import math

import pytest

from whichlang.errors import ModelDecodeError
from whichlang.gaussbayes import GaussBayesClassifier, Gaussian, regularize_variances, train


class TestGaussian:
    def test_log_density_matches_formula(self):
        g = Gaussian(mean=1.0, variance=4.0)
        expected = -0.5 * math.log(2 * math.pi * 4.0) - (3.0 - 1.0) ** 2 / 8.0
        assert g.log_density(3.0) == pytest.approx(expected)

    def test_density_peaks_at_mean(self):
        g = Gaussian(0.5, 0.01)
        assert g.log_density(0.5) > g.log_density(0.6) > g.log_density(0.9)

    def test_fit_uses_population_variance(self):
        g = Gaussian.fit([1.0, 3.0])
        assert g.mean == 2.0
        assert g.variance == 1.0


class TestRegularization:
    def test_zero_variance_replaced_by_smallest_positive(self):
        fitted = {
            "A": {"x": Gaussian(0.5, 0.0), "y": Gaussian(0.1, 0.04)},
            "B": {"x": Gaussian(0.2, 0.09), "y": Gaussian(0.3, 0.0)},
        }
        regular = regularize_variances(fitted)
        assert regular["A"]["x"] == Gaussian(0.5, 0.04)
        assert regular["B"]["y"] == Gaussian(0.3, 0.04)
        assert regular["B"]["x"] == Gaussian(0.2, 0.09)

    def test_all_zero_variances_fall_back_to_one(self):
        regular = regularize_variances({"A": {"x": Gaussian(0.0, 0.0)}})
        assert regular["A"]["x"].variance == 1.0

    def test_zero_variance_token_gives_finite_scores(self):
        samples = {
            "A": [{"x": 1, "y": 1}, {"x": 1, "y": 3}],
            "B": [{"x": 1, "z": 1}, {"x": 3, "z": 1}],
        }
        classifier = train(samples)
        for query in ({}, {"x": 1}, {"y": 100}, {"z": 1, "w": 7}, {"x": 1e6, "y": 1e-6}):
            for score in classifier.log_likelihoods(query).values():
                assert math.isfinite(score)


class TestClassifier:
    def test_classifies_by_likelihood(self):
        classifier = GaussBayesClassifier({
            "A": {"x": Gaussian(0.9, 0.01), "y": Gaussian(0.1, 0.01)},
            "B": {"x": Gaussian(0.1, 0.01), "y": Gaussian(0.9, 0.01)},
        })
        assert classifier.classify({"x": 8, "y": 2}) == "A"
        assert classifier.classify({"x": 2, "y": 8}) == "B"

    def test_ties_go_to_first_language(self):
        same = {"x": Gaussian(0.5, 0.1)}
        classifier = GaussBayesClassifier({"Zig": same, "Ada": same})
        assert classifier.classify({"x": 1}) == "Ada"
        assert classifier.languages() == ["Ada", "Zig"]

    def test_rejects_non_positive_variance(self):
        with pytest.raises(ValueError):
            GaussBayesClassifier({"A": {"x": Gaussian(0.0, 0.0)}})

    def test_training_fits_corpus(self, source_freqs):
        classifier = train(source_freqs)
        assert classifier.languages() == ["C", "Python"]
        correct = sum(
            classifier.classify(sample) == lang
            for lang, samples in source_freqs.items()
            for sample in samples
        )
        assert correct == 8

    def test_empty_samples_raise(self):
        with pytest.raises(ValueError):
            train({"A": [], "B": []})


class TestSerialization:
    def test_json_layout(self, example_samples):
        data = json.loads(train(example_samples).encode())
        assert set(data) == {"langGaussians"}
        assert data["langGaussians"]["Python"]["def"] == {"mean": 0.6, "variance": 1.0}

    def test_roundtrip_preserves_classification(self, source_freqs):
        classifier = train(source_freqs)
        decoded = GaussBayesClassifier.decode(classifier.encode())
        for samples in source_freqs.values():
            for sample in samples:
                assert decoded.log_likelihoods(sample) == classifier.log_likelihoods(sample)

    def test_zero_variance_in_file_raises(self):
        payload = {"langGaussians": {"A": {"x": {"mean": 0.1, "variance": 0}}}}
        with pytest.raises(ModelDecodeError):
            GaussBayesClassifier.decode(json.dumps(payload))
