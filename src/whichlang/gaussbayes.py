"""Naive Bayes classification with Gaussian token-frequency likelihoods.

For every language and every vocabulary token the trainer fits a normal
distribution to the token's frequency across that language's samples.
A document is assigned to the language under which the sum of per-token
log densities is highest.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .config import BayesConfig
from .models import Algorithm, Classifier
from .vectors import SampleMap, build_vocabulary, l1_normalize, vectorize

logger = logging.getLogger(__name__)

_FALLBACK_VARIANCE = 1.0


@dataclass(frozen=True)
class Gaussian:
    """A normal distribution."""

    mean: float
    variance: float

    def log_density(self, x: float) -> float:
        """Natural log of the probability density at *x*."""
        return -0.5 * math.log(2 * math.pi * self.variance) - (x - self.mean) ** 2 / (2 * self.variance)

    @classmethod
    def fit(cls, values: Sequence[float]) -> "Gaussian":
        """Mean and population variance of *values*."""
        n = len(values)
        mean = sum(values) / n
        variance = sum((v - mean) ** 2 for v in values) / n
        return cls(mean, variance)


class GaussBayesClassifier(Classifier):
    """Gaussian naive Bayes language classifier.

    Args:
        lang_gaussians: ``{language: {token: Gaussian}}``. Every language
            must cover the same tokens and every variance must be positive.
    """

    algorithm = Algorithm.GAUSSBAYES

    def __init__(self, lang_gaussians: Mapping[str, Mapping[str, Gaussian]]) -> None:
        if not lang_gaussians:
            raise ValueError("A naive Bayes classifier needs at least one language.")
        for lang, dists in lang_gaussians.items():
            for token, g in dists.items():
                if not (g.variance > 0 and math.isfinite(g.variance) and math.isfinite(g.mean)):
                    raise ValueError(f"invalid distribution for {lang}/{token}: {g}")
        self.lang_gaussians = {
            lang: dict(lang_gaussians[lang]) for lang in sorted(lang_gaussians)
        }

    def log_likelihoods(self, sample: Mapping[str, float]) -> dict[str, float]:
        """Total log density of *sample* under each language."""
        freqs = l1_normalize(sample)
        return {
            lang: sum(g.log_density(freqs.get(token, 0.0)) for token, g in dists.items())
            for lang, dists in self.lang_gaussians.items()
        }

    def classify(self, sample: Mapping[str, float]) -> str:
        scores = self.log_likelihoods(sample)
        best_lang = ""
        best_score = float("-inf")
        for lang, score in scores.items():
            if not best_lang or score > best_score:
                best_lang, best_score = lang, score
        return best_lang

    def languages(self) -> list[str]:
        return list(self.lang_gaussians)

    def to_dict(self) -> dict:
        return {
            "langGaussians": {
                lang: {
                    token: {"mean": g.mean, "variance": g.variance}
                    for token, g in sorted(dists.items())
                }
                for lang, dists in self.lang_gaussians.items()
            }
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GaussBayesClassifier":
        return cls({
            str(lang): {
                str(token): Gaussian(float(g["mean"]), float(g["variance"]))
                for token, g in dists.items()
            }
            for lang, dists in data["langGaussians"].items()
        })


def regularize_variances(
    lang_gaussians: Mapping[str, Mapping[str, Gaussian]],
) -> dict[str, dict[str, Gaussian]]:
    """Replace zero variances with the smallest nonzero variance in the model.

    If every variance is zero, 1.0 is used instead.
    """
    positive = [
        g.variance for dists in lang_gaussians.values() for g in dists.values() if g.variance > 0
    ]
    floor = min(positive) if positive else _FALLBACK_VARIANCE
    return {
        lang: {
            token: g if g.variance > 0 else Gaussian(g.mean, floor)
            for token, g in dists.items()
        }
        for lang, dists in lang_gaussians.items()
    }


def train(samples: SampleMap, config: BayesConfig | None = None) -> GaussBayesClassifier:
    """Fit per-language, per-token Gaussians to L1-normalized samples.

    Raises:
        ValueError: If no language has samples.
    """
    config = config or BayesConfig()
    log = logger.info if config.verbose else logger.debug

    vocabulary = build_vocabulary(samples)
    fitted: dict[str, dict[str, Gaussian]] = {}
    for lang in sorted(samples):
        if not samples[lang]:
            continue
        rows = [vectorize(l1_normalize(sample), vocabulary) for sample in samples[lang]]
        fitted[lang] = {
            token: Gaussian.fit([row[i] for row in rows]) for i, token in enumerate(vocabulary)
        }
    if not fitted:
        raise ValueError("Cannot train a naive Bayes classifier without samples.")

    log("Fitted %d languages over %d tokens", len(fitted), len(vocabulary))
    return GaussBayesClassifier(regularize_variances(fitted))
