"""One-vs-all kernel support vector machine.

The trainer builds one binary "language vs. rest" classifier per language
and keeps, for each, the samples with a nonzero dual coefficient (its
support vectors). Support vectors are pooled across languages so a sample
used by several binary classifiers is stored once. A query is assigned to
the language whose classifier gives the largest margin score.

Binary problems are solved in the dual by projected coordinate ascent::

    maximize   Σ αᵢ − ½ Σᵢⱼ αᵢ αⱼ yᵢ yⱼ (K(xᵢ, xⱼ) + 1)
    subject to 0 ≤ αᵢ ≤ C,   C = 1 / (tradeoff · n)

Adding 1 to the kernel absorbs the bias term, so the threshold of the
resulting classifier is simply ``−Σ αᵢ yᵢ``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .config import SVMConfig
from .errors import KernelConfigError
from .kernels import CachedKernel, Kernel, KernelType
from .models import Algorithm, Classifier
from .vectors import (
    KahanSummer,
    SampleMap,
    Vocabulary,
    all_finite,
    build_vocabulary,
    l2_normalize,
    partition_samples,
    vectorize,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BinaryClassifier:
    """One language-vs-rest classifier.

    Attributes:
        support_vectors: Indices into :attr:`SVMClassifier.sample_vectors`.
        weights: Signed coefficient for each support vector.
        threshold: Subtracted from the weighted kernel sum.
    """

    support_vectors: tuple[int, ...]
    weights: tuple[float, ...]
    threshold: float

    def to_dict(self) -> dict:
        return {
            "supportVectors": list(self.support_vectors),
            "weights": list(self.weights),
            "threshold": self.threshold,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BinaryClassifier":
        return cls(
            support_vectors=tuple(int(i) for i in data["supportVectors"]),
            weights=tuple(float(w) for w in data["weights"]),
            threshold=float(data["threshold"]),
        )


class SVMClassifier(Classifier):
    """Kernel SVM language classifier.

    Args:
        keywords: Vocabulary defining the vector dimensions.
        kernel: Kernel used to compare vectors.
        sample_vectors: Pool of support vectors shared by all languages.
        classifiers: Binary classifier for each language.

    Raises:
        ValueError: If a binary classifier references a missing vector,
            the weights don't line up, or a value is not finite.
    """

    algorithm = Algorithm.SVM

    def __init__(
        self,
        keywords: Sequence[str],
        kernel: Kernel,
        sample_vectors: Sequence[Sequence[float]],
        classifiers: Mapping[str, BinaryClassifier],
    ) -> None:
        if not classifiers:
            raise ValueError("An SVM classifier needs at least one language.")
        self.keywords: Vocabulary = tuple(keywords)
        self.kernel = kernel
        self.sample_vectors = tuple(tuple(float(x) for x in v) for v in sample_vectors)
        self.classifiers = {lang: classifiers[lang] for lang in sorted(classifiers)}

        for vector in self.sample_vectors:
            if len(vector) != len(self.keywords):
                raise ValueError(
                    f"sample vector has {len(vector)} values, expected {len(self.keywords)}"
                )
            if not all_finite(vector):
                raise ValueError("sample vectors must be finite")
        for lang, binary in self.classifiers.items():
            if len(binary.support_vectors) != len(binary.weights):
                raise ValueError(f"{lang}: support vector and weight counts differ")
            if any(not 0 <= i < len(self.sample_vectors) for i in binary.support_vectors):
                raise ValueError(f"{lang}: support vector index out of range")
            if not all_finite((*binary.weights, binary.threshold)):
                raise ValueError(f"{lang}: weights must be finite")

    def _vector(self, sample: Mapping[str, float]) -> list[float] | None:
        return l2_normalize(vectorize(sample, self.keywords))

    def scores(self, sample: Mapping[str, float]) -> dict[str, float]:
        """Margin score of *sample* for each language (empty for empty documents)."""
        vector = self._vector(sample)
        if vector is None:
            return {}
        return self._scores(vector)

    def _scores(self, vector: Sequence[float]) -> dict[str, float]:
        products = [self.kernel.product(sv, vector) for sv in self.sample_vectors]
        result = {}
        for lang, binary in self.classifiers.items():
            summer = KahanSummer()
            for idx, weight in zip(binary.support_vectors, binary.weights):
                summer.add(products[idx] * weight)
            summer.add(-binary.threshold)
            result[lang] = summer.sum()
        return result

    def classify(self, sample: Mapping[str, float]) -> str:
        scores = self.scores(sample)
        if not scores:
            return next(iter(self.classifiers))
        best_lang = ""
        best_score = float("-inf")
        for lang, score in scores.items():
            if not best_lang or score > best_score:
                best_lang, best_score = lang, score
        return best_lang

    def languages(self) -> list[str]:
        return list(self.classifiers)

    @property
    def support_vector_count(self) -> int:
        return len(self.sample_vectors)

    def shrink(self) -> "SVMClassifier":
        """Collapse each language's support vectors into one vector.

        For a linear kernel the weighted sum of a language's support vectors
        gives exactly the same scores, so the shrunk model stores one vector
        per language.

        Raises:
            KernelConfigError: If the kernel is not linear.
        """
        if self.kernel.type is not KernelType.LINEAR:
            raise KernelConfigError("Can only shrink classifiers with a linear kernel.")

        vectors: list[list[float]] = []
        classifiers: dict[str, BinaryClassifier] = {}
        for lang, binary in self.classifiers.items():
            combined = [KahanSummer() for _ in self.keywords]
            for idx, weight in zip(binary.support_vectors, binary.weights):
                for summer, x in zip(combined, self.sample_vectors[idx]):
                    summer.add(x * weight)
            classifiers[lang] = BinaryClassifier((len(vectors),), (1.0,), binary.threshold)
            vectors.append([s.sum() for s in combined])
        return SVMClassifier(self.keywords, self.kernel, vectors, classifiers)

    def to_dict(self) -> dict:
        return {
            "keywords": list(self.keywords),
            "kernel": self.kernel.to_dict(),
            "sampleVectors": [list(v) for v in self.sample_vectors],
            "classifiers": {lang: b.to_dict() for lang, b in self.classifiers.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SVMClassifier":
        return cls(
            keywords=[str(k) for k in data["keywords"]],
            kernel=Kernel.from_dict(data["kernel"]),
            sample_vectors=data["sampleVectors"],
            classifiers={
                str(lang): BinaryClassifier.from_dict(b) for lang, b in data["classifiers"].items()
            },
        )


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Solution:
    support_vectors: tuple[int, ...]
    weights: tuple[float, ...]
    threshold: float


def solve_binary(
    kernel: CachedKernel,
    labels: Sequence[int],
    tradeoff: float,
    max_iterations: int,
    tolerance: float,
) -> _Solution:
    """Solve one binary SVM problem by dual coordinate ascent.

    Args:
        kernel: Cached products between the training samples.
        labels: ``+1`` or ``-1`` for each sample.
        tradeoff: Regularization strength; ``C = 1 / (tradeoff · n)``.
        max_iterations: Maximum number of sweeps over the samples.
        tolerance: Stop once a sweep moves no coefficient more than this.

    Returns:
        Indices (into the sample list) with a positive coefficient, their
        signed weights, and the threshold.
    """
    n = len(labels)
    bound = 1.0 / (tradeoff * n)
    alphas = [0.0] * n
    margins = [0.0] * n  # Σⱼ αⱼ yⱼ (K(i, j) + 1)

    for _ in range(max_iterations):
        largest_step = 0.0
        for i in range(n):
            curvature = kernel(i, i) + 1.0
            if curvature <= 0:
                continue
            gradient = 1.0 - labels[i] * margins[i]
            updated = min(bound, max(0.0, alphas[i] + gradient / curvature))
            step = updated - alphas[i]
            if step == 0.0:
                continue
            alphas[i] = updated
            scaled = step * labels[i]
            for j in range(n):
                margins[j] += scaled * (kernel(i, j) + 1.0)
            largest_step = max(largest_step, abs(step))
        if largest_step <= tolerance:
            break

    support = tuple(i for i, a in enumerate(alphas) if a > 0)
    weights = tuple(alphas[i] * labels[i] for i in support)
    return _Solution(support, weights, -sum(weights))


def _vectorize_samples(
    samples: SampleMap,
    vocabulary: Vocabulary,
) -> tuple[list[tuple[float, ...]], list[str]]:
    vectors: list[tuple[float, ...]] = []
    langs: list[str] = []
    for lang in sorted(samples):
        for sample in samples[lang]:
            dense = vectorize(sample, vocabulary)
            unit = l2_normalize(dense)
            vectors.append(tuple(unit) if unit is not None else tuple(dense))
            langs.append(lang)
    return vectors, langs


def accuracy(classifier: Classifier, samples: SampleMap) -> float:
    """Fraction of *samples* classified as their own language (0.0 if empty)."""
    total = correct = 0
    for lang, lang_samples in samples.items():
        for sample in lang_samples:
            total += 1
            if classifier.classify(sample) == lang:
                correct += 1
    return correct / total if total else 0.0


def _train_kernel(
    kernel: Kernel,
    vocabulary: Vocabulary,
    vectors: Sequence[tuple[float, ...]],
    langs: Sequence[str],
    config: SVMConfig,
) -> SVMClassifier:
    cached = CachedKernel(kernel, vectors)
    pool_index: dict[int, int] = {}
    pool: list[tuple[float, ...]] = []
    classifiers: dict[str, BinaryClassifier] = {}

    for lang in sorted(set(langs)):
        labels = [1 if sample_lang == lang else -1 for sample_lang in langs]
        solution = solve_binary(
            cached, labels, config.tradeoff, config.max_iterations, config.tolerance
        )
        indices = []
        for sample_id in solution.support_vectors:
            if sample_id not in pool_index:
                pool_index[sample_id] = len(pool)
                pool.append(vectors[sample_id])
            indices.append(pool_index[sample_id])
        classifiers[lang] = BinaryClassifier(tuple(indices), solution.weights, solution.threshold)

    logger.debug("Kernel %s: %d cached products", kernel, len(cached))
    return SVMClassifier(vocabulary, kernel, pool, classifiers)


def train(samples: SampleMap, config: SVMConfig | None = None) -> SVMClassifier:
    """Train one-vs-all SVMs for each configured kernel and keep the best.

    Args:
        samples: Mapping of language to token count/frequency mappings.
        config: Training options.

    Returns:
        The classifier with the highest held-out accuracy (training
        accuracy when nothing is held out; earlier kernels win ties).

    Raises:
        ValueError: If there are no samples.
    """
    config = config or SVMConfig()
    log = logger.info if config.verbose else logger.debug

    vocabulary = build_vocabulary(samples)
    held_out, training = partition_samples(samples, config.validation_fraction, config.seed)
    vectors, langs = _vectorize_samples(training, vocabulary)
    if not vectors:
        raise ValueError("Cannot train an SVM without samples.")
    validation = held_out if any(held_out.values()) else training

    best: SVMClassifier | None = None
    best_score = -1.0
    for kernel in config.kernels:
        log("Trying kernel: %s", kernel)
        classifier = _train_kernel(kernel, vocabulary, vectors, langs, config)
        score = accuracy(classifier, validation)
        log(
            "Results: validation=%.4f support=%d/%d",
            score, classifier.support_vector_count, len(vectors),
        )
        if score > best_score:
            best, best_score = classifier, score

    if best is None:
        raise ValueError("No kernels to try.")
    return best
