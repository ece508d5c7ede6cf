"""Frequency-vector model shared by every classifier.

A document reaches a classifier as a mapping from token to a count or a
frequency. Each algorithm turns that mapping into a dense vector over the
vocabulary it fixed at training time, normalizing it with one of two
policies:

- L1 (sum) normalization, used by the identification tree, naive Bayes and
  the neural network. A zero sum is treated as 1, so an empty document
  stays all-zero.
- L2 (Euclidean) normalization, used by k-nearest-neighbors and the SVM.
  A zero-norm vector cannot be normalized; :func:`l2_normalize` returns
  ``None`` and the classifier falls back to its first known language.

Also provides error-compensated summation and the deterministic
per-language held-out split used by the cross-validating trainers.
"""

from __future__ import annotations

import math
import random
from collections.abc import Iterable, Mapping, Sequence

Vocabulary = tuple[str, ...]
TokenCounts = dict[str, int]
Frequencies = dict[str, float]
SampleMap = Mapping[str, Sequence[Mapping[str, float]]]


# ---------------------------------------------------------------------------
# Vocabulary & vectorization
# ---------------------------------------------------------------------------

def build_vocabulary(samples: SampleMap) -> Vocabulary:
    """Return every token seen in *samples*, sorted for a stable feature order."""
    seen: set[str] = set()
    for lang_samples in samples.values():
        for sample in lang_samples:
            seen.update(sample.keys())
    return tuple(sorted(seen))


def sorted_languages(samples: SampleMap) -> list[str]:
    """Languages of *samples* which have at least one sample, sorted."""
    return sorted(lang for lang, lang_samples in samples.items() if lang_samples)


def vectorize(mapping: Mapping[str, float], vocabulary: Sequence[str]) -> list[float]:
    """Project a token mapping onto *vocabulary* (missing tokens are 0)."""
    return [float(mapping.get(token, 0.0)) for token in vocabulary]


def l1_normalize(mapping: Mapping[str, float]) -> Frequencies:
    """Divide every value by the sum of all values.

    The sum covers the whole mapping, including tokens a model does not
    know, so counts and already-normalized frequencies give the same
    result. A zero sum leaves every value at 0.
    """
    total = sum(mapping.values()) or 1.0
    return {token: value / total for token, value in mapping.items()}


def dot(a: Sequence[float], b: Sequence[float]) -> float:
    return sum(x * y for x, y in zip(a, b))


def magnitude(vector: Sequence[float]) -> float:
    return math.sqrt(sum(x * x for x in vector))


def l2_normalize(vector: Sequence[float]) -> list[float] | None:
    """Scale *vector* to unit Euclidean length.

    Returns:
        The normalized vector, or ``None`` when the vector has zero norm.
    """
    norm = magnitude(vector)
    if norm == 0 or not math.isfinite(norm):
        return None
    return [x / norm for x in vector]


def squared_distance(a: Sequence[float], b: Sequence[float]) -> float:
    return sum((x - y) ** 2 for x, y in zip(a, b))


def all_finite(values: Iterable[float]) -> bool:
    return all(math.isfinite(v) for v in values)


# ---------------------------------------------------------------------------
# Compensated summation
# ---------------------------------------------------------------------------

class KahanSummer:
    """Running sum with Kahan error compensation.

    Unlike :func:`math.fsum` this never raises on overflow; infinities and
    NaNs propagate like ordinary float arithmetic, which lets the neural
    network trainer detect divergence by inspecting its weights.
    """

    __slots__ = ("_sum", "_compensation")

    def __init__(self, initial: float = 0.0) -> None:
        self._sum = initial
        self._compensation = 0.0

    def add(self, value: float) -> None:
        y = value - self._compensation
        t = self._sum + y
        self._compensation = (t - self._sum) - y
        self._sum = t

    def sum(self) -> float:
        return self._sum


def kahan_sum(values: Iterable[float], initial: float = 0.0) -> float:
    summer = KahanSummer(initial)
    for value in values:
        summer.add(value)
    return summer.sum()


# ---------------------------------------------------------------------------
# Held-out partitioning
# ---------------------------------------------------------------------------

def partition_samples(
    samples: SampleMap,
    fraction: float,
    seed: int = 0,
) -> tuple[dict[str, list], dict[str, list]]:
    """Split each language's samples into held-out and training parts.

    Every language is shuffled with its own seeded generator, then the
    first ``int(fraction * len(samples))`` samples are held out.

    Args:
        samples: Mapping of language to its samples.
        fraction: Fraction of each language to hold out, in ``[0, 1)``.
        seed: Seed for the shuffle.

    Returns:
        ``(held_out, training)`` mappings with the same languages as
        *samples*.

    Raises:
        ValueError: If *fraction* is outside ``[0, 1)``.
    """
    if not 0.0 <= fraction < 1.0:
        raise ValueError("fraction must be in [0, 1)")

    held_out: dict[str, list] = {}
    training: dict[str, list] = {}
    for lang in sorted(samples):
        shuffled = list(samples[lang])
        random.Random(f"{seed}:{lang}").shuffle(shuffled)
        count = int(fraction * len(shuffled))
        held_out[lang] = shuffled[:count]
        training[lang] = shuffled[count:]
    return held_out, training


def count_samples(samples: SampleMap) -> int:
    return sum(len(lang_samples) for lang_samples in samples.values())
