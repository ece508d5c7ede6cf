"""k-nearest-neighbors classifier over unit-length frequency vectors.

Every training sample is stored as an L2-normalized vector, so the dot
product with a normalized query is its cosine similarity. The k most
similar samples vote for their languages; k itself is chosen on a held-out
part of the training data.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .config import KNNConfig
from .models import Algorithm, Classifier
from .vectors import (
    SampleMap,
    Vocabulary,
    all_finite,
    build_vocabulary,
    dot,
    l2_normalize,
    partition_samples,
    vectorize,
)

logger = logging.getLogger(__name__)

_EXACT_MATCH = 1e-12

WEIGHTINGS = ("similarity", "distance")


@dataclass(frozen=True)
class Sample:
    """A stored training sample (unit vector, or all-zero for empty documents)."""

    language: str
    vector: tuple[float, ...]


@dataclass(frozen=True)
class _Match:
    language: str
    similarity: float


def _rank(samples: Sequence[Sample], query: Sequence[float]) -> list[_Match]:
    """All samples ordered by decreasing similarity (stable on ties)."""
    matches = [_Match(s.language, dot(s.vector, query)) for s in samples]
    matches.sort(key=lambda m: -m.similarity)
    return matches


def _vote(matches: Sequence[_Match], weighting: str) -> str:
    scores: dict[str, float] = {}
    for m in matches:
        if weighting == "distance":
            distance = 1.0 - m.similarity
            if distance <= _EXACT_MATCH:
                return m.language
            weight = 1.0 / distance
        else:
            weight = m.similarity
        scores[m.language] = scores.get(m.language, 0.0) + weight

    # Dicts keep insertion order, so ties go to the first language seen.
    best_lang = ""
    best_score = float("-inf")
    for lang, score in scores.items():
        if score > best_score:
            best_lang, best_score = lang, score
    return best_lang


class KNNClassifier(Classifier):
    """k-nearest-neighbors language classifier.

    Args:
        tokens: Vocabulary defining the vector dimensions.
        samples: Stored training samples.
        neighbor_count: Number of neighbors that vote (k).
        weighting: ``"similarity"`` or ``"distance"``.
    """

    algorithm = Algorithm.KNN

    def __init__(
        self,
        tokens: Sequence[str],
        samples: Sequence[Sample],
        neighbor_count: int,
        weighting: str = "similarity",
    ) -> None:
        if not samples:
            raise ValueError("A KNN classifier needs at least one sample.")
        if neighbor_count < 1:
            raise ValueError("neighbor_count must be at least 1")
        if weighting not in WEIGHTINGS:
            raise ValueError(f"Unknown weighting: {weighting!r}")
        self.tokens: Vocabulary = tuple(tokens)
        self.samples: tuple[Sample, ...] = tuple(samples)
        self.neighbor_count = neighbor_count
        self.weighting = weighting

    def classify(self, sample: Mapping[str, float]) -> str:
        query = l2_normalize(vectorize(sample, self.tokens))
        if query is None:
            return self.samples[0].language
        return self.classify_vector(query)

    def classify_vector(self, vector: Sequence[float]) -> str:
        """Classify an already normalized vector in vocabulary order."""
        return _vote(_rank(self.samples, vector)[: self.neighbor_count], self.weighting)

    def languages(self) -> list[str]:
        return sorted({s.language for s in self.samples})

    def to_dict(self) -> dict:
        return {
            "tokens": list(self.tokens),
            "samples": [{"language": s.language, "vector": list(s.vector)} for s in self.samples],
            "neighborCount": self.neighbor_count,
            "weighting": self.weighting,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "KNNClassifier":
        tokens = [str(t) for t in data["tokens"]]
        samples = []
        for entry in data["samples"]:
            vector = tuple(float(x) for x in entry["vector"])
            if len(vector) != len(tokens):
                raise ValueError(f"sample vector has {len(vector)} values, expected {len(tokens)}")
            if not all_finite(vector):
                raise ValueError("sample vectors must be finite")
            samples.append(Sample(str(entry["language"]), vector))
        return cls(
            tokens=tokens,
            samples=samples,
            neighbor_count=int(data["neighborCount"]),
            weighting=data.get("weighting", "similarity"),
        )


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------

def _to_samples(samples: SampleMap, vocabulary: Vocabulary) -> list[Sample]:
    result = []
    for lang in sorted(samples):
        for sample in samples[lang]:
            dense = vectorize(sample, vocabulary)
            unit = l2_normalize(dense)
            result.append(Sample(lang, tuple(unit) if unit is not None else tuple(dense)))
    return result


def optimal_k(
    held_out: Sequence[Sample],
    training: Sequence[Sample],
    weighting: str = "similarity",
) -> int:
    """Neighbor count with the best accuracy on *held_out* (smallest on ties)."""
    if not held_out or not training:
        return 1

    rankings = [_rank(training, sample.vector) for sample in held_out]
    best_k, best_correct = 1, -1
    for k in range(1, len(training) + 1):
        correct = sum(
            1 for sample, ranked in zip(held_out, rankings)
            if _vote(ranked[:k], weighting) == sample.language
        )
        if correct > best_correct:
            best_k, best_correct = k, correct
    return best_k


def train(samples: SampleMap, config: KNNConfig | None = None) -> KNNClassifier:
    """Train a KNN classifier, choosing k by held-out accuracy.

    Args:
        samples: Mapping of language to token count/frequency mappings.
        config: Training options.

    Raises:
        ValueError: If there are no samples.
    """
    config = config or KNNConfig()
    log = logger.info if config.verbose else logger.debug

    vocabulary = build_vocabulary(samples)
    stored = _to_samples(samples, vocabulary)
    if not stored:
        raise ValueError("Cannot train a KNN classifier without samples.")

    held_out_map, training_map = partition_samples(samples, config.validation_fraction, config.seed)
    k = optimal_k(
        _to_samples(held_out_map, vocabulary),
        _to_samples(training_map, vocabulary),
        config.weighting,
    )
    log("Chose k=%d from %d samples over %d tokens", k, len(stored), len(vocabulary))
    return KNNClassifier(vocabulary, stored, k, config.weighting)
