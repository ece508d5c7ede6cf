"""Evaluation of a trained classifier against a labeled sample directory.

Every sample's directory language is compared with the classifier's
prediction. The result is a per-language success rate (correct out of the
language's sample count), plus how often each language was predicted and
which languages its misses went to.
"""

from __future__ import annotations

import logging
import os
from collections import Counter
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from .models import Classifier
from .tokens import to_freqs

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LanguageRating:
    """How a classifier did on one language's samples.

    Attributes:
        language: Directory language of the samples.
        correct: Samples classified as ``language``.
        total: Samples of ``language``.
        predicted: Samples of any language the classifier labeled ``language``.
        mistaken_for: Wrong predictions for this language's samples, by
            predicted language.
    """

    language: str
    correct: int = 0
    total: int = 0
    predicted: int = 0
    mistaken_for: dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        return self.correct / self.total if self.total else 0.0

    @property
    def precision(self) -> float:
        return self.correct / self.predicted if self.predicted else 0.0

    @property
    def f1(self) -> float:
        p, r = self.precision, self.success_rate
        return 2 * p * r / (p + r) if p + r else 0.0

    @property
    def most_mistaken_for(self) -> str | None:
        """Language most of the misses went to (alphabetically first on ties)."""
        if not self.mistaken_for:
            return None
        return min(self.mistaken_for, key=lambda lang: (-self.mistaken_for[lang], lang))

    def to_dict(self) -> dict:
        return {
            "correct": self.correct,
            "total": self.total,
            "success_rate": round(self.success_rate, 4),
            "predicted": self.predicted,
            "precision": round(self.precision, 4),
            "f1": round(self.f1, 4),
            "mistaken_for": dict(sorted(self.mistaken_for.items())),
        }


@dataclass
class Rating:
    """Per-language ratings of one classifier on one sample set."""

    languages: dict[str, LanguageRating] = field(default_factory=dict)

    @property
    def correct(self) -> int:
        return sum(r.correct for r in self.languages.values())

    @property
    def total(self) -> int:
        return sum(r.total for r in self.languages.values())

    @property
    def success_rate(self) -> float:
        return self.correct / self.total if self.total else 0.0

    @property
    def macro_f1(self) -> float:
        rated = [r for r in self.languages.values() if r.total]
        return sum(r.f1 for r in rated) / len(rated) if rated else 0.0

    def ranked(self) -> list[LanguageRating]:
        """Languages with samples, best success rate first (ties by name)."""
        rated = [r for r in self.languages.values() if r.total]
        return sorted(rated, key=lambda r: (-r.success_rate, r.language))

    def to_dict(self) -> dict:
        return {
            "correct": self.correct,
            "total": self.total,
            "success_rate": round(self.success_rate, 4),
            "macro_f1": round(self.macro_f1, 4),
            "languages": {r.language: r.to_dict() for r in self.ranked()},
        }

    def summary(self) -> str:
        lines = [f"Success rate: {self.correct}/{self.total} or {self.success_rate:.2%}"]
        for r in self.ranked():
            lines.append(f"{r.language} - success rate {r.correct}/{r.total} or {r.success_rate:.2%}")
        return "\n".join(lines)


def tally(actual: Sequence[str], predicted: Sequence[str]) -> Rating:
    """Build a :class:`Rating` from parallel actual and predicted languages.

    Raises:
        ValueError: If the two sequences differ in length.
    """
    if len(actual) != len(predicted):
        raise ValueError("actual and predicted languages must have the same length")

    totals = Counter(actual)
    predictions = Counter(predicted)
    correct: Counter[str] = Counter()
    misses: dict[str, Counter[str]] = {}
    for lang, guess in zip(actual, predicted):
        if guess == lang:
            correct[lang] += 1
        else:
            misses.setdefault(lang, Counter())[guess] += 1

    return Rating({
        lang: LanguageRating(
            language=lang,
            correct=correct[lang],
            total=totals[lang],
            predicted=predictions[lang],
            mistaken_for=dict(misses.get(lang, {})),
        )
        for lang in sorted(totals.keys() | predictions.keys())
    })


# ---------------------------------------------------------------------------
# Rating a classifier
# ---------------------------------------------------------------------------

def rate(
    classifier: Classifier,
    samples: Mapping[str, Sequence[Mapping[str, int]]],
    workers: int | None = None,
) -> Rating:
    """Classify every sample and rate the predictions per language.

    Args:
        classifier: A trained classifier.
        samples: Mapping of language to token counts of each document.
        workers: Worker threads (``None`` = CPU count).
    """
    actual = [lang for lang in sorted(samples) for _ in samples[lang]]
    freqs = [to_freqs(sample) for lang in sorted(samples) for sample in samples[lang]]

    max_workers = workers or os.cpu_count() or 1
    if max_workers > 1 and len(freqs) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            predicted = list(pool.map(classifier.classify, freqs))
    else:
        predicted = [classifier.classify(f) for f in freqs]

    rating = tally(actual, predicted)
    logger.debug("Rated %d samples: %d correct", rating.total, rating.correct)
    return rating
