"""Shared classifier contract and algorithm names."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum

from .errors import KernelConfigError, ModelDecodeError


class Algorithm(str, Enum):
    """Names of the supported classification algorithms."""

    IDTREE = "idtree"
    KNN = "knn"
    NEURALNET = "neuralnet"
    SVM = "svm"
    GAUSSBAYES = "gaussbayes"


def _reject_constant(name: str) -> float:
    raise ValueError(f"non-finite number {name} in model")


class Classifier(ABC):
    """A trained, immutable language classifier.

    Subclasses implement :meth:`classify`, :meth:`languages`,
    :meth:`to_dict` and :meth:`from_dict`; JSON encoding and decoding
    (with uniform error reporting) live here.
    """

    algorithm: Algorithm

    @abstractmethod
    def classify(self, sample: Mapping[str, float]) -> str:
        """Return the most likely language of a token count/frequency mapping."""

    @abstractmethod
    def languages(self) -> list[str]:
        """Languages this classifier can return."""

    @abstractmethod
    def to_dict(self) -> dict:
        """Serialize model state to JSON-compatible data."""

    @classmethod
    @abstractmethod
    def from_dict(cls, data: dict) -> "Classifier":
        """Rebuild a model from :meth:`to_dict` output."""

    def encode(self) -> bytes:
        """Serialize the model as UTF-8 JSON."""
        return json.dumps(self.to_dict(), allow_nan=False, separators=(",", ":")).encode("utf-8")

    @classmethod
    def decode(cls, data: bytes | str) -> "Classifier":
        """Decode a model produced by :meth:`encode`.

        Raises:
            ModelDecodeError: If *data* is not valid JSON for this model type.
        """
        try:
            parsed = json.loads(data, parse_constant=_reject_constant)
            if not isinstance(parsed, dict):
                raise TypeError(f"expected a JSON object, got {type(parsed).__name__}")
            return cls.from_dict(parsed)
        except (ModelDecodeError, KernelConfigError):
            raise
        except (ValueError, KeyError, TypeError, IndexError, AttributeError, RecursionError) as exc:
            raise ModelDecodeError(f"Invalid {cls.algorithm.value} model: {exc}") from exc
