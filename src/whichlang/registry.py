"""Algorithm registry: names to trainers, decoders and descriptions.

Every :class:`~whichlang.models.Algorithm` has exactly one entry in each
table; the check at import time keeps them complete.
"""

from __future__ import annotations

from collections.abc import Callable

from . import gaussbayes, idtree, knn, neuralnet, svm
from .config import TrainerConfig
from .errors import UnknownAlgorithmError
from .models import Algorithm, Classifier
from .vectors import SampleMap

Trainer = Callable[..., Classifier]
Decoder = Callable[[bytes | str], Classifier]

TRAINERS: dict[Algorithm, Trainer] = {
    Algorithm.IDTREE: idtree.train,
    Algorithm.KNN: knn.train,
    Algorithm.NEURALNET: neuralnet.train,
    Algorithm.SVM: svm.train,
    Algorithm.GAUSSBAYES: gaussbayes.train,
}

DECODERS: dict[Algorithm, Decoder] = {
    Algorithm.IDTREE: idtree.IDTree.decode,
    Algorithm.KNN: knn.KNNClassifier.decode,
    Algorithm.NEURALNET: neuralnet.Network.decode,
    Algorithm.SVM: svm.SVMClassifier.decode,
    Algorithm.GAUSSBAYES: gaussbayes.GaussBayesClassifier.decode,
}

DESCRIPTIONS: dict[Algorithm, str] = {
    Algorithm.IDTREE: "Identification tree built with ID3 over token frequencies.",
    Algorithm.KNN: "k-nearest neighbors by cosine similarity; k chosen on held-out samples.",
    Algorithm.NEURALNET: "Single-hidden-layer neural network trained over a sweep of step sizes.",
    Algorithm.SVM: "One-vs-all kernel support vector machines; best kernel kept.",
    Algorithm.GAUSSBAYES: "Naive Bayes with a Gaussian per language and token.",
}

for _table in (TRAINERS, DECODERS, DESCRIPTIONS):
    if set(_table) != set(Algorithm):
        raise RuntimeError("algorithm registry is incomplete")


def names() -> list[str]:
    """Algorithm names in registry order."""
    return [algorithm.value for algorithm in Algorithm]


def lookup(name: str | Algorithm) -> Algorithm:
    """Resolve an algorithm name.

    Raises:
        UnknownAlgorithmError: If *name* is not a registered algorithm.
    """
    try:
        return Algorithm(name)
    except ValueError:
        raise UnknownAlgorithmError(str(name), names()) from None


def get_trainer(name: str | Algorithm) -> Trainer:
    return TRAINERS[lookup(name)]


def get_decoder(name: str | Algorithm) -> Decoder:
    return DECODERS[lookup(name)]


def train(
    name: str | Algorithm,
    samples: SampleMap,
    config: TrainerConfig | None = None,
) -> Classifier:
    """Train the named algorithm on ``language -> [mapping]`` samples."""
    return get_trainer(name)(samples, config)


def decode(name: str | Algorithm, data: bytes | str) -> Classifier:
    """Decode a model previously encoded by the named algorithm.

    Raises:
        UnknownAlgorithmError: If *name* is not registered.
        ModelDecodeError: If *data* is not a valid model.
    """
    return get_decoder(name)(data)
