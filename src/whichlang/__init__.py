"""whichlang -- guess the programming language of source code."""

__version__ = "0.1.0"

from .config import (
    BayesConfig,
    KNNConfig,
    NetworkConfig,
    SVMConfig,
    TreeConfig,
    config_for,
)
from .errors import KernelConfigError, ModelDecodeError, UnknownAlgorithmError
from .gaussbayes import GaussBayesClassifier
from .idtree import IDTree
from .kernels import Kernel, KernelType
from .knn import KNNClassifier
from .models import Algorithm, Classifier
from .neuralnet import Network
from .rater import LanguageRating, Rating, rate, tally
from .registry import DECODERS, DESCRIPTIONS, TRAINERS, decode, get_decoder, get_trainer, train
from .svm import SVMClassifier
from .tokens import count_tokens, prune, read_sample_counts, sample_freqs, to_freqs

__all__ = [
    # Core
    "Algorithm",
    "Classifier",
    "count_tokens",
    "to_freqs",
    "read_sample_counts",
    "prune",
    "sample_freqs",
    # Registry
    "TRAINERS",
    "DECODERS",
    "DESCRIPTIONS",
    "get_trainer",
    "get_decoder",
    "train",
    "decode",
    # Classifiers
    "IDTree",
    "KNNClassifier",
    "GaussBayesClassifier",
    "SVMClassifier",
    "Network",
    "Kernel",
    "KernelType",
    # Configuration
    "TreeConfig",
    "KNNConfig",
    "BayesConfig",
    "SVMConfig",
    "NetworkConfig",
    "config_for",
    # Evaluation
    "LanguageRating",
    "Rating",
    "tally",
    "rate",
    # Errors
    "ModelDecodeError",
    "UnknownAlgorithmError",
    "KernelConfigError",
]
