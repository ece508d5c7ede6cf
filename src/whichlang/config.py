"""Trainer configuration.

Each algorithm takes an explicit, immutable configuration object instead of
reading global or environment state. :func:`config_for` builds the right
one for an algorithm name from keyword overrides, and
:func:`parse_overrides` turns ``key=value`` strings (as given on the
command line) into typed overrides.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from .kernels import Kernel, KernelType


def _default_kernels() -> tuple[Kernel, ...]:
    kernels = [Kernel(KernelType.LINEAR)]
    kernels += [Kernel(KernelType.POLYNOMIAL, (offset, 2.0)) for offset in (0.0, 1.0)]
    kernels += [Kernel(KernelType.RBF, (10.0 ** power,)) for power in range(-5, 3)]
    return tuple(kernels)


def _default_step_sizes() -> tuple[float, ...]:
    return tuple(2.0 ** power for power in range(-20, 10))


def _check_fraction(value: float) -> None:
    if not 0.0 <= value < 1.0:
        raise ValueError("validation_fraction must be in [0, 1)")


@dataclass(frozen=True)
class TreeConfig:
    """ID3 training options.

    Args:
        workers: Worker threads for the split search (``None`` = CPU count).
        verbose: Log progress at INFO instead of DEBUG.
    """

    workers: int | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.workers is not None and self.workers < 1:
            raise ValueError("workers must be at least 1")


@dataclass(frozen=True)
class KNNConfig:
    """k-nearest-neighbors training options.

    Args:
        validation_fraction: Fraction of each language held out to pick k.
        weighting: ``"similarity"`` (vote with cosine similarity) or
            ``"distance"`` (vote with ``1 / (1 - similarity)``).
        seed: Seed for the held-out split.
        verbose: Log progress at INFO instead of DEBUG.
    """

    validation_fraction: float = 0.3
    weighting: str = "similarity"
    seed: int = 0
    verbose: bool = False

    def __post_init__(self) -> None:
        _check_fraction(self.validation_fraction)
        if self.weighting not in ("similarity", "distance"):
            raise ValueError("weighting must be 'similarity' or 'distance'")


@dataclass(frozen=True)
class BayesConfig:
    """Gaussian naive Bayes has no tunable parameters."""

    verbose: bool = False


@dataclass(frozen=True)
class SVMConfig:
    """Kernel SVM training options.

    Args:
        kernels: Kernel configurations to try; the one with the best
            held-out accuracy is kept.
        tradeoff: Regularization strength. Larger values favor a wider
            margin over fitting every training sample.
        max_iterations: Maximum coordinate-ascent sweeps per binary problem.
        tolerance: Stop once no dual variable moves more than this.
        validation_fraction: Fraction of each language held out.
        seed: Seed for the held-out split.
        verbose: Log progress at INFO instead of DEBUG.
    """

    kernels: tuple[Kernel, ...] = field(default_factory=_default_kernels)
    tradeoff: float = 0.001
    max_iterations: int = 200
    tolerance: float = 1e-6
    validation_fraction: float = 0.3
    seed: int = 0
    verbose: bool = False

    def __post_init__(self) -> None:
        _check_fraction(self.validation_fraction)
        if not self.kernels:
            raise ValueError("at least one kernel is required")
        if self.tradeoff <= 0:
            raise ValueError("tradeoff must be positive")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")


@dataclass(frozen=True)
class NetworkConfig:
    """Neural network training options.

    Args:
        step_sizes: Gradient-descent step sizes to sweep.
        max_iterations: Maximum training epochs per step size.
        initial_iterations: Epochs run before early stopping kicks in.
        hidden_layer_scale: Hidden units per output unit.
        hidden_size: Explicit hidden layer size (overrides the scale).
        normalize_gradients: L2-normalize each sample's gradient.
        standardize_inputs: Shift/scale inputs to zero mean, unit variance.
        validation_fraction: Fraction of each language held out.
        seed: Seed for the split, weight initialization and sample order.
        verbose: Log progress at INFO instead of DEBUG.
    """

    step_sizes: tuple[float, ...] = field(default_factory=_default_step_sizes)
    max_iterations: int = 6400
    initial_iterations: int = 100
    hidden_layer_scale: float = 2.0
    hidden_size: int | None = None
    normalize_gradients: bool = True
    standardize_inputs: bool = True
    validation_fraction: float = 0.3
    seed: int = 0
    verbose: bool = False

    def __post_init__(self) -> None:
        _check_fraction(self.validation_fraction)
        if not self.step_sizes:
            raise ValueError("at least one step size is required")
        if any(s <= 0 for s in self.step_sizes):
            raise ValueError("step sizes must be positive")
        if self.max_iterations < 1 or self.initial_iterations < 1:
            raise ValueError("iteration counts must be at least 1")
        if self.hidden_size is not None and self.hidden_size < 1:
            raise ValueError("hidden_size must be at least 1")
        if self.hidden_layer_scale <= 0:
            raise ValueError("hidden_layer_scale must be positive")


TrainerConfig = TreeConfig | KNNConfig | BayesConfig | SVMConfig | NetworkConfig

CONFIG_TYPES: dict[str, type] = {
    "idtree": TreeConfig,
    "knn": KNNConfig,
    "gaussbayes": BayesConfig,
    "svm": SVMConfig,
    "neuralnet": NetworkConfig,
}


def config_for(algorithm: str, **overrides) -> TrainerConfig:
    """Build the configuration for *algorithm* with keyword overrides.

    Raises:
        KeyError: If *algorithm* has no configuration type.
        TypeError: If an override names an unknown field.
        ValueError: If an override fails validation.
    """
    return CONFIG_TYPES[algorithm](**overrides)


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {text!r}")


def _parse_kernel(text: str) -> Kernel:
    # "linear", "rbf:0.01", "polynomial:1,2"
    name, _, params = text.partition(":")
    values = tuple(float(p) for p in params.split(",") if p.strip())
    return Kernel(name.strip(), values)


def _coerce(field_name: str, raw: str):
    if field_name == "kernels":
        return tuple(_parse_kernel(k) for k in raw.split(";") if k.strip())
    if field_name == "step_sizes":
        return tuple(float(s) for s in raw.split(",") if s.strip())
    if field_name == "verbose" or field_name.startswith(("normalize_", "standardize_")):
        return _parse_bool(raw)
    if field_name in ("workers", "hidden_size"):
        return None if raw.lower() == "none" else int(raw)
    if field_name in ("max_iterations", "initial_iterations", "seed"):
        return int(raw)
    if field_name == "weighting":
        return raw
    return float(raw)


def parse_overrides(algorithm: str, pairs: list[str]) -> dict:
    """Turn ``key=value`` strings into typed overrides for *algorithm*.

    Kernels are written ``type[:p1,p2]`` and separated by ``;``; step
    sizes are comma separated.

    Raises:
        ValueError: If a pair is malformed or names an unknown field.
    """
    known = {f.name for f in dataclasses.fields(CONFIG_TYPES[algorithm])}
    overrides: dict = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        key = key.strip().replace("-", "_")
        if not sep:
            raise ValueError(f"expected key=value, got {pair!r}")
        if key not in known:
            raise ValueError(
                f"unknown {algorithm} parameter {key!r}; known: {', '.join(sorted(known))}"
            )
        overrides[key] = _coerce(key, raw.strip())
    return overrides
