"""Single-hidden-layer neural network classifier.

Inputs are L1 token frequencies over the training vocabulary, optionally
standardized per feature. Hidden and output units use the logistic
sigmoid; the language whose output unit fires strongest wins. Every weight
row ends with a bias weight that is not multiplied by an input.

Training runs per-sample gradient descent on ``½‖out − target‖²`` for a
sweep of step sizes, uses held-out accuracy to decide when to stop, and
keeps the best network across the sweep.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Mapping, Sequence
from typing import NamedTuple

from .config import NetworkConfig
from .models import Algorithm, Classifier
from .vectors import (
    KahanSummer,
    SampleMap,
    Vocabulary,
    all_finite,
    build_vocabulary,
    l1_normalize,
    partition_samples,
    vectorize,
)

logger = logging.getLogger(__name__)

Matrix = tuple[tuple[float, ...], ...]


def sigmoid(x: float) -> float:
    """Logistic function, written so :func:`math.exp` never overflows."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def _weighted_sum(weights: Sequence[float], inputs: Sequence[float]) -> float:
    # The last weight is the bias.
    summer = KahanSummer(weights[len(inputs)])
    for w, x in zip(weights, inputs):
        summer.add(w * x)
    return summer.sum()


def _as_matrix(rows) -> Matrix:
    return tuple(tuple(float(x) for x in row) for row in rows)


class Network(Classifier):
    """Feedforward network with one hidden layer.

    Args:
        tokens: Vocabulary defining the input units.
        langs: Language of each output unit.
        hidden_weights: One row per hidden unit, ``len(tokens) + 1`` wide.
        output_weights: One row per language, ``hidden units + 1`` wide.
        input_shift: Added to each input before scaling (optional).
        input_scale: Multiplies each shifted input (optional).

    Raises:
        ValueError: If the matrix shapes don't match or a weight is not
            finite.
    """

    algorithm = Algorithm.NEURALNET

    def __init__(
        self,
        tokens: Sequence[str],
        langs: Sequence[str],
        hidden_weights: Sequence[Sequence[float]],
        output_weights: Sequence[Sequence[float]],
        input_shift: Sequence[float] | None = None,
        input_scale: Sequence[float] | None = None,
    ) -> None:
        self.tokens: Vocabulary = tuple(tokens)
        self.langs: tuple[str, ...] = tuple(langs)
        self.hidden_weights = _as_matrix(hidden_weights)
        self.output_weights = _as_matrix(output_weights)
        self.input_shift = tuple(float(x) for x in input_shift) if input_shift is not None else None
        self.input_scale = tuple(float(x) for x in input_scale) if input_scale is not None else None
        self._validate()

    def _validate(self) -> None:
        if not self.langs:
            raise ValueError("A network needs at least one language.")
        if not self.hidden_weights:
            raise ValueError("A network needs at least one hidden unit.")
        if any(len(row) != len(self.tokens) + 1 for row in self.hidden_weights):
            raise ValueError(f"hidden weight rows must have {len(self.tokens) + 1} values")
        if len(self.output_weights) != len(self.langs):
            raise ValueError("need one output weight row per language")
        if any(len(row) != len(self.hidden_weights) + 1 for row in self.output_weights):
            raise ValueError(f"output weight rows must have {len(self.hidden_weights) + 1} values")
        for row in (*self.hidden_weights, *self.output_weights):
            if not all_finite(row):
                raise ValueError("network weights must be finite")
        if (self.input_shift is None) != (self.input_scale is None):
            raise ValueError("inputShift and inputScale must be given together")
        if self.input_shift is not None:
            if len(self.input_shift) != len(self.tokens) or len(self.input_scale) != len(self.tokens):
                raise ValueError(f"input statistics must have {len(self.tokens)} values")
            if not (all_finite(self.input_shift) and all_finite(self.input_scale)):
                raise ValueError("input statistics must be finite")

    @property
    def hidden_count(self) -> int:
        return len(self.hidden_weights)

    def input_vector(self, sample: Mapping[str, float]) -> list[float]:
        """L1-normalize *sample* and apply the stored standardization."""
        vector = vectorize(l1_normalize(sample), self.tokens)
        if self.input_shift is None:
            return vector
        return [(x + shift) * scale for x, shift, scale in zip(vector, self.input_shift, self.input_scale)]

    def outputs(self, sample: Mapping[str, float]) -> dict[str, float]:
        """Output activation for each language."""
        _, out = _forward(self.hidden_weights, self.output_weights, self.input_vector(sample))
        return dict(zip(self.langs, out))

    def classify(self, sample: Mapping[str, float]) -> str:
        _, out = _forward(self.hidden_weights, self.output_weights, self.input_vector(sample))
        return self.langs[_argmax(out)]

    def languages(self) -> list[str]:
        return sorted(self.langs)

    def to_dict(self) -> dict:
        data = {
            "tokens": list(self.tokens),
            "langs": list(self.langs),
            "hiddenWeights": [list(row) for row in self.hidden_weights],
            "outputWeights": [list(row) for row in self.output_weights],
        }
        if self.input_shift is not None:
            data["inputShift"] = list(self.input_shift)
            data["inputScale"] = list(self.input_scale)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Network":
        return cls(
            tokens=[str(t) for t in data["tokens"]],
            langs=[str(lang) for lang in data["langs"]],
            hidden_weights=data["hiddenWeights"],
            output_weights=data["outputWeights"],
            input_shift=data.get("inputShift"),
            input_scale=data.get("inputScale"),
        )


def _forward(
    hidden_weights: Sequence[Sequence[float]],
    output_weights: Sequence[Sequence[float]],
    inputs: Sequence[float],
) -> tuple[list[float], list[float]]:
    hidden = [sigmoid(_weighted_sum(row, inputs)) for row in hidden_weights]
    outputs = [sigmoid(_weighted_sum(row, hidden)) for row in output_weights]
    return hidden, outputs


def _argmax(values: Sequence[float]) -> int:
    best = 0
    for i, value in enumerate(values):
        if value > values[best]:
            best = i
    return best


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------

class _Row(NamedTuple):
    inputs: list[float]
    lang_idx: int


class _Score(NamedTuple):
    """Held-out and training accuracy of a checkpoint, plus loss for logging."""

    cross: float
    training: float
    neg_loss: float

    @property
    def accuracy(self) -> tuple[float, float]:
        return self.cross, self.training


def _standardization(rows: Sequence[list[float]], width: int) -> tuple[list[float], list[float]]:
    shift, scale = [], []
    n = len(rows)
    for i in range(width):
        mean = sum(row[i] for row in rows) / n if n else 0.0
        variance = sum((row[i] - mean) * (row[i] - mean) for row in rows) / n if n else 0.0
        std = math.sqrt(variance)
        shift.append(-mean)
        scale.append(1.0 / std if std > 0 else 1.0)
    return shift, scale


class _Weights:
    """Mutable weight matrices used while training."""

    def __init__(self, hidden: list[list[float]], output: list[list[float]]) -> None:
        self.hidden = hidden
        self.output = output

    @classmethod
    def initial(cls, inputs: int, hidden: int, outputs: int, rng: random.Random) -> "_Weights":
        def layer(rows: int, fan_in: int) -> list[list[float]]:
            bound = 1.0 / math.sqrt(fan_in + 1)
            return [[rng.uniform(-bound, bound) for _ in range(fan_in + 1)] for _ in range(rows)]

        return cls(layer(hidden, inputs), layer(outputs, hidden))

    def copy(self) -> "_Weights":
        return _Weights([list(r) for r in self.hidden], [list(r) for r in self.output])

    def finite(self) -> bool:
        return all(all_finite(row) for row in (*self.hidden, *self.output))


class _Trainer:
    def __init__(
        self,
        weights: _Weights,
        rows: Sequence[_Row],
        step_size: float,
        normalize_gradients: bool,
        seed: int,
    ) -> None:
        self.weights = weights
        self.rows = list(rows)
        self.step_size = step_size
        self.normalize_gradients = normalize_gradients
        self.rng = random.Random(f"{seed}:order")

    def run(self, epochs: int) -> bool:
        """Train for *epochs* passes; returns False as soon as a weight is not finite."""
        for _ in range(epochs):
            self.rng.shuffle(self.rows)
            for row in self.rows:
                self._descend(row)
            if not self.weights.finite():
                return False
        return True

    def _descend(self, row: _Row) -> None:
        w = self.weights
        hidden, outputs = _forward(w.hidden, w.output, row.inputs)

        out_deltas = [
            (o - (1.0 if k == row.lang_idx else 0.0)) * o * (1.0 - o)
            for k, o in enumerate(outputs)
        ]
        hidden_deltas = []
        for j, h in enumerate(hidden):
            summer = KahanSummer()
            for k, delta in enumerate(out_deltas):
                summer.add(w.output[k][j] * delta)
            hidden_deltas.append(h * (1.0 - h) * summer.sum())

        hidden_ext = [*hidden, 1.0]
        inputs_ext = [*row.inputs, 1.0]

        scale = self.step_size
        if self.normalize_gradients:
            squared = KahanSummer()
            for delta in out_deltas:
                for h in hidden_ext:
                    squared.add(delta * h * delta * h)
            for delta in hidden_deltas:
                for x in inputs_ext:
                    squared.add(delta * x * delta * x)
            norm = math.sqrt(squared.sum()) if squared.sum() >= 0 else math.nan
            if norm == 0:
                return
            scale /= norm

        for k, delta in enumerate(out_deltas):
            weights = w.output[k]
            for j, h in enumerate(hidden_ext):
                weights[j] -= scale * delta * h
        for j, delta in enumerate(hidden_deltas):
            if delta == 0:
                continue
            weights = w.hidden[j]
            for i, x in enumerate(inputs_ext):
                if x:
                    weights[i] -= scale * delta * x


def _accuracy(weights: _Weights, rows: Sequence[_Row]) -> float:
    if not rows:
        return 0.0
    correct = sum(
        1 for row in rows if _argmax(_forward(weights.hidden, weights.output, row.inputs)[1]) == row.lang_idx
    )
    return correct / len(rows)


def _loss(weights: _Weights, rows: Sequence[_Row]) -> float:
    if not rows:
        return 0.0
    total = KahanSummer()
    for row in rows:
        _, outputs = _forward(weights.hidden, weights.output, row.inputs)
        for k, o in enumerate(outputs):
            diff = o - (1.0 if k == row.lang_idx else 0.0)
            total.add(0.5 * diff * diff)
    return total.sum() / len(rows)


def _score(weights: _Weights, training: Sequence[_Row], validation: Sequence[_Row]) -> _Score:
    train_acc = _accuracy(weights, training)
    cross = _accuracy(weights, validation) if validation else train_acc
    return _Score(cross, train_acc, -_loss(weights, training))


def _train_step_size(
    initial: _Weights,
    training: Sequence[_Row],
    validation: Sequence[_Row],
    step_size: float,
    config: NetworkConfig,
) -> tuple[_Weights, _Score] | None:
    """Train from *initial* with one step size, stopping on held-out accuracy.

    Returns ``None`` if the weights diverge before the first checkpoint.
    """
    trainer = _Trainer(initial.copy(), training, step_size, config.normalize_gradients, config.seed)

    iterations = min(config.initial_iterations, config.max_iterations)
    if not trainer.run(iterations):
        logger.warning("Step size %g diverged in the first %d epochs", step_size, iterations)
        return None

    snapshot = trainer.weights.copy()
    best = _score(snapshot, training, validation)
    while iterations < config.max_iterations:
        amount = min(iterations, config.max_iterations - iterations)
        if not trainer.run(amount):
            logger.warning("Step size %g diverged after %d epochs", step_size, iterations)
            break
        iterations += amount
        score = _score(trainer.weights, training, validation)
        if score.accuracy <= best.accuracy:
            break
        snapshot, best = trainer.weights.copy(), score
    return snapshot, best


def _hidden_size(config: NetworkConfig, lang_count: int) -> int:
    if config.hidden_size is not None:
        return config.hidden_size
    return max(1, round(config.hidden_layer_scale * lang_count))


def train(samples: SampleMap, config: NetworkConfig | None = None) -> Network:
    """Train a network for each step size and keep the best one.

    Args:
        samples: Mapping of language to token count/frequency mappings.
        config: Training options.

    Returns:
        The network with the best held-out accuracy (then training
        accuracy; earlier step sizes win ties). If every
        step size diverges, the untrained initial network.

    Raises:
        ValueError: If there are no samples.
    """
    config = config or NetworkConfig()
    log = logger.info if config.verbose else logger.debug

    langs = tuple(sorted(lang for lang, lang_samples in samples.items() if lang_samples))
    if not langs:
        raise ValueError("Cannot train a neural network without samples.")
    vocabulary = build_vocabulary(samples)
    lang_index = {lang: i for i, lang in enumerate(langs)}

    held_out, training_map = partition_samples(samples, config.validation_fraction, config.seed)

    def dense_rows(part: SampleMap) -> list[tuple[list[float], int]]:
        return [
            (vectorize(l1_normalize(sample), vocabulary), lang_index[lang])
            for lang in sorted(part)
            if lang in lang_index
            for sample in part[lang]
        ]

    raw_training = dense_rows(training_map)
    raw_validation = dense_rows(held_out)

    shift: list[float] | None = None
    scale: list[float] | None = None
    if config.standardize_inputs:
        shift, scale = _standardization([inputs for inputs, _ in raw_training], len(vocabulary))

    def prepare(raw: list[tuple[list[float], int]]) -> list[_Row]:
        if shift is None:
            return [_Row(inputs, idx) for inputs, idx in raw]
        return [
            _Row([(x + s) * c for x, s, c in zip(inputs, shift, scale)], idx) for inputs, idx in raw
        ]

    training = prepare(raw_training)
    validation = prepare(raw_validation)

    hidden_count = _hidden_size(config, len(langs))
    initial = _Weights.initial(len(vocabulary), hidden_count, len(langs), random.Random(config.seed))
    log(
        "Training %d-%d-%d network on %d samples (%d held out)",
        len(vocabulary), hidden_count, len(langs), len(training), len(validation),
    )

    best: tuple[_Weights, _Score] | None = None
    for step_size in config.step_sizes:
        result = _train_step_size(initial, training, validation, step_size, config)
        if result is None:
            continue
        log(
            "Step size %g: validation=%.4f training=%.4f loss=%.6f",
            step_size, result[1].cross, result[1].training, -result[1].neg_loss,
        )
        if best is None or result[1].accuracy > best[1].accuracy:
            best = result

    if best is None:
        logger.warning("Every step size diverged; returning the untrained network")
        weights = initial
    else:
        weights = best[0]
    return Network(vocabulary, langs, weights.hidden, weights.output, shift, scale)
