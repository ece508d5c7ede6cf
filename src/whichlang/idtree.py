"""Identification-tree classifier trained with ID3.

The tree is binary: every internal node compares one token's frequency
against a threshold, sending larger values down the true branch, and every
leaf names a language. Training greedily picks the (token, threshold) pair
that minimizes the weighted entropy of the two resulting partitions.

The split search is spread over a thread pool by token ranges. Each worker
reports its locally best split and the trainer keeps the first minimal
candidate in vocabulary order, so trees never depend on scheduling.
"""

from __future__ import annotations

import logging
import math
import os
from collections import Counter
from collections.abc import Mapping, Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import NamedTuple

from .config import TreeConfig
from .models import Algorithm, Classifier
from .vectors import SampleMap, Vocabulary, build_vocabulary, l1_normalize, vectorize

logger = logging.getLogger(__name__)

_ENTROPY_EPSILON = 1e-12


# ---------------------------------------------------------------------------
# Tree nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Leaf:
    """Terminal node naming a language.

    ``confidence`` is the fraction of that language's training samples
    which reach this leaf.
    """

    classification: str
    confidence: float | None = None


@dataclass(frozen=True)
class Branch:
    """Internal node: ``sample[keyword] > threshold`` selects the true branch."""

    keyword: str
    threshold: float
    false_branch: "Node"
    true_branch: "Node"


Node = Leaf | Branch


def _node_to_dict(node: Node) -> dict:
    if isinstance(node, Leaf):
        data: dict = {"leaf": True, "leafClassification": node.classification}
        if node.confidence is not None:
            data["leafConfidence"] = node.confidence
        return data
    return {
        "leaf": False,
        "keyword": node.keyword,
        "threshold": node.threshold,
        "falseBranch": _node_to_dict(node.false_branch),
        "trueBranch": _node_to_dict(node.true_branch),
    }


def _node_from_dict(data: dict) -> Node:
    if data["leaf"]:
        confidence = data.get("leafConfidence")
        if confidence is not None:
            confidence = float(confidence)
            if not 0.0 <= confidence <= 1.0:
                raise ValueError(f"leaf confidence out of range: {confidence}")
        return Leaf(classification=str(data["leafClassification"]), confidence=confidence)

    threshold = float(data["threshold"])
    if not math.isfinite(threshold):
        raise ValueError("threshold must be finite")
    return Branch(
        keyword=str(data["keyword"]),
        threshold=threshold,
        false_branch=_node_from_dict(data["falseBranch"]),
        true_branch=_node_from_dict(data["trueBranch"]),
    )


def _iter_leaves(node: Node):
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Leaf):
            yield current
        else:
            stack.append(current.true_branch)
            stack.append(current.false_branch)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class IDTree(Classifier):
    """Identification-tree language classifier.

    Args:
        keywords: Vocabulary the tree was trained on.
        root: Root node of the tree.
    """

    algorithm = Algorithm.IDTREE

    def __init__(self, keywords: Sequence[str], root: Node) -> None:
        self.keywords: Vocabulary = tuple(keywords)
        self.root = root

    def _leaf_for(self, sample: Mapping[str, float]) -> Leaf:
        freqs = l1_normalize(sample)
        node = self.root
        while isinstance(node, Branch):
            if freqs.get(node.keyword, 0.0) > node.threshold:
                node = node.true_branch
            else:
                node = node.false_branch
        return node

    def classify(self, sample: Mapping[str, float]) -> str:
        return self._leaf_for(sample).classification

    def classify_with_confidence(self, sample: Mapping[str, float]) -> tuple[str, float]:
        """Classify and report the leaf's confidence (0.0 when unknown)."""
        leaf = self._leaf_for(sample)
        return leaf.classification, leaf.confidence if leaf.confidence is not None else 0.0

    def languages(self) -> list[str]:
        return sorted({leaf.classification for leaf in _iter_leaves(self.root)})

    @property
    def leaf_count(self) -> int:
        return sum(1 for _ in _iter_leaves(self.root))

    @property
    def branch_count(self) -> int:
        return self.leaf_count - 1

    def depth(self) -> int:
        """Number of comparisons on the longest root-to-leaf path."""
        deepest = 0
        stack: list[tuple[Node, int]] = [(self.root, 0)]
        while stack:
            node, level = stack.pop()
            if isinstance(node, Leaf):
                deepest = max(deepest, level)
            else:
                stack.append((node.false_branch, level + 1))
                stack.append((node.true_branch, level + 1))
        return deepest

    def to_dict(self) -> dict:
        return {"keywords": list(self.keywords), "treeRoot": _node_to_dict(self.root)}

    @classmethod
    def from_dict(cls, data: dict) -> "IDTree":
        return cls(keywords=[str(k) for k in data["keywords"]], root=_node_from_dict(data["treeRoot"]))


# ---------------------------------------------------------------------------
# ID3 training
# ---------------------------------------------------------------------------

class _Sample(NamedTuple):
    lang: str
    values: tuple[float, ...]


class _Split(NamedTuple):
    token_idx: int
    threshold: float
    entropy: float


def _entropy(distribution: Mapping[str, int]) -> float:
    total = sum(distribution.values())
    if total == 0:
        return 0.0
    result = 0.0
    for count in distribution.values():
        if count:
            fraction = count / total
            result -= fraction * math.log(fraction)
    return result


def _majority(samples: Sequence[_Sample]) -> str:
    counts = Counter(s.lang for s in samples)
    best = max(counts.values())
    return min(lang for lang, count in counts.items() if count == best)


def _midpoint(low: float, high: float) -> float:
    """Threshold between two distinct values that keeps ``low`` on the false side.

    For adjacent floats the arithmetic midpoint rounds up to ``high``.
    """
    middle = (low + high) / 2
    return low if middle >= high else middle


def _best_split(samples: Sequence[_Sample], token_idx: int) -> tuple[float, float] | None:
    """Best threshold for one token as ``(threshold, entropy)``.

    Returns ``None`` when every sample has the same value for the token.
    """
    ordered = sorted(samples, key=lambda s: s.values[token_idx])
    n = len(ordered)
    upper = Counter(s.lang for s in ordered)
    lower: Counter[str] = Counter()

    best: tuple[float, float] | None = None
    for i in range(1, n):
        previous = ordered[i - 1]
        upper[previous.lang] -= 1
        lower[previous.lang] += 1

        low_value = previous.values[token_idx]
        high_value = ordered[i].values[token_idx]
        if high_value == low_value:
            continue

        disorder = (n - i) / n * _entropy(upper) + i / n * _entropy(lower)
        if best is None or disorder < best[1]:
            best = (_midpoint(low_value, high_value), disorder)
    return best


def _search_tokens(samples: Sequence[_Sample], token_range: range) -> _Split | None:
    best: _Split | None = None
    for idx in token_range:
        found = _best_split(samples, idx)
        if found is None:
            continue
        if best is None or found[1] < best.entropy:
            best = _Split(idx, found[0], found[1])
    return best


def _token_chunks(vocab_size: int, workers: int) -> list[range]:
    per_worker = max(1, -(-vocab_size // workers))
    return [range(start, min(start + per_worker, vocab_size)) for start in range(0, vocab_size, per_worker)]


class _TreeBuilder:
    def __init__(self, vocabulary: Vocabulary, workers: int, pool: Executor | None) -> None:
        self.vocabulary = vocabulary
        self.workers = workers
        self.pool = pool

    def best_decision(self, samples: Sequence[_Sample]) -> _Split | None:
        chunks = _token_chunks(len(self.vocabulary), self.workers)
        if self.pool is None or len(chunks) == 1:
            results = [_search_tokens(samples, chunk) for chunk in chunks]
        else:
            results = list(self.pool.map(lambda chunk: _search_tokens(samples, chunk), chunks))

        # Chunks are in vocabulary order; strict "<" keeps the first minimum.
        best: _Split | None = None
        for result in results:
            if result is not None and (best is None or result.entropy < best.entropy):
                best = result
        return best

    def build(self, samples: Sequence[_Sample]) -> Node:
        distribution = Counter(s.lang for s in samples)
        if len(distribution) <= 1:
            return Leaf(_majority(samples))

        decision = self.best_decision(samples)
        if decision is None or decision.entropy >= _entropy(distribution) - _ENTROPY_EPSILON:
            return Leaf(_majority(samples))

        idx = decision.token_idx
        false_part = [s for s in samples if s.values[idx] <= decision.threshold]
        true_part = [s for s in samples if s.values[idx] > decision.threshold]
        if not false_part or not true_part:
            return Leaf(_majority(samples))
        return Branch(
            keyword=self.vocabulary[idx],
            threshold=decision.threshold,
            false_branch=self.build(false_part),
            true_branch=self.build(true_part),
        )


def _recenter(node: Node, samples: Sequence[_Sample], index: Mapping[str, int]) -> Node:
    """Move each threshold halfway between the closest values on either side."""
    if isinstance(node, Leaf):
        return node
    i = index[node.keyword]
    false_part = [s for s in samples if s.values[i] <= node.threshold]
    true_part = [s for s in samples if s.values[i] > node.threshold]
    threshold = node.threshold
    if false_part and true_part:
        threshold = _midpoint(
            max(s.values[i] for s in false_part), min(s.values[i] for s in true_part)
        )
    return Branch(
        keyword=node.keyword,
        threshold=threshold,
        false_branch=_recenter(node.false_branch, false_part, index),
        true_branch=_recenter(node.true_branch, true_part, index),
    )


def _with_confidences(
    node: Node,
    samples: Sequence[_Sample],
    index: Mapping[str, int],
    totals: Mapping[str, int],
) -> Node:
    if isinstance(node, Leaf):
        reached = sum(1 for s in samples if s.lang == node.classification)
        total = totals.get(node.classification, 0)
        return Leaf(node.classification, reached / total if total else 0.0)
    i = index[node.keyword]
    return Branch(
        keyword=node.keyword,
        threshold=node.threshold,
        false_branch=_with_confidences(
            node.false_branch, [s for s in samples if s.values[i] <= node.threshold], index, totals
        ),
        true_branch=_with_confidences(
            node.true_branch, [s for s in samples if s.values[i] > node.threshold], index, totals
        ),
    )


def train(samples: SampleMap, config: TreeConfig | None = None) -> IDTree:
    """Run ID3 on labeled samples.

    Args:
        samples: Mapping of language to token count/frequency mappings.
            Every sample is L1-normalized before training.
        config: Training options.

    Returns:
        A trained :class:`IDTree` with centered thresholds and leaf
        confidences.

    Raises:
        ValueError: If there are no samples.
    """
    config = config or TreeConfig()
    log = logger.info if config.verbose else logger.debug

    vocabulary = build_vocabulary(samples)
    rows = [
        _Sample(lang, tuple(vectorize(l1_normalize(sample), vocabulary)))
        for lang in sorted(samples)
        for sample in samples[lang]
    ]
    if not rows:
        raise ValueError("Cannot train an identification tree without samples.")

    workers = config.workers or os.cpu_count() or 1
    log("Building tree over %d samples and %d tokens (%d workers)", len(rows), len(vocabulary), workers)

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            root = _TreeBuilder(vocabulary, workers, pool).build(rows)
    else:
        root = _TreeBuilder(vocabulary, 1, None).build(rows)

    index = {token: i for i, token in enumerate(vocabulary)}
    root = _recenter(root, rows, index)
    root = _with_confidences(root, rows, index, Counter(s.lang for s in rows))

    tree = IDTree(vocabulary, root)
    log("Tree has %d leaves, depth %d", tree.leaf_count, tree.depth())
    return tree
