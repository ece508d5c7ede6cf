"""Tests for the identification tree classifier and its ID3 trainer."""

from __future__ import annotations

import json
import math

import pytest

from whichlang.config import TreeConfig
from whichlang.errors import ModelDecodeError
from whichlang.idtree import Branch, IDTree, Leaf, _midpoint, train
from whichlang.tokens import sample_freqs


@pytest.fixture
def threshold_samples() -> dict:
    """Separable by the frequency of "x" alone."""
    return {
        "A": [{"x": 9, "y": 1}, {"x": 8, "y": 2}, {"x": 7, "y": 3}],
        "B": [{"x": 1, "y": 9}, {"x": 2, "y": 8}, {"x": 3, "y": 7}],
    }


class TestClassification:
    def test_walks_to_leaf(self):
        tree = IDTree(
            ["a"],
            Branch("a", 0.5, false_branch=Leaf("Low", 0.5), true_branch=Leaf("High", 1.0)),
        )
        assert tree.classify({"a": 3, "b": 1}) == "High"
        assert tree.classify({"a": 1, "b": 3}) == "Low"
        assert tree.classify_with_confidence({"a": 1}) == ("High", 1.0)

    def test_threshold_is_exclusive(self):
        tree = IDTree(["a"], Branch("a", 0.5, Leaf("Low"), Leaf("High")))
        assert tree.classify({"a": 1, "b": 1}) == "Low"

    def test_unknown_confidence_reported_as_zero(self):
        tree = IDTree([], Leaf("Only"))
        assert tree.classify_with_confidence({}) == ("Only", 0.0)

    def test_languages_and_shape(self):
        tree = IDTree(
            ["a", "b"],
            Branch("a", 0.5, Branch("b", 0.1, Leaf("X"), Leaf("Y")), Leaf("X")),
        )
        assert tree.languages() == ["X", "Y"]
        assert tree.leaf_count == 3
        assert tree.branch_count == 2
        assert tree.depth() == 2


class TestTraining:
    def test_single_threshold_gives_one_branch(self, threshold_samples):
        tree = train(threshold_samples, TreeConfig(workers=1))
        assert isinstance(tree.root, Branch)
        assert tree.branch_count == 1
        assert isinstance(tree.root.false_branch, Leaf)
        assert isinstance(tree.root.true_branch, Leaf)

    def test_threshold_is_centered(self, threshold_samples):
        tree = train(threshold_samples, TreeConfig(workers=1))
        # "x" frequencies: A in {0.7, 0.8, 0.9}, B in {0.1, 0.2, 0.3}.
        assert tree.root.keyword == "x"
        assert tree.root.threshold == pytest.approx(0.5)
        assert tree.root.true_branch.classification == "A"

    def test_leaf_confidences(self, threshold_samples):
        tree = train(threshold_samples)
        assert tree.classify_with_confidence({"x": 1}) == ("A", 1.0)
        assert tree.classify_with_confidence({"y": 1}) == ("B", 1.0)

    def test_homogeneous_samples_give_leaf(self):
        tree = train({"Only": [{"a": 1}, {"b": 1}]})
        assert tree.root == Leaf("Only", 1.0)

    def test_identical_samples_give_majority_leaf(self):
        tree = train({"B": [{"a": 1}], "A": [{"a": 1}]})
        assert isinstance(tree.root, Leaf)
        assert tree.root.classification == "A"

    def test_worker_count_does_not_change_tree(self, source_freqs):
        single = train(source_freqs, TreeConfig(workers=1))
        pooled = train(source_freqs, TreeConfig(workers=4))
        assert single.to_dict() == pooled.to_dict()

    def test_fits_training_samples(self, source_freqs):
        tree = train(source_freqs, TreeConfig(workers=2))
        for lang, samples in source_freqs.items():
            for sample in samples:
                assert tree.classify(sample) == lang

    def test_empty_samples_raise(self):
        with pytest.raises(ValueError):
            train({})

    def test_adjacent_float_values_split(self):
        # Both "a" frequencies are 1/3 but come out one ulp apart after renormalizing.
        freqs = sample_freqs({
            "Python": [{"a": 1, "b": 1, "c": 1}],
            "C": [{"a": 2, "b": 3, "d": 1}],
        })
        tree = train(freqs, TreeConfig(workers=1))
        assert tree.branch_count == 1
        for lang, samples in freqs.items():
            assert tree.classify(samples[0]) == lang


class TestMidpoint:
    def test_regular_values(self):
        assert _midpoint(0.25, 0.75) == 0.5

    def test_adjacent_floats_keep_low_value(self):
        low = 1 / 3
        high = math.nextafter(low, 1.0)
        threshold = _midpoint(low, high)
        assert low <= threshold < high

    def test_huge_values_do_not_overflow_past_high(self):
        threshold = _midpoint(1e308, 1.7e308)
        assert 1e308 <= threshold < 1.7e308


class TestSerialization:
    def test_json_field_names(self, threshold_samples):
        data = json.loads(train(threshold_samples).encode())
        assert set(data) == {"keywords", "treeRoot"}
        root = data["treeRoot"]
        assert root["leaf"] is False
        assert {"keyword", "threshold", "falseBranch", "trueBranch"} <= set(root)
        assert root["trueBranch"]["leafClassification"] == "A"
        assert root["trueBranch"]["leafConfidence"] == 1.0

    def test_roundtrip_preserves_classification(self, source_freqs):
        tree = train(source_freqs)
        decoded = IDTree.decode(tree.encode())
        for samples in source_freqs.values():
            for sample in samples:
                assert decoded.classify_with_confidence(sample) == tree.classify_with_confidence(sample)

    @pytest.mark.parametrize("payload", [
        b"not json",
        b"[]",
        b'{"keywords": []}',
        b'{"keywords": [], "treeRoot": {"leaf": false, "keyword": "a", "threshold": NaN,'
        b' "falseBranch": {"leaf": true, "leafClassification": "A"},'
        b' "trueBranch": {"leaf": true, "leafClassification": "B"}}}',
        b'{"keywords": [], "treeRoot": {"leaf": true, "leafClassification": "A", "leafConfidence": 2}}',
    ])
    def test_malformed_models_raise(self, payload):
        with pytest.raises(ModelDecodeError):
            IDTree.decode(payload)

    def test_deeply_nested_tree_raises(self):
        depth = 100_000
        branch = (
            '{"leaf": false, "keyword": "a", "threshold": 0.5,'
            ' "trueBranch": {"leaf": true, "leafClassification": "B"}, "falseBranch": '
        )
        payload = '{"keywords": ["a"], "treeRoot": ' + branch * depth
        payload += '{"leaf": true, "leafClassification": "A"}' + "}" * depth + "}"
        with pytest.raises(ModelDecodeError):
            IDTree.decode(payload)
