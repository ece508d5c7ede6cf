"""Tests for the shared frequency-vector helpers."""

from __future__ import annotations

import math

import pytest

from whichlang.vectors import (
    KahanSummer,
    build_vocabulary,
    kahan_sum,
    l1_normalize,
    l2_normalize,
    magnitude,
    partition_samples,
    vectorize,
)


class TestVectorize:
    def test_vocabulary_is_sorted_union(self):
        samples = {"A": [{"b": 1, "a": 2}], "B": [{"c": 1}, {"a": 1}]}
        assert build_vocabulary(samples) == ("a", "b", "c")

    def test_missing_tokens_are_zero(self):
        assert vectorize({"b": 2, "unknown": 9}, ("a", "b")) == [0.0, 2.0]

    @pytest.mark.parametrize("counts", [
        {"a": 1},
        {"a": 3, "b": 4},
        {"a": 1e-9, "b": 1e9, "c": 7},
    ])
    def test_l2_normalized_has_unit_norm(self, counts):
        vector = l2_normalize(vectorize(counts, ("a", "b", "c")))
        assert magnitude(vector) == pytest.approx(1.0)

    def test_l2_zero_vector_returns_none(self):
        assert l2_normalize([0.0, 0.0, 0.0]) is None
        assert l2_normalize([]) is None

    def test_l1_divides_by_whole_mapping(self):
        assert l1_normalize({"a": 1, "b": 3}) == {"a": 0.25, "b": 0.75}

    def test_l1_counts_and_frequencies_agree(self):
        assert l1_normalize({"a": 2, "b": 2}) == l1_normalize({"a": 0.5, "b": 0.5})

    def test_l1_zero_sum_stays_zero(self):
        assert l1_normalize({"a": 0}) == {"a": 0.0}
        assert l1_normalize({}) == {}


class TestKahan:
    def test_compensates_rounding(self):
        values = [1.0] + [1e-16] * 10_000
        assert kahan_sum(values) == pytest.approx(1.0 + 1e-12, rel=1e-15)

    def test_initial_value(self):
        summer = KahanSummer(5.0)
        summer.add(1.5)
        assert summer.sum() == 6.5

    def test_infinity_propagates_without_raising(self):
        summer = KahanSummer()
        summer.add(math.inf)
        summer.add(1.0)
        assert not math.isfinite(summer.sum())


class TestPartition:
    def test_held_out_counts(self):
        samples = {"A": list(range(10)), "B": list(range(3)), "C": [0]}
        held_out, training = partition_samples(samples, 0.3)
        assert [len(held_out[k]) for k in "ABC"] == [3, 0, 0]
        assert [len(training[k]) for k in "ABC"] == [7, 3, 1]
        assert sorted(held_out["A"] + training["A"]) == list(range(10))

    def test_deterministic_for_seed(self):
        samples = {"A": list(range(20))}
        assert partition_samples(samples, 0.5, seed=3) == partition_samples(samples, 0.5, seed=3)

    def test_zero_fraction_holds_nothing_out(self):
        held_out, training = partition_samples({"A": [1, 2]}, 0.0)
        assert held_out == {"A": []}
        assert training == {"A": [1, 2]}

    @pytest.mark.parametrize("fraction", [-0.1, 1.0, 1.5])
    def test_invalid_fraction(self, fraction):
        with pytest.raises(ValueError):
            partition_samples({"A": [1]}, fraction)
