# File: tests/test_partitions.py
"""
Unit tests for nominal_spd.partitions: spacing filter, explicit subsets,
shuffling and capping.
"""
import itertools

import numpy as np
import pytest

from nominal_spd.config import ConfigurationError
from nominal_spd.partitions import enumerate_partitions, is_well_separated


def test_is_well_separated():
    assert is_well_separated([420.0, 460.0, 500.0], 20.0)
    assert not is_well_separated([420.0, 440.0], 20.0)
    assert not is_well_separated([500.0, 420.0, 421.0], 20.0)
    assert is_well_separated([500.0], 20.0)


def test_close_leds_never_share_a_subset():
    peaks = [420.0, 421.0, 460.0, 500.0]
    subsets = enumerate_partitions(4, 3, peaks, 20.0, rng=np.random.default_rng(0))
    assert sorted(subsets) == [(0, 2, 3), (1, 2, 3)]
    for s in subsets:
        assert not {0, 1} <= set(s)


def test_retained_and_rejected_subsets_split_on_gap():
    peaks = [400.0, 415.0, 440.0, 470.0, 480.0, 520.0, 600.0]
    kept = set(enumerate_partitions(7, 3, peaks, 20.0, rng=np.random.default_rng(1)))
    for combo in itertools.combinations(range(7), 3):
        gap = np.diff(sorted(peaks[i] for i in combo)).min()
        assert (combo in kept) == (gap > 20.0)


def test_subsets_are_ordered_by_peak():
    peaks = [560.0, 420.0, 500.0, 460.0]
    subsets = enumerate_partitions(4, 3, peaks, 20.0, rng=np.random.default_rng(2))
    assert len(subsets) == 4
    for s in subsets:
        assert all(np.diff([peaks[i] for i in s]) > 0)


def test_explicit_subset_skips_enumeration():
    peaks = [420.0, 421.0, 460.0]
    subsets = enumerate_partitions(3, 2, peaks, 20.0, n_tests=5, best=[1, 0])
    assert subsets == [(0, 1)]


def test_explicit_subset_is_ordered_by_peak():
    peaks = [420.0, 450.0, 480.0, 510.0, 540.0]
    assert enumerate_partitions(5, 3, peaks, 20.0, best=[4, 0, 2]) == [(0, 2, 4)]
    peaks = [540.0, 420.0, 480.0]
    assert enumerate_partitions(3, 3, peaks, 20.0, best=[0, 1, 2]) == [(1, 2, 0)]


def test_explicit_subset_out_of_range():
    with pytest.raises(ConfigurationError):
        enumerate_partitions(3, 2, [420.0, 460.0, 500.0], 20.0, best=[0, 3])


def test_cap_truncates_after_shuffle():
    peaks = np.arange(400.0, 700.0, 30.0)
    all_subsets = enumerate_partitions(peaks.size, 4, peaks, 20.0, rng=np.random.default_rng(5))
    capped = enumerate_partitions(peaks.size, 4, peaks, 20.0, n_tests=7, rng=np.random.default_rng(5))
    assert len(capped) == 7
    assert capped == all_subsets[:7]
    assert len(all_subsets) == len(list(itertools.combinations(range(peaks.size), 4)))


def test_cap_larger_than_pool():
    subsets = enumerate_partitions(3, 2, [420.0, 460.0, 500.0], 20.0, n_tests=100)
    assert len(subsets) == 3


def test_same_seed_same_order():
    peaks = np.arange(400.0, 700.0, 25.0)
    a = enumerate_partitions(peaks.size, 5, peaks, 20.0, rng=np.random.default_rng(42))
    b = enumerate_partitions(peaks.size, 5, peaks, 20.0, rng=np.random.default_rng(42))
    assert a == b


def test_no_surviving_subset():
    with pytest.raises(ConfigurationError):
        enumerate_partitions(3, 3, [420.0, 430.0, 440.0], 20.0)


@pytest.mark.parametrize("n_keep", [0, 4])
def test_invalid_subset_size(n_keep):
    with pytest.raises(ConfigurationError):
        enumerate_partitions(3, n_keep, [420.0, 460.0, 500.0], 20.0)


def test_peak_count_mismatch():
    with pytest.raises(ConfigurationError):
        enumerate_partitions(4, 2, [420.0, 460.0, 500.0], 20.0)
