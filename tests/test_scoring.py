# File: tests/test_scoring.py
"""
Unit tests for nominal_spd.scoring: normalisation, worst shortfall and the
choice of the best subset.
"""
import logging

import numpy as np
import pytest

from nominal_spd.config import StimulusDirection
from nominal_spd.modulation import DirectionResult, PartitionResult
from nominal_spd.scoring import (
    achieved_contrasts,
    score_partitions,
    scored_rows,
    select_best,
    worst_shortfall,
)

LMS = StimulusDirection(name="LMS", targets=(0,), desired_contrast=0.5, score=True)
MEL = StimulusDirection(name="Mel", targets=(1,), desired_contrast=0.6, score=True)
S = StimulusDirection(name="S", targets=(2,), desired_contrast=0.7, score=False)


def make_partition(index, contrasts):
    """A subset whose every direction achieved ``contrasts`` (one per receptor)."""
    c = np.asarray(contrasts, dtype=float)
    empty = np.zeros(2)
    res = DirectionResult(empty, empty, empty, c, -c, empty, empty, empty)
    return PartitionResult(
        index=index, primaries=(index,), names=[f"led{index}"], B_pre_filter=empty,
        B=empty, filter_centers=empty, ambient=empty,
        directions={"LMS": res, "Mel": res, "S": res},
    )


def test_achieved_contrasts_are_normalised():
    parts = [make_partition(0, [0.5, 0.3, 0.7]), make_partition(1, [0.25, 0.6, 0.0])]
    norm = achieved_contrasts(parts, [LMS, MEL, S])
    assert norm.shape == (3, 2)
    np.testing.assert_allclose(norm[:, 0], [1.0, 0.5, 1.0])
    np.testing.assert_allclose(norm[:, 1], [0.5, 1.0, 0.0])


def test_negative_desired_contrast_normalises_to_positive():
    d = StimulusDirection(name="LMS", targets=(0,), desired_contrast=(-0.12,), score=True)
    norm = achieved_contrasts([make_partition(0, [-0.12, 0.0, 0.0])], [d])
    assert norm[0, 0] == pytest.approx(1.0)


def test_scored_rows():
    assert scored_rows([LMS, S, MEL]) == [0, 2]


def test_worst_shortfall_zero_when_met():
    norm = np.array([[1.0, 1.2], [1.0, 0.9]])
    np.testing.assert_allclose(worst_shortfall(norm, [0, 1]), [0.0, 0.1])


def test_worst_shortfall_ignores_unscored_rows():
    norm = np.array([[1.0], [0.0]])
    assert worst_shortfall(norm, [0])[0] == 0.0
    with pytest.raises(ValueError):
        worst_shortfall(norm, [])


def test_select_best_first_tie_wins():
    assert select_best(np.array([0.3, 0.1, 0.1, 0.2])) == 1


def test_select_best_skips_nan():
    assert select_best(np.array([np.nan, 0.4, 0.2])) == 2
    with pytest.raises(ValueError):
        select_best(np.array([np.nan, np.nan]))
    with pytest.raises(ValueError):
        select_best(np.array([]))


def test_score_partitions(caplog):
    parts = [
        make_partition(0, [0.125, 0.6, 0.7]),
        make_partition(1, [0.5, 0.3, 0.0]),
        make_partition(2, [0.25, 0.6, 0.7]),
    ]
    with caplog.at_level(logging.INFO):
        best, scores = score_partitions(parts, [LMS, MEL, S])
    np.testing.assert_allclose(scores, [0.75, 0.5, 0.5])
    # subsets 1 and 2 tie; the one tested first wins and S does not count
    assert best == 1
    assert "Best subset (1,)" in caplog.text


def test_overshoot_gives_negative_shortfall():
    best, scores = score_partitions([make_partition(0, [0.6, 0.9, 0.0])], [LMS, MEL])
    assert best == 0
    assert scores[0] == pytest.approx(-0.2)


def test_exactly_met_contrast_scores_zero():
    best, scores = score_partitions(
        [make_partition(0, [0.25, 0.3, 0.0]), make_partition(1, [0.5, 0.6, 0.0])], [LMS, MEL, S]
    )
    assert scores[1] == 0.0
    assert best == 1
