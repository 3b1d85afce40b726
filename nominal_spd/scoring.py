"""
Score the tested subsets and pick the best one.

For every subset and direction, the achieved contrast at the direction's
first target is divided by the desired contrast of that target, so 1.0
means the direction was fully met.  Over the scored directions the worst
shortfall ``max(1 - normalized)`` is taken, and the subset with the
smallest worst shortfall wins.  Ties go to the subset tested first.
"""
import logging
from typing import List, Sequence, Tuple

import numpy as np

from nominal_spd.config import StimulusDirection
from nominal_spd.modulation import PartitionResult

logger = logging.getLogger(__name__)


def achieved_contrasts(
    partitions: Sequence[PartitionResult],
    directions: Sequence[StimulusDirection],
) -> np.ndarray:
    """Normalized contrast, shape (n_directions, n_subsets)."""
    contrasts = np.array(
        [[p.contrast(d) for p in partitions] for d in directions], dtype=float
    ).reshape(len(directions), len(partitions))
    desired = np.array([d.desired[0] for d in directions], dtype=float)
    return contrasts / desired[:, None]


def scored_rows(directions: Sequence[StimulusDirection]) -> List[int]:
    """Positions of the directions flagged for scoring."""
    return [i for i, d in enumerate(directions) if d.score]


def worst_shortfall(normalized: np.ndarray, rows: Sequence[int]) -> np.ndarray:
    """``max(1 - normalized)`` over the scored rows, per subset."""
    rows = list(rows)
    if not rows:
        raise ValueError("At least one direction must be flagged for scoring")
    return np.max(1.0 - normalized[rows], axis=0)


def select_best(scores: np.ndarray) -> int:
    """Index of the minimal score; the first one wins ties, NaN never wins."""
    scores = np.asarray(scores, dtype=float)
    if scores.size == 0 or np.all(np.isnan(scores)):
        raise ValueError("No subset produced a finite score")
    return int(np.argmin(np.where(np.isnan(scores), np.inf, scores)))


def score_partitions(
    partitions: Sequence[PartitionResult],
    directions: Sequence[StimulusDirection],
) -> Tuple[int, np.ndarray]:
    """Score every subset and return ``(best_index, scores)``."""
    normalized = achieved_contrasts(partitions, directions)
    scores = worst_shortfall(normalized, scored_rows(directions))
    best = select_best(scores)
    logger.info(
        f"Best subset {partitions[best].primaries} with worst shortfall {scores[best]:.4f} "
        f"({int(np.sum(scores == scores[best]))} tied)"
    )
    return best, scores
