"""
Enumerate the subsets ("partitions") of LEDs to test.

Every combination of ``n_keep`` LEDs is generated, combinations whose LEDs
sit too close together in peak wavelength are dropped, and the survivors are
shuffled so that a capped search samples the space at random.
"""
import itertools
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from nominal_spd.config import ConfigurationError

logger = logging.getLogger(__name__)

Partition = Tuple[int, ...]


def is_well_separated(peaks: Sequence[float], min_spacing: float) -> bool:
    """True if every adjacent gap of the sorted peaks is greater than ``min_spacing``."""
    if len(peaks) < 2:
        return True
    gaps = np.diff(np.sort(np.asarray(peaks, dtype=float)))
    return bool(gaps.min() > min_spacing)


def enumerate_partitions(
    n_primaries: int,
    n_keep: int,
    peak_wavelengths: Sequence[float],
    min_spacing: float,
    n_tests: Optional[int] = None,
    best: Optional[Sequence[int]] = None,
    rng: Optional[np.random.Generator] = None,
) -> List[Partition]:
    """Return the subsets of primaries to test.

    Parameters
    ----------
    n_primaries : int
        Number of available LEDs.
    n_keep : int
        Size of each subset.
    peak_wavelengths : Sequence[float]
        Peak wavelength of every LED.
    min_spacing : float
        Subsets with an adjacent peak gap ``<= min_spacing`` are rejected.
    n_tests : int, optional
        Cap on the number of subsets returned.  ``None`` returns all.
    best : Sequence[int], optional
        An explicit subset.  When given, it is the only subset returned and
        enumeration is skipped.  It is reordered by peak wavelength, so
        explicit filter centers apply to its LEDs in ascending-peak order.
    rng : np.random.Generator, optional
        Generator used to shuffle the surviving subsets.

    Returns
    -------
    List of index tuples, each ordered by peak wavelength.

    Raises
    ------
    ConfigurationError
        If no subset survives the spacing filter.
    """
    peaks = np.asarray(peak_wavelengths, dtype=float)
    if peaks.size != n_primaries:
        raise ConfigurationError(f"Got {peaks.size} peak wavelengths for {n_primaries} primaries")

    if best is not None:
        best = tuple(int(i) for i in best)
        if any(not 0 <= i < n_primaries for i in best):
            raise ConfigurationError(f"Explicit subset {best} refers to unknown primaries")
        # the mirror cascade assigns low/high by position
        best = tuple(sorted(best, key=lambda i: peaks[i]))
        logger.info(f"Testing the explicit subset {best}")
        return [best]

    if not 1 <= n_keep <= n_primaries:
        raise ConfigurationError(f"Cannot keep {n_keep} of {n_primaries} primaries")

    order = np.argsort(peaks, kind="stable")
    survivors: List[Partition] = []
    n_total = 0
    # combinations over the peak-sorted order are already ordered by wavelength
    for combo in itertools.combinations(order.tolist(), n_keep):
        n_total += 1
        if is_well_separated(peaks[list(combo)], min_spacing):
            survivors.append(tuple(combo))
    logger.info(
        f"{len(survivors)} of {n_total} subsets of {n_keep} LEDs have peaks "
        f"separated by more than {min_spacing} nm"
    )
    if not survivors:
        raise ConfigurationError(
            f"No subset of {n_keep} LEDs is separated by more than {min_spacing} nm; "
            "relax the spacing or keep fewer LEDs"
        )

    if rng is None:
        rng = np.random.default_rng()
    perm = rng.permutation(len(survivors))
    survivors = [survivors[i] for i in perm]
    if n_tests is not None and n_tests < len(survivors):
        survivors = survivors[:n_tests]
    return survivors
