"""
Search over subsets of LEDs for the one that best supports every direction.

:class:`PrimarySearch` ties the pieces together: it enumerates the subsets,
designs every direction on each subset (in a process pool when more than
one worker is requested), scores the subsets and keeps the winner.
"""
import logging
import os
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from nominal_spd.config import ConfigurationError, FilterConfig, RunConfig, StimulusDirection
from nominal_spd.modulation import ModulationSettings, PartitionResult, design_partition
from nominal_spd.partitions import Partition, enumerate_partitions
from nominal_spd.primary_manager import PrimaryManager
from nominal_spd.scoring import score_partitions, scored_rows
from nominal_spd.solver import ModulationSolver, mod_primary_search

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """The winning subset together with what is needed to interpret it."""
    best: PartitionResult
    best_index: int
    scores: np.ndarray
    partitions: List[Partition]
    receptor_names: List[str]
    T: np.ndarray
    directions: List[StimulusDirection]
    elapsed: float = 0.0

    @property
    def n_tested(self) -> int:
        return len(self.partitions)


@dataclass(frozen=True)
class _TrialContext:
    """Read-only inputs shared by every trial."""
    names: Tuple[str, ...]
    spds: np.ndarray
    total_power: np.ndarray
    wavelengths: np.ndarray
    T: np.ndarray
    directions: Tuple[StimulusDirection, ...]
    settings: ModulationSettings
    filter_config: FilterConfig
    solver: ModulationSolver
    seed: Optional[int]


def _run_trial(context: _TrialContext, index: int, primaries: Partition) -> PartitionResult:
    # one generator per trial keeps random starts independent of scheduling
    rng = np.random.default_rng([context.seed, index]) if context.seed is not None else np.random.default_rng()
    return design_partition(
        index,
        primaries,
        context.names,
        context.spds,
        context.total_power,
        context.wavelengths,
        context.T,
        context.directions,
        context.settings,
        context.filter_config,
        context.solver,
        rng,
    )


class PrimarySearch:
    """
    Parameters
    ----------
    config : RunConfig
        Run configuration.
    primary_manager : PrimaryManager
        Loaded, power-scaled primaries.
    T : np.ndarray
        Receptor sensitivities, (n_receptors × n_wavelengths) on the primary support.
    receptor_names : Sequence[str]
        One name per row of ``T``.
    directions : Sequence[StimulusDirection]
        Directions to design for every subset.
    solver : ModulationSolver, optional
        Defaults to :func:`nominal_spd.solver.mod_primary_search`.  Must be
        picklable when ``n_workers != 1``.
    """

    def __init__(
        self,
        config: RunConfig,
        primary_manager: PrimaryManager,
        T: np.ndarray,
        receptor_names: Sequence[str],
        directions: Sequence[StimulusDirection],
        solver: ModulationSolver = mod_primary_search,
    ):
        self.config = config
        self.primary_manager = primary_manager
        self.T = np.asarray(T, dtype=float)
        self.receptor_names = list(receptor_names)
        self.directions = list(directions)
        self.solver = solver
        self.partitions: List[Partition] = []
        self.result: Optional[SearchResult] = None

    def __repr__(self) -> str:
        return (f"<PrimarySearch(n_primaries={len(self.primary_manager.names)}, "
                f"keep={self.config.search.n_primaries_to_keep}, "
                f"directions={[d.name for d in self.directions]})>")

    def validate(self) -> None:
        """Check the inputs agree with each other; raise :class:`ConfigurationError` if not."""
        pm = self.primary_manager
        if pm.spds is None:
            raise ConfigurationError("PrimaryManager must be loaded before searching")
        if self.T.shape != (len(self.receptor_names), len(pm.wavelengths)):
            raise ConfigurationError(
                f"Receptor matrix shape {self.T.shape} does not match "
                f"{len(self.receptor_names)} receptors x {len(pm.wavelengths)} wavelengths"
            )
        if not self.directions:
            raise ConfigurationError("No directions to design")
        names = [d.name for d in self.directions]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Direction names must be unique: {names}")
        for d in self.directions:
            d.validate_receptors(len(self.receptor_names))
        if not scored_rows(self.directions):
            raise ConfigurationError("At least one direction must be flagged for scoring")

        search = self.config.search
        n_keep = (len(search.primaries_to_keep_best) if search.primaries_to_keep_best is not None
                  else search.n_primaries_to_keep)
        centers = self.config.filters.center_wavelengths
        if self.config.filters.enabled and centers is not None and len(centers) != n_keep - 1:
            raise ConfigurationError(
                f"Need {n_keep - 1} filter center wavelengths for {n_keep} primaries (got {len(centers)})"
            )

    def enumerate(self) -> List[Partition]:
        """Compute the ordered list of subsets to test."""
        search = self.config.search
        pm = self.primary_manager
        self.partitions = enumerate_partitions(
            pm.n_primaries,
            search.n_primaries_to_keep,
            pm.peak_wavelengths,
            search.min_spacing_nm,
            n_tests=search.n_tests,
            best=search.primaries_to_keep_best,
            rng=np.random.default_rng(search.random_seed),
        )
        return self.partitions

    def _context(self) -> _TrialContext:
        pm = self.primary_manager
        return _TrialContext(
            names=tuple(pm.names),
            spds=pm.spds,
            total_power=pm.total_power,
            wavelengths=pm.wavelengths,
            T=self.T,
            directions=tuple(self.directions),
            settings=ModulationSettings.from_run_config(self.config),
            filter_config=self.config.filters,
            solver=self.solver,
            seed=self.config.search.random_seed,
        )

    def run_trials(self, partitions: Sequence[Partition]) -> List[PartitionResult]:
        """Design every direction on every subset; results follow ``partitions`` order."""
        trial = partial(_run_trial, self._context())
        n = len(partitions)
        n_workers = self.config.search.n_workers
        progress = dict(total=n, desc="Searching LED subsets", disable=not self.config.verbose)
        if n_workers == 1 or n == 1:
            return [trial(i, p) for i, p in tqdm(enumerate(partitions), **progress)]
        workers = n_workers or os.cpu_count() or 1
        chunksize = max(1, n // (4 * workers))
        with ProcessPoolExecutor(max_workers=workers) as executor:
            return list(tqdm(executor.map(trial, range(n), partitions, chunksize=chunksize), **progress))

    def run(self) -> SearchResult:
        """Validate, enumerate, run every trial and keep the best subset."""
        self.validate()
        partitions = self.enumerate()
        logger.info(f"Searching over {len(partitions)} LED partitions")
        start = time.time()
        outcomes = self.run_trials(partitions)
        elapsed = time.time() - start
        logger.info(f"Search finished in {elapsed:.1f} s")

        best_index, scores = score_partitions(outcomes, self.directions)
        self.result = SearchResult(
            best=outcomes[best_index],
            best_index=best_index,
            scores=scores,
            partitions=list(partitions),
            receptor_names=self.receptor_names,
            T=self.T,
            directions=self.directions,
            elapsed=elapsed,
        )
        return self.result
