"""
Design the modulations of every direction for one subset of primaries.

For a subset the SPD matrix is built (and filtered by the dichroic mirrors
if requested), a background is chosen, and for each direction the
modulation solver is asked for primary settings.  The receptor contrasts
and spectra of the resulting positive and negative arms are recorded.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from nominal_spd.config import FilterConfig, RunConfig, StimulusDirection
from nominal_spd.dichroic_filter import DichroicFilterBank
from nominal_spd.solver import ModulationSolver, mod_primary_search

logger = logging.getLogger(__name__)


@dataclass
class DirectionResult:
    """Outcome of one direction for one subset of primaries."""
    background_primary: np.ndarray
    background_spd: np.ndarray
    modulation_primary: np.ndarray
    positive_contrast: np.ndarray
    negative_contrast: np.ndarray
    positive_spd: np.ndarray
    negative_spd: np.ndarray
    wavelengths: np.ndarray

    @property
    def negative_primary(self) -> np.ndarray:
        """Primary settings of the negative arm, mirrored about the background."""
        return self.background_primary - (self.modulation_primary - self.background_primary)

    def as_dict(self) -> Dict[str, np.ndarray]:
        return {
            "background_primary": self.background_primary,
            "background_spd": self.background_spd,
            "modulation_primary": self.modulation_primary,
            "positive_contrast": self.positive_contrast,
            "negative_contrast": self.negative_contrast,
            "positive_spd": self.positive_spd,
            "negative_spd": self.negative_spd,
            "wavelengths": self.wavelengths,
        }


@dataclass
class PartitionResult:
    """All directions designed for one subset of primaries."""
    index: int
    primaries: Tuple[int, ...]
    names: List[str]
    B_pre_filter: np.ndarray
    B: np.ndarray
    filter_centers: np.ndarray
    ambient: np.ndarray
    directions: Dict[str, DirectionResult] = field(default_factory=dict)

    def contrast(self, direction: StimulusDirection) -> float:
        """Achieved positive contrast at the first target of ``direction``."""
        return float(self.directions[direction.name].positive_contrast[direction.targets[0]])


@dataclass(frozen=True)
class ModulationSettings:
    """The part of the run configuration needed inside a trial."""
    headroom: float = 0.05
    background_mode: str = "uniform"
    x0_policy: str = "background"
    step_size: float = 0.025
    shrink_factor_thresh: float = 0.5

    @classmethod
    def from_run_config(cls, config: RunConfig) -> "ModulationSettings":
        return cls(
            headroom=config.primary_headroom,
            background_mode=config.search.background_mode,
            x0_policy=config.search.x0_policy,
            step_size=config.search.step_size,
            shrink_factor_thresh=config.search.shrink_factor_thresh,
        )


def make_background(total_power: Sequence[float], mode: str = "uniform") -> np.ndarray:
    """Background primary settings.

    ``'uniform'`` puts every primary at 0.5.  ``'power-weighted'`` lowers
    the setting of the more powerful primaries: the powers are divided by
    their maximum, mean-centred and halved, and subtracted from 0.5.
    """
    power = np.asarray(total_power, dtype=float)
    if mode == "uniform":
        return np.full(power.size, 0.5)
    if mode == "power-weighted":
        w = power / power.max()
        w = (w - w.mean()) / 2.0
        return 0.5 - w
    raise ValueError(f"Unknown background mode: {mode!r}")


def make_start_primary(
    background: np.ndarray,
    policy: str = "background",
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Starting vector for the modulation search."""
    if policy == "background":
        return np.array(background, dtype=float, copy=True)
    if policy == "ones":
        return np.ones_like(background, dtype=float)
    if policy == "random":
        rng = rng if rng is not None else np.random.default_rng()
        return rng.random(len(background))
    raise ValueError(f"Unknown x0 policy: {policy!r}")


def receptor_contrasts(
    T: np.ndarray,
    B: np.ndarray,
    background: np.ndarray,
    modulation: np.ndarray,
    ambient: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Background excitation and positive/negative receptor contrast."""
    if ambient is None:
        ambient = np.zeros(B.shape[0])
    bg_excitation = T @ (B @ background + ambient)
    delta = T @ B @ (modulation - background)
    with np.errstate(divide="ignore", invalid="ignore"):
        positive = delta / bg_excitation
        negative = -delta / bg_excitation
    return bg_excitation, positive, negative


def design_direction(
    B: np.ndarray,
    T: np.ndarray,
    direction: StimulusDirection,
    background: np.ndarray,
    x0: np.ndarray,
    ambient: np.ndarray,
    wavelengths: np.ndarray,
    settings: ModulationSettings,
    solver: ModulationSolver = mod_primary_search,
) -> DirectionResult:
    """Ask the solver for a modulation and derive its contrasts and spectra."""
    modulation = np.asarray(solver(
        B, background, x0, ambient, T,
        direction.targets, direction.ignore, direction.minimize,
        (),
        settings.headroom,
        direction.desired_contrast,
        direction.contrast_groups,
        direction.max_contrast_diff,
        settings.step_size,
        settings.shrink_factor_thresh,
    ), dtype=float)
    _, positive, negative = receptor_contrasts(T, B, background, modulation, ambient)
    logger.debug(
        f"{direction.name}: contrast {positive[direction.targets[0]]:.3f} "
        f"(desired {direction.desired[0]:.3f})"
    )
    return DirectionResult(
        background_primary=np.array(background, dtype=float, copy=True),
        background_spd=B @ background,
        modulation_primary=modulation,
        positive_contrast=positive,
        negative_contrast=negative,
        positive_spd=B @ modulation,
        negative_spd=B @ (background - (modulation - background)),
        wavelengths=np.asarray(wavelengths, dtype=float),
    )


def design_partition(
    index: int,
    primaries: Sequence[int],
    names: Sequence[str],
    spds: np.ndarray,
    total_power: np.ndarray,
    wavelengths: np.ndarray,
    T: np.ndarray,
    directions: Sequence[StimulusDirection],
    settings: ModulationSettings,
    filter_config: FilterConfig,
    solver: ModulationSolver = mod_primary_search,
    rng: Optional[np.random.Generator] = None,
) -> PartitionResult:
    """Build the primary matrix of a subset and design every direction on it.

    ``spds`` and ``total_power`` cover all available LEDs; ``primaries``
    selects the subset, in the order used for the dichroic filtering.
    """
    primaries = tuple(int(i) for i in primaries)
    B_pre = np.asarray(spds, dtype=float)[:, list(primaries)].copy()
    bank = DichroicFilterBank(wavelengths, filter_config)
    B = bank.apply(B_pre)
    ambient = np.zeros(B.shape[0])
    background = make_background(np.asarray(total_power, dtype=float)[list(primaries)],
                                 settings.background_mode)

    result = PartitionResult(
        index=index,
        primaries=primaries,
        names=[names[i] for i in primaries],
        B_pre_filter=B_pre,
        B=B,
        filter_centers=bank.centers.copy(),
        ambient=ambient,
    )
    for direction in directions:
        x0 = make_start_primary(background, settings.x0_policy, rng)
        result.directions[direction.name] = design_direction(
            B, T, direction, background, x0, ambient, wavelengths, settings, solver
        )
    return result
