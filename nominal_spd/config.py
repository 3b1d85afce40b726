"""
Configuration classes for the nominal SPD search.

The run configuration is split into focused dataclasses:

* :class:`ObserverConfig` holds the observer parameters handed to the
  receptor sensitivity provider (field size, pupil diameter and age).
* :class:`FilterConfig` describes the dichroic mirror model applied to
  spectrally adjacent primaries: whether it is enabled, the maximum slope of
  the logistic transmittance and, optionally, explicit crossover wavelengths.
* :class:`SearchConfig` controls the combinatorial search over primary
  subsets and the per-direction modulation search.
* :class:`RunConfig` ties the above together with file locations, the device
  headroom and the surface-area lookup used to scale LED power.

:class:`StimulusDirection` describes one modulation direction: which
receptors are targeted, ignored or silenced, the desired contrast and the
groups of targets whose contrast must stay close to each other.

Each configuration class performs basic validation in ``__post_init__`` so
that a bad run is rejected before any trial executes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple, Union
from pathlib import Path
import logging

import numpy as np


logger = logging.getLogger(__name__)

BACKGROUND_MODES = ("uniform", "power-weighted")
X0_POLICIES = ("background", "ones", "random")

DEFAULT_SURFACE_AREAS: Dict[str, float] = {
    "EP": 2.0 * 2.0,
    "SR": 1.2 * 1.5,
    "21": 2.0 * 1.0,  # the "LA21" package
}
"""Emitting surface area (mm^2) keyed by the suffix of the LED name."""


class ConfigurationError(ValueError):
    """A fatal problem with the inputs of a run, raised before any trial executes."""


@dataclass
class ObserverConfig:
    """Observer parameters used to build the receptor sensitivities."""

    field_size_degrees: float = 30.0
    """Diameter of the stimulus field in degrees of visual angle."""

    pupil_diameter_mm: float = 2.0
    """Pupil diameter in millimetres."""

    age_years: float = 25.0
    """Observer age in years."""

    fraction_bleached: Optional[Sequence[float]] = None
    """Fraction of pigment bleached per receptor class, ``None`` for none."""

    oxygenation_fraction: Optional[float] = None
    """Blood oxygenation used by vessel-shadow receptor classes."""

    vessel_thickness: Optional[float] = None
    """Retinal vessel thickness used by vessel-shadow receptor classes."""

    def __post_init__(self) -> None:
        logger.debug("Initialising ObserverConfig with values: %s", self)
        if self.fraction_bleached is not None:
            for f in self.fraction_bleached:
                if not 0 <= f <= 1:
                    raise ValueError(f"fraction_bleached values must lie in [0, 1] (got {f})")
        if self.oxygenation_fraction is not None and not 0 <= self.oxygenation_fraction <= 1:
            raise ValueError(f"oxygenation_fraction must lie in [0, 1] (got {self.oxygenation_fraction})")
        if self.vessel_thickness is not None and self.vessel_thickness < 0:
            raise ValueError(f"vessel_thickness must be non-negative (got {self.vessel_thickness})")
        if self.field_size_degrees <= 0:
            raise ValueError(f"field_size_degrees must be positive (got {self.field_size_degrees})")
        if self.pupil_diameter_mm <= 0:
            raise ValueError(f"pupil_diameter_mm must be positive (got {self.pupil_diameter_mm})")
        if self.age_years <= 0:
            raise ValueError(f"age_years must be positive (got {self.age_years})")


@dataclass
class FilterConfig:
    """Configuration of the dichroic filtering between adjacent primaries.

    Parameters
    ----------
    enabled:
        Apply the logistic transmittance split between spectrally adjacent
        primaries.
    max_slope:
        Maximum slope of the logistic function, in proportion of
        transmittance per nanometre.  0.2 is close to the published curves
        of the Prizmatix combiner mirrors.
    center_wavelengths:
        Explicit crossover wavelengths, one per adjacent pair.  When ``None``
        the crossover is derived from the two SPDs.
    """

    enabled: bool = True
    max_slope: float = 0.2
    center_wavelengths: Optional[Sequence[float]] = None

    def __post_init__(self) -> None:
        logger.debug("Initialising FilterConfig with values: %s", self)
        if self.max_slope <= 0:
            raise ValueError(f"max_slope must be positive (got {self.max_slope})")
        if self.center_wavelengths is not None:
            for wl in self.center_wavelengths:
                if wl <= 0:
                    raise ValueError(f"center_wavelengths must be positive (got {wl})")


@dataclass
class SearchConfig:
    """Options for the search over primary subsets."""

    n_primaries_to_keep: int = 8
    """Number of LEDs in the final device."""

    min_spacing_nm: float = 20.0
    """Adjacent peak wavelengths in a subset must differ by more than this."""

    primaries_to_keep_best: Optional[Sequence[int]] = None
    """A known good subset (0-based indices).  When set, only this subset is tested."""

    n_tests: Optional[int] = None
    """Number of subsets to test.  ``None`` tests every surviving subset."""

    background_mode: str = "uniform"
    """``'uniform'`` or ``'power-weighted'``."""

    x0_policy: str = "background"
    """Starting vector for the modulation search: ``'background'``, ``'ones'`` or ``'random'``."""

    step_size: float = 0.025
    """Fraction of the desired contrast removed at each step of the differential contrast search."""

    shrink_factor_thresh: float = 0.5
    """Give up on the differential contrast search once the requested contrast falls below this fraction."""

    random_seed: Optional[int] = None
    """Seed for the subset ordering and for random starting vectors."""

    n_workers: Optional[int] = 1
    """Worker processes for the subset loop.  1 runs serially, ``None`` uses every CPU."""

    def __post_init__(self) -> None:
        logger.debug("Initialising SearchConfig with values: %s", self)
        if self.n_primaries_to_keep < 1:
            raise ValueError(f"n_primaries_to_keep must be at least 1 (got {self.n_primaries_to_keep})")
        if self.min_spacing_nm < 0:
            raise ValueError(f"min_spacing_nm must be non-negative (got {self.min_spacing_nm})")
        if self.n_tests is not None and self.n_tests < 1:
            raise ValueError(f"n_tests must be positive or None (got {self.n_tests})")
        if self.background_mode not in BACKGROUND_MODES:
            raise ValueError(f"background_mode must be one of {BACKGROUND_MODES} (got {self.background_mode!r})")
        if self.x0_policy not in X0_POLICIES:
            raise ValueError(f"x0_policy must be one of {X0_POLICIES} (got {self.x0_policy!r})")
        if not 0 < self.step_size < 1:
            raise ValueError(f"step_size must lie in (0, 1) (got {self.step_size})")
        if not 0 <= self.shrink_factor_thresh <= 1:
            raise ValueError(f"shrink_factor_thresh must lie in [0, 1] (got {self.shrink_factor_thresh})")
        if self.n_workers is not None and self.n_workers < 1:
            raise ValueError(f"n_workers must be positive or None (got {self.n_workers})")
        if self.primaries_to_keep_best is not None:
            best = list(self.primaries_to_keep_best)
            if len(set(best)) != len(best):
                raise ValueError(f"primaries_to_keep_best contains duplicates: {best}")
            if self.n_tests not in (None, 1):
                logger.warning(
                    "primaries_to_keep_best provided; n_tests=%s will be ignored", self.n_tests
                )


@dataclass
class RunConfig:
    """Everything needed for one run of the search."""

    spd_file: Union[str, Path] = ""
    power_file: Union[str, Path] = ""
    receptor_file: Union[str, Path] = ""
    save_dir: Union[str, Path] = "nominal_spds"

    primary_headroom: float = 0.05
    """Margin kept between primary settings and the [0, 1] device limits."""

    surface_areas: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SURFACE_AREAS))
    observer: ObserverConfig = field(default_factory=ObserverConfig)
    filters: FilterConfig = field(default_factory=FilterConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    verbose: bool = True
    make_plots: bool = True

    def __post_init__(self) -> None:
        logger.debug("Initialising RunConfig with values: %s", self)
        if not 0 <= self.primary_headroom < 0.5:
            raise ValueError(f"primary_headroom must lie in [0, 0.5) (got {self.primary_headroom})")
        for suffix, area in self.surface_areas.items():
            if area <= 0:
                raise ValueError(f"surface area for suffix {suffix!r} must be positive (got {area})")


@dataclass(frozen=True)
class StimulusDirection:
    """A named modulation direction.

    Parameters
    ----------
    name:
        Identifier used to key the results, e.g. ``'LMS'``.
    targets:
        Receptor rows that carry the desired contrast.
    ignore:
        Receptor rows whose contrast is left free.
    minimize:
        Receptor rows explicitly silenced.  Any receptor that is neither
        targeted nor ignored is silenced as well.
    desired_contrast:
        A scalar, or one signed contrast per target.
    contrast_groups:
        Groups of positions into ``targets`` whose achieved contrast
        magnitudes may differ by at most ``max_contrast_diff``.
    max_contrast_diff:
        Allowed differential contrast within each group.
    score:
        Whether this direction contributes to the choice of the best subset.
    """

    name: str
    targets: Tuple[int, ...]
    ignore: Tuple[int, ...] = ()
    minimize: Tuple[int, ...] = ()
    desired_contrast: Union[float, Tuple[float, ...]] = 0.5
    contrast_groups: Tuple[Tuple[int, ...], ...] = ()
    max_contrast_diff: float = 0.0
    score: bool = False

    def __post_init__(self) -> None:
        # normalise list inputs so the record stays hashable and picklable
        object.__setattr__(self, "targets", tuple(int(i) for i in self.targets))
        object.__setattr__(self, "ignore", tuple(int(i) for i in self.ignore))
        object.__setattr__(self, "minimize", tuple(int(i) for i in self.minimize))
        object.__setattr__(
            self, "contrast_groups", tuple(tuple(int(i) for i in g) for g in self.contrast_groups)
        )
        if not np.isscalar(self.desired_contrast):
            object.__setattr__(self, "desired_contrast", tuple(float(c) for c in self.desired_contrast))

        if not self.name:
            raise ValueError("direction name must be non-empty")
        if not self.targets:
            raise ValueError(f"direction {self.name!r} must target at least one receptor")
        overlap = (set(self.targets) & set(self.ignore)) | (set(self.targets) & set(self.minimize))
        if overlap:
            raise ValueError(f"direction {self.name!r}: receptors {sorted(overlap)} are both targeted and ignored/minimized")
        if isinstance(self.desired_contrast, tuple) and len(self.desired_contrast) != len(self.targets):
            raise ValueError(
                f"direction {self.name!r}: desired_contrast has {len(self.desired_contrast)} values "
                f"for {len(self.targets)} targets"
            )
        if self.score and self.desired[0] == 0:
            raise ValueError(
                f"direction {self.name!r} is scored against its first desired contrast, which must be non-zero"
            )
        for group in self.contrast_groups:
            for pos in group:
                if not 0 <= pos < len(self.targets):
                    raise ValueError(f"direction {self.name!r}: contrast group position {pos} out of range")
        if self.max_contrast_diff < 0:
            raise ValueError(f"max_contrast_diff must be non-negative (got {self.max_contrast_diff})")

    @property
    def desired(self) -> np.ndarray:
        """Desired contrast expanded to one value per target."""
        return np.broadcast_to(
            np.asarray(self.desired_contrast, dtype=float), (len(self.targets),)
        ).copy()

    def validate_receptors(self, n_receptors: int) -> None:
        """Raise :class:`ConfigurationError` if an index falls outside the receptor matrix."""
        for idx in self.targets + self.ignore + self.minimize:
            if not 0 <= idx < n_receptors:
                raise ConfigurationError(
                    f"direction {self.name!r} refers to receptor {idx}, but only {n_receptors} are defined"
                )
