"""
PrimaryManager: load the tabulated LED SPDs and total powers, scale each SPD
to absolute power and record its peak wavelength.

The SPD table is a CSV whose first column is ``Wavelength`` and whose other
columns hold one LED each.  The power table is a CSV with the same LED names
as columns and a single row of total power in milliwatts.
"""
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from nominal_spd.config import ConfigurationError, DEFAULT_SURFACE_AREAS

logger = logging.getLogger(__name__)


def surface_area_for(name: str, surface_areas: Mapping[str, float]) -> float:
    """Return the emitting surface area (mm^2) for an LED by its name suffix.

    The longest matching suffix wins, so ``'LA21'`` and ``'21'`` can coexist.
    """
    matches = [s for s in surface_areas if name.endswith(s)]
    if not matches:
        logger.error(f"No surface area known for LED '{name}'")
        raise ConfigurationError(
            f"Need the surface area for LED '{name}'; known suffixes: {sorted(surface_areas)}"
        )
    return float(surface_areas[max(matches, key=len)])


def wavelength_step(wavelengths: np.ndarray) -> float:
    """Return the sampling step of a uniform wavelength support."""
    wavelengths = np.asarray(wavelengths, dtype=float)
    if wavelengths.ndim != 1 or wavelengths.size < 2:
        raise ConfigurationError("wavelength support needs at least two samples")
    steps = np.diff(wavelengths)
    if steps[0] <= 0 or not np.allclose(steps, steps[0]):
        raise ConfigurationError("wavelength support must be increasing with a constant step")
    return float(steps[0])


def normalize_primaries(
    spds: np.ndarray,
    total_power: np.ndarray,
    wavelengths: np.ndarray,
    surface_areas: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Scale SPDs so that each integrates to its total power times surface area.

    Parameters
    ----------
    spds : np.ndarray
        Raw SPDs, shape (n_wavelengths, n_primaries).
    total_power : np.ndarray
        Measured total power per primary (mW).
    wavelengths : np.ndarray
        Uniform wavelength support (nm).
    surface_areas : np.ndarray
        Emitting surface area per primary (mm^2).

    Returns
    -------
    scaled : np.ndarray
        SPDs with ``sum(curve) * step == power * area``, negative samples
        (measurement noise) clamped to zero.
    peaks : np.ndarray
        Wavelength of the maximum of each scaled SPD.
    """
    spds = np.asarray(spds, dtype=float)
    total_power = np.asarray(total_power, dtype=float)
    surface_areas = np.asarray(surface_areas, dtype=float)
    step = wavelength_step(wavelengths)
    if spds.shape != (len(wavelengths), total_power.size):
        raise ConfigurationError(
            f"SPD matrix shape {spds.shape} does not match "
            f"{len(wavelengths)} wavelengths x {total_power.size} primaries"
        )
    sums = spds.sum(axis=0)
    if np.any(sums <= 0):
        bad = np.flatnonzero(sums <= 0).tolist()
        raise ConfigurationError(f"Primaries {bad} have a non-positive SPD integral")
    scaled = spds * (total_power * surface_areas) / (step * sums)
    scaled[scaled < 0] = 0.0
    peaks = np.asarray(wavelengths, dtype=float)[np.argmax(scaled, axis=0)]
    return scaled, peaks


class PrimaryManager:
    """
    Load, power-scale and serve the candidate primaries of the device.

    Parameters
    ----------
    spd_file : Union[str, Path]
        CSV with a ``Wavelength`` column followed by one column per LED.
    power_file : Union[str, Path]
        CSV with one column per LED and a single row of total power (mW).
    surface_areas : Mapping[str, float], optional
        Surface area lookup keyed by name suffix.

    Attributes after load:
      wavelengths : np.ndarray
      names : List[str]
      spds : np.ndarray          # shape (n_wavelengths, n_primaries), power-scaled
      total_power : np.ndarray   # shape (n_primaries,)
      peak_wavelengths : np.ndarray
    """

    def __init__(
        self,
        spd_file: Union[str, Path],
        power_file: Union[str, Path],
        surface_areas: Optional[Mapping[str, float]] = None,
    ):
        self.spd_file = Path(spd_file)
        self.power_file = Path(power_file)
        self.surface_areas = dict(surface_areas if surface_areas is not None else DEFAULT_SURFACE_AREAS)
        self.names: List[str] = []
        self.wavelengths: Optional[np.ndarray] = None
        self.spds: Optional[np.ndarray] = None
        self.raw_spds: Optional[np.ndarray] = None
        self.total_power: Optional[np.ndarray] = None
        self.areas: Optional[np.ndarray] = None
        self.peak_wavelengths: Optional[np.ndarray] = None
        logger.info(f"Initialized PrimaryManager(spd_file={self.spd_file}, power_file={self.power_file})")

    @staticmethod
    def read_spd_table(path: Union[str, Path]) -> pd.DataFrame:
        """Read the SPD table and index it by wavelength."""
        df = pd.read_csv(path)
        df.columns = [str(c).strip() for c in df.columns]
        wl_col = next((c for c in df.columns if c.lower() == "wavelength"), None)
        if wl_col is None:
            raise ConfigurationError(f"SPD table {path} has no 'Wavelength' column")
        return df.set_index(wl_col).sort_index()

    @staticmethod
    def read_power_table(path: Union[str, Path]) -> pd.Series:
        """Read the single-row total power table as a Series keyed by LED name."""
        df = pd.read_csv(path)
        df.columns = [str(c).strip() for c in df.columns]
        if len(df) != 1:
            raise ConfigurationError(f"Power table {path} must hold exactly one row (got {len(df)})")
        return df.iloc[0].astype(float)

    @classmethod
    def from_arrays(
        cls,
        wavelengths: np.ndarray,
        spds: np.ndarray,
        total_power: Sequence[float],
        names: Sequence[str],
        surface_areas: Optional[Mapping[str, float]] = None,
    ) -> "PrimaryManager":
        """Build a manager from in-memory tables instead of CSV files."""
        mgr = cls("<memory>", "<memory>", surface_areas)
        mgr._set_tables(np.asarray(wavelengths, dtype=float), np.asarray(spds, dtype=float),
                        np.asarray(total_power, dtype=float), list(names))
        return mgr

    def load(self) -> None:
        """Read both tables, check they agree, and normalise the primaries."""
        logger.info("Starting load() of primary tables")
        spd_df = self.read_spd_table(self.spd_file)
        power = self.read_power_table(self.power_file)
        spd_names = list(spd_df.columns)
        if set(spd_names) != set(power.index):
            missing = sorted(set(spd_names) ^ set(power.index))
            logger.error(f"SPD and power tables disagree on LED names: {missing}")
            raise ConfigurationError(f"SPD and power tables name different LEDs: {missing}")
        self._set_tables(
            spd_df.index.to_numpy(dtype=float),
            spd_df.to_numpy(dtype=float),
            power[spd_names].to_numpy(dtype=float),
            spd_names,
        )

    def _set_tables(self, wavelengths, spds, total_power, names) -> None:
        self.wavelengths = wavelengths
        self.names = names
        self.raw_spds = spds
        self.total_power = total_power
        self.areas = np.array([surface_area_for(n, self.surface_areas) for n in names])
        self.spds, self.peak_wavelengths = normalize_primaries(
            spds, total_power, wavelengths, self.areas
        )
        for name, peak in zip(self.names, self.peak_wavelengths):
            logger.debug(f"Primary '{name}': peak {peak:.1f} nm")
        logger.info(
            f"Completed load(): {len(self.names)} primaries over "
            f"{self.wavelengths[0]:.0f}-{self.wavelengths[-1]:.0f} nm"
        )

    def _require_loaded(self) -> None:
        if self.spds is None:
            logger.error("PrimaryManager accessed before load()")
            raise RuntimeError("Call load() before accessing primaries")

    @property
    def n_primaries(self) -> int:
        self._require_loaded()
        return len(self.names)

    @property
    def wavelength_step(self) -> float:
        self._require_loaded()
        return wavelength_step(self.wavelengths)

    def subset(self, indices: Sequence[int]) -> np.ndarray:
        """Return a fresh copy of the scaled SPD matrix restricted to ``indices``."""
        self._require_loaded()
        return self.spds[:, list(indices)].copy()

    def get_spd(self, name: str) -> np.ndarray:
        """Return the scaled SPD of a single LED."""
        self._require_loaded()
        if name not in self.names:
            raise KeyError(f"Primary '{name}' not loaded")
        return self.spds[:, self.names.index(name)]

    def as_dict(self) -> Dict[str, float]:
        """Peak wavelength by LED name."""
        self._require_loaded()
        return dict(zip(self.names, self.peak_wavelengths.tolist()))

    def __repr__(self) -> str:
        loaded = f"{len(self.names)} primaries" if self.spds is not None else "not loaded"
        return f"<PrimaryManager(spd_file={str(self.spd_file)!r}, power_file={str(self.power_file)!r}) {loaded}>"

    def plot_primary(self, name: str, ax: Optional["plt.Axes"] = None) -> "plt.Axes":
        """Plot a single LED's scaled SPD."""
        if ax is None:
            fig, ax = plt.subplots()
        ax.plot(self.wavelengths, self.get_spd(name), label=name)
        ax.set_xlabel('Wavelength (nm)')
        ax.set_ylabel('Power')
        ax.set_title(f'Primary SPD: {name}')
        ax.legend()
        return ax

    def plot_all_primaries(self, ax: Optional["plt.Axes"] = None) -> "plt.Axes":
        """Overlay all scaled SPDs, marking each peak."""
        self._require_loaded()
        if ax is None:
            fig, ax = plt.subplots()
        for i, name in enumerate(self.names):
            line, = ax.plot(self.wavelengths, self.spds[:, i], label=name)
            ax.axvline(self.peak_wavelengths[i], linestyle=':', color=line.get_color(), alpha=0.5)
        ax.set_xlabel('Wavelength (nm)')
        ax.set_ylabel('Power')
        ax.set_title('All Primary SPDs')
        ax.legend(fontsize='small')
        return ax
