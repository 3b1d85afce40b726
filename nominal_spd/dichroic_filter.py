# File: nominal_spd/dichroic_filter.py
"""
Dichroic mirror model for the LED combiner:
  - the light of spectrally adjacent LEDs is merged by a dichroic mirror
  - the mirror is modelled as a logistic transmittance split at a crossover
  - the lower LED keeps (1 - t), the higher LED keeps t
  - pairs are filtered left to right, so inner LEDs are filtered twice
"""
import numpy as np
import logging
import matplotlib.pyplot as plt
from typing import List, Optional, Sequence, Tuple

from nominal_spd.config import ConfigurationError, FilterConfig

logger = logging.getLogger(__name__)


def logistic_transmittance(
    wavelengths: np.ndarray,
    center_wavelength: float,
    max_slope: float,
) -> np.ndarray:
    """Transmittance of the mirror that passes the longer-wavelength LED.

    ``max_slope`` is in proportion of transmittance per nanometre.
    """
    wl = np.asarray(wavelengths, dtype=float)
    return 1.0 / (1.0 + np.exp(-max_slope * (wl - center_wavelength)))


def find_crossover_index(spd_low: np.ndarray, spd_high: np.ndarray) -> int:
    """Index where two adjacent SPDs cross.

    Take the difference ``low - high``; between the index of its maximum
    and the index of its minimum, return the sample where the absolute
    difference is smallest.
    """
    diff = np.asarray(spd_low, dtype=float) - np.asarray(spd_high, dtype=float)
    idx_max = int(np.argmax(diff))
    idx_min = int(np.argmin(diff))
    lo, hi = min(idx_max, idx_min), max(idx_max, idx_min)
    return lo + int(np.argmin(np.abs(diff[lo:hi + 1])))


def apply_adjacent_filters(
    primaries: np.ndarray,
    wavelengths: np.ndarray,
    max_slope: float,
    center_wavelengths: Optional[Sequence[float]] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Filter each adjacent pair of primaries by a dichroic mirror.

    Parameters
    ----------
    primaries : np.ndarray
        SPD matrix (n_wavelengths × n_primaries), ordered by peak wavelength.
    wavelengths : np.ndarray
        Wavelength support of the SPDs.
    max_slope : float
        Slope of the logistic transmittance (per nm).
    center_wavelengths : Sequence[float], optional
        Crossover wavelength of each mirror.  Snapped to the nearest sample.
        Derived from the SPDs when omitted.

    Returns
    -------
    filtered : np.ndarray
        Filtered copy of ``primaries``.
    centers : np.ndarray
        Crossover wavelength used for each of the n_primaries - 1 mirrors.
    transmittance : np.ndarray
        Transmittance of each mirror, shape (n_primaries - 1, n_wavelengths).
    """
    B = np.array(primaries, dtype=float, copy=True)
    wl = np.asarray(wavelengths, dtype=float)
    n_wl, n_prim = B.shape
    if n_wl != wl.size:
        raise ConfigurationError(f"SPD matrix has {n_wl} samples but wavelength support has {wl.size}")
    n_mirrors = max(n_prim - 1, 0)
    if center_wavelengths is not None and len(center_wavelengths) != n_mirrors:
        raise ConfigurationError(
            f"Need {n_mirrors} filter center wavelengths for {n_prim} primaries "
            f"(got {len(center_wavelengths)})"
        )

    centers = np.zeros(n_mirrors)
    transmittance = np.zeros((n_mirrors, n_wl))
    for i in range(n_mirrors):
        if center_wavelengths is not None:
            center_idx = int(np.argmin(np.abs(wl - center_wavelengths[i])))
        else:
            # B[:, i] may already carry the previous mirror; that cascade is intended
            center_idx = find_crossover_index(B[:, i], B[:, i + 1])
        centers[i] = wl[center_idx]
        t = logistic_transmittance(wl, centers[i], max_slope)
        B[:, i] *= 1.0 - t
        B[:, i + 1] *= t
        transmittance[i] = t
        logger.debug(f"Mirror {i}: crossover {centers[i]:.1f} nm")
    return B, centers, transmittance


class DichroicFilterBank:
    """
    Applies the dichroic mirror model to the SPD matrix of one primary subset.

    Parameters
    ----------
    wavelengths : np.ndarray
        Wavelength support shared by all primaries.
    config : FilterConfig
        Enable flag, slope and optional explicit crossover wavelengths.
    """
    def __init__(self, wavelengths: np.ndarray, config: FilterConfig):
        self.wavelengths = np.asarray(wavelengths, dtype=float)
        self.config = config
        self.centers = np.zeros(0)
        self.transmittance = np.zeros((0, self.wavelengths.size))

    def apply(self, primaries: np.ndarray) -> np.ndarray:
        """Return the filtered SPD matrix and remember the mirrors used."""
        if not self.config.enabled:
            self.centers = np.zeros(0)
            self.transmittance = np.zeros((0, self.wavelengths.size))
            return np.array(primaries, dtype=float, copy=True)
        filtered, self.centers, self.transmittance = apply_adjacent_filters(
            primaries, self.wavelengths, self.config.max_slope, self.config.center_wavelengths
        )
        return filtered

    def __repr__(self) -> str:
        centers = ", ".join(f"{c:.0f}" for c in self.centers)
        return (f"<DichroicFilterBank grid=[{self.wavelengths[0]}–"
                f"{self.wavelengths[-1]} nm], enabled={self.config.enabled}, "
                f"slope={self.config.max_slope}, centers=[{centers}]>")

    def __len__(self) -> int:
        return self.transmittance.shape[0]

    def __getitem__(self, idx: int) -> np.ndarray:
        """Return the transmittance of mirror `idx`."""
        return self.transmittance[idx]

    def plot_all_filters(
        self,
        labels: Optional[List[str]] = None,
        ax: Optional[plt.Axes] = None
    ) -> plt.Axes:
        """Overlay the transmittance of every mirror."""
        if labels is not None and len(labels) != len(self):
            raise ValueError("labels must match number of mirrors")
        if ax is None:
            fig, ax = plt.subplots()
        for i, t in enumerate(self.transmittance):
            label = labels[i] if labels is not None else f"{self.centers[i]:.0f} nm"
            ax.plot(self.wavelengths, t, label=label)
        ax.set_xlabel("Wavelength (nm)")
        ax.set_ylabel("Transmission")
        ax.set_title("Dichroic Mirror Transmittance")
        ax.legend()
        return ax
