"""
Receptor sensitivities for the photoreceptor classes of the observer.

The sensitivity model itself lives outside this package.  Any callable with
the :class:`ReceptorSensitivityProvider` signature can be used; the bundled
:class:`TabulatedReceptors` reads a pre-computed table for one observer.
"""
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from nominal_spd.config import ConfigurationError, ObserverConfig

logger = logging.getLogger(__name__)


class ReceptorSensitivityProvider(Protocol):
    """Return a (n_classes × n_wavelengths) sensitivity matrix.

    The bleaching and vessel parameters are optional; ``None`` means the
    provider's own default.
    """

    def __call__(
        self,
        wavelengths: np.ndarray,
        classes: Sequence[str],
        field_size_degrees: float,
        age_years: float,
        pupil_diameter_mm: float,
        fraction_bleached: Optional[Sequence[float]] = None,
        oxygenation_fraction: Optional[float] = None,
        vessel_thickness: Optional[float] = None,
    ) -> np.ndarray:
        ...


class TabulatedReceptors:
    """
    Receptor sensitivities read from a CSV with a ``Wavelength`` column and
    one column per photoreceptor class.

    The table already encodes one observer, so the observer parameters
    passed at call time are only logged.  Sensitivities are linearly
    interpolated onto the requested support and are zero outside the table.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        df = pd.read_csv(self.path)
        df.columns = [str(c).strip() for c in df.columns]
        wl_col = next((c for c in df.columns if c.lower() == "wavelength"), None)
        if wl_col is None:
            raise ConfigurationError(f"Receptor table {self.path} has no 'Wavelength' column")
        self.table = df.set_index(wl_col).sort_index()
        logger.info(f"Loaded receptor table {self.path} with classes {list(self.table.columns)}")

    @property
    def classes(self) -> List[str]:
        return list(self.table.columns)

    def __call__(
        self,
        wavelengths: np.ndarray,
        classes: Sequence[str],
        field_size_degrees: float = 30.0,
        age_years: float = 25.0,
        pupil_diameter_mm: float = 2.0,
        fraction_bleached: Optional[Sequence[float]] = None,
        oxygenation_fraction: Optional[float] = None,
        vessel_thickness: Optional[float] = None,
    ) -> np.ndarray:
        missing = [c for c in classes if c not in self.table.columns]
        if missing:
            raise ConfigurationError(f"Receptor classes {missing} not found in {self.path}")
        if fraction_bleached is not None and len(fraction_bleached) != len(classes):
            raise ConfigurationError(
                f"fraction_bleached has {len(fraction_bleached)} values for {len(classes)} classes"
            )
        logger.debug(
            f"Tabulated receptors ignore observer parameters (field={field_size_degrees}, "
            f"age={age_years}, pupil={pupil_diameter_mm}, bleached={fraction_bleached}, "
            f"oxygenation={oxygenation_fraction}, vessel={vessel_thickness})"
        )
        src_wl = self.table.index.to_numpy(dtype=float)
        return np.vstack([
            np.interp(wavelengths, src_wl, self.table[c].to_numpy(dtype=float), left=0.0, right=0.0)
            for c in classes
        ])

    def __repr__(self) -> str:
        return f"<TabulatedReceptors(path={str(self.path)!r}, classes={self.classes})>"


def make_receptor_matrix(
    provider: ReceptorSensitivityProvider,
    wavelengths: np.ndarray,
    classes: Sequence[str],
    observer: Optional[ObserverConfig] = None,
) -> np.ndarray:
    """Call the provider with the observer parameters and check the result."""
    observer = observer or ObserverConfig()
    T = np.asarray(provider(
        np.asarray(wavelengths, dtype=float),
        list(classes),
        observer.field_size_degrees,
        observer.age_years,
        observer.pupil_diameter_mm,
        fraction_bleached=observer.fraction_bleached,
        oxygenation_fraction=observer.oxygenation_fraction,
        vessel_thickness=observer.vessel_thickness,
    ), dtype=float)
    if T.shape != (len(classes), len(wavelengths)):
        raise ConfigurationError(
            f"Receptor provider returned shape {T.shape}, expected {(len(classes), len(wavelengths))}"
        )
    return T


def plot_receptors(
    wavelengths: np.ndarray,
    T: np.ndarray,
    names: Sequence[str],
    ax: Optional["plt.Axes"] = None,
) -> "plt.Axes":
    """Overlay the peak-normalised sensitivity of each receptor class."""
    if ax is None:
        fig, ax = plt.subplots()
    for row, name in zip(T, names):
        peak = row.max()
        ax.plot(wavelengths, row / peak if peak > 0 else row, label=name)
    ax.set_xlabel('Wavelength (nm)')
    ax.set_ylabel('Normalized Sensitivity')
    ax.set_title('Receptor Sensitivities')
    ax.legend()
    return ax
