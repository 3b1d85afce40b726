"""
Shared synthetic inputs: Gaussian LED SPDs and Gaussian receptor
sensitivities on a 1 nm grid, plus helpers that write them as CSV tables.
"""
import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from nominal_spd.directions import PHOTORECEPTOR_CLASSES
from nominal_spd.primary_manager import PrimaryManager

WAVELENGTHS = np.arange(380.0, 781.0, 1.0)
LED_PEAKS = [420.0, 450.0, 480.0, 510.0, 540.0, 570.0, 600.0, 630.0, 660.0]
LED_NAMES = [
    "UHP-T-420-EP", "UHP-T-450-SR", "UHP-T-480-EP", "UHP-T-510-SR", "UHP-T-545-LA21",
    "UHP-T-570-EP", "UHP-T-600-SR", "UHP-T-630-EP", "UHP-T-660-SR",
]
LED_POWER = [120.0, 300.0, 90.0, 150.0, 200.0, 80.0, 110.0, 250.0, 180.0]

RECEPTOR_PEAKS = {
    "LConeTabulatedAbsorbance2Deg": (565.0, 45.0),
    "MConeTabulatedAbsorbance2Deg": (540.0, 42.0),
    "SConeTabulatedAbsorbance2Deg": (440.0, 28.0),
    "LConeTabulatedAbsorbance10Deg": (560.0, 46.0),
    "MConeTabulatedAbsorbance10Deg": (535.0, 43.0),
    "SConeTabulatedAbsorbance10Deg": (445.0, 30.0),
    "Melanopsin": (485.0, 38.0),
}


def gaussian(wl, peak, sd):
    return np.exp(-0.5 * ((wl - peak) / sd) ** 2)


def led_spds(wavelengths=WAVELENGTHS, peaks=LED_PEAKS, sd=10.0):
    return np.column_stack([gaussian(wavelengths, p, sd) for p in peaks])


def receptor_matrix(wavelengths=WAVELENGTHS, classes=PHOTORECEPTOR_CLASSES):
    return np.vstack([gaussian(wavelengths, *RECEPTOR_PEAKS[c]) for c in classes])


def write_led_tables(folder, wavelengths=WAVELENGTHS, names=LED_NAMES, power=LED_POWER):
    spd_df = pd.DataFrame(led_spds(wavelengths, LED_PEAKS[:len(names)]), columns=names)
    spd_df.insert(0, "Wavelength", wavelengths)
    spd_path = folder / "spds.csv"
    spd_df.to_csv(spd_path, index=False)
    power_path = folder / "power.csv"
    pd.DataFrame([power], columns=names).to_csv(power_path, index=False)
    return spd_path, power_path


def write_receptor_table(folder, wavelengths=WAVELENGTHS):
    df = pd.DataFrame(receptor_matrix(wavelengths).T, columns=PHOTORECEPTOR_CLASSES)
    df.insert(0, "Wavelength", wavelengths)
    path = folder / "receptors.csv"
    df.to_csv(path, index=False)
    return path


@pytest.fixture
def primary_manager():
    return PrimaryManager.from_arrays(WAVELENGTHS, led_spds(), LED_POWER, LED_NAMES)


@pytest.fixture
def T():
    return receptor_matrix()
