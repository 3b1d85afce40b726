"""
Plotting utilities for the nominal SPD search.

This module draws, for each direction of the winning subset, the positive
and negative modulation spectra over the background, and the primary
settings of the three states.
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

import numpy as np
import matplotlib.pyplot as plt

from nominal_spd.config import StimulusDirection
from nominal_spd.modulation import PartitionResult
from nominal_spd.search import SearchResult

logger = logging.getLogger(__name__)


def plot_direction(
    partition: PartitionResult,
    direction: StimulusDirection,
    figsize: Tuple[int, int] = (12, 5),
    xlim: Tuple[float, float] = (300, 800),
) -> plt.Figure:
    """
    Plot modulation spectra and primary settings for one direction.

    Args:
        partition: Result bundle of a subset
        direction: Direction to draw; its first target gives the headline contrast
        figsize: Figure size (width, height)
        xlim: Wavelength range of the spectra panel

    Returns:
        matplotlib Figure object
    """
    res = partition.directions[direction.name]
    contrast = res.positive_contrast[direction.targets[0]]

    fig, (ax_spd, ax_prim) = plt.subplots(1, 2, figsize=figsize)
    fig.suptitle(f"{direction.name}: contrast = {contrast:.2f}", fontsize=14, fontweight='bold')

    ax_spd.plot(res.wavelengths, res.positive_spd, color='k', linewidth=2, label='Positive')
    ax_spd.plot(res.wavelengths, res.negative_spd, color='r', linewidth=2, label='Negative')
    ax_spd.plot(res.wavelengths, res.background_spd, color=(0.5, 0.5, 0.5), linewidth=2, label='Background')
    ax_spd.set_xlim(*xlim)
    ax_spd.set_xlabel("Wavelength (nm)", fontsize=12)
    ax_spd.set_ylabel("Power", fontsize=12)
    ax_spd.set_title(f"Modulation spectra [{contrast:.2f}]")
    ax_spd.legend(loc='upper right')
    ax_spd.grid(True, alpha=0.3)

    x = np.arange(len(partition.names))
    ax_prim.plot(x, res.modulation_primary, '*k', label='Positive')
    ax_prim.plot(x, res.negative_primary, '*r', label='Negative')
    ax_prim.plot(x, res.background_primary, '-*', color=(0.5, 0.5, 0.5), label='Background')
    ax_prim.set_xticks(x)
    ax_prim.set_xticklabels(partition.names, rotation=45, ha='right')
    ax_prim.set_ylim(0, 1)
    ax_prim.set_xlabel("Primary", fontsize=12)
    ax_prim.set_ylabel("Setting", fontsize=12)
    ax_prim.set_title("Primary settings")

    plt.tight_layout()
    return fig


def plot_scores(scores: np.ndarray, best_index: int, figsize: Tuple[int, int] = (8, 4)) -> plt.Figure:
    """Histogram of the worst-shortfall score of every tested subset."""
    fig, ax = plt.subplots(figsize=figsize)
    finite = np.asarray(scores)[np.isfinite(scores)]
    ax.hist(finite, bins=min(50, max(1, finite.size)), alpha=0.7, color='C0')
    ax.axvline(scores[best_index], color='k', linestyle='--', label='Best')
    ax.set_xlabel("Worst shortfall (1 - normalized contrast)", fontsize=12)
    ax.set_ylabel("Subsets", fontsize=12)
    ax.set_title("Subset scores")
    ax.legend()
    plt.tight_layout()
    return fig


def save_direction_plots(
    result: SearchResult,
    save_dir: Union[str, Path],
    fmt: str = "pdf",
) -> List[Path]:
    """Write one ``<direction>_PrimariesAndSPD.<fmt>`` per direction and return the paths."""
    save_dir = Path(save_dir).expanduser()
    save_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for direction in result.directions:
        fig = plot_direction(result.best, direction)
        path = save_dir / f"{direction.name}_PrimariesAndSPD.{fmt}"
        fig.savefig(path, bbox_inches='tight')
        plt.close(fig)
        paths.append(path)
        logger.info(f"Saved {path.name}")
    return paths
