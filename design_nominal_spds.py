#!/usr/bin/env python3
"""
Nominal Primaries and SPDs for Isolating Post-Receptoral Mechanisms

This script loads the tabulated SPDs of a set of LEDs and searches for the
mixture of n LEDs that gives the most contrast on chosen photoreceptor
directions, while constraining the differential contrast on jointly
targeted receptors.

The target device combines its LEDs with dichroic mirrors, which filter the
SPDs of LEDs adjacent in peak wavelength.  That effect is modelled.

Usage:
    python design_nominal_spds.py --spd-file data/PrizmatixLED_FullSet_SPDs.csv \
        --power-file data/PrizmatixLED_FullSet_totalPower.csv \
        --receptor-file data/receptors.csv
"""

import argparse
import logging

from nominal_spd.config import FilterConfig, ObserverConfig, RunConfig, SearchConfig
from nominal_spd.directions import PHOTORECEPTOR_CLASSES, PHOTORECEPTOR_NAMES, default_directions
from nominal_spd.plotting import save_direction_plots
from nominal_spd.primary_manager import PrimaryManager
from nominal_spd.receptors import TabulatedReceptors, make_receptor_matrix
from nominal_spd.results import save_result_set
from nominal_spd.search import PrimarySearch, SearchResult

logger = logging.getLogger(__name__)


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Select LED primaries and design nominal photoreceptor-isolating modulations",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Input/output arguments
    parser.add_argument("--spd-file", type=str, default="data/PrizmatixLED_FullSet_SPDs.csv",
                        help="CSV of LED SPDs (Wavelength column + one column per LED)")
    parser.add_argument("--power-file", type=str, default="data/PrizmatixLED_FullSet_totalPower.csv",
                        help="CSV of total LED power in mW (one row, one column per LED)")
    parser.add_argument("--receptor-file", type=str, default="data/receptors.csv",
                        help="CSV of receptor sensitivities (Wavelength column + one column per class)")
    parser.add_argument("--save-dir", type=str, default="~/Desktop/nominalSPDs",
                        help="Directory for the result set and diagnostic plots")

    # Device and observer
    parser.add_argument("--headroom", type=float, default=0.05,
                        help="Margin kept from the [0, 1] primary limits")
    parser.add_argument("--field-size", type=float, default=30.0, help="Field size in degrees")
    parser.add_argument("--pupil-diameter", type=float, default=2.0, help="Pupil diameter in mm")
    parser.add_argument("--age", type=float, default=25.0, help="Observer age in years")

    # Subset search
    parser.add_argument("--n-leds", type=int, default=8, help="Number of LEDs in the final device")
    parser.add_argument("--min-spacing", type=float, default=20.0,
                        help="Minimum peak wavelength spacing between LEDs of a subset (nm)")
    parser.add_argument("--best", type=int, nargs="+",
                        help="Explicit subset of LED indices (0-based); skips enumeration")
    parser.add_argument("--n-tests", type=int, default=None,
                        help="Number of subsets to test (default: all)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--workers", type=int, default=1,
                        help="Worker processes (0 uses every CPU)")

    # Modulation search
    parser.add_argument("--weighted-background", action="store_true",
                        help="Inversely weight the background by LED power")
    parser.add_argument("--x0", choices=["background", "ones", "random"], default="background",
                        help="Starting vector of the modulation search")
    parser.add_argument("--step-size", type=float, default=0.025,
                        help="Step of the differential contrast search")
    parser.add_argument("--shrink-thresh", type=float, default=0.5,
                        help="Give up once the requested contrast falls below this fraction")

    # Dichroic filters
    parser.add_argument("--no-filter", action="store_true",
                        help="Do not model the dichroic filtering of adjacent LEDs")
    parser.add_argument("--filter-slope", type=float, default=0.2,
                        help="Maximum slope of the dichroic transmittance (per nm)")
    parser.add_argument("--filter-centers", type=float, nargs="+",
                        help="Explicit crossover wavelength of each mirror (nm)")

    # Output control
    parser.add_argument("--no-plots", action="store_true", help="Skip plot generation")
    parser.add_argument("--quiet", action="store_true", help="Reduce output verbosity")
    return parser


def config_from_args(args: argparse.Namespace) -> RunConfig:
    """Map parsed arguments onto a :class:`RunConfig`."""
    return RunConfig(
        spd_file=args.spd_file,
        power_file=args.power_file,
        receptor_file=args.receptor_file,
        save_dir=args.save_dir,
        primary_headroom=args.headroom,
        observer=ObserverConfig(
            field_size_degrees=args.field_size,
            pupil_diameter_mm=args.pupil_diameter,
            age_years=args.age,
        ),
        filters=FilterConfig(
            enabled=not args.no_filter,
            max_slope=args.filter_slope,
            center_wavelengths=args.filter_centers,
        ),
        search=SearchConfig(
            n_primaries_to_keep=args.n_leds,
            min_spacing_nm=args.min_spacing,
            primaries_to_keep_best=args.best,
            n_tests=args.n_tests,
            background_mode="power-weighted" if args.weighted_background else "uniform",
            x0_policy=args.x0,
            step_size=args.step_size,
            shrink_factor_thresh=args.shrink_thresh,
            random_seed=args.seed,
            n_workers=None if args.workers == 0 else args.workers,
        ),
        verbose=not args.quiet,
        make_plots=not args.no_plots,
    )


def run(config: RunConfig) -> SearchResult:
    """Load the inputs, search, and write the result set and plots."""
    primaries = PrimaryManager(config.spd_file, config.power_file, config.surface_areas)
    primaries.load()
    T = make_receptor_matrix(
        TabulatedReceptors(config.receptor_file), primaries.wavelengths,
        PHOTORECEPTOR_CLASSES, config.observer,
    )
    search = PrimarySearch(config, primaries, T, PHOTORECEPTOR_NAMES, default_directions())
    result = search.run()

    save_result_set(result, config.save_dir)
    if config.make_plots:
        save_direction_plots(result, config.save_dir)
    return result


def print_summary(result: SearchResult) -> None:
    """Print a summary of the winning subset."""
    print("\n" + "=" * 60)
    print("NOMINAL SPD SUMMARY")
    print("=" * 60)
    print(f"Subsets tested: {result.n_tested} ({result.elapsed:.1f} s)")
    print(f"Best subset: {list(result.best.primaries)}")
    print(f"LEDs: {', '.join(result.best.names)}")
    print(f"Worst shortfall: {result.scores[result.best_index]:.4f}")
    for direction in result.directions:
        res = result.best.directions[direction.name]
        achieved = res.positive_contrast[list(direction.targets)]
        print(f"  {direction.name:8s} desired {direction.desired.round(3).tolist()} "
              f"achieved {achieved.round(3).tolist()}")
    print("=" * 60)


def main():
    """Main function for command line execution."""
    parser = create_argument_parser()
    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING if args.quiet else logging.INFO)

    config = config_from_args(args)
    result = run(config)
    if config.verbose:
        print_summary(result)
        print(f"\n✓ Results saved to {config.save_dir}")


if __name__ == "__main__":
    main()
