"""
Photoreceptor classes and modulation directions used for the Prizmatix design.

Directions:

* ``LMS`` - equal contrast on the peripheral cones, silencing melanopsin.
* ``LminusM`` - L-M with equal contrast across eccentricity, ignoring melanopsin.
* ``S`` - S with equal contrast across eccentricity, ignoring melanopsin.
* ``Mel`` - melanopsin, silencing the peripheral but not the central cones.
* ``SnoMel`` - peripheral S, silencing melanopsin.

Only ``LMS`` and ``Mel`` take part in scoring.
"""
from typing import List

from nominal_spd.config import StimulusDirection

PHOTORECEPTOR_CLASSES: List[str] = [
    "LConeTabulatedAbsorbance2Deg",
    "MConeTabulatedAbsorbance2Deg",
    "SConeTabulatedAbsorbance2Deg",
    "LConeTabulatedAbsorbance10Deg",
    "MConeTabulatedAbsorbance10Deg",
    "SConeTabulatedAbsorbance10Deg",
    "Melanopsin",
]

PHOTORECEPTOR_NAMES: List[str] = ["L_2deg", "M_2deg", "S_2deg", "L_10deg", "M_10deg", "S_10deg", "Mel"]


def default_directions() -> List[StimulusDirection]:
    """Return the standard direction set, indices into :data:`PHOTORECEPTOR_CLASSES`."""
    return [
        StimulusDirection(
            name="LMS",
            targets=(3, 4, 5),
            ignore=(0, 1, 2),
            desired_contrast=(0.5, 0.5, 0.5),
            contrast_groups=((0, 1, 2),),
            max_contrast_diff=0.015,
            score=True,
        ),
        StimulusDirection(
            name="LminusM",
            targets=(0, 1, 3, 4),
            ignore=(6,),
            desired_contrast=(0.12, -0.12, 0.12, -0.12),
            contrast_groups=((0, 1), (2, 3)),
            max_contrast_diff=0.005,
        ),
        StimulusDirection(
            name="S",
            targets=(2, 5),
            ignore=(6,),
            desired_contrast=(0.7, 0.7),
            contrast_groups=((0, 1),),
            max_contrast_diff=0.025,
        ),
        StimulusDirection(
            name="Mel",
            targets=(6,),
            ignore=(0, 1, 2),
            desired_contrast=0.6,
            score=True,
        ),
        StimulusDirection(
            name="SnoMel",
            targets=(5,),
            ignore=(0, 1, 2),
            desired_contrast=0.65,
        ),
    ]
