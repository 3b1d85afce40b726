"""
nominal_spd package
~~~~~~~~~~~~~~~~~~~

Select the LEDs of a multi-primary light source and design nominal
modulations that isolate photoreceptor classes.

The pieces are:

* :mod:`nominal_spd.config` - run configuration and direction specs.
* :mod:`nominal_spd.primary_manager` - load and power-scale LED SPDs.
* :mod:`nominal_spd.dichroic_filter` - filtering between adjacent LEDs.
* :mod:`nominal_spd.partitions` - subsets of LEDs to test.
* :mod:`nominal_spd.solver` - constrained modulation search.
* :mod:`nominal_spd.modulation` - per-subset, per-direction design.
* :mod:`nominal_spd.scoring` - pick the best subset.
* :mod:`nominal_spd.search` - drive the whole search.
"""

from .config import (
    ConfigurationError,
    FilterConfig,
    ObserverConfig,
    RunConfig,
    SearchConfig,
    StimulusDirection,
)

from .primary_manager import PrimaryManager
from .dichroic_filter import DichroicFilterBank
from .receptors import TabulatedReceptors
from .search import PrimarySearch, SearchResult

__all__ = [
    "ConfigurationError",
    "FilterConfig",
    "ObserverConfig",
    "RunConfig",
    "SearchConfig",
    "StimulusDirection",
    "PrimaryManager",
    "DichroicFilterBank",
    "TabulatedReceptors",
    "PrimarySearch",
    "SearchResult",
]
