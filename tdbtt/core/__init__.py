"""
Core conversion modules.

Elementary ERFA transforms, Earth orientation providers and the iterative
TDB → TT converter built on them.
"""

from .timescales import TwoPartJD, ErfaTimeTransforms, ut1_day_fraction
from .observer import ObserverLocation, location_parameters
from .earth_orientation import (
    EarthOrientationProvider,
    EopRecord,
    FixedEopProvider,
    IersEopProvider,
    TableEopProvider,
)
from .converter import (
    ConversionConfig,
    ConversionResult,
    ConvergenceMode,
    TimeConverter,
    tdb_to_tt,
    tt_to_tdb,
)

__all__ = [
    "TwoPartJD",
    "ErfaTimeTransforms",
    "ut1_day_fraction",
    "ObserverLocation",
    "location_parameters",
    "EarthOrientationProvider",
    "EopRecord",
    "FixedEopProvider",
    "IersEopProvider",
    "TableEopProvider",
    "ConversionConfig",
    "ConversionResult",
    "ConvergenceMode",
    "TimeConverter",
    "tdb_to_tt",
    "tt_to_tdb",
]
