"""
TDB → TT Time Conversion

Nanosecond-accuracy conversion from Barycentric Dynamical Time to
Terrestrial Time, with Earth orientation lookup and clock-location
(topocentric) corrections.
"""

__version__ = "1.0.0"

from .core import (  # noqa: E402
    ConversionConfig,
    ConversionResult,
    ConvergenceMode,
    ObserverLocation,
    TimeConverter,
    TwoPartJD,
    tdb_to_tt,
    tt_to_tdb,
)
from .core.errors import (  # noqa: E402
    ConversionError,
    DubiousDateWarning,
    EOPTimeoutError,
    EOPUnavailableError,
    InvalidArgumentError,
    InvalidDateError,
    TimeConversionError,
)

__all__ = [
    "ConversionConfig",
    "ConversionResult",
    "ConvergenceMode",
    "ObserverLocation",
    "TimeConverter",
    "TwoPartJD",
    "tdb_to_tt",
    "tt_to_tdb",
    "TimeConversionError",
    "InvalidArgumentError",
    "InvalidDateError",
    "ConversionError",
    "EOPUnavailableError",
    "EOPTimeoutError",
    "DubiousDateWarning",
]
