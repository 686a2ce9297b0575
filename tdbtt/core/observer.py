# tdbtt/core/observer.py
# -----------------------------------------------------------------------------
# Observer (clock) location → TDB−TT site parameters
#
# Clocks synchronised to TT are not synchronised to TDB away from the
# geocenter; eraDtdb takes the clock's distance from the Earth spin axis (u),
# its distance north of the equatorial plane (v) and its east longitude.
# Input coordinates are geocentric TIRS/ITRS in meters.
# -----------------------------------------------------------------------------

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, NamedTuple, Optional, Sequence, Union

import numpy as np

from .errors import InvalidArgumentError

__all__ = [
    "ObserverLocation",
    "DtdbSiteParameters",
    "GEOCENTER",
    "location_parameters",
    "coerce_location",
]

METERS_PER_KM = 1000.0


class DtdbSiteParameters(NamedTuple):
    """Site parameters consumed by eraDtdb."""
    u_km: float
    v_km: float
    elon_rad: float


@dataclass(frozen=True)
class ObserverLocation:
    """Geocentric rectangular clock position in meters."""
    x: float
    y: float
    z: float

    @classmethod
    def from_vector(cls, vector: Any) -> 'ObserverLocation':
        """Build from a 3-vector (list, tuple, 3×1 or 1×3 array)."""
        try:
            arr = np.asarray(vector, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(
                f"Observer location must be numeric: {e}", value=repr(vector)
            ) from e

        if arr.ndim > 2 or arr.size != 3 or (arr.ndim == 2 and 1 not in arr.shape):
            raise InvalidArgumentError(
                f"The dimensionality of the clock location is incorrect: shape {arr.shape}, expected 3 components",
                shape=arr.shape,
            )

        x, y, z = (float(c) for c in arr.reshape(3))
        if not all(math.isfinite(c) for c in (x, y, z)):
            raise InvalidArgumentError("Observer location components must be finite", value=(x, y, z))
        return cls(x, y, z)

    def to_kilometers(self) -> tuple:
        return (self.x / METERS_PER_KM, self.y / METERS_PER_KM, self.z / METERS_PER_KM)


GEOCENTER = ObserverLocation(0.0, 0.0, 0.0)


def coerce_location(
    location: Union[ObserverLocation, Sequence[float], None]
) -> Optional[ObserverLocation]:
    """Normalise caller input; ``None`` stays ``None`` (geocenter)."""
    if location is None or isinstance(location, ObserverLocation):
        return location
    return ObserverLocation.from_vector(location)


def location_parameters(
    location: Union[ObserverLocation, Sequence[float], None]
) -> DtdbSiteParameters:
    """
    Cylindrical site parameters for eraDtdb.

    Returns ``(u, v, elon)`` with ``u = sqrt(x² + y²)`` and ``v = z`` in
    kilometers and ``elon = atan2(y, x)`` in radians. ``None`` is the
    geocenter. Works on a copy; caller-owned arrays are never rescaled.
    """
    location = coerce_location(location)
    if location is None:
        return DtdbSiteParameters(0.0, 0.0, 0.0)

    x_km, y_km, z_km = location.to_kilometers()
    return DtdbSiteParameters(
        u_km=math.sqrt(x_km * x_km + y_km * y_km),
        v_km=z_km,
        elon_rad=math.atan2(y_km, x_km),
    )
