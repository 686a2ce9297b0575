# tdbtt/core/timescales.py
# -----------------------------------------------------------------------------
# Elementary Time Scale Transforms (ERFA-backed)
#
# Standards Compliance:
#   • IAU SOFA/ERFA algorithms (via pyERFA)
#   • IERS Conventions 2010 (Chapter 10, TT/TDB relationship)
#
# Precision Guarantees:
#   • Two-part Julian Date preserved opaquely through every transform
#   • ERFA status codes inspected directly (no global warning filters)
#
# Transforms provided:
#   TT → UT1, TDB → TT, TT → TDB, TT → TAI, TAI → UTC, UTC → TAI,
#   TDB − TT (Fairhead & Bretagnon series with topocentric terms)
# -----------------------------------------------------------------------------

from __future__ import annotations

import math
from decimal import Decimal
from typing import NamedTuple, Optional, Tuple

import erfa
from erfa import ufunc as erfa_ufunc

from .errors import ConversionError, InvalidDateError

__all__ = [
    "TwoPartJD",
    "TransformOutcome",
    "ErfaTimeTransforms",
    "ut1_day_fraction",
    "SECONDS_PER_DAY",
    "TT_MINUS_TAI_SECONDS",
    "JD_J2000",
    "MJD_ZERO",
]

# ───────────────────────────── Constants ─────────────────────────────

SECONDS_PER_DAY = 86400.0
TT_MINUS_TAI_SECONDS = 32.184
JD_J2000 = 2451545.0
MJD_ZERO = 2400000.5

# ───────────────────────────── Data Structures ─────────────────────────────

class TwoPartJD(NamedTuple):
    """Two-part Julian Date. The split point is arbitrary and never collapsed."""
    jd1: float
    jd2: float

    @property
    def jd(self) -> float:
        """Collapsed single Julian Date (with minor precision loss)."""
        return math.fsum((self.jd1, self.jd2))

    @property
    def jd_precise(self) -> Decimal:
        """High-precision Julian Date using Decimal arithmetic."""
        return Decimal(repr(self.jd1)) + Decimal(repr(self.jd2))

    @property
    def mjd(self) -> float:
        return (self.jd1 - MJD_ZERO) + self.jd2

    def seconds_since(self, other: 'TwoPartJD') -> float:
        """Difference self − other in seconds, component-wise to keep precision."""
        return ((self.jd1 - other.jd1) + (self.jd2 - other.jd2)) * SECONDS_PER_DAY


class TransformOutcome(NamedTuple):
    """Result of a transform plus an optional non-fatal advisory."""
    value: TwoPartJD
    advisory: Optional[str] = None

# ───────────────────────────── Helpers ─────────────────────────────

def ut1_day_fraction(ut1: Tuple[float, float]) -> float:
    """
    Fraction of the UT1 day in [0, 1).

    Each component is reduced separately before summing so that components
    straddling integer boundaries do not corrupt the result.
    """
    ut1_1, ut1_2 = ut1
    frac = (ut1_1 - math.floor(ut1_1)) + (ut1_2 - math.floor(ut1_2))
    return frac - math.floor(frac)


def _erfa_status_message(func_name: str, status: int) -> str:
    codes = erfa.core.STATUS_CODES.get(func_name, {})
    return codes.get(status, f"status {status}")

# ───────────────────────────── ERFA Integration ─────────────────────────────

class ErfaTimeTransforms:
    """
    Trusted elementary conversions between time scales.

    Wraps ``erfa.ufunc`` so that SOFA status codes come back as values:
    negative codes map to exceptions, positive codes to advisories.
    """

    def check_date_range(self, jd1: float, jd2: float, scale: str) -> None:
        """Reject dates eraJd2cal cannot represent."""
        if not (math.isfinite(jd1) and math.isfinite(jd2)):
            raise InvalidDateError(f"Non-finite {scale} date ({jd1}, {jd2})", scale=scale)
        *_, status = erfa_ufunc.jd2cal(jd1, jd2)
        if int(status) < 0:
            raise InvalidDateError(
                f"Unacceptable {scale} date ({jd1}, {jd2}): {_erfa_status_message('jd2cal', int(status))}",
                scale=scale, jd1=jd1, jd2=jd2, status=int(status),
            )

    def tt_to_ut1(self, tt1: float, tt2: float, delta_t: float) -> TransformOutcome:
        """TT → UT1 given TT−UT1 in seconds."""
        self.check_date_range(tt1, tt2, "TT")
        ut11, ut12, status = erfa_ufunc.ttut1(tt1, tt2, delta_t)
        status = int(status)
        if status < 0:
            raise InvalidDateError(
                f"Unacceptable date in TT→UT1: {_erfa_status_message('ttut1', status)}",
                function="ttut1", status=status, jd1=tt1, jd2=tt2,
            )
        advisory = None
        if status > 0:
            advisory = f"ttut1: {_erfa_status_message('ttut1', status)}"
        return TransformOutcome(TwoPartJD(float(ut11), float(ut12)), advisory)

    def tdb_to_tt(self, tdb1: float, tdb2: float, dtr: float) -> TwoPartJD:
        """TDB → TT given TDB−TT in seconds."""
        tt1, tt2, status = erfa_ufunc.tdbtt(tdb1, tdb2, dtr)
        if int(status) != 0:
            raise ConversionError(
                f"TDB→TT conversion failed: {_erfa_status_message('tdbtt', int(status))}",
                function="tdbtt", status=int(status),
            )
        return TwoPartJD(float(tt1), float(tt2))

    def tt_to_tdb(self, tt1: float, tt2: float, dtr: float) -> TwoPartJD:
        """TT → TDB given TDB−TT in seconds."""
        tdb1, tdb2, status = erfa_ufunc.tttdb(tt1, tt2, dtr)
        if int(status) != 0:
            raise ConversionError(
                f"TT→TDB conversion failed: {_erfa_status_message('tttdb', int(status))}",
                function="tttdb", status=int(status),
            )
        return TwoPartJD(float(tdb1), float(tdb2))

    def tt_to_tai(self, tt1: float, tt2: float) -> TwoPartJD:
        tai1, tai2, status = erfa_ufunc.tttai(tt1, tt2)
        if int(status) != 0:
            raise ConversionError(
                f"Error computing TAI: {_erfa_status_message('tttai', int(status))}",
                function="tttai", status=int(status),
            )
        return TwoPartJD(float(tai1), float(tai2))

    def tai_to_utc(self, tai1: float, tai2: float) -> TransformOutcome:
        utc1, utc2, status = erfa_ufunc.taiutc(tai1, tai2)
        return TransformOutcome(
            TwoPartJD(float(utc1), float(utc2)),
            self._leap_second_status("taiutc", int(status), tai1, tai2),
        )

    def utc_to_tai(self, utc1: float, utc2: float) -> TransformOutcome:
        tai1, tai2, status = erfa_ufunc.utctai(utc1, utc2)
        return TransformOutcome(
            TwoPartJD(float(tai1), float(tai2)),
            self._leap_second_status("utctai", int(status), utc1, utc2),
        )

    def tai_minus_utc(self, utc1: float, utc2: float) -> Tuple[float, Optional[str]]:
        """TAI−UTC in seconds at a UTC instant."""
        tai, advisory = self.utc_to_tai(utc1, utc2)
        return ((tai.jd1 - utc1) + (tai.jd2 - utc2)) * SECONDS_PER_DAY, advisory

    def tdb_minus_tt(
        self,
        tdb1: float,
        tdb2: float,
        ut1_frac: float,
        elon: float,
        u: float,
        v: float,
    ) -> float:
        """TDB−TT in seconds; u and v in km, elon in radians."""
        return float(erfa_ufunc.dtdb(tdb1, tdb2, ut1_frac, elon, u, v))

    @staticmethod
    def _leap_second_status(func_name: str, status: int, jd1: float, jd2: float) -> Optional[str]:
        if status < 0:
            raise InvalidDateError(
                f"Unacceptable date entered: {_erfa_status_message(func_name, status)}",
                function=func_name, status=status, jd1=jd1, jd2=jd2,
            )
        if status > 0:
            return f"{func_name}: {_erfa_status_message(func_name, status)}"
        return None
