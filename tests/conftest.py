# tests/conftest.py

import pytest

from tdbtt.core.earth_orientation import FixedEopProvider
from tdbtt.core.timescales import ErfaTimeTransforms

# TT−UT1 near J2000.0 (32.184 + 32 − 0.3554)
DELTA_T_J2000 = 63.8286


class ExplodingEopProvider:
    """EOP stub that fails the test if it is ever queried."""

    def lookup(self, utc1, utc2):
        raise AssertionError(f"EOP provider queried at ({utc1}, {utc2})")


class FailingEopProvider:
    """EOP stub that raises a given exception."""

    def __init__(self, exc):
        self.exc = exc

    def lookup(self, utc1, utc2):
        raise self.exc


class SpyTransforms(ErfaTimeTransforms):
    """Records every elementary transform call before delegating to ERFA."""

    def __init__(self):
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)

    def tt_to_ut1(self, tt1, tt2, delta_t):
        self._record("tt_to_ut1", tt1, tt2, delta_t)
        return super().tt_to_ut1(tt1, tt2, delta_t)

    def tdb_to_tt(self, tdb1, tdb2, dtr):
        self._record("tdb_to_tt", tdb1, tdb2, dtr)
        return super().tdb_to_tt(tdb1, tdb2, dtr)

    def tt_to_tai(self, tt1, tt2):
        self._record("tt_to_tai", tt1, tt2)
        return super().tt_to_tai(tt1, tt2)

    def tai_to_utc(self, tai1, tai2):
        self._record("tai_to_utc", tai1, tai2)
        return super().tai_to_utc(tai1, tai2)

    def tdb_minus_tt(self, tdb1, tdb2, ut1_frac, elon, u, v):
        self._record("tdb_minus_tt", tdb1, tdb2, ut1_frac, elon, u, v)
        return super().tdb_minus_tt(tdb1, tdb2, ut1_frac, elon, u, v)

    def names(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def fixed_provider():
    return FixedEopProvider(DELTA_T_J2000)


@pytest.fixture
def exploding_provider():
    return ExplodingEopProvider()


@pytest.fixture
def spy_transforms():
    return SpyTransforms()
