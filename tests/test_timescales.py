# tests/test_timescales.py

import math

import pytest

from tdbtt.core.errors import ConversionError, InvalidDateError
from tdbtt.core.timescales import ErfaTimeTransforms, TwoPartJD, ut1_day_fraction

SECONDS_PER_DAY = 86400.0


@pytest.fixture
def transforms():
    return ErfaTimeTransforms()


# ───────────────────────────── UT1 day fraction ─────────────────────────────

@pytest.mark.parametrize("ut1, expected", [
    ((2451545.0, 0.25), 0.25),
    ((2451545.0, -0.25), 0.75),
    ((2451544.5, 0.75), 0.25),
    ((0.25, 2451545.0), 0.25),
    ((2451545.0, 0.0), 0.0),
    ((2451545.75, 0.5), 0.25),
])
def test_ut1_day_fraction(ut1, expected):
    assert ut1_day_fraction(ut1) == pytest.approx(expected, abs=1e-12)


def test_ut1_day_fraction_always_in_unit_interval():
    for jd1 in (2451544.5, 2451545.0, 2451545.9999999):
        for jd2 in (-0.9999999, -0.5, 0.0, 0.4999999, 0.9999999):
            frac = ut1_day_fraction((jd1, jd2))
            assert 0.0 <= frac < 1.0


# ───────────────────────────── TwoPartJD ─────────────────────────────

def test_two_part_jd_helpers():
    jd = TwoPartJD(2451545.0, 0.5)
    assert jd.jd == 2451545.5
    assert jd.mjd == pytest.approx(51545.0)
    assert str(jd.jd_precise) == "2451545.5"
    assert TwoPartJD(2451545.0, 1.0 / SECONDS_PER_DAY).seconds_since(TwoPartJD(2451545.0, 0.0)) == pytest.approx(1.0)


def test_two_part_jd_unpacks():
    jd1, jd2 = TwoPartJD(2451545.0, 0.125)
    assert (jd1, jd2) == (2451545.0, 0.125)


# ───────────────────────────── ERFA transforms ─────────────────────────────

def test_tt_to_tai_offset(transforms):
    tai = transforms.tt_to_tai(2451545.0, 0.0)
    assert tai.jd1 == 2451545.0
    assert -tai.jd2 * SECONDS_PER_DAY == pytest.approx(32.184, abs=1e-9)


def test_tai_to_utc_at_j2000(transforms):
    utc, advisory = transforms.tai_to_utc(2451545.0, 0.0)
    assert advisory is None
    assert TwoPartJD(2451545.0, 0.0).seconds_since(utc) == pytest.approx(32.0, abs=1e-6)


def test_tai_minus_utc_after_2017(transforms):
    dat, advisory = transforms.tai_minus_utc(2458000.5, 0.0)
    assert advisory is None
    assert dat == pytest.approx(37.0, abs=1e-6)


def test_tai_to_utc_dubious_year_is_advisory(transforms):
    utc, advisory = transforms.tai_to_utc(2415020.5, 0.0)
    assert advisory is not None
    assert "dubious" in advisory
    assert math.isfinite(utc.jd1 + utc.jd2)


def test_tai_to_utc_unacceptable_date(transforms):
    with pytest.raises(InvalidDateError) as excinfo:
        transforms.tai_to_utc(-1.0e6, 0.0)
    assert excinfo.value.context["function"] == "taiutc"
    assert excinfo.value.context["status"] == -1


def test_tt_to_ut1_applies_delta_t(transforms):
    ut1, advisory = transforms.tt_to_ut1(2451545.0, 0.0, 64.0)
    assert advisory is None
    assert TwoPartJD(2451545.0, 0.0).seconds_since(ut1) == pytest.approx(64.0, abs=1e-9)


@pytest.mark.parametrize("jd1", [-1.0e6, 2.0e9, math.nan])
def test_tt_to_ut1_rejects_unsupported_dates(transforms, jd1):
    with pytest.raises(InvalidDateError):
        transforms.tt_to_ut1(jd1, 0.0, 64.0)


@pytest.mark.parametrize("jd1, jd2", [(-68569.5, 0.0), (-68570.0, 0.5), (1.0e9, 0.0)])
def test_date_range_edges_accepted(transforms, jd1, jd2):
    transforms.check_date_range(jd1, jd2, "TT")


@pytest.mark.parametrize("jd1, jd2", [(-68570.0, 0.0), (-68569.5, -1.0e-3), (1.0e9, 1.0)])
def test_date_range_edges_rejected(transforms, jd1, jd2):
    with pytest.raises(InvalidDateError) as excinfo:
        transforms.check_date_range(jd1, jd2, "TT")
    assert excinfo.value.context["status"] == -1


def test_tdb_tt_round_trip(transforms):
    tt = transforms.tdb_to_tt(2451545.0, 0.3, -1.0e-3)
    tdb = transforms.tt_to_tdb(tt.jd1, tt.jd2, -1.0e-3)
    assert tdb.jd1 == 2451545.0
    assert tdb.jd2 == pytest.approx(0.3, abs=1e-15)
    assert tt.seconds_since(TwoPartJD(2451545.0, 0.3)) == pytest.approx(1.0e-3, abs=1e-10)


def test_tdb_minus_tt_bounded(transforms):
    for days in range(0, 366, 30):
        dtr = transforms.tdb_minus_tt(2451545.0, float(days), 0.5, 0.0, 0.0, 0.0)
        assert abs(dtr) < 0.002


def test_tdb_minus_tt_topocentric_term(transforms):
    geo = transforms.tdb_minus_tt(2451545.0, 0.0, 0.25, 0.0, 0.0, 0.0)
    topo = transforms.tdb_minus_tt(2451545.0, 0.0, 0.25, 0.0, 6378.137, 0.0)
    assert 1e-7 < abs(topo - geo) < 5e-6


def test_conversion_error_carries_context():
    err = ConversionError("boom", function="tdbtt", status=3)
    assert err.context == {"function": "tdbtt", "status": 3}
    assert err.error_class.value == "conversion"
