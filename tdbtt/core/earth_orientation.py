# tdbtt/core/earth_orientation.py
# -----------------------------------------------------------------------------
# Earth Orientation Parameter (EOP) providers and the TT → UTC → TT−UT1 bridge
#
# Standards Compliance:
#   • IERS Bulletins A/B via astropy.utils.iers
#   • TT − UT1 = (TT − TAI) + (TAI − UTC) − (UT1 − UTC)
#
# Multi-Source Strategy:
#   1. JSON table named by TDBTT_EOP_JSON (operations override)
#   2. astropy IERS_Auto (bundled IERS-A/B, refreshed when stale)
#   Callers may inject any object satisfying EarthOrientationProvider.
#
# There is no cached fallback: a provider that cannot answer for a UTC
# instant raises EOPUnavailableError (EOPTimeoutError for timeouts).
# -----------------------------------------------------------------------------

from __future__ import annotations

import bisect
import json
import logging
import math
import os
import socket
import threading
from contextlib import nullcontext
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Protocol, Tuple, runtime_checkable
from urllib.error import URLError

from astropy import units as u
from astropy.utils import iers

from .errors import (
    EOPTimeoutError,
    EOPUnavailableError,
    InvalidArgumentError,
    TimeConversionError,
)
from .timescales import MJD_ZERO, TT_MINUS_TAI_SECONDS, ErfaTimeTransforms, TwoPartJD

__all__ = [
    "EopDataStatus",
    "EopRecord",
    "EarthOrientationProvider",
    "IersEopProvider",
    "TableEopProvider",
    "FixedEopProvider",
    "DeltaTLookup",
    "default_provider",
    "delta_t_from_eop",
    "describe_provider",
]

log = logging.getLogger(__name__)

EOP_JSON_ENV = "TDBTT_EOP_JSON"

# ───────────────────────────── Data Structures ─────────────────────────────

class EopDataStatus(Enum):
    """Provenance of an EOP value."""
    FINAL = "final"              # IERS-B
    RAPID = "rapid"              # IERS-A measured
    PREDICTED = "predicted"      # IERS-A prediction
    TABULATED = "tabulated"      # caller-supplied table
    FIXED = "fixed"              # constant offset


@dataclass(frozen=True)
class EopRecord:
    """Earth orientation values at a UTC instant (only TT−UT1 is required)."""
    utc: TwoPartJD
    tt_minus_ut1: float
    ut1_minus_utc: Optional[float] = None
    tai_minus_utc: Optional[float] = None
    source: str = ""
    status: EopDataStatus = EopDataStatus.FIXED


@runtime_checkable
class EarthOrientationProvider(Protocol):
    """Anything that maps a UTC instant to an EopRecord."""

    def lookup(self, utc1: float, utc2: float) -> EopRecord:
        ...


class DeltaTLookup(NamedTuple):
    """TT−UT1 derived for a TT estimate, with the intermediate UTC instant."""
    delta_t: float
    utc: TwoPartJD
    record: EopRecord
    advisories: List[str]

# ───────────────────────────── Error Mapping ─────────────────────────────

def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (TimeoutError, socket.timeout)):
        return True
    if isinstance(exc, URLError) and isinstance(exc.reason, (TimeoutError, socket.timeout)):
        return True
    return False


def _wrap_source_error(exc: Exception, source: str, **context) -> EOPUnavailableError:
    if _is_timeout(exc):
        return EOPTimeoutError(f"EOP source {source} timed out: {exc}", source=source, **context)
    return EOPUnavailableError(f"EOP source {source} failed: {exc}", source=source, **context)


def _tt_minus_ut1(tai_minus_utc: float, ut1_minus_utc: float) -> float:
    return TT_MINUS_TAI_SECONDS + tai_minus_utc - ut1_minus_utc

# ───────────────────────────── IERS (astropy) Provider ─────────────────────────────

class IersEopProvider:
    """
    UT1−UTC from astropy's IERS tables.

    ``source`` selects the table: ``"auto"`` (IERS_Auto, may download
    updated Bulletin A data), ``"a"`` (IERS_A, bundled or ``file``) or
    ``"b"`` (IERS_B, bundled or ``file``). The table is opened on first use.
    ``timeout`` bounds IERS_Auto downloads and is rejected for the
    local-only sources.
    """

    _STATUS_MAP = {
        iers.FROM_IERS_B: EopDataStatus.FINAL,
        iers.FROM_IERS_A: EopDataStatus.RAPID,
        iers.FROM_IERS_A_PREDICTION: EopDataStatus.PREDICTED,
    }

    def __init__(
        self,
        source: str = "auto",
        *,
        file: Optional[str] = None,
        timeout: Optional[float] = None,
        allow_predictions: bool = True,
        transforms: Optional[ErfaTimeTransforms] = None,
    ):
        source = source.lower()
        if source not in ("auto", "a", "b"):
            raise InvalidArgumentError(f"Unknown IERS source '{source}' (expected auto, a or b)", source=source)
        if source == "auto" and file is not None:
            raise InvalidArgumentError("IERS_Auto does not accept an explicit file", source=source, file=file)
        if timeout is not None and source != "auto":
            raise InvalidArgumentError("Only IERS_Auto downloads data; timeout needs source='auto'", source=source, timeout=timeout)
        if timeout is not None and not (timeout > 0):
            raise InvalidArgumentError(f"timeout must be positive, got {timeout}", timeout=timeout)

        self.source = source
        self.file = file
        self.timeout = timeout
        self.allow_predictions = allow_predictions
        self.transforms = transforms or ErfaTimeTransforms()
        self._table = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"IersEopProvider(source={self.source!r}, file={self.file!r}, timeout={self.timeout!r})"

    def _timeout_context(self):
        if self.timeout is None:
            return nullcontext()
        return iers.conf.set_temp("remote_timeout", self.timeout)

    def _open_table(self):
        log.debug(f"Opening IERS table (source={self.source}, file={self.file})")
        with self._timeout_context():
            if self.source == "auto":
                return iers.IERS_Auto.open()
            if self.source == "a":
                return iers.IERS_A.open(self.file) if self.file else iers.IERS_A.open()
            return iers.IERS_B.open(self.file) if self.file else iers.IERS_B.open()

    def _get_table(self):
        with self._lock:
            if self._table is None:
                try:
                    self._table = self._open_table()
                except Exception as e:
                    raise _wrap_source_error(e, f"IERS-{self.source}") from e
            return self._table

    def lookup(self, utc1: float, utc2: float) -> EopRecord:
        table = self._get_table()

        # IERS_Auto may refresh its table in place during interpolation
        guard = self._lock if self.source == "auto" else nullcontext()
        try:
            with guard, self._timeout_context():
                ut1_utc, status = table.ut1_utc(utc1, utc2, return_status=True)
        except Exception as e:
            raise _wrap_source_error(e, f"IERS-{self.source}", utc1=utc1, utc2=utc2) from e

        status = int(status)
        if status in (iers.TIME_BEFORE_IERS_RANGE, iers.TIME_BEYOND_IERS_RANGE):
            side = "before" if status == iers.TIME_BEFORE_IERS_RANGE else "beyond"
            raise EOPUnavailableError(
                f"UTC date ({utc1}, {utc2}) is {side} the range of the IERS-{self.source} table",
                source=f"IERS-{self.source}", utc1=utc1, utc2=utc2, status=status,
            )

        data_status = self._STATUS_MAP.get(status, EopDataStatus.RAPID)
        if data_status is EopDataStatus.PREDICTED and not self.allow_predictions:
            raise EOPUnavailableError(
                f"Only predicted UT1−UTC available for ({utc1}, {utc2})",
                source=f"IERS-{self.source}", utc1=utc1, utc2=utc2, status=status,
            )

        ut1_minus_utc = float(u.Quantity(ut1_utc, u.s).to_value(u.s))
        tai_minus_utc, _ = self.transforms.tai_minus_utc(utc1, utc2)

        log.debug(
            f"IERS-{self.source} lookup at UTC ({utc1}, {utc2}): "
            f"UT1−UTC={ut1_minus_utc:.7f}s ({data_status.value})"
        )

        return EopRecord(
            utc=TwoPartJD(utc1, utc2),
            tt_minus_ut1=_tt_minus_ut1(tai_minus_utc, ut1_minus_utc),
            ut1_minus_utc=ut1_minus_utc,
            tai_minus_utc=tai_minus_utc,
            source=f"IERS-{self.source}",
            status=data_status,
        )

# ───────────────────────────── Table Provider ─────────────────────────────

class TableEopProvider:
    """
    UT1−UTC interpolated linearly from ``(mjd_utc, ut1_minus_utc)`` rows.

    Leap-second jumps between rows are removed before interpolating, the
    same way IERS tables are handled.
    """

    def __init__(
        self,
        rows: Iterable[Tuple[float, float]],
        *,
        source: str = "table",
        transforms: Optional[ErfaTimeTransforms] = None,
    ):
        steps = sorted((float(mjd), float(dut1)) for mjd, dut1 in rows)
        if len(steps) < 2:
            raise InvalidArgumentError("EOP table needs at least two rows", rows=len(steps))
        if any(a[0] == b[0] for a, b in zip(steps, steps[1:])):
            raise InvalidArgumentError("EOP table has duplicate MJD rows", source=source)

        self._mjd = [row[0] for row in steps]
        self._dut1 = [row[1] for row in steps]
        self.source = source
        self.transforms = transforms or ErfaTimeTransforms()

    def __repr__(self) -> str:
        return f"TableEopProvider(source={self.source!r}, mjd=[{self._mjd[0]}, {self._mjd[-1]}])"

    @classmethod
    def from_json(cls, path: str, **kwargs) -> 'TableEopProvider':
        """Load ``[{"mjd": ..., "ut1_utc": ...}, ...]`` from a JSON file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            rows = [(float(row["mjd"]), float(row["ut1_utc"])) for row in data]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise EOPUnavailableError(f"Failed to load EOP table {path}: {e}", source=path) from e
        kwargs.setdefault("source", os.path.basename(path))
        return cls(rows, **kwargs)

    @classmethod
    def from_env(cls, **kwargs) -> Optional['TableEopProvider']:
        """Table named by TDBTT_EOP_JSON, or None when the variable is unset."""
        path = os.getenv(EOP_JSON_ENV, "").strip()
        if not path:
            return None
        return cls.from_json(path, **kwargs)

    @property
    def coverage_mjd(self) -> Tuple[float, float]:
        return self._mjd[0], self._mjd[-1]

    def ut1_minus_utc(self, mjd: float) -> float:
        first, last = self.coverage_mjd
        if not (first <= mjd <= last):
            raise EOPUnavailableError(
                f"MJD {mjd:.6f} outside EOP table coverage [{first}, {last}]",
                source=self.source, mjd=mjd,
            )

        i = bisect.bisect_right(self._mjd, mjd)
        i1 = min(max(i, 1), len(self._mjd) - 1)
        i0 = i1 - 1
        mjd_0, mjd_1 = self._mjd[i0], self._mjd[i1]
        val_0 = self._dut1[i0]
        d_val = self._dut1[i1] - val_0
        d_val -= round(d_val)
        return val_0 + (mjd - mjd_0) / (mjd_1 - mjd_0) * d_val

    def lookup(self, utc1: float, utc2: float) -> EopRecord:
        mjd = (utc1 - MJD_ZERO) + utc2
        ut1_minus_utc = self.ut1_minus_utc(mjd)
        tai_minus_utc, _ = self.transforms.tai_minus_utc(utc1, utc2)
        return EopRecord(
            utc=TwoPartJD(utc1, utc2),
            tt_minus_ut1=_tt_minus_ut1(tai_minus_utc, ut1_minus_utc),
            ut1_minus_utc=ut1_minus_utc,
            tai_minus_utc=tai_minus_utc,
            source=self.source,
            status=EopDataStatus.TABULATED,
        )

# ───────────────────────────── Fixed Provider ─────────────────────────────

class FixedEopProvider:
    """Constant TT−UT1, independent of date. Counts lookups."""

    def __init__(self, tt_minus_ut1: float):
        if not math.isfinite(tt_minus_ut1):
            raise InvalidArgumentError("tt_minus_ut1 must be finite", value=tt_minus_ut1)
        self.tt_minus_ut1 = float(tt_minus_ut1)
        self.calls: List[TwoPartJD] = []

    def __repr__(self) -> str:
        return f"FixedEopProvider(tt_minus_ut1={self.tt_minus_ut1!r})"

    def lookup(self, utc1: float, utc2: float) -> EopRecord:
        utc = TwoPartJD(utc1, utc2)
        self.calls.append(utc)
        return EopRecord(utc=utc, tt_minus_ut1=self.tt_minus_ut1, source="fixed", status=EopDataStatus.FIXED)

# ───────────────────────────── Default Provider ─────────────────────────────

@lru_cache(maxsize=4)
def _provider_for(eop_json_path: str) -> EarthOrientationProvider:
    if eop_json_path:
        log.info(f"Using EOP table from {EOP_JSON_ENV}={eop_json_path}")
        return TableEopProvider.from_json(eop_json_path)
    return IersEopProvider("auto")


def default_provider() -> EarthOrientationProvider:
    """Process-wide provider: TDBTT_EOP_JSON table if set, else IERS_Auto."""
    return _provider_for(os.getenv(EOP_JSON_ENV, "").strip())

# ───────────────────────────── TT → TT−UT1 Bridge ─────────────────────────────

def delta_t_from_eop(
    tt1: float,
    tt2: float,
    provider: EarthOrientationProvider,
    transforms: Optional[ErfaTimeTransforms] = None,
) -> DeltaTLookup:
    """
    TT−UT1 (seconds) for a TT instant.

    EOP data is indexed by UTC, so TT is taken to TAI and then to UTC
    before the provider is queried. Dubious-year advisories from TAI→UTC
    are returned, not raised.
    """
    transforms = transforms or ErfaTimeTransforms()
    advisories: List[str] = []

    tai = transforms.tt_to_tai(tt1, tt2)
    utc, advisory = transforms.tai_to_utc(tai.jd1, tai.jd2)
    if advisory:
        advisories.append(f"Dubious date entered: {advisory}")

    try:
        record = provider.lookup(utc.jd1, utc.jd2)
    except TimeConversionError:
        raise
    except Exception as e:
        raise _wrap_source_error(e, type(provider).__name__, utc1=utc.jd1, utc2=utc.jd2) from e

    if not math.isfinite(record.tt_minus_ut1):
        raise EOPUnavailableError(
            f"EOP source returned non-finite TT−UT1 for UTC ({utc.jd1}, {utc.jd2})",
            source=record.source, utc1=utc.jd1, utc2=utc.jd2,
        )

    log.debug(f"TT−UT1 at UTC ({utc.jd1}, {utc.jd2}) = {record.tt_minus_ut1:.7f}s [{record.source}]")
    return DeltaTLookup(record.tt_minus_ut1, utc, record, advisories)


def describe_provider(provider: Optional[EarthOrientationProvider]) -> Dict[str, Any]:
    if provider is None:
        return {"provider": None}
    return {"provider": type(provider).__name__, "repr": repr(provider)}
