# tdbtt/core/converter.py
# -----------------------------------------------------------------------------
# TDB → TT Converter (nanosecond accuracy, observer-location aware)
#
# The conversion is not closed-form: TDB−TT depends on UT1, UT1 depends on
# TT−UT1, and TT−UT1 is tabulated by UTC, while only TDB is known. The
# converter seeds TT with TDB and refines it by fixed-point iteration:
#
#   TT → (EOP: TT→TAI→UTC→TT−UT1) → UT1 → UT1 day fraction
#      → TDB−TT(TDB, frac, elon, u, v) → TT
#
# Convergence policy:
#   • FIXED (default): exactly `iterations` passes (2 reproduces reference
#     output bit-for-bit)
#   • TOLERANCE: iterate until |ΔTT| < tolerance or max_iterations
#
# Public API:
#   TimeConverter.convert(tdb1, tdb2, delta_t=None, observer_location=None) -> TwoPartJD
#   TimeConverter.convert_detailed(...) -> ConversionResult
#   TimeConverter.tt_to_tdb(tt1, tt2, ...) -> TwoPartJD
#   tdb_to_tt(...), tt_to_tdb(...)  - module-level conveniences
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
import numbers
import os
import sys
import warnings as py_warnings
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

import erfa

from .earth_orientation import (
    EarthOrientationProvider,
    FixedEopProvider,
    default_provider,
    delta_t_from_eop,
    describe_provider,
)
from .errors import DubiousDateWarning, InvalidArgumentError, TimeConversionError
from .observer import DtdbSiteParameters, ObserverLocation, coerce_location, location_parameters
from .timescales import JD_J2000, ErfaTimeTransforms, TwoPartJD, ut1_day_fraction

__all__ = [
    "ConvergenceMode",
    "ConversionConfig",
    "ConversionResult",
    "TimeConverter",
    "tdb_to_tt",
    "tt_to_tdb",
    "validate_result",
    "get_converter_status",
]

log = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 2
DEFAULT_TOLERANCE_SECONDS = 1e-9
DEFAULT_MAX_ITERATIONS = 10

# |TDB − TT| never exceeds ~1.7 ms
TDB_TT_BOUND_SECONDS = 0.002

LocationLike = Union[ObserverLocation, Sequence[float], None]
# (message, category) queued for the public entry point to emit
PendingWarning = Tuple[str, Type[Warning]]

# ───────────────────────────── Configuration ─────────────────────────────

class ConvergenceMode(Enum):
    FIXED = "fixed"            # exactly `iterations` passes
    TOLERANCE = "tolerance"    # stop when successive estimates agree


@dataclass(frozen=True)
class ConversionConfig:
    """
    Options for a conversion.

    ``delta_t`` (TT−UT1, seconds) is held fixed across passes when given;
    otherwise it is re-derived from Earth orientation data on every pass.
    ``observer_location`` is a geocentric position in meters; ``None`` is
    the geocenter.
    """
    delta_t: Optional[float] = None
    observer_location: LocationLike = None

    iterations: int = DEFAULT_ITERATIONS
    convergence: ConvergenceMode = ConvergenceMode.FIXED
    tolerance_seconds: float = DEFAULT_TOLERANCE_SECONDS
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    validate: bool = False

    def __post_init__(self):
        if isinstance(self.convergence, str):
            object.__setattr__(self, "convergence", _parse_convergence(self.convergence))
        if self.observer_location is not None:
            object.__setattr__(self, "observer_location", coerce_location(self.observer_location))
        if self.delta_t is not None:
            object.__setattr__(self, "delta_t", _finite_float(self.delta_t, "delta_t"))

        for name in ("iterations", "max_iterations"):
            value = getattr(self, name)
            if not _is_positive_int(value):
                raise InvalidArgumentError(f"{name} must be a positive integer, got {value!r}", field=name)
        tolerance = _finite_float(self.tolerance_seconds, "tolerance_seconds")
        if not (tolerance > 0):
            raise InvalidArgumentError(f"tolerance_seconds must be positive, got {self.tolerance_seconds!r}")
        object.__setattr__(self, "tolerance_seconds", tolerance)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides) -> 'ConversionConfig':
        """
        Build a config from TDBTT_* environment variables.

        TDBTT_DELTA_T, TDBTT_ITERATIONS, TDBTT_CONVERGENCE,
        TDBTT_TOLERANCE_S, TDBTT_MAX_ITERATIONS. Explicit keyword
        arguments win over the environment.
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        parsers = {
            "TDBTT_DELTA_T": ("delta_t", float),
            "TDBTT_ITERATIONS": ("iterations", int),
            "TDBTT_CONVERGENCE": ("convergence", _parse_convergence),
            "TDBTT_TOLERANCE_S": ("tolerance_seconds", float),
            "TDBTT_MAX_ITERATIONS": ("max_iterations", int),
        }
        for var, (name, parse) in parsers.items():
            raw = env.get(var, "").strip()
            if not raw:
                continue
            try:
                values[name] = parse(raw)
            except (TypeError, ValueError) as e:
                raise InvalidArgumentError(f"Invalid {var}={raw!r}: {e}", variable=var) from e

        values.update(overrides)
        return cls(**values)


def _parse_convergence(value: Union[str, ConvergenceMode]) -> ConvergenceMode:
    if isinstance(value, ConvergenceMode):
        return value
    try:
        return ConvergenceMode(str(value).strip().lower())
    except ValueError as e:
        raise InvalidArgumentError(
            f"Unknown convergence mode {value!r} (expected 'fixed' or 'tolerance')"
        ) from e


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool) and value >= 1


def _finite_float(value: Any, name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"{name} must be a real number, got {value!r}") from e
    if not math.isfinite(result):
        raise InvalidArgumentError(f"{name} must be finite, got {value!r}")
    return result

# ───────────────────────────── Results ─────────────────────────────

@dataclass(frozen=True)
class ConversionResult:
    """TT for a TDB instant, with the last pass's intermediate values."""
    tt: TwoPartJD
    tdb: TwoPartJD
    ut1: TwoPartJD
    tdb_minus_tt: float          # seconds, last pass
    delta_t: float               # TT−UT1 seconds, last pass
    delta_t_fixed: bool
    iterations: int
    converged: bool
    pass_deltas: List[float]     # |ΔTT| seconds per pass
    site: DtdbSiteParameters
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["tt"] = tuple(self.tt)
        result["tdb"] = tuple(self.tdb)
        result["ut1"] = tuple(self.ut1)
        result["site"] = self.site._asdict()
        result["jd_tt"] = self.tt.jd
        return result


def validate_result(result: ConversionResult) -> List[str]:
    """Physical consistency checks on a conversion result."""
    issues = []

    if not (math.isfinite(result.tt.jd1) and math.isfinite(result.tt.jd2)):
        issues.append("tt_not_finite")
        return issues

    offset = result.tt.seconds_since(result.tdb)
    if abs(offset) >= TDB_TT_BOUND_SECONDS:
        issues.append(f"tt_tdb_offset_out_of_bounds ({offset:.6e}s)")

    if not result.converged:
        issues.append("not_converged")

    return issues

# ───────────────────────────── Converter ─────────────────────────────

class TimeConverter:
    """
    Converts TDB to TT by fixed-point iteration on TT−UT1 and TDB−TT.

    Stateless between calls: holds only the config and the (read-only)
    collaborators, so one instance can be shared across threads provided
    the EOP provider is safe for concurrent reads.
    """

    def __init__(
        self,
        config: Optional[ConversionConfig] = None,
        *,
        eop_provider: Optional[EarthOrientationProvider] = None,
        transforms: Optional[ErfaTimeTransforms] = None,
    ):
        self.config = config or ConversionConfig()
        self.transforms = transforms or ErfaTimeTransforms()
        self._eop_provider = eop_provider

    @property
    def eop_provider(self) -> EarthOrientationProvider:
        """Injected provider, or the process default (resolved on first need)."""
        if self._eop_provider is None:
            return default_provider()
        return self._eop_provider

    def _effective_config(self, delta_t, observer_location, overrides) -> ConversionConfig:
        config = self.config
        changes = dict(overrides)
        # Location first: shape errors must surface before any transform runs
        if observer_location is not None:
            changes["observer_location"] = coerce_location(observer_location)
        if delta_t is not None:
            changes["delta_t"] = delta_t
        return replace(config, **changes) if changes else config

    def convert(
        self,
        tdb1: float,
        tdb2: float,
        delta_t: Optional[float] = None,
        observer_location: LocationLike = None,
        **overrides,
    ) -> TwoPartJD:
        """
        TDB → TT.

        Args:
            tdb1, tdb2: Two-part Julian Date in TDB (any split)
            delta_t: TT−UT1 in seconds, fixed for every pass. Omit to look
                it up from Earth orientation data on every pass.
            observer_location: Geocentric clock position (x, y, z) in meters.
                Omit for a clock at the geocenter.
            **overrides: Any ConversionConfig field, for this call only

        Returns:
            TwoPartJD(tt1, tt2)

        Raises:
            InvalidArgumentError: Malformed location or non-finite input
            InvalidDateError: Date outside the TT↔UT1 / TAI↔UTC range
            ConversionError: Unexpected ERFA status
            EOPUnavailableError: No Earth orientation data for the date
        """
        config = self._effective_config(delta_t, observer_location, overrides)
        result, pending = self._convert(tdb1, tdb2, config)
        _emit_warnings(pending)
        return result.tt

    def convert_detailed(
        self,
        tdb1: float,
        tdb2: float,
        delta_t: Optional[float] = None,
        observer_location: LocationLike = None,
        **overrides,
    ) -> ConversionResult:
        """Same as :meth:`convert` but returns the full ConversionResult."""
        config = self._effective_config(delta_t, observer_location, overrides)
        result, pending = self._convert(tdb1, tdb2, config)
        _emit_warnings(pending)
        return result

    def _convert(self, tdb1: float, tdb2: float, config: ConversionConfig):
        """Fixed-point loop. Returns the result and the Python warnings still to emit."""
        tdb = TwoPartJD(_finite_float(tdb1, "tdb1"), _finite_float(tdb2, "tdb2"))
        site = location_parameters(config.observer_location)
        fixed_delta_t = config.delta_t
        warnings: List[str] = []
        pending: List[PendingWarning] = []

        if config.convergence is ConvergenceMode.FIXED:
            max_passes = config.iterations
        else:
            max_passes = config.max_iterations

        # TDB and TT differ by at most ~2 ms: a good enough seed
        tt = tdb
        pass_deltas: List[float] = []
        converged = config.convergence is ConvergenceMode.FIXED
        passes = 0

        for passes in range(1, max_passes + 1):
            new_tt, ut1, dtr, pass_delta_t = self._refine(tdb, tt, fixed_delta_t, site, warnings, pending)
            step = abs(new_tt.seconds_since(tt))
            pass_deltas.append(step)
            tt = new_tt

            log.debug(
                f"pass {passes}: TT=({tt.jd1!r}, {tt.jd2!r}) TDB−TT={dtr:.9e}s "
                f"TT−UT1={pass_delta_t:.6f}s |ΔTT|={step:.3e}s"
            )

            if config.convergence is ConvergenceMode.TOLERANCE and step < config.tolerance_seconds:
                converged = True
                break

        if not converged:
            message = (
                f"TDB→TT did not converge to {config.tolerance_seconds:g}s in "
                f"{max_passes} passes (last step {pass_deltas[-1]:.3e}s)"
            )
            log.warning(message)
            warnings.append(message)

        result = ConversionResult(
            tt=tt,
            tdb=tdb,
            ut1=ut1,
            tdb_minus_tt=dtr,
            delta_t=pass_delta_t,
            delta_t_fixed=fixed_delta_t is not None,
            iterations=passes,
            converged=converged,
            pass_deltas=pass_deltas,
            site=site,
            warnings=warnings,
        )

        if config.validate:
            issues = validate_result(result)
            if issues:
                pending.append((f"TDB→TT validation failed: {issues}", UserWarning))
                warnings.extend(issues)

        return result, pending

    def _refine(self, tdb: TwoPartJD, tt: TwoPartJD, fixed_delta_t, site: DtdbSiteParameters,
                warnings: List[str], pending: List[PendingWarning]):
        """One fixed-point pass: current TT estimate → improved TT estimate."""
        delta_t = self._delta_t(tt, fixed_delta_t, warnings, pending)

        ut1, advisory = self.transforms.tt_to_ut1(tt.jd1, tt.jd2, delta_t)
        if advisory:
            _advise(f"Dubious year provided: {advisory}", warnings, pending)

        ut1_frac = ut1_day_fraction(ut1)
        dtr = self.transforms.tdb_minus_tt(tdb.jd1, tdb.jd2, ut1_frac, site.elon_rad, site.u_km, site.v_km)
        new_tt = self.transforms.tdb_to_tt(tdb.jd1, tdb.jd2, dtr)
        return new_tt, ut1, dtr, delta_t

    def _delta_t(self, tt: TwoPartJD, fixed_delta_t: Optional[float],
                 warnings: List[str], pending: List[PendingWarning]) -> float:
        if fixed_delta_t is not None:
            return fixed_delta_t
        lookup = delta_t_from_eop(tt.jd1, tt.jd2, self.eop_provider, self.transforms)
        for advisory in lookup.advisories:
            _advise(advisory, warnings, pending)
        return lookup.delta_t

    def tt_to_tdb(
        self,
        tt1: float,
        tt2: float,
        delta_t: Optional[float] = None,
        observer_location: LocationLike = None,
    ) -> TwoPartJD:
        """
        TT → TDB.

        Closed form once UT1 is known: TT is available directly, so a single
        TT−UT1 lookup suffices and TDB−TT is evaluated at TT.
        """
        config = self._effective_config(delta_t, observer_location, {})
        tdb, pending = self._tt_to_tdb(tt1, tt2, config)
        _emit_warnings(pending)
        return tdb

    def _tt_to_tdb(self, tt1: float, tt2: float, config: ConversionConfig):
        tt = TwoPartJD(_finite_float(tt1, "tt1"), _finite_float(tt2, "tt2"))
        site = location_parameters(config.observer_location)
        warnings: List[str] = []
        pending: List[PendingWarning] = []

        dt = self._delta_t(tt, config.delta_t, warnings, pending)
        ut1, advisory = self.transforms.tt_to_ut1(tt.jd1, tt.jd2, dt)
        if advisory:
            _advise(f"Dubious year provided: {advisory}", warnings, pending)

        dtr = self.transforms.tdb_minus_tt(
            tt.jd1, tt.jd2, ut1_day_fraction(ut1), site.elon_rad, site.u_km, site.v_km
        )
        return self.transforms.tt_to_tdb(tt.jd1, tt.jd2, dtr), pending


def _advise(message: str, warnings: List[str], pending: List[PendingWarning]) -> None:
    log.warning(message)
    warnings.append(message)
    pending.append((message, DubiousDateWarning))


def _emit_warnings(pending: List[PendingWarning], stacklevel: int = 2) -> None:
    """Issue queued warnings against the frame `stacklevel` above the caller."""
    for message, category in pending:
        py_warnings.warn(message, category, stacklevel=stacklevel + 1)

# ───────────────────────────── Module-Level API ─────────────────────────────

def tdb_to_tt(
    tdb1: float,
    tdb2: float,
    delta_t: Optional[float] = None,
    observer_location: LocationLike = None,
    *,
    eop_provider: Optional[EarthOrientationProvider] = None,
    **config,
) -> TwoPartJD:
    """TDB → TT with a one-off converter. See TimeConverter.convert."""
    converter = TimeConverter(ConversionConfig(**config), eop_provider=eop_provider)
    result, pending = converter._convert(tdb1, tdb2, converter._effective_config(delta_t, observer_location, {}))
    _emit_warnings(pending)
    return result.tt


def tt_to_tdb(
    tt1: float,
    tt2: float,
    delta_t: Optional[float] = None,
    observer_location: LocationLike = None,
    *,
    eop_provider: Optional[EarthOrientationProvider] = None,
) -> TwoPartJD:
    """TT → TDB with a one-off converter. See TimeConverter.tt_to_tdb."""
    converter = TimeConverter(eop_provider=eop_provider)
    tdb, pending = converter._tt_to_tdb(tt1, tt2, converter._effective_config(delta_t, observer_location, {}))
    _emit_warnings(pending)
    return tdb

# ───────────────────────────── Diagnostics ─────────────────────────────

def get_converter_status() -> Dict[str, Any]:
    """Versions, EOP provider and a smoke conversion at J2000."""
    from tdbtt import __version__

    status: Dict[str, Any] = {
        "version": __version__,
        "python_version": sys.version,
        "erfa_version": getattr(erfa, "__version__", "unknown"),
        "errors": [],
    }

    try:
        import astropy
        status["astropy_version"] = astropy.__version__
    except ImportError as e:
        status["errors"].append(f"astropy not available: {e}")

    try:
        status.update(describe_provider(default_provider()))
    except TimeConversionError as e:
        status["errors"].append(f"EOP provider unavailable: {e}")

    try:
        probe = TimeConverter(eop_provider=FixedEopProvider(64.0))
        result = probe.convert_detailed(JD_J2000, 0.0, validate=True)
        status["test_calculation"] = {
            "tt": tuple(result.tt),
            "tdb_minus_tt": result.tdb_minus_tt,
            "successful": not result.warnings,
        }
    except TimeConversionError as e:
        status["errors"].append(f"Test calculation failed: {e}")

    return status
