# tdbtt/core/errors.py
# -----------------------------------------------------------------------------
# Exception hierarchy for TDB → TT conversion
#
# Error classes:
#   • INVALID_ARGUMENT  - structurally invalid caller input (not retried)
#   • INVALID_DATE      - instant outside an elementary transform's range
#   • CONVERSION        - unexpected non-zero status from an ERFA routine
#   • EOP_UNAVAILABLE   - Earth orientation data missing for the UTC instant
#   • EOP_TIMEOUT       - Earth orientation data source timed out
#
# Dubious dates are advisories, not errors: they surface as
# DubiousDateWarning and are recorded on the conversion result.
# -----------------------------------------------------------------------------

from __future__ import annotations

from enum import Enum

__all__ = [
    "ErrorClass",
    "TimeConversionError",
    "InvalidArgumentError",
    "InvalidDateError",
    "ConversionError",
    "EOPUnavailableError",
    "EOPTimeoutError",
    "DubiousDateWarning",
]


class ErrorClass(Enum):
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_DATE = "invalid_date"
    CONVERSION = "conversion"
    EOP_UNAVAILABLE = "eop_unavailable"
    EOP_TIMEOUT = "eop_timeout"


class TimeConversionError(Exception):
    """Base exception for time scale conversions."""
    def __init__(self, message: str, error_class: ErrorClass, **context):
        super().__init__(message)
        self.error_class = error_class
        self.context = context


class InvalidArgumentError(TimeConversionError):
    """Malformed caller input (observer location shape, non-finite dates)."""
    def __init__(self, message: str, **context):
        super().__init__(message, ErrorClass.INVALID_ARGUMENT, **context)


class InvalidDateError(TimeConversionError):
    """Date outside the range supported by TT↔UT1 or TAI↔UTC."""
    def __init__(self, message: str, **context):
        super().__init__(message, ErrorClass.INVALID_DATE, **context)


class ConversionError(TimeConversionError):
    """An elementary transform reported an unexpected status."""
    def __init__(self, message: str, **context):
        super().__init__(message, ErrorClass.CONVERSION, **context)


class EOPUnavailableError(TimeConversionError):
    """Earth orientation parameters could not be produced for a UTC instant."""
    def __init__(self, message: str, error_class: ErrorClass = ErrorClass.EOP_UNAVAILABLE, **context):
        super().__init__(message, error_class, **context)


class EOPTimeoutError(EOPUnavailableError):
    """The Earth orientation data source did not answer in time."""
    def __init__(self, message: str, **context):
        super().__init__(message, ErrorClass.EOP_TIMEOUT, **context)


class DubiousDateWarning(UserWarning):
    """Date is in range but historically uncertain (e.g. pre-1960 UTC)."""
