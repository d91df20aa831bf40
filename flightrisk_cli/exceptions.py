from __future__ import annotations


class FlightRiskError(Exception):
    """Base exception with user-friendly message."""
    pass


class ConfigError(FlightRiskError):
    pass


class StorageError(FlightRiskError):
    pass


class ImportFormatError(FlightRiskError):
    pass


class InvalidRatingError(FlightRiskError, ValueError):
    """A severity, likelihood or other rating outside its closed scale."""
    pass
