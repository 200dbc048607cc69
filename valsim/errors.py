from __future__ import annotations


class ValsimError(Exception):
    pass


class InvalidParametersError(ValsimError, ValueError):
    """Simulation parameters that would produce non-finite output."""


class BadRequestError(ValsimError):
    """Request payload that cannot be turned into simulation parameters."""


class DataUnavailableError(ValsimError):
    """Market data needed for a valuation could not be determined from any source."""


class EmptySeriesError(ValueError):
    pass
