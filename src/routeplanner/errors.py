"""Typed failures raised by the route optimization pipeline."""

from __future__ import annotations


class RouteOptimizationError(Exception):
    """Base class for every failure a planning request can end with."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(RouteOptimizationError, ValueError):
    """The request itself cannot be planned (too few stops, conflicting pins)."""

    kind = "invalid_input"


class ProviderUnavailableError(RouteOptimizationError):
    """The routing provider could not be reached after all retry attempts."""

    kind = "provider_unavailable"


class ProviderDataError(RouteOptimizationError):
    """The provider answered, but with an empty, malformed or unusable payload."""

    kind = "provider_data"


class OptimizationTimeoutError(RouteOptimizationError):
    """The caller's overall time budget ran out before a result was produced."""

    kind = "timeout"


class InternalInvariantViolation(RouteOptimizationError):
    kind = "internal"


class TransientProviderError(Exception):
    """A provider fault worth retrying (timeouts, rate limits, 5xx).

    Raised by provider clients and consumed by the retry helper; it never
    leaves the pipeline.
    """
