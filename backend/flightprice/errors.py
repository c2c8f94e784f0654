"""
Error taxonomy for flight price resolution.

A failed lookup always raises one of these; a price of zero is reserved for
the same-location short-circuit.
"""
from decimal import Decimal
from typing import List, Optional


class FlightPriceError(Exception):
    """Base class. ``stage`` names the step that failed, when known."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage:
            return f"[{self.stage}] {message}"
        return message


class ConfigurationError(FlightPriceError):
    """Missing credentials or collaborators. Never retried."""


class NotFoundError(FlightPriceError):
    """A required page element could not be resolved by any tactic."""

    def __init__(self, target: str, stage: Optional[str] = None):
        super().__init__(f"Could not locate {target}", stage=stage)
        self.target = target


class TransientUIError(FlightPriceError):
    """A single UI attempt failed (detached element, click intercepted, timeout)."""


class ScrapeError(FlightPriceError):
    """The browser pipeline failed at an identifiable stage."""


class ProviderError(FlightPriceError):
    """The pricing API failed or returned no usable offers."""


class GeocodingError(FlightPriceError):
    def __init__(self, location: str):
        super().__init__(f"Could not find coordinates for {location}", stage="geocode")
        self.location = location


class CacheCorruptionError(FlightPriceError):
    """The cache file exists but cannot be decoded."""


class DiscrepancyError(FlightPriceError):
    """
    Two sources disagree by more than the allowed threshold.

    This is a signal for the hybrid rules, not a failure surfaced to callers.
    """

    def __init__(self, percent: float, lower: Decimal, higher: Decimal, threshold: float):
        super().__init__(
            f"Price discrepancy {percent:.1f}% exceeds {threshold:.0f}% "
            f"(${lower} vs ${higher})",
            stage="reconcile",
        )
        self.percent = percent
        self.lower = lower
        self.higher = higher
        self.threshold = threshold


class PricingUnavailableError(FlightPriceError):
    """No source produced a usable result."""

    def __init__(self, message: str = "No pricing data available from any source",
                 errors: Optional[List[Exception]] = None):
        super().__init__(message, stage="resolve")
        self.errors = list(errors or [])
