"""
Reconcile two independent strategies into one price.

Rules, in order:
1. Only one side has a usable result: return it unmodified.
2. The two disagree by more than the threshold: return the lower one.
3. The primary side saw a lowest price below the secondary's: return it.
4. Otherwise the rounded mean of both.
5. Neither side has a result: raise with the underlying errors.
"""
import asyncio
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from flightprice.errors import DiscrepancyError, FlightPriceError, PricingUnavailableError
from flightprice.models import FlightPriceResult, FlightQuery, mean_price, same_location_result
from flightprice.strategies.base import PricingStrategy

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISCREPANCY_PERCENT = 30.0


def discrepancy_percent(a: Decimal, b: Decimal) -> float:
    low, high = min(a, b), max(a, b)
    if low <= 0:
        raise ValueError("Discrepancy is undefined for non-positive prices")
    return float((high - low) / low * 100)


def check_discrepancy(a: Decimal, b: Decimal, threshold: float) -> float:
    """Return the discrepancy percent, raising DiscrepancyError above the threshold."""
    percent = discrepancy_percent(a, b)
    if percent > threshold:
        raise DiscrepancyError(percent, min(a, b), max(a, b), threshold)
    return percent


class HybridResolver(PricingStrategy):
    name = "hybrid"

    def __init__(
        self,
        primary: PricingStrategy,
        secondary: PricingStrategy,
        max_discrepancy_percent: float = DEFAULT_MAX_DISCREPANCY_PERCENT,
    ):
        if max_discrepancy_percent <= 0:
            raise ValueError("max_discrepancy_percent must be positive")
        self.primary = primary
        self.secondary = secondary
        self.max_discrepancy_percent = max_discrepancy_percent

    @property
    def label(self) -> str:
        return f"{self.primary.label} + {self.secondary.label}"

    async def is_available(self) -> bool:
        return await self.primary.is_available() or await self.secondary.is_available()

    async def _attempt(self, strategy: PricingStrategy, query: FlightQuery) -> Tuple[Optional[FlightPriceResult], Optional[Exception]]:
        try:
            if not await strategy.is_available():
                logger.info(f"{strategy.name} unavailable, skipping")
                return None, None
            result = await strategy.get_price(query)
        except FlightPriceError as e:
            logger.warning(f"{strategy.name} failed: {e}")
            return None, e
        if result.price <= 0:
            return None, None
        return result, None

    def combine(self, first: Optional[FlightPriceResult], second: Optional[FlightPriceResult],
                errors: Optional[List[Exception]] = None) -> FlightPriceResult:
        if first is None and second is None:
            errors = [e for e in (errors or []) if e is not None]
            if len(errors) == 1:
                raise errors[0]
            raise PricingUnavailableError(errors=errors)

        if first is None or second is None:
            single = first or second
            logger.info(f"Hybrid: single source {single.source} ${single.price}")
            return single

        try:
            percent = check_discrepancy(first.price, second.price, self.max_discrepancy_percent)
        except DiscrepancyError as signal:
            lower = first if first.price <= second.price else second
            logger.info(f"Hybrid: {signal}; using lower price from {lower.source}")
            return FlightPriceResult(
                price=lower.price,
                source=f"Hybrid (lower price, {signal.percent:.0f}% discrepancy: {lower.source})",
                options=lower.options,
                search_url=lower.search_url,
                lowest_price=first.lowest_price,
            )

        if first.lowest_price is not None and first.lowest_price < second.price:
            logger.info(f"Hybrid: {first.source} lowest ${first.lowest_price} below ${second.price}")
            return FlightPriceResult(
                price=first.lowest_price,
                source=f"{first.source} (lowest price)" if "lowest" not in first.source else first.source,
                lowest_price=first.lowest_price,
            )

        average = mean_price([first.price, second.price])
        logger.info(f"Hybrid: {percent:.1f}% apart, averaging ${first.price} and ${second.price} -> ${average}")
        return FlightPriceResult(
            price=average,
            source=f"Hybrid ({self.label} average)",
            search_url=first.search_url or second.search_url,
            lowest_price=first.lowest_price,
        )

    async def get_price(self, query: FlightQuery) -> FlightPriceResult:
        if query.is_same_location:
            return same_location_result("Hybrid")

        first, first_error = await self._attempt(self.primary, query)
        second, second_error = await self._attempt(self.secondary, query)
        return self.combine(first, second, [first_error, second_error])

    async def cleanup(self) -> None:
        results = await asyncio.gather(self.primary.cleanup(), self.secondary.cleanup(), return_exceptions=True)
        for strategy, result in zip((self.primary, self.secondary), results):
            if isinstance(result, Exception):
                logger.warning(f"{strategy.name} cleanup failed: {result}")
