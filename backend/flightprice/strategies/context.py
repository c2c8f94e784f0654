import logging

from flightprice.models import FlightPriceResult, FlightQuery
from flightprice.strategies.base import PricingStrategy

logger = logging.getLogger(__name__)


class PricingContext:
    """Holds the active pricing strategy so callers can swap it at runtime."""

    def __init__(self, strategy: PricingStrategy):
        self._strategy = strategy

    @property
    def strategy(self) -> PricingStrategy:
        return self._strategy

    def set_strategy(self, strategy: PricingStrategy) -> None:
        logger.info(f"Switching pricing strategy {self._strategy.name} -> {strategy.name}")
        self._strategy = strategy

    async def is_strategy_available(self) -> bool:
        return await self._strategy.is_available()

    async def get_price(self, query: FlightQuery) -> FlightPriceResult:
        return await self._strategy.get_price(query)

    async def cleanup(self) -> None:
        await self._strategy.cleanup()
