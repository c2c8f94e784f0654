import logging
from abc import ABC, abstractmethod

from flightprice.models import FlightPriceResult, FlightQuery

logger = logging.getLogger(__name__)


class PricingStrategy(ABC):
    """
    One way of pricing a round trip.

    ``get_price`` either returns a result or raises a FlightPriceError; it never
    returns zero except for the same-location short-circuit.
    """
    name: str = "base"
    label: str = "Base"

    @abstractmethod
    async def is_available(self) -> bool:
        pass

    @abstractmethod
    async def get_price(self, query: FlightQuery) -> FlightPriceResult:
        pass

    async def cleanup(self) -> None:
        """Release held resources. Safe to call more than once."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
