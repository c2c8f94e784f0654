import logging
import re
from typing import List, Optional

from flightprice.errors import ConfigurationError, ProviderError
from flightprice.models import FlightPriceResult, FlightQuery, mean_price, round_price, same_location_result
from flightprice.services.alliances import CarrierAllianceTable
from flightprice.services.amadeus import AmadeusClient, ProviderQuote
from flightprice.services.cache import PersistentCache
from flightprice.services.geo import StaticGeocoder, city_part
from flightprice.strategies.base import PricingStrategy

logger = logging.getLogger(__name__)

SOURCE = "Amadeus API"
SOURCE_LOWEST = "Amadeus API (lowest price)"

CITY_TO_AIRPORT_CODE = {
    "seoul": "ICN",
    "barcelona": "BCN",
    "new york": "JFK",
    "tokyo": "HND",
    "paris": "CDG",
    "london": "LHR",
    "singapore": "SIN",
    "dubai": "DXB",
    "san francisco": "SFO",
    "los angeles": "LAX",
}


def resolve_airport_code(location: str, geocoder: Optional[StaticGeocoder] = None) -> Optional[str]:
    """'LHR' stays 'LHR'; 'Seoul, South Korea' -> 'ICN'."""
    stripped = location.strip()
    if re.fullmatch(r"[A-Z]{3}", stripped):
        return stripped
    city = city_part(stripped)
    if city in CITY_TO_AIRPORT_CODE:
        return CITY_TO_AIRPORT_CODE[city]
    if geocoder is not None:
        return geocoder.airport_code(stripped)
    return None


class ProviderApiStrategy(PricingStrategy):
    """Average (and lowest) fare from the Amadeus Flight Offers API."""
    name = "provider"
    label = "Amadeus"

    def __init__(
        self,
        client: AmadeusClient,
        alliances: Optional[CarrierAllianceTable] = None,
        cache: Optional[PersistentCache] = None,
        geocoder: Optional[StaticGeocoder] = None,
        major_carriers_only: bool = True,
        prefer_lowest_price: bool = False,
    ):
        self.client = client
        self.alliances = alliances or CarrierAllianceTable()
        self.cache = cache
        self.geocoder = geocoder
        self.major_carriers_only = major_carriers_only
        self.prefer_lowest_price = prefer_lowest_price

    @property
    def version_tag(self) -> str:
        return "amadeus-major-carriers-v1" if self.major_carriers_only else "amadeus-v1"

    async def is_available(self) -> bool:
        return self.client.is_available()

    def filter_quotes(self, quotes: List[ProviderQuote]) -> List[ProviderQuote]:
        """Keep quotes where every carrier is an alliance member; all quotes if none qualify."""
        if not self.major_carriers_only:
            return quotes
        major = [q for q in quotes if self.alliances.all_major(q.carriers)]
        if not major:
            logger.warning(f"No major-carrier offers among {len(quotes)}, using all offers")
            return quotes
        logger.info(f"{len(major)}/{len(quotes)} offers are major-carrier only")
        return major

    def summarize(self, quotes: List[ProviderQuote]) -> FlightPriceResult:
        prices = [q.price for q in quotes]
        average = mean_price(prices)
        lowest = round_price(min(prices))
        if self.prefer_lowest_price and lowest < average:
            return FlightPriceResult(price=lowest, source=SOURCE_LOWEST, lowest_price=lowest)
        return FlightPriceResult(price=average, source=SOURCE, lowest_price=lowest)

    async def get_price(self, query: FlightQuery) -> FlightPriceResult:
        if query.is_same_location:
            return same_location_result(SOURCE)
        if not await self.is_available():
            raise ConfigurationError("Amadeus API credentials not configured", stage="provider")

        if self.cache:
            cached = self.cache.lookup(query, self.version_tag)
            if cached:
                return cached

        origin = resolve_airport_code(query.origin, self.geocoder)
        destination = resolve_airport_code(query.destination, self.geocoder)
        if not origin or not destination:
            missing = query.origin if not origin else query.destination
            raise ProviderError(f"No airport code known for {missing}", stage="provider")

        quotes = await self.client.search_offers(origin, destination, query.outbound_date, query.return_date)
        if not quotes:
            raise ProviderError(f"No offers for {origin}->{destination}", stage="provider")

        result = self.summarize(self.filter_quotes(quotes))
        logger.info(f"Amadeus {origin}->{destination}: ${result.price} ({result.source}), lowest ${result.lowest_price}")
        if self.cache:
            self.cache.store(query, self.version_tag, result)
        return result

    async def cleanup(self) -> None:
        await self.client.close()
