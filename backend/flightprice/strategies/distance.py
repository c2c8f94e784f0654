"""
Fare estimate from great-circle distance alone.

Round-trip fare = (base fare + tiered per-km charge) x region x popularity.
Each tier charges less per km than the one before, so the curve is
monotonic and flattens for long haul.
"""
import logging
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional, Tuple

from flightprice.errors import ConfigurationError, GeocodingError
from flightprice.models import FlightPriceResult, FlightQuery, round_price, same_location_result
from flightprice.services.geo import Coordinates, Geocoder, city_part, haversine_km
from flightprice.strategies.base import PricingStrategy

logger = logging.getLogger(__name__)

SOURCE = "Distance-based calculation"
SOURCE_LABEL = "Distance-based"

BASE_FARE = 120.0

# (upper bound km, USD per km) for one-way distance
DISTANCE_TIERS: List[Tuple[float, float]] = [
    (1000, 0.16),
    (4000, 0.11),
    (8000, 0.08),
    (float("inf"), 0.06),
]

REGION_MULTIPLIERS: Dict[str, float] = {
    "Oceania": 1.15,
    "Africa": 1.15,
    "South America": 1.1,
    "Middle East": 1.05,
}

# Busy hubs see more competition and cheaper fares
HUB_CITIES: FrozenSet[str] = frozenset({
    "london", "new york", "paris", "tokyo", "seoul", "singapore",
    "dubai", "frankfurt", "amsterdam", "los angeles", "hong kong",
})
HUB_MULTIPLIER = 0.92


def tiered_distance_cost(distance_km: float) -> float:
    cost = 0.0
    lower = 0.0
    for upper, rate in DISTANCE_TIERS:
        if distance_km <= lower:
            break
        cost += (min(distance_km, upper) - lower) * rate
        lower = upper
    return cost


def estimate_round_trip_fare(distance_km: float, multiplier: float = 1.0) -> float:
    if distance_km < 0:
        raise ValueError(f"Negative distance: {distance_km}")
    return (BASE_FARE + 2 * tiered_distance_cost(distance_km)) * multiplier


class DistanceModelStrategy(PricingStrategy):
    name = "distance"
    label = "Distance"

    def __init__(self, geocoder: Optional[Geocoder]):
        self.geocoder = geocoder

    async def is_available(self) -> bool:
        return self.geocoder is not None

    def _coordinates(self, location: str) -> Coordinates:
        coordinates = self.geocoder.lookup(location)
        if coordinates is None:
            raise GeocodingError(location)
        return coordinates

    @staticmethod
    def multiplier(origin: str, destination: str, a: Coordinates, b: Coordinates) -> float:
        region = max(REGION_MULTIPLIERS.get(a.region or "", 1.0), REGION_MULTIPLIERS.get(b.region or "", 1.0))
        hubs = sum(1 for name in (origin, destination) if city_part(name) in HUB_CITIES)
        popularity = HUB_MULTIPLIER if hubs == 2 else 1.0
        return region * popularity

    async def get_price(self, query: FlightQuery) -> FlightPriceResult:
        if query.is_same_location:
            return same_location_result(SOURCE_LABEL)
        if self.geocoder is None:
            raise ConfigurationError("No geocoder configured", stage="distance")

        a = self._coordinates(query.origin)
        b = self._coordinates(query.destination)
        distance = haversine_km(a, b)
        fare = estimate_round_trip_fare(distance, self.multiplier(query.origin, query.destination, a, b))
        price = round_price(Decimal(str(fare)))
        logger.info(f"Distance {query.origin} -> {query.destination}: {distance:.0f} km, ${price}")
        return FlightPriceResult(price=price, source=SOURCE)
