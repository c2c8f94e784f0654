import logging
from datetime import timedelta
from typing import Dict, List, Optional

from flightprice.config import Settings, get_settings
from flightprice.errors import FlightPriceError, PricingUnavailableError
from flightprice.models import FlightPriceResult, FlightQuery
from flightprice.services.alliances import CarrierAllianceTable
from flightprice.services.amadeus import AmadeusClient
from flightprice.services.cache import PersistentCache
from flightprice.services.geo import StaticGeocoder
from flightprice.strategies.base import PricingStrategy
from flightprice.strategies.distance import DistanceModelStrategy
from flightprice.strategies.hybrid import HybridResolver
from flightprice.strategies.provider import ProviderApiStrategy
from flightprice.strategies.scrape import ScrapeStrategy

logger = logging.getLogger(__name__)

SCRAPE_CACHE_FILE = "google-flights-cache.json"
PROVIDER_CACHE_FILE = "amadeus-flight-cache.json"

STRATEGY_TYPES = {"scrape": "scraper", "provider": "api", "distance": "model"}


class FlightPriceResolver:
    """
    Named strategies plus an ordered fallback across them.

    ``resolve`` tries the preferred strategy first and falls through to the
    next available one whenever a strategy raises.
    """

    DEFAULT_ORDER = ["hybrid", "scrape", "provider", "distance"]

    def __init__(self, strategies: Dict[str, PricingStrategy], order: Optional[List[str]] = None):
        self.strategies = strategies
        self.order = [name for name in (order or self.DEFAULT_ORDER) if name in strategies]

    def get(self, name: str) -> PricingStrategy:
        try:
            return self.strategies[name]
        except KeyError:
            raise KeyError(f"Unknown pricing strategy '{name}'") from None

    async def get_status(self) -> dict:
        status = {}
        for name in self.order:
            strategy = self.strategies[name]
            status[name] = {
                "available": await strategy.is_available(),
                "label": strategy.label,
                "type": STRATEGY_TYPES.get(name, "combined"),
            }
        return status

    async def resolve(self, query: FlightQuery, preferred: Optional[str] = None) -> FlightPriceResult:
        names = list(self.order)
        if preferred:
            self.get(preferred)
            names.sort(key=lambda n: 0 if n == preferred else 1)

        errors: List[Exception] = []
        for name in names:
            strategy = self.strategies[name]
            if not await strategy.is_available():
                logger.debug(f"Skipping {name} - not available")
                continue
            logger.info(f"Trying {name} for {query.label}")
            try:
                return await strategy.get_price(query)
            except FlightPriceError as e:
                logger.warning(f"{name} failed for {query.label}: {e}")
                errors.append(e)

        if not errors:
            raise PricingUnavailableError("No pricing strategy is available")
        raise PricingUnavailableError(errors=errors)

    async def cleanup(self) -> None:
        seen = set()
        for strategy in self.strategies.values():
            if id(strategy) in seen:
                continue
            seen.add(id(strategy))
            try:
                await strategy.cleanup()
            except Exception as e:
                logger.warning(f"Cleanup of {strategy.name} failed: {e}")


def build_geocoder(settings: Settings) -> StaticGeocoder:
    if settings.coordinates_csv:
        return StaticGeocoder.from_csv(settings.coordinates_csv)
    return StaticGeocoder()


def build_resolver(settings: Settings, training_mode: Optional[bool] = None) -> FlightPriceResolver:
    """Construct every service once and wire the strategies together."""
    training = settings.training_mode if training_mode is None else training_mode
    ttl = timedelta(hours=settings.cache_ttl_hours)
    geocoder = build_geocoder(settings)

    provider = ProviderApiStrategy(
        client=AmadeusClient(
            client_id=settings.amadeus_client_id,
            client_secret=settings.amadeus_client_secret,
            base_url=settings.amadeus_base_url,
            timeout=settings.amadeus_timeout_seconds,
            currency=settings.search_currency,
        ),
        alliances=CarrierAllianceTable(),
        cache=PersistentCache(settings.cache_dir / PROVIDER_CACHE_FILE, ttl=ttl, training_mode=training),
        geocoder=geocoder,
        major_carriers_only=settings.filter_major_carriers_only,
        prefer_lowest_price=settings.prefer_lowest_provider_price,
    )
    distance = DistanceModelStrategy(geocoder)
    scrape = ScrapeStrategy(
        settings,
        cache=PersistentCache(settings.cache_dir / SCRAPE_CACHE_FILE, ttl=ttl, training_mode=training),
    )
    hybrid = HybridResolver(provider, distance, max_discrepancy_percent=settings.max_discrepancy_percent)

    return FlightPriceResolver({
        "hybrid": hybrid,
        "scrape": scrape,
        "provider": provider,
        "distance": distance,
    })


_resolver: Optional[FlightPriceResolver] = None


def get_resolver() -> FlightPriceResolver:
    """Process-wide resolver for the API layer."""
    global _resolver
    if _resolver is None:
        _resolver = build_resolver(get_settings())
    return _resolver


async def shutdown_resolver() -> None:
    global _resolver
    if _resolver is not None:
        await _resolver.cleanup()
        _resolver = None
