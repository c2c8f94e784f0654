import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import Callable, Iterable, Optional

from playwright.async_api import Page, Error as PlaywrightError

from flightprice.config import Settings
from flightprice.errors import ScrapeError
from flightprice.models import FlightPriceResult, FlightQuery, mean_price, same_location_result
from flightprice.scrapers.pipeline import GoogleFlightsPipeline, PipelineResult
from flightprice.scrapers.session import BrowserSession
from flightprice.services.cache import PersistentCache
from flightprice.strategies.base import PricingStrategy

logger = logging.getLogger(__name__)

SOURCE = "Google Flights"
SOURCE_PAGE_TEXT = "Google Flights (page text)"
VERSION_TAG = "google-flights-v1"

SessionFactory = Callable[[], AbstractAsyncContextManager]
PipelineFactory = Callable[[Page, Settings], GoogleFlightsPipeline]


def representative_price(result: PipelineResult) -> FlightPriceResult:
    """Mean of the top flights when there are any, otherwise of everything found."""
    extraction = result.extraction
    if extraction.options:
        chosen = extraction.top_options or extraction.options
        price = mean_price([o.price for o in chosen])
        source = SOURCE
    else:
        price = mean_price(extraction.prices)
        source = SOURCE_PAGE_TEXT
    return FlightPriceResult(
        price=price,
        source=source,
        options=extraction.options or None,
        search_url=result.search_url,
        echoed_destination=result.echoed_destination,
        filters_applied=result.filters_applied,
    )


class ScrapeStrategy(PricingStrategy):
    """
    Live Google Flights scrape behind the persistent cache.

    One query runs at a time; each runs in its own browser session.
    """
    name = "scrape"
    label = "Google Flights"

    def __init__(
        self,
        settings: Settings,
        cache: Optional[PersistentCache] = None,
        session_factory: Optional[SessionFactory] = None,
        pipeline_factory: PipelineFactory = GoogleFlightsPipeline,
    ):
        self.settings = settings
        self.cache = cache
        self.session_factory = session_factory or (lambda: BrowserSession(headless=settings.headless))
        self.pipeline_factory = pipeline_factory
        self._lock = asyncio.Lock()
        self._available: Optional[bool] = None

    async def is_available(self) -> bool:
        """Probe once whether a browser can be started at all."""
        if self._available is None:
            try:
                async with self.session_factory():
                    pass
                self._available = True
            except (PlaywrightError, OSError) as e:
                logger.warning(f"Browser unavailable: {e}")
                self._available = False
        return self._available

    def needs_fresh_data(self, queries: Iterable[FlightQuery]) -> bool:
        if self.cache is None:
            return True
        return any(self.cache.lookup(q, VERSION_TAG) is None for q in queries)

    async def scrape(self, query: FlightQuery) -> FlightPriceResult:
        async with self._lock:
            async with self.session_factory() as page:
                pipeline = self.pipeline_factory(page, self.settings)
                result = await pipeline.run(query)
        priced = representative_price(result)
        logger.info(
            f"Scraped {query.label}: ${priced.price} from "
            f"{len(result.extraction.options) or len(result.extraction.prices)} results "
            f"({result.extraction.tactic}, filters applied: {result.filters_applied})"
        )
        return priced

    async def get_price(self, query: FlightQuery) -> FlightPriceResult:
        if query.is_same_location:
            return same_location_result(SOURCE)

        if self.cache:
            cached = self.cache.lookup(query, VERSION_TAG)
            if cached:
                return cached

        try:
            result = await self.scrape(query)
        except PlaywrightError as e:
            raise ScrapeError(f"Browser failure: {e}", stage="session") from e

        if self.cache:
            self.cache.store(query, VERSION_TAG, result)
        return result

    async def cleanup(self) -> None:
        # Sessions are scoped per query; nothing outlives a call.
        self._available = None
