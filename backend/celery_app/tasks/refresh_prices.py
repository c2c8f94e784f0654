import asyncio
from datetime import date, timedelta
from typing import List, Optional, Tuple

from celery import shared_task
from celery.utils.log import get_task_logger

from flightprice.config import get_settings
from flightprice.errors import FlightPriceError
from flightprice.models import FlightQuery
from flightprice.services.resolver import FlightPriceResolver, build_resolver

logger = get_task_logger(__name__)


def parse_route(route: str) -> Tuple[str, str]:
    """'Seoul, South Korea -> Tokyo, Japan' -> ('Seoul, South Korea', 'Tokyo, Japan')."""
    origin, sep, destination = route.partition("->")
    if not sep or not origin.strip() or not destination.strip():
        raise ValueError(f"Route must look like 'Origin -> Destination', got '{route}'")
    return origin.strip(), destination.strip()


def refresh_dates(lead_weeks: List[int], stay_days: int, today: Optional[date] = None) -> List[Tuple[date, date]]:
    today = today or date.today()
    return [
        (today + timedelta(weeks=w), today + timedelta(weeks=w, days=stay_days))
        for w in lead_weeks
    ]


async def refresh_queries(resolver: FlightPriceResolver, queries: List[FlightQuery], strategy: str) -> dict:
    """Run each query through one strategy; failures are counted, not raised."""
    refreshed, failed = [], []
    try:
        for query in queries:
            try:
                result = await resolver.get(strategy).get_price(query)
                refreshed.append({"query": query.label, "price": float(result.price), "source": result.source})
            except FlightPriceError as e:
                logger.error(f"Refresh failed for {query.label}: {e}")
                failed.append({"query": query.label, "error": str(e), "stage": e.stage})
    finally:
        await resolver.cleanup()
    return {"refreshed": refreshed, "failed": failed}


@shared_task(bind=True, max_retries=2, default_retry_delay=300)
def refresh_route_price(self, origin: str, destination: str, outbound_date: str,
                        return_date: Optional[str] = None, strategy: str = "scrape"):
    """Re-fetch one route, bypassing fresh cache entries and rewriting them."""
    query = FlightQuery(
        origin=origin,
        destination=destination,
        outbound_date=date.fromisoformat(outbound_date),
        return_date=date.fromisoformat(return_date) if return_date else None,
    )
    resolver = build_resolver(get_settings(), training_mode=True)
    logger.info(f"Refreshing {query.label} via {strategy}")
    try:
        summary = asyncio.run(refresh_queries(resolver, [query], strategy))
    except Exception as e:
        logger.exception(f"Refresh task crashed for {query.label}")
        raise self.retry(exc=e)
    return summary


@shared_task
def refresh_tracked_routes():
    settings = get_settings()
    queued = 0
    for route in settings.tracked_routes:
        try:
            origin, destination = parse_route(route)
        except ValueError as e:
            logger.error(str(e))
            continue
        for outbound, inbound in refresh_dates(settings.refresh_lead_weeks, settings.refresh_stay_days):
            refresh_route_price.delay(origin, destination, outbound.isoformat(), inbound.isoformat())
            queued += 1
    logger.info(f"Queued {queued} refreshes for {len(settings.tracked_routes)} tracked routes")
    return queued
