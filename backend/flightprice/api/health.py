from fastapi import APIRouter, Depends

from flightprice.services.cache import PersistentCache
from flightprice.services.resolver import FlightPriceResolver, get_resolver

router = APIRouter()


@router.get("/health")
async def health_check(resolver: FlightPriceResolver = Depends(get_resolver)):
    caches = {}
    for name, strategy in resolver.strategies.items():
        cache = getattr(strategy, "cache", None)
        if isinstance(cache, PersistentCache):
            caches[name] = cache.stats()

    status = await resolver.get_status()
    any_available = any(s["available"] for s in status.values())
    return {
        "status": "ok" if any_available else "degraded",
        "caches": caches,
        "strategies": {name: s["available"] for name, s in status.items()},
    }
