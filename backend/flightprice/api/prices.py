import logging

from fastapi import APIRouter, Depends, HTTPException

from flightprice.errors import ConfigurationError, FlightPriceError, PricingUnavailableError
from flightprice.models import FlightQuery
from flightprice.schemas.price import PriceResolution, ResolveRequest
from flightprice.services.resolver import FlightPriceResolver, get_resolver

logger = logging.getLogger(__name__)

router = APIRouter()


def _error_detail(error: FlightPriceError) -> dict:
    detail = {"message": str(error), "stage": error.stage}
    if isinstance(error, PricingUnavailableError) and error.errors:
        detail["errors"] = [
            {"message": str(e), "stage": getattr(e, "stage", None)} for e in error.errors
        ]
    return detail


@router.post("/resolve", response_model=PriceResolution)
async def resolve_price(request: ResolveRequest, resolver: FlightPriceResolver = Depends(get_resolver)):
    """Resolve a round-trip price, falling back across strategies."""
    query = FlightQuery(
        origin=request.origin,
        destination=request.destination,
        outbound_date=request.outbound_date,
        return_date=request.return_date,
    )
    if request.strategy and request.strategy not in resolver.strategies:
        raise HTTPException(status_code=404, detail=f"Unknown pricing strategy '{request.strategy}'")

    try:
        if request.strategy and request.strategy != "hybrid":
            result = await resolver.get(request.strategy).get_price(query)
        else:
            result = await resolver.resolve(query, preferred=request.strategy)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=_error_detail(e))
    except FlightPriceError as e:
        logger.warning(f"Price resolution failed for {query.label}: {e}")
        raise HTTPException(status_code=502, detail=_error_detail(e))

    return PriceResolution.model_validate(result)


@router.get("/strategies")
async def strategy_status(resolver: FlightPriceResolver = Depends(get_resolver)):
    status = await resolver.get_status()
    return {
        "strategies": status,
        "total_available": sum(1 for s in status.values() if s["available"]),
    }
