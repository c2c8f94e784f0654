from flightprice.schemas.price import ResolveRequest, FlightOptionResponse, PriceResolution

__all__ = ["ResolveRequest", "FlightOptionResponse", "PriceResolution"]
