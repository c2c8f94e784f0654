from pydantic import BaseModel, field_validator, model_validator
from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional


StrategyName = Literal["hybrid", "scrape", "provider", "distance"]


class ResolveRequest(BaseModel):
    origin: str
    destination: str
    outbound_date: date
    return_date: Optional[date] = None
    strategy: Optional[StrategyName] = None

    @field_validator("origin", "destination")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @model_validator(mode="after")
    def return_after_outbound(self):
        if self.return_date and self.return_date < self.outbound_date:
            raise ValueError("return_date must not precede outbound_date")
        return self


class FlightOptionResponse(BaseModel):
    price: Decimal
    airlines: List[str] = []
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    duration: Optional[str] = None
    stops: int = -1
    origin_code: Optional[str] = None
    destination_code: Optional[str] = None
    is_top_flight: bool = False
    booking_caution: Optional[str] = None

    class Config:
        from_attributes = True


class PriceResolution(BaseModel):
    price: Decimal
    source: str
    search_url: Optional[str] = None
    lowest_price: Optional[Decimal] = None
    echoed_destination: Optional[str] = None
    filters_applied: Optional[bool] = None
    from_cache: bool = False
    options: Optional[List[FlightOptionResponse]] = None

    class Config:
        from_attributes = True
