"""Value types shared by the scrapers, strategies and the cache."""
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Dict, Any


SAME_LOCATION_MARKER = "Same location"


def round_price(value) -> Decimal:
    """Round to whole currency units, halves going up."""
    return Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def mean_price(prices: List[Decimal]) -> Decimal:
    if not prices:
        raise ValueError("Cannot average an empty price list")
    return round_price(sum(prices, Decimal(0)) / len(prices))


def normalize_location(name: str) -> str:
    return " ".join(name.split()).lower()


@dataclass(frozen=True)
class FlightQuery:
    """A round-trip lookup. Immutable so it can be fingerprinted for the cache."""
    origin: str
    destination: str
    outbound_date: date
    return_date: Optional[date] = None

    def __post_init__(self):
        if not self.origin.strip() or not self.destination.strip():
            raise ValueError("Origin and destination are required")
        if self.return_date and self.return_date < self.outbound_date:
            raise ValueError("Return date precedes outbound date")

    @property
    def is_same_location(self) -> bool:
        return normalize_location(self.origin) == normalize_location(self.destination)

    @property
    def label(self) -> str:
        ret = self.return_date.isoformat() if self.return_date else "one-way"
        return f"{self.origin} -> {self.destination} ({self.outbound_date.isoformat()} / {ret})"


@dataclass
class FlightOption:
    """One flight row extracted from a results page."""
    price: Decimal
    airlines: List[str] = field(default_factory=list)
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    duration: Optional[str] = None
    duration_minutes: Optional[int] = None
    stops: int = -1  # -1 means unknown
    origin_code: Optional[str] = None
    destination_code: Optional[str] = None
    is_top_flight: bool = False
    booking_caution: Optional[str] = None

    def __post_init__(self):
        if self.price < 0:
            raise ValueError(f"Negative flight price: {self.price}")

    @property
    def identity(self) -> tuple:
        return (
            self.price, self.origin_code, self.destination_code,
            self.departure_time, self.arrival_time, self.duration,
        )


@dataclass
class FlightPriceResult:
    """A resolved price plus its provenance."""
    price: Decimal
    source: str
    options: Optional[List[FlightOption]] = None
    search_url: Optional[str] = None
    lowest_price: Optional[Decimal] = None
    echoed_destination: Optional[str] = None
    filters_applied: Optional[bool] = None
    from_cache: bool = False

    def __post_init__(self):
        if self.price < 0:
            raise ValueError(f"Negative resolved price: {self.price}")

    @property
    def is_same_location(self) -> bool:
        return self.price == 0 and SAME_LOCATION_MARKER in self.source

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": float(self.price),
            "source": self.source,
            "search_url": self.search_url,
            "lowest_price": float(self.lowest_price) if self.lowest_price is not None else None,
            "echoed_destination": self.echoed_destination,
            "filters_applied": self.filters_applied,
            "from_cache": self.from_cache,
            "options": [
                {**asdict(option), "price": float(option.price)}
                for option in self.options
            ] if self.options is not None else None,
        }


def same_location_result(label: str) -> FlightPriceResult:
    return FlightPriceResult(price=Decimal(0), source=f"{label} ({SAME_LOCATION_MARKER})")


@dataclass(frozen=True)
class CacheEntry:
    """Stored lookup result. Entries are replaced wholesale, never patched."""
    price: Decimal
    timestamp: datetime
    source: str
    url: Optional[str] = None
    echoed_destination: Optional[str] = None
    lowest_price: Optional[Decimal] = None

    def __post_init__(self):
        for value in (self.price, self.lowest_price):
            if value is not None and (not value.is_finite() or value < 0):
                raise ValueError(f"Invalid cached price: {value}")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "price": str(self.price),
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
        }
        if self.url:
            data["url"] = self.url
        if self.echoed_destination:
            data["selectedDestination"] = self.echoed_destination
        if self.lowest_price is not None:
            data["lowestPrice"] = str(self.lowest_price)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        timestamp = datetime.fromisoformat(str(data["timestamp"]).replace("Z", "+00:00"))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        lowest = data.get("lowestPrice")
        return cls(
            price=Decimal(str(data["price"])),
            timestamp=timestamp,
            source=data["source"],
            url=data.get("url"),
            echoed_destination=data.get("selectedDestination"),
            lowest_price=Decimal(str(lowest)) if lowest is not None else None,
        )

    def to_result(self) -> FlightPriceResult:
        return FlightPriceResult(
            price=self.price,
            source=self.source,
            search_url=self.url,
            lowest_price=self.lowest_price,
            echoed_destination=self.echoed_destination,
            from_cache=True,
        )
