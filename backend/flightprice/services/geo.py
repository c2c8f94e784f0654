from typing import Dict, Iterable, Optional, Protocol
from dataclasses import dataclass
from pathlib import Path
import csv
import math
import logging

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float
    region: Optional[str] = None

    def __post_init__(self):
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValueError(f"Non-finite coordinates: {self.latitude}, {self.longitude}")
        if not -90 <= self.latitude <= 90:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180 <= self.longitude <= 180:
            raise ValueError(f"Longitude out of range: {self.longitude}")


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in km between two points."""
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(a.latitude)) * math.cos(math.radians(b.latitude)) * math.sin(dlon / 2) ** 2
    )
    # Clamp float drift so antipodal points stay inside asin's domain
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_KM * 2 * math.asin(math.sqrt(h))


class Geocoder(Protocol):
    def lookup(self, name: str) -> Optional[Coordinates]:
        ...


@dataclass(frozen=True)
class KnownLocation:
    city: str
    country: str
    region: str
    latitude: float
    longitude: float
    airport_code: str


FALLBACK_LOCATIONS = [
    KnownLocation("Seoul", "South Korea", "Asia", 37.5665, 126.9780, "ICN"),
    KnownLocation("Tokyo", "Japan", "Asia", 35.6762, 139.6503, "HND"),
    KnownLocation("Osaka", "Japan", "Asia", 34.6937, 135.5023, "KIX"),
    KnownLocation("Beijing", "China", "Asia", 39.9042, 116.4074, "PEK"),
    KnownLocation("Shanghai", "China", "Asia", 31.2304, 121.4737, "PVG"),
    KnownLocation("Hong Kong", "China", "Asia", 22.3193, 114.1694, "HKG"),
    KnownLocation("Taipei", "Taiwan", "Asia", 25.0330, 121.5654, "TPE"),
    KnownLocation("Singapore", "Singapore", "Asia", 1.3521, 103.8198, "SIN"),
    KnownLocation("Bangkok", "Thailand", "Asia", 13.7563, 100.5018, "BKK"),
    KnownLocation("Delhi", "India", "Asia", 28.7041, 77.1025, "DEL"),
    KnownLocation("Dubai", "United Arab Emirates", "Middle East", 25.2048, 55.2708, "DXB"),
    KnownLocation("Istanbul", "Turkey", "Europe", 41.0082, 28.9784, "IST"),
    KnownLocation("London", "United Kingdom", "Europe", 51.5074, -0.1278, "LHR"),
    KnownLocation("Paris", "France", "Europe", 48.8566, 2.3522, "CDG"),
    KnownLocation("Barcelona", "Spain", "Europe", 41.3851, 2.1734, "BCN"),
    KnownLocation("Madrid", "Spain", "Europe", 40.4168, -3.7038, "MAD"),
    KnownLocation("Frankfurt", "Germany", "Europe", 50.1109, 8.6821, "FRA"),
    KnownLocation("Amsterdam", "Netherlands", "Europe", 52.3676, 4.9041, "AMS"),
    KnownLocation("Rome", "Italy", "Europe", 41.9028, 12.4964, "FCO"),
    KnownLocation("New York", "United States", "North America", 40.7128, -74.0060, "JFK"),
    KnownLocation("San Francisco", "United States", "North America", 37.7749, -122.4194, "SFO"),
    KnownLocation("Los Angeles", "United States", "North America", 34.0522, -118.2437, "LAX"),
    KnownLocation("Chicago", "United States", "North America", 41.8781, -87.6298, "ORD"),
    KnownLocation("Toronto", "Canada", "North America", 43.6532, -79.3832, "YYZ"),
    KnownLocation("Mexico City", "Mexico", "North America", 19.4326, -99.1332, "MEX"),
    KnownLocation("Sao Paulo", "Brazil", "South America", -23.5505, -46.6333, "GRU"),
    KnownLocation("Buenos Aires", "Argentina", "South America", -34.6037, -58.3816, "EZE"),
    KnownLocation("Sydney", "Australia", "Oceania", -33.8688, 151.2093, "SYD"),
    KnownLocation("Auckland", "New Zealand", "Oceania", -36.8485, 174.7633, "AKL"),
    KnownLocation("Johannesburg", "South Africa", "Africa", -26.2041, 28.0473, "JNB"),
    KnownLocation("Cairo", "Egypt", "Africa", 30.0444, 31.2357, "CAI"),
]


def city_part(name: str) -> str:
    """'Seoul, South Korea' -> 'seoul'."""
    return name.split(",")[0].strip().lower()


class StaticGeocoder:
    """
    In-memory geocoder over a fixed table of known locations.

    Matches the full name first, then the city part before the first comma.
    """

    def __init__(self, locations: Iterable[KnownLocation] = FALLBACK_LOCATIONS):
        self._by_name: Dict[str, KnownLocation] = {}
        for location in locations:
            self._by_name[location.city.lower()] = location
            self._by_name[f"{location.city}, {location.country}".lower()] = location

    def _find(self, name: str) -> Optional[KnownLocation]:
        key = " ".join(name.split()).lower()
        return self._by_name.get(key) or self._by_name.get(city_part(key))

    def lookup(self, name: str) -> Optional[Coordinates]:
        location = self._find(name)
        if not location:
            return None
        return Coordinates(location.latitude, location.longitude, location.region)

    def airport_code(self, name: str) -> Optional[str]:
        location = self._find(name)
        return location.airport_code if location else None

    @classmethod
    def from_csv(cls, path: Path) -> "StaticGeocoder":
        """Columns: city,country,region,latitude,longitude,airport_code."""
        locations = []
        with open(path, newline="", encoding="utf-8") as f:
            for row in csv.DictReader(f):
                try:
                    locations.append(KnownLocation(
                        city=row["city"].strip(),
                        country=row.get("country", "").strip(),
                        region=row.get("region", "").strip(),
                        latitude=float(row["latitude"]),
                        longitude=float(row["longitude"]),
                        airport_code=row.get("airport_code", "").strip().upper(),
                    ))
                except (KeyError, ValueError) as e:
                    logger.warning(f"Skipping bad coordinates row {row}: {e}")
        logger.info(f"Loaded {len(locations)} locations from {path}")
        return cls(locations)
