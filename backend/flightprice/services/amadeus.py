import re
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from flightprice.errors import ConfigurationError, ProviderError
from flightprice.services.retry import API_RETRY, RetryPolicy

logger = logging.getLogger(__name__)


def parse_iso_duration(value: Optional[str]) -> Optional[int]:
    """'PT12H30M' -> 750 minutes. Returns None for anything else."""
    if not value:
        return None
    match = re.fullmatch(r"PT(?:(\d+)H)?(?:(\d+)M)?", value)
    if not match or not any(match.groups()):
        return None
    hours, minutes = match.groups()
    return int(hours or 0) * 60 + int(minutes or 0)


@dataclass
class ProviderQuote:
    """One itemized offer from the pricing API."""
    price: Decimal
    currency: str
    validating_carriers: List[str] = field(default_factory=list)
    segment_carriers: List[str] = field(default_factory=list)
    duration_minutes: Optional[int] = None

    @property
    def carriers(self) -> List[str]:
        seen: List[str] = []
        for code in self.validating_carriers + self.segment_carriers:
            if code not in seen:
                seen.append(code)
        return seen


class AmadeusClient:
    """
    Flight Offers Search over the Amadeus self-service REST API.

    Holds the OAuth2 client-credentials token until shortly before expiry.
    """
    TOKEN_PATH = "/v1/security/oauth2/token"
    OFFERS_PATH = "/v2/shopping/flight-offers"
    MAX_OFFERS = 100
    MAX_PRICE = 5000

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = "https://test.api.amadeus.com",
        timeout: float = 15.0,
        currency: str = "USD",
        retry: RetryPolicy = API_RETRY,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.currency = currency
        self.retry = retry
        self._token: Optional[str] = None
        self._token_expires: Optional[datetime] = None

    def is_available(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def _get_token(self) -> str:
        if self._token and self._token_expires and datetime.now(timezone.utc) < self._token_expires:
            return self._token

        if not self.is_available():
            raise ConfigurationError("Amadeus API credentials not configured", stage="provider")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{self.TOKEN_PATH}",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    },
                )
                response.raise_for_status()
                data = response.json()
            token = data["access_token"]
            expires_in = int(data.get("expires_in", 1799))
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (400, 401):
                raise ConfigurationError("Amadeus rejected the API credentials", stage="provider") from e
            raise ProviderError(f"Amadeus auth failed: HTTP {e.response.status_code}", stage="provider") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Amadeus auth failed: {e}", stage="provider") from e
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(f"Amadeus auth returned an unreadable token response: {e}", stage="provider") from e

        self._token = token
        self._token_expires = datetime.now(timezone.utc) + timedelta(seconds=expires_in - 60)
        return self._token

    def _search_params(self, origin: str, destination: str,
                       departure_date: date, return_date: Optional[date]) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "originLocationCode": origin,
            "destinationLocationCode": destination,
            "departureDate": departure_date.isoformat(),
            "adults": 1,
            "currencyCode": self.currency,
            "max": self.MAX_OFFERS,
            "nonStop": "false",
            "travelClass": "ECONOMY",
            "maxPrice": self.MAX_PRICE,
        }
        if return_date:
            params["returnDate"] = return_date.isoformat()
        return params

    async def _fetch_offers(self, params: Dict[str, Any]) -> Dict[str, Any]:
        token = await self._get_token()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}{self.OFFERS_PATH}",
                    headers={"Authorization": f"Bearer {token}"},
                    params=params,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                # Token revoked early; force a new one on the next attempt
                self._token = None
            raise ProviderError(f"Amadeus search failed: HTTP {e.response.status_code}", stage="provider") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Amadeus search failed: {e}", stage="provider") from e
        except ValueError as e:
            raise ProviderError(f"Amadeus search returned non-JSON body: {e}", stage="provider") from e
        if not isinstance(data, dict):
            raise ProviderError("Amadeus search returned an unexpected payload", stage="provider")
        return data

    @staticmethod
    def parse_offers(data: Dict[str, Any], default_currency: str = "USD") -> List[ProviderQuote]:
        quotes = []
        for offer in data.get("data", []):
            try:
                price_val = offer.get("price", {}).get("grandTotal") or offer.get("price", {}).get("total")
                if not price_val:
                    continue
                segment_carriers = []
                itineraries = offer.get("itineraries", [])
                for itinerary in itineraries:
                    for segment in itinerary.get("segments", []):
                        code = segment.get("carrierCode")
                        if code:
                            segment_carriers.append(code)
                quotes.append(ProviderQuote(
                    price=Decimal(str(price_val)),
                    currency=offer.get("price", {}).get("currency", default_currency),
                    validating_carriers=list(offer.get("validatingAirlineCodes", [])),
                    segment_carriers=segment_carriers,
                    duration_minutes=parse_iso_duration(itineraries[0].get("duration")) if itineraries else None,
                ))
            except (InvalidOperation, AttributeError, TypeError):
                continue
        return quotes

    async def search_offers(
        self,
        origin: str,
        destination: str,
        departure_date: date,
        return_date: Optional[date] = None,
    ) -> List[ProviderQuote]:
        params = self._search_params(origin, destination, departure_date, return_date)
        logger.info(f"Amadeus search {origin}->{destination} {departure_date} / {return_date}")
        data = await self.retry.run(
            lambda attempt: self._fetch_offers(params),
            retry_on=(ProviderError,),
            name="amadeus",
        )
        quotes = self.parse_offers(data, self.currency)
        logger.info(f"Amadeus returned {len(quotes)} offers for {origin}->{destination}")
        return quotes

    async def close(self) -> None:
        self._token = None
        self._token_expires = None
