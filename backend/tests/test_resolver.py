"""Tests for FlightPriceResolver fallback ordering and wiring."""
from decimal import Decimal

import pytest

from flightprice.errors import PricingUnavailableError, ProviderError, ScrapeError
from flightprice.services.resolver import (
    PROVIDER_CACHE_FILE,
    SCRAPE_CACHE_FILE,
    FlightPriceResolver,
    build_resolver,
)
from flightprice.strategies.distance import DistanceModelStrategy
from flightprice.strategies.hybrid import HybridResolver
from flightprice.strategies.provider import ProviderApiStrategy


class TestResolve:
    @pytest.mark.asyncio
    async def test_falls_through_to_next_strategy(self, stub_strategy, query):
        hybrid = stub_strategy(name="hybrid", error=ProviderError("down"))
        scrape = stub_strategy(name="scrape", price=512, source="Google Flights")
        resolver = FlightPriceResolver({"hybrid": hybrid, "scrape": scrape})

        result = await resolver.resolve(query)

        assert result.price == Decimal(512)
        assert hybrid.calls == 1

    @pytest.mark.asyncio
    async def test_preferred_strategy_runs_first(self, stub_strategy, query):
        hybrid = stub_strategy(name="hybrid", price=450)
        distance = stub_strategy(name="distance", price=480)
        resolver = FlightPriceResolver({"hybrid": hybrid, "distance": distance})

        result = await resolver.resolve(query, preferred="distance")

        assert result.price == Decimal(480)
        assert hybrid.calls == 0

    @pytest.mark.asyncio
    async def test_unavailable_strategies_are_skipped(self, stub_strategy, query):
        scrape = stub_strategy(name="scrape", price=500, available=False)
        provider = stub_strategy(name="provider", price=450)
        resolver = FlightPriceResolver({"scrape": scrape, "provider": provider})

        assert (await resolver.resolve(query)).price == Decimal(450)
        assert scrape.calls == 0

    @pytest.mark.asyncio
    async def test_every_failure_is_reported(self, stub_strategy, query):
        resolver = FlightPriceResolver({
            "scrape": stub_strategy(name="scrape", error=ScrapeError("blocked", stage="blocked")),
            "provider": stub_strategy(name="provider", error=ProviderError("down", stage="provider")),
        })

        with pytest.raises(PricingUnavailableError) as exc:
            await resolver.resolve(query)

        assert [e.stage for e in exc.value.errors] == ["blocked", "provider"]

    @pytest.mark.asyncio
    async def test_nothing_available(self, stub_strategy, query):
        resolver = FlightPriceResolver({"distance": stub_strategy(name="distance", available=False)})

        with pytest.raises(PricingUnavailableError, match="No pricing strategy is available"):
            await resolver.resolve(query)

    @pytest.mark.asyncio
    async def test_unknown_preferred_strategy(self, stub_strategy, query):
        resolver = FlightPriceResolver({"distance": stub_strategy(name="distance", price=1)})

        with pytest.raises(KeyError):
            await resolver.resolve(query, preferred="scrape")

    def test_order_ignores_missing_names(self, stub_strategy):
        resolver = FlightPriceResolver({"distance": stub_strategy(), "scrape": stub_strategy()})
        assert resolver.order == ["scrape", "distance"]

    @pytest.mark.asyncio
    async def test_status(self, stub_strategy):
        resolver = FlightPriceResolver({
            "hybrid": stub_strategy(label="Amadeus + Distance"),
            "scrape": stub_strategy(label="Google Flights", available=False),
        })

        status = await resolver.get_status()

        assert status["hybrid"] == {"available": True, "label": "Amadeus + Distance", "type": "combined"}
        assert status["scrape"]["type"] == "scraper"
        assert status["scrape"]["available"] is False

    @pytest.mark.asyncio
    async def test_cleanup_visits_shared_strategy_once(self, stub_strategy):
        shared = stub_strategy()
        resolver = FlightPriceResolver({"provider": shared, "alias": shared})

        await resolver.cleanup()

        assert shared.cleaned_up == 1


class TestBuildResolver:
    def test_wiring(self, settings):
        resolver = build_resolver(settings)

        assert resolver.order == ["hybrid", "scrape", "provider", "distance"]
        hybrid = resolver.get("hybrid")
        assert isinstance(hybrid, HybridResolver)
        assert isinstance(hybrid.primary, ProviderApiStrategy)
        assert isinstance(hybrid.secondary, DistanceModelStrategy)
        assert hybrid.primary is resolver.get("provider")
        assert hybrid.label == "Amadeus + Distance"

    def test_cache_files(self, settings):
        resolver = build_resolver(settings)

        assert resolver.get("scrape").cache.path == settings.cache_dir / SCRAPE_CACHE_FILE
        assert resolver.get("provider").cache.path == settings.cache_dir / PROVIDER_CACHE_FILE

    def test_training_mode_override(self, settings):
        resolver = build_resolver(settings, training_mode=True)

        assert resolver.get("scrape").cache.training_mode
        assert resolver.get("provider").cache.training_mode

    @pytest.mark.asyncio
    async def test_provider_unavailable_without_credentials(self, settings):
        resolver = build_resolver(settings)

        status = await resolver.get_status()

        assert status["provider"]["available"] is False
        assert status["distance"]["available"] is True
        assert status["hybrid"]["available"] is True

    def test_coordinates_csv(self, settings, tmp_path):
        csv_path = tmp_path / "coords.csv"
        csv_path.write_text(
            "city,country,region,latitude,longitude,airport_code\n"
            "Reykjavik,Iceland,Europe,64.1466,-21.9426,kef\n"
            "Nowhere,,,not-a-number,0,\n"
        )

        resolver = build_resolver(settings.model_copy(update={"coordinates_csv": csv_path}))
        geocoder = resolver.get("distance").geocoder

        assert geocoder.lookup("Reykjavik, Iceland") is not None
        assert geocoder.airport_code("Reykjavik") == "KEF"
        assert geocoder.lookup("Seoul") is None
