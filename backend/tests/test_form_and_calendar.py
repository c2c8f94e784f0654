"""Tests for location entry and date selection."""
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from flightprice.errors import NotFoundError
from flightprice.scrapers import targets
from flightprice.scrapers.calendar import CalendarNavigator, months_between, parse_month_heading, typed_date
from flightprice.scrapers.form_fields import clear_field, destination_matches, fill_location, sanitize_location
from flightprice.scrapers.locator import Locator


class TestLocationText:
    def test_sanitize_drops_commas(self):
        assert sanitize_location("Seoul,  South Korea") == "Seoul South Korea"

    @pytest.mark.parametrize("requested,accepted", [
        ("Tokyo, Japan", "Tokyo"),
        ("Tokyo, Japan", "Tokyo, Japan"),
        ("Tokyo", "Tokyo Haneda Airport"),
        ("New York, USA", "new york"),
    ])
    def test_destination_matches(self, requested, accepted):
        assert destination_matches(requested, accepted)

    @pytest.mark.parametrize("accepted", ["Osaka", "", None])
    def test_destination_mismatch(self, accepted):
        assert not destination_matches("Tokyo, Japan", accepted)


class TestClearField:
    @pytest.mark.asyncio
    async def test_value_reset(self, fake_page, fake_element):
        field = fake_element(value="Busan")
        page = fake_page({"input": [field]})

        assert await clear_field(page, field)
        assert page.keyboard.pressed == []

    @pytest.mark.asyncio
    async def test_select_all_when_reset_fails(self, fake_page, fake_element):
        field = fake_element(value="Busan", reset_works=False)
        page = fake_page({"input": [field]})

        assert await clear_field(page, field)
        assert page.keyboard.pressed[:2] == ["Control+A", "Delete"]
        assert field.value == ""


class TestFillLocation:
    @pytest.mark.asyncio
    async def test_missing_field_raises_not_found(self, fake_page):
        with pytest.raises(NotFoundError) as exc:
            await fill_location(fake_page(), Locator(), targets.ORIGIN_INPUT, "Seoul", stage="origin")

        assert exc.value.stage == "origin"
        assert "origin input" in str(exc.value)

    @pytest.mark.asyncio
    async def test_types_sanitized_value_and_returns_accepted_text(self, fake_page, fake_element):
        field = fake_element(value="Busan")
        page = fake_page({targets.ORIGIN_INPUT.selectors[0]: [field]})

        with patch("flightprice.scrapers.form_fields.asyncio.sleep", new=AsyncMock()):
            accepted = await fill_location(page, Locator(), targets.ORIGIN_INPUT, "Seoul, South Korea", stage="origin")

        assert accepted == "Seoul South Korea"
        assert page.keyboard.typed == ["Seoul South Korea"]
        # No suggestion list rendered, so Enter accepts the text
        assert page.keyboard.pressed == ["Enter"]

    @pytest.mark.asyncio
    async def test_clicks_first_suggestion(self, fake_page, fake_element):
        field = fake_element(value="")
        suggestion = fake_element(text="Tokyo, Japan")
        page = fake_page({
            targets.DESTINATION_INPUT.selectors[0]: [field],
            targets.SUGGESTION_LIST: [suggestion],
            targets.FIRST_SUGGESTION: [suggestion],
        })

        with patch("flightprice.scrapers.form_fields.asyncio.sleep", new=AsyncMock()):
            await fill_location(page, Locator(), targets.DESTINATION_INPUT, "Tokyo", stage="destination")

        assert suggestion.clicks == 1
        assert "Enter" not in page.keyboard.pressed


class TestCalendarHelpers:
    def test_month_heading(self):
        assert parse_month_heading("November 2026") == date(2026, 11, 1)
        assert parse_month_heading("Nov 2026") == date(2026, 11, 1)
        assert parse_month_heading("Departure") is None

    def test_months_between(self):
        assert months_between(date(2026, 10, 1), date(2027, 1, 1)) == 3
        assert months_between(date(2026, 10, 1), date(2026, 8, 1)) == -2

    def test_typed_date(self):
        assert typed_date(date(2026, 11, 2)) == "Nov 2, 2026"


class TestCalendarNavigator:
    @pytest.mark.asyncio
    async def test_visible_month_needs_no_navigation(self, fake_page, fake_element):
        page = fake_page({targets.MONTH_HEADING: [fake_element(text="November 2026")]})

        assert await CalendarNavigator(Locator()).navigate_to_month(page, date(2026, 11, 2))

    @pytest.mark.asyncio
    async def test_navigation_is_bounded(self, fake_page, fake_element):
        next_button = fake_element()
        page = fake_page({
            targets.MONTH_HEADING: [fake_element(text="October 2026")],
            targets.NEXT_MONTH: [next_button],
        })

        with patch("flightprice.scrapers.calendar.asyncio.sleep", new=AsyncMock()):
            found = await CalendarNavigator(Locator(), max_month_clicks=2).navigate_to_month(page, date(2026, 12, 1))

        assert not found
        assert next_button.clicks == 3

    @pytest.mark.asyncio
    async def test_day_clicked_by_aria_label(self, fake_page, fake_element):
        day = fake_element()
        page = fake_page({'[role="button"][aria-label*="November 2, 2026"]': [day]})

        assert await CalendarNavigator(Locator()).click_day(page, date(2026, 11, 2))
        assert day.clicks == 1

    @pytest.mark.asyncio
    async def test_typed_fallback(self, fake_page, fake_element):
        date_input = fake_element(value="")
        page = fake_page({targets.DEPARTURE_INPUT.selectors[0]: [date_input]})

        await CalendarNavigator(Locator()).select_day(page, date(2026, 11, 2), targets.DEPARTURE_INPUT)

        assert page.keyboard.typed == ["Nov 2, 2026"]
        assert page.keyboard.pressed[-1] == "Enter"

    @pytest.mark.asyncio
    async def test_unselectable_day_raises(self, fake_page):
        with pytest.raises(NotFoundError) as exc:
            await CalendarNavigator(Locator()).select_day(fake_page(), date(2026, 11, 2), targets.DEPARTURE_INPUT)

        assert exc.value.stage == "dates"
