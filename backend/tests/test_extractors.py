"""
Tests for result-page extraction.

Row parsing is exercised on the dict snapshots the page script produces, so
no browser is needed.
"""
from decimal import Decimal

import pytest

from flightprice.scrapers.extractors import (
    PriceExtractionHeuristics,
    PriceValidator,
    RowParser,
    RowSnapshot,
    extract_prices_from_text,
    is_non_carrier_text,
    is_top_section,
    parse_duration_minutes,
    parse_price_label,
    parse_price_text,
    parse_sections,
    parse_stops,
    split_carrier_names,
)


def korean_air_row(**overrides):
    row = {
        "texts": ["9:05 AM", "11:25 AM", "Korean Air", "2 hr 20 min", "Nonstop", "ICN", "NRT", "$412"],
        "aria_labels": [
            "412 US dollars",
            "Leaves Incheon International Airport at 9:05 AM on Monday, November 2 "
            "and arrives at Narita International Airport at 11:25 AM",
        ],
        "img_alts": [],
        "full_text": "9:05 AM – 11:25 AM Korean Air 2 hr 20 min Nonstop ICN–NRT $412",
        "timed_row_texts": [],
    }
    row.update(overrides)
    return row


# =============================================================================
# Text rules
# =============================================================================

class TestSplitCarrierNames:
    @pytest.mark.parametrize("text,expected", [
        ("Korean Air, Delta", ["Korean Air", "Delta"]),
        ("China Airlines, Korean Air", ["China Airlines", "Korean Air"]),
        ("KoreanAir, Delta", ["KoreanAir", "Delta"]),
        ("China AirlinesKorean Air", ["China Airlines", "Korean Air"]),
        ("ChinaAirlinesKoreanAir", ["China Airlines", "Korean Air"]),
        ("Korean Air", ["Korean Air"]),
        ("EasyJet", ["EasyJet"]),
        ("", []),
    ])
    def test_examples(self, text, expected):
        assert split_carrier_names(text) == expected


class TestNonCarrierText:
    @pytest.mark.parametrize("text", [
        "1 stop", "2 stops", "Nonstop", "11 hr 5 min", "Self transfer", "Separate tickets booked together",
        "ICN", "Mon, Nov 2", "9:05 AM", "Avoids as much CO2 as 2,000 trees absorb", "+12% emissions", "",
    ])
    def test_rejected(self, text):
        assert is_non_carrier_text(text)

    @pytest.mark.parametrize("text", ["Korean Air", "Delta", "Asiana Airlines", "China Airlines"])
    def test_accepted(self, text):
        assert not is_non_carrier_text(text)


class TestFieldParsers:
    def test_price_label(self):
        assert parse_price_label("From 1,234 US dollars round trip") == 1234
        assert parse_price_label("Price unavailable") is None

    def test_price_text_must_be_whole_string(self):
        assert parse_price_text("$1,234") == 1234
        assert parse_price_text("US$412") == 412
        assert parse_price_text("from $412") is None

    def test_duration(self):
        assert parse_duration_minutes("2 hr 20 min") == 140
        assert parse_duration_minutes("13 hr") == 780
        assert parse_duration_minutes("Nonstop") is None

    def test_stops(self):
        assert parse_stops("Nonstop") == 0
        assert parse_stops("2 stops in HKG, TPE") == 2
        assert parse_stops("Korean Air") is None

    def test_price_bounds(self):
        assert PriceValidator.validate(19).is_valid is False
        assert PriceValidator.validate(20).is_valid
        assert PriceValidator.validate(50001).is_valid is False

    def test_top_section_headers(self):
        assert is_top_section("Top departing flights")
        assert is_top_section("Best flights")
        assert not is_top_section("Other departing flights")


# =============================================================================
# Row parsing
# =============================================================================

class TestRowParser:
    def test_parses_every_field(self):
        option = RowParser.parse(RowSnapshot.from_dict(korean_air_row()), is_top=True)

        assert option.price == Decimal(412)
        assert option.airlines == ["Korean Air"]
        assert option.departure_time == "9:05 AM"
        assert option.arrival_time == "11:25 AM"
        assert option.duration == "2 hr 20 min"
        assert option.duration_minutes == 140
        assert option.stops == 0
        assert option.origin_code == "ICN"
        assert option.destination_code == "NRT"
        assert option.is_top_flight
        assert option.booking_caution is None

    def test_airport_codes_from_aria_label(self):
        row = korean_air_row(
            texts=["Korean Air", "2 hr 20 min", "$412"],
            aria_labels=[
                "Leaves Incheon International Airport (ICN) at 9:05 AM "
                "and arrives at Narita International Airport (NRT) at 11:25 AM",
            ],
        )
        option = RowParser.parse(RowSnapshot.from_dict(row), is_top=False)

        assert (option.origin_code, option.destination_code) == ("ICN", "NRT")
        assert option.price == Decimal(412)

    def test_price_from_full_text_when_no_label(self):
        row = korean_air_row(texts=["Korean Air"], aria_labels=[], full_text="Korean Air 13 hr from $1,050 round trip")
        assert RowParser.parse(RowSnapshot.from_dict(row), is_top=False).price == Decimal(1050)

    def test_row_without_price_is_skipped(self):
        row = korean_air_row(texts=["Korean Air"], aria_labels=[], full_text="Korean Air Price unavailable")
        assert RowParser.parse(RowSnapshot.from_dict(row), is_top=False) is None

    def test_carriers_from_image_alt_are_split(self):
        row = korean_air_row(texts=["$412"], img_alts=["China AirlinesKorean Air"])
        option = RowParser.parse(RowSnapshot.from_dict(row), is_top=False)
        assert option.airlines == ["China Airlines", "Korean Air"]

    def test_unknown_stops_and_caution(self):
        row = korean_air_row(
            texts=["Korean Air", "$412"],
            full_text="Korean Air $412 Self transfer",
        )
        option = RowParser.parse(RowSnapshot.from_dict(row), is_top=False)
        assert option.stops == -1
        assert option.booking_caution == "Self transfer"

    def test_times_from_timed_row(self):
        row = korean_air_row(aria_labels=["412 US dollars"], timed_row_texts=["7:10 PM", "9:40 PM+1"])
        option = RowParser.parse(RowSnapshot.from_dict(row), is_top=False)
        assert (option.departure_time, option.arrival_time) == ("7:10 PM", "9:40 PM+1")


class TestParseSections:
    def test_top_flag_follows_section_header(self):
        sections = [
            {"header": "Top departing flights", "rows": [korean_air_row()]},
            {"header": "Other departing flights", "rows": [korean_air_row(
                texts=["1:00 PM", "3:30 PM", "Asiana Airlines", "2 hr 30 min", "Nonstop", "ICN", "HND", "$380"],
                aria_labels=["380 US dollars"],
            )]},
        ]

        options = parse_sections(sections)

        assert [o.price for o in options] == [Decimal(412), Decimal(380)]
        assert [o.is_top_flight for o in options] == [True, False]

    def test_duplicate_rows_collapse(self):
        options = parse_sections([{"header": "", "rows": [korean_air_row(), korean_air_row()]}])
        assert len(options) == 1


class TestPlainTextPrices:
    def test_bounded_amounts_only(self):
        text = "Cheapest $1,234 · also $89 · fee $12 · junk $123456 · 5 US dollars"
        assert extract_prices_from_text(text) == [Decimal(1234), Decimal(89)]

    def test_empty_text(self):
        assert extract_prices_from_text("") == []


# =============================================================================
# Page-level fallbacks
# =============================================================================

class TestPriceExtractionHeuristics:
    @pytest.mark.asyncio
    async def test_structural_first(self, fake_page):
        page = fake_page()
        page.evaluate_result = [{"header": "Top flights", "rows": [korean_air_row()]}]
        page.body_text = "$999"

        outcome = await PriceExtractionHeuristics.extract(page)

        assert outcome.tactic == "structural"
        assert len(outcome.top_options) == 1
        assert outcome.prices == []

    @pytest.mark.asyncio
    async def test_falls_back_to_page_text(self, fake_page):
        page = fake_page()
        page.body_text = "Round trip from $640"

        outcome = await PriceExtractionHeuristics.extract(page)

        assert outcome.tactic == "plain_text"
        assert outcome.prices == [Decimal(640)]

    @pytest.mark.asyncio
    async def test_nothing_found(self, fake_page):
        outcome = await PriceExtractionHeuristics.extract(fake_page())
        assert outcome.tactic == "none"
        assert not outcome.has_data
