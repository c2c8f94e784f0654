"""
Test fixtures for the flight price resolver.

Browser-facing code is exercised against small fake page/element objects that
implement the handful of Playwright calls the scrapers use.
"""
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from flightprice.config import Settings
from flightprice.main import app
from flightprice.models import FlightPriceResult, FlightQuery
from flightprice.services.resolver import get_resolver
from flightprice.strategies.base import PricingStrategy


# =============================================================================
# Fake Playwright objects
# =============================================================================

class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self.page = page
        self.pressed: List[str] = []
        self.typed: List[str] = []

    async def press(self, key: str):
        self.pressed.append(key)
        focused = self.page.focused
        if focused is not None and focused.value:
            if key in ("Backspace", "Delete") and focused.selected_all:
                focused.value = ""
                focused.selected_all = False
            elif key == "Backspace":
                focused.value = focused.value[:-1]
        if key == "Control+A" and focused is not None:
            focused.selected_all = True

    async def type(self, text: str, delay: int = 0):
        self.typed.append(text)
        if self.page.focused is not None and self.page.focused.value is not None:
            self.page.focused.value += text


class FakeElement:
    def __init__(
        self,
        text: str = "",
        attrs: Optional[Dict[str, str]] = None,
        visible: bool = True,
        box: Optional[dict] = None,
        value: Optional[str] = None,
        click_error: bool = False,
        script_click_error: bool = False,
        reset_works: bool = True,
        page: Optional["FakePage"] = None,
    ):
        self.text = text
        self.attrs = attrs or {}
        self.visible = visible
        self.box = box
        self.value = value
        self.click_error = click_error
        self.script_click_error = script_click_error
        self.reset_works = reset_works
        self.page = page
        self.clicks = 0
        self.script_clicks = 0
        self.selected_all = False

    async def is_visible(self):
        return self.visible

    async def inner_text(self):
        return self.text

    async def input_value(self):
        if self.value is None:
            raise PlaywrightError("Not an <input> element")
        return self.value

    async def get_attribute(self, name: str):
        return self.attrs.get(name)

    async def bounding_box(self):
        return self.box

    async def click(self, timeout=None, click_count: int = 1):
        if self.click_error:
            raise PlaywrightError("Element is not clickable at point")
        self.clicks += 1
        if self.page is not None:
            self.page.focused = self

    async def evaluate(self, script: str):
        if "el.click()" in script:
            if self.script_click_error:
                raise PlaywrightError("Element is detached")
            self.script_clicks += 1
            return None
        if "el.value = ''" in script:
            if not self.reset_works:
                raise PlaywrightError("Cannot reset value")
            self.value = ""
            return None
        return self.text


class FakePage:
    def __init__(self, selectors: Optional[Dict[str, List[FakeElement]]] = None,
                 url: str = "https://www.google.com/travel/flights?hl=en&curr=USD", title: str = ""):
        self.selectors = selectors or {}
        self.url = url
        self._title = title
        self.focused: Optional[FakeElement] = None
        self.keyboard = FakeKeyboard(self)
        self.evaluate_result = []
        self.body_text = ""
        self.goto_error: Optional[Exception] = None
        self.visited: List[str] = []
        for elements in self.selectors.values():
            for element in elements:
                element.page = self

    async def query_selector_all(self, selector: str):
        return list(self.selectors.get(selector, []))

    async def query_selector(self, selector: str):
        elements = self.selectors.get(selector, [])
        return elements[0] if elements else None

    async def evaluate(self, script: str):
        return self.evaluate_result

    async def inner_text(self, selector: str):
        return self.body_text

    async def title(self):
        return self._title

    async def content(self):
        return f"<html><body>{self.body_text}</body></html>"

    async def goto(self, url: str, wait_until=None, timeout=None):
        if self.goto_error is not None:
            raise self.goto_error
        self.visited.append(url)
        self.url = url

    async def wait_for_selector(self, selector: str, timeout=None, state=None):
        elements = self.selectors.get(selector, [])
        if not elements:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return elements[0]

    async def wait_for_url(self, pattern, timeout=None):
        if not pattern.search(self.url):
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for URL")

    async def screenshot(self, path: str, full_page: bool = False):
        with open(path, "wb") as f:
            f.write(b"\x89PNG")


@pytest.fixture
def fake_page():
    return FakePage


@pytest.fixture
def fake_element():
    return FakeElement


# =============================================================================
# Domain fixtures
# =============================================================================

class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def query():
    return FlightQuery(
        origin="Seoul, South Korea",
        destination="Tokyo, Japan",
        outbound_date=date(2026, 11, 2),
        return_date=date(2026, 11, 9),
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        cache_dir=tmp_path / "cache",
        screenshots_dir=tmp_path / "screenshots",
        html_snapshots_dir=tmp_path / "html",
    )


class StubStrategy(PricingStrategy):
    """Returns a fixed result (or raises) and counts calls."""

    def __init__(self, name: str = "stub", price=None, source: str = "Stub", error: Exception = None,
                 available: bool = True, lowest_price=None, label: str = "Stub"):
        self.name = name
        self.label = label
        self.price = Decimal(str(price)) if price is not None else None
        self.source = source
        self.error = error
        self.available = available
        self.lowest_price = Decimal(str(lowest_price)) if lowest_price is not None else None
        self.calls = 0
        self.cleaned_up = 0

    async def is_available(self) -> bool:
        return self.available

    async def get_price(self, query: FlightQuery) -> FlightPriceResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return FlightPriceResult(price=self.price, source=self.source, lowest_price=self.lowest_price)

    async def cleanup(self) -> None:
        self.cleaned_up += 1


@pytest.fixture
def stub_strategy():
    return StubStrategy


# =============================================================================
# Browser session fakes
# =============================================================================

class SessionRecorder:
    def __init__(self, page=None):
        self.page = page if page is not None else FakePage()
        self.opened = 0
        self.closed = 0

    @property
    def open_sessions(self) -> int:
        return self.opened - self.closed

    def factory(self):
        @asynccontextmanager
        async def session():
            self.opened += 1
            try:
                yield self.page
            finally:
                self.closed += 1
        return session()


@pytest.fixture
def session_recorder():
    return SessionRecorder()


# =============================================================================
# API client
# =============================================================================

@pytest.fixture
def override_resolver():
    def _override(resolver):
        app.dependency_overrides[get_resolver] = lambda: resolver
    return _override


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clear overrides after test
    app.dependency_overrides.clear()
