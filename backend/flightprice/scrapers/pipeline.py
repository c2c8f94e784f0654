"""
Google Flights search as an explicit state machine.

IDLE → NAVIGATED → CURRENCY_SET → ORIGIN_FILLED → DESTINATION_VERIFIED →
DATES_SELECTED → SEARCHED → FILTERS_APPLIED → RESULTS_READY → DONE

Any fatal failure moves to ERROR, saves a screenshot and HTML snapshot, and
raises an error naming the stage. Missing optional controls (currency
dialog, Done button, alliance filter) are logged and skipped.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple

from playwright.async_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from flightprice.config import Settings
from flightprice.errors import FlightPriceError, ScrapeError, TransientUIError
from flightprice.models import FlightQuery
from flightprice.scrapers import targets
from flightprice.scrapers.calendar import CalendarNavigator
from flightprice.scrapers.extractors import ExtractionOutcome, PriceExtractionHeuristics
from flightprice.scrapers.filters import AllianceFilter, FilterOutcome
from flightprice.scrapers.form_fields import destination_matches, fill_location
from flightprice.scrapers.locator import Locator
from flightprice.services.retry import FILTER_RETRY, RetryPolicy

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    NAVIGATED = "navigated"
    CURRENCY_SET = "currency_set"
    ORIGIN_FILLED = "origin_filled"
    DESTINATION_VERIFIED = "destination_verified"
    DATES_SELECTED = "dates_selected"
    SEARCHED = "searched"
    FILTERS_APPLIED = "filters_applied"
    RESULTS_READY = "results_ready"
    DONE = "done"
    ERROR = "error"


@dataclass
class PipelineResult:
    extraction: ExtractionOutcome
    search_url: str
    echoed_destination: Optional[str]
    filters_applied: bool
    screenshot_path: Optional[str] = None


class FilterNotConfirmed(TransientUIError):
    """The alliance filter could not be confirmed on this attempt."""


class GoogleFlightsPipeline:
    def __init__(
        self,
        page: Page,
        settings: Settings,
        locator: Optional[Locator] = None,
        filter_retry: RetryPolicy = FILTER_RETRY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.page = page
        self.settings = settings
        self.locator = locator or Locator()
        self.calendar = CalendarNavigator(self.locator)
        self.alliance_filter = AllianceFilter(self.locator, sleep=sleep)
        self.filter_retry = filter_retry
        self._sleep = sleep
        self.state = PipelineState.IDLE
        self.echoed_destination: Optional[str] = None

    def _transition(self, state: PipelineState) -> None:
        logger.info(f"Pipeline {self.state.value} -> {state.value}")
        self.state = state

    @property
    def start_url(self) -> str:
        return f"{targets.BASE_URL}?hl=en&curr={self.settings.search_currency}"

    # -------------------------------------------------------------------------
    # Blocking pages
    # -------------------------------------------------------------------------

    async def _detect_captcha(self) -> bool:
        for selector in targets.CAPTCHA_SELECTORS:
            try:
                if await self.page.query_selector(selector):
                    return True
            except PlaywrightError:
                continue
        return False

    async def _page_text(self) -> str:
        try:
            return (await self.page.content()).lower()
        except PlaywrightError:
            return ""

    async def _check_not_blocked(self) -> None:
        if await self._detect_captcha():
            raise ScrapeError("Captcha detected - manual intervention may be required", stage="captcha")
        content = await self._page_text()
        if any(pattern in content for pattern in targets.BLOCKED_PATTERNS):
            raise ScrapeError("Detected rate limiting or block from Google", stage="blocked")

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def navigate(self) -> None:
        try:
            await self.page.goto(self.start_url, wait_until="networkidle", timeout=targets.NAVIGATION_TIMEOUT_MS)
        except PlaywrightTimeout as e:
            raise ScrapeError(
                f"Page load timed out after {targets.NAVIGATION_TIMEOUT_MS // 1000} seconds",
                stage="navigate",
            ) from e
        await self._check_not_blocked()
        self._transition(PipelineState.NAVIGATED)

    async def set_currency(self) -> None:
        currency = self.settings.search_currency
        if f"curr={currency}" in self.page.url:
            logger.info(f"Currency {currency} set from URL")
            self._transition(PipelineState.CURRENCY_SET)
            return

        opened = await self.locator.click(self.page, targets.CURRENCY_BUTTON)
        if opened.found:
            option = (
                await self.page.query_selector(f'[role="dialog"] [data-value="{currency}"]')
                or await self.page.query_selector(f'text="{currency}"')
            )
            if option:
                try:
                    await option.click(timeout=3000)
                    await self.locator.click(self.page, targets.CURRENCY_CONFIRM)
                except PlaywrightError as e:
                    logger.warning(f"Currency selection failed: {e}")
        else:
            logger.warning(f"Could not confirm currency {currency}, continuing")
        self._transition(PipelineState.CURRENCY_SET)

    async def _page_title(self) -> str:
        try:
            return await self.page.title()
        except PlaywrightError:
            return ""

    async def fill_search_form(self, query: FlightQuery) -> str:
        await fill_location(self.page, self.locator, targets.ORIGIN_INPUT, query.origin, stage="origin")
        self._transition(PipelineState.ORIGIN_FILLED)

        accepted = await fill_location(
            self.page, self.locator, targets.DESTINATION_INPUT, query.destination, stage="destination"
        )
        if not destination_matches(query.destination, accepted):
            title = await self._page_title()
            if not destination_matches(query.destination, title):
                raise ScrapeError(
                    f"Destination mismatch: requested '{query.destination}', page shows '{accepted}'",
                    stage="destination",
                )
            logger.info(f"Destination confirmed from page title '{title}'")
            accepted = accepted or title
        self.echoed_destination = accepted
        self._transition(PipelineState.DESTINATION_VERIFIED)

        await self.calendar.select_dates(self.page, query.outbound_date, query.return_date)
        self._transition(PipelineState.DATES_SELECTED)
        return accepted

    async def submit_search(self) -> None:
        result = await self.locator.click(self.page, targets.SEARCH_BUTTON)
        if not result.acted:
            raise ScrapeError("Search could not be submitted", stage="search")
        await self.wait_for_results()
        self._transition(PipelineState.SEARCHED)

    async def wait_for_results(self) -> bool:
        """Whichever comes first: result rows or the results URL. Timeout is non-fatal."""
        timeout = targets.RESULTS_WAIT_MS
        waiters = [
            asyncio.ensure_future(self.page.wait_for_selector(targets.RESULTS_READY, timeout=timeout)),
            asyncio.ensure_future(
                self.page.wait_for_url(re.compile(targets.RESULTS_URL_PATTERN), timeout=timeout)
            ),
        ]
        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout / 1000 + 1, return_when=asyncio.FIRST_COMPLETED)
            ready = any(not task.exception() for task in done)
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)
        if not ready:
            logger.warning("Results did not appear in time, continuing")
        return ready

    async def _reload(self) -> None:
        try:
            await self.page.goto(self.start_url, wait_until="networkidle", timeout=targets.NAVIGATION_TIMEOUT_MS)
        except PlaywrightTimeout as e:
            raise ScrapeError("Reload timed out", stage="navigate") from e
        await self._check_not_blocked()

    async def search_with_filters(self, query: FlightQuery) -> bool:
        """
        Fill, submit and filter. An unconfirmed filter retries the whole
        sequence after a reload. Returns whether the filter is confirmed.
        """
        async def attempt(number: int) -> bool:
            if number > 1:
                await self._reload()
            await self.fill_search_form(query)
            await self.submit_search()
            if not self.settings.apply_alliance_filter:
                return False
            outcome = await self.alliance_filter.apply(self.page)
            if outcome == FilterOutcome.UNCONFIRMED:
                raise FilterNotConfirmed("Alliance filter not confirmed", stage="filters")
            return outcome == FilterOutcome.APPLIED

        try:
            applied = await self.filter_retry.run(
                attempt, retry_on=(FilterNotConfirmed,), name="alliance filter", sleep=self._sleep
            )
        except FilterNotConfirmed as e:
            if self.settings.require_alliance_filter:
                raise ScrapeError(
                    f"Failed to apply alliance filters after {self.filter_retry.max_attempts} attempts",
                    stage="filters",
                ) from e
            logger.warning("Alliance filter never confirmed, continuing with unfiltered results")
            applied = False
        self._transition(PipelineState.FILTERS_APPLIED)
        return applied

    async def collect_results(self) -> ExtractionOutcome:
        outcome = await PriceExtractionHeuristics.extract(self.page)
        if not outcome.has_data:
            content = await self._page_text()
            if any(marker in content for marker in targets.NO_RESULTS_PATTERNS):
                raise ScrapeError("No flights found for this route/date combination", stage="results")
            raise ScrapeError(
                "No prices extracted - Google may have changed page structure",
                stage="results",
            )
        self._transition(PipelineState.RESULTS_READY)
        return outcome

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    async def save_artifacts(self, reason: str) -> Tuple[Optional[str], Optional[str]]:
        """Screenshot + HTML snapshot. Never raises."""
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        prefix = f"{timestamp}_{reason}"
        screenshot_path: Optional[str] = None
        html_path: Optional[str] = None

        try:
            screenshots_dir = Path(self.settings.screenshots_dir)
            screenshots_dir.mkdir(parents=True, exist_ok=True)
            screenshot_file = screenshots_dir / f"{prefix}.png"
            await self.page.screenshot(path=str(screenshot_file), full_page=True)
            screenshot_path = str(screenshot_file)
        except Exception as e:
            logger.debug(f"Screenshot failed: {e}")

        try:
            html_dir = Path(self.settings.html_snapshots_dir)
            html_dir.mkdir(parents=True, exist_ok=True)
            html_file = html_dir / f"{prefix}.html"
            html_file.write_text(await self.page.content(), encoding="utf-8")
            html_path = str(html_file)
        except Exception as e:
            logger.debug(f"HTML snapshot failed: {e}")

        return screenshot_path, html_path

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def run(self, query: FlightQuery) -> PipelineResult:
        logger.info(f"Scraping {query.label}")
        try:
            await self.navigate()
            await self.set_currency()
            filters_applied = await self.search_with_filters(query)
            extraction = await self.collect_results()
        except FlightPriceError as e:
            failed_at = self.state
            self.state = PipelineState.ERROR
            logger.error(f"Pipeline failed after {failed_at.value}: {e}")
            await self.save_artifacts(e.stage or failed_at.value)
            raise
        except PlaywrightError as e:
            failed_at = self.state
            self.state = PipelineState.ERROR
            logger.error(f"Browser error after {failed_at.value}: {e}")
            await self.save_artifacts(failed_at.value)
            raise ScrapeError(f"Browser error: {e}", stage=failed_at.value) from e

        screenshot_path = None
        if self.settings.capture_verification_screenshot:
            screenshot_path, _ = await self.save_artifacts("verification")

        self._transition(PipelineState.DONE)
        return PipelineResult(
            extraction=extraction,
            search_url=self.page.url,
            echoed_destination=self.echoed_destination,
            filters_applied=filters_applied,
            screenshot_path=screenshot_path,
        )
