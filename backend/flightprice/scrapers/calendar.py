"""Date selection on the departure/return calendar widget."""
import asyncio
import re
import logging
from datetime import date, datetime
from typing import List, Optional

from playwright.async_api import Page, Error as PlaywrightError

from flightprice.errors import NotFoundError
from flightprice.scrapers import targets
from flightprice.scrapers.form_fields import clear_field
from flightprice.scrapers.locator import Locator

logger = logging.getLogger(__name__)

MONTH_YEAR_PATTERN = re.compile(r"([A-Za-z]{3,9})\s+(\d{4})")

FIRST_CHILD_TEXT = "el => (el.firstElementChild ? el.firstElementChild.textContent : el.textContent || '').trim()"


def parse_month_heading(text: str) -> Optional[date]:
    """'November 2026' or 'Nov 2026' -> date(2026, 11, 1)."""
    match = MONTH_YEAR_PATTERN.search(text or "")
    if not match:
        return None
    name, year = match.groups()
    for fmt in ("%B %Y", "%b %Y"):
        try:
            return datetime.strptime(f"{name} {year}", fmt).date()
        except ValueError:
            continue
    return None


def months_between(current: date, target: date) -> int:
    """Signed month distance; positive means target is later."""
    return (target.year - current.year) * 12 + (target.month - current.month)


def typed_date(day: date) -> str:
    return f"{day:%b} {day.day}, {day.year}"


class CalendarNavigator:
    def __init__(self, locator: Locator, max_month_clicks: int = targets.MAX_MONTH_CLICKS):
        self.locator = locator
        self.max_month_clicks = max_month_clicks

    async def _visible_months(self, page: Page) -> List[date]:
        months = []
        for heading in await page.query_selector_all(targets.MONTH_HEADING):
            try:
                parsed = parse_month_heading(await heading.inner_text())
            except PlaywrightError:
                continue
            if parsed:
                months.append(parsed)
        return months

    async def navigate_to_month(self, page: Page, day: date) -> bool:
        target_month = day.replace(day=1)
        for _ in range(self.max_month_clicks + 1):
            months = await self._visible_months(page)
            if not months:
                return False
            if target_month in months:
                return True
            selector = targets.NEXT_MONTH if months_between(months[0], target_month) > 0 else targets.PREVIOUS_MONTH
            button = await page.query_selector(selector)
            if not button:
                return False
            try:
                await button.click(timeout=3000)
            except PlaywrightError as e:
                logger.debug(f"Month navigation click failed: {e}")
                return False
            await asyncio.sleep(0.3)
        logger.warning(f"Gave up navigating to {target_month:%B %Y}")
        return False

    async def click_day(self, page: Page, day: date) -> bool:
        # Day cells usually carry a full-date aria-label
        labelled = await page.query_selector(
            f'[role="button"][aria-label*="{day:%B} {day.day}, {day.year}"]'
        )
        if labelled:
            try:
                await labelled.click(timeout=3000)
                return True
            except PlaywrightError as e:
                logger.debug(f"Labelled day click failed: {e}")

        for section in await page.query_selector_all(targets.MONTH_SECTION):
            try:
                month = parse_month_heading(await section.evaluate(FIRST_CHILD_TEXT))
            except PlaywrightError:
                continue
            if month != day.replace(day=1):
                continue
            for button in await section.query_selector_all(targets.DAY_BUTTON):
                try:
                    if await button.evaluate(FIRST_CHILD_TEXT) == str(day.day):
                        await button.click(timeout=3000)
                        return True
                except PlaywrightError:
                    continue
        return False

    async def type_date(self, page: Page, target, day: date) -> bool:
        """Fallback: type the date straight into its input."""
        located = await self.locator.locate(page, target)
        if not located.found:
            return False
        try:
            await located.element.click(timeout=3000)
            await clear_field(page, located.element)
            await page.keyboard.type(typed_date(day), delay=50)
            await page.keyboard.press("Enter")
        except PlaywrightError as e:
            logger.debug(f"Typing date into {target.name} failed: {e}")
            return False
        return True

    async def select_day(self, page: Page, day: date, target) -> None:
        if await self.navigate_to_month(page, day) and await self.click_day(page, day):
            logger.info(f"Selected {day} on the calendar")
            return
        logger.info(f"Calendar selection of {day} failed, typing it instead")
        if not await self.type_date(page, target, day):
            raise NotFoundError(f"calendar day {day.isoformat()}", stage="dates")

    async def select_dates(self, page: Page, outbound: date, return_date: Optional[date]) -> None:
        opened = await self.locator.click(page, targets.DEPARTURE_INPUT)
        if not opened.found:
            raise NotFoundError(targets.DEPARTURE_INPUT.name, stage="dates")
        await asyncio.sleep(0.5)

        await self.select_day(page, outbound, targets.DEPARTURE_INPUT)
        if return_date:
            await self.select_day(page, return_date, targets.RETURN_INPUT)

        done = await self.locator.click(page, targets.DONE_BUTTON)
        if not done.found:
            logger.info("No Done button on the calendar, continuing")
