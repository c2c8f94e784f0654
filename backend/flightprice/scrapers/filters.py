"""Alliance filter on the results page (Airlines chip → Alliances section)."""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Tuple

from playwright.async_api import Page, ElementHandle, Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from flightprice.scrapers import targets
from flightprice.scrapers.locator import Locator

logger = logging.getLogger(__name__)

ALLIANCE_NAMES = ("star alliance", "oneworld", "skyteam")

LABEL_TEXT_SCRIPT = """
el => {
  const label = el.closest('label') || el.parentElement;
  return ((el.getAttribute('aria-label') || '') + ' ' + (label ? label.textContent : '')).trim();
}
"""


class FilterOutcome(str, Enum):
    APPLIED = "applied"
    CONTROL_MISSING = "control_missing"
    UNCONFIRMED = "unconfirmed"


class Verification(str, Enum):
    CONFIRMED = "confirmed"
    TEXT_ONLY = "text_only"
    NONE = "none"


async def _is_checked(box: ElementHandle) -> bool:
    state = await box.get_attribute("aria-checked")
    if state is not None:
        return state == "true"
    try:
        return await box.is_checked()
    except PlaywrightError:
        return False


class AllianceFilter:
    def __init__(self, locator: Locator, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.locator = locator
        self._sleep = sleep

    async def _alliance_boxes(self, page: Page) -> list:
        boxes = []
        for box in await page.query_selector_all(targets.ALLIANCE_CHECKBOXES):
            try:
                label = (await box.evaluate(LABEL_TEXT_SCRIPT)).lower()
            except PlaywrightError:
                continue
            if any(name in label for name in ALLIANCE_NAMES):
                boxes.append(box)
        return boxes

    async def _wait_for_panel(self, page: Page) -> bool:
        for selector in (targets.ALLIANCE_SECTION_HEADER, targets.ALLIANCE_CHECKBOXES):
            try:
                await page.wait_for_selector(selector, timeout=5000)
                return True
            except PlaywrightTimeout:
                continue
        return False

    async def _wait_for_update(self, page: Page) -> None:
        """Results reload behind a progress bar; wait for it to come and go."""
        try:
            await page.wait_for_selector(targets.LOADING_INDICATOR, state="visible", timeout=3000)
            await page.wait_for_selector(targets.LOADING_INDICATOR, state="hidden", timeout=15000)
        except PlaywrightTimeout:
            await self._sleep(1.0)

    async def check_alliances(self, page: Page) -> Tuple[int, int]:
        """Tick every unchecked alliance box. Returns (found, newly_checked)."""
        boxes = await self._alliance_boxes(page)
        clicked = 0
        for box in boxes:
            try:
                if not await _is_checked(box):
                    await box.click(timeout=3000)
                    clicked += 1
            except PlaywrightError as e:
                logger.debug(f"Alliance checkbox click failed: {e}")
        return len(boxes), clicked

    async def verify(self, page: Page) -> Verification:
        if "alliance" in page.url.lower():
            return Verification.CONFIRMED

        for box in await self._alliance_boxes(page):
            if await _is_checked(box):
                return Verification.CONFIRMED

        for region in await page.query_selector_all(targets.ACTIVE_FILTER_REGION):
            try:
                text = " ".join(filter(None, [
                    await region.get_attribute("aria-label"),
                    await region.inner_text(),
                ])).lower()
            except PlaywrightError:
                continue
            if any(name in text for name in ALLIANCE_NAMES):
                return Verification.TEXT_ONLY
        return Verification.NONE

    async def close_panel(self, page: Page) -> None:
        closed = await self.locator.click(page, targets.FILTER_PANEL_CLOSE)
        if not closed.found:
            await page.keyboard.press("Escape")

    async def _recovery_pass(self, page: Page) -> None:
        reopened = await self.locator.click(page, targets.AIRLINES_FILTER_BUTTON)
        if reopened.found:
            await self._wait_for_panel(page)
            await self.close_panel(page)

    async def apply(self, page: Page) -> FilterOutcome:
        opened = await self.locator.click(page, targets.AIRLINES_FILTER_BUTTON)
        if not opened.found:
            logger.warning("Airlines filter control not found, continuing unfiltered")
            return FilterOutcome.CONTROL_MISSING

        if not await self._wait_for_panel(page):
            logger.warning("Alliance options did not appear")
            await self.close_panel(page)
            return FilterOutcome.UNCONFIRMED

        found, clicked = await self.check_alliances(page)
        logger.info(f"Alliance checkboxes: {found} found, {clicked} newly checked")
        if clicked:
            await self._wait_for_update(page)

        verification = await self.verify(page)
        await self.close_panel(page)
        if verification == Verification.NONE:
            verification = await self.verify(page)

        if verification == Verification.CONFIRMED:
            return FilterOutcome.APPLIED
        if verification == Verification.TEXT_ONLY:
            logger.info("Alliance filter only visible as text, running one recovery pass")
            await self._recovery_pass(page)
            return FilterOutcome.APPLIED
        return FilterOutcome.UNCONFIRMED
