"""Text entry into the location autocomplete fields."""
import asyncio
import logging
import random
from typing import Optional

from playwright.async_api import Page, ElementHandle, Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from flightprice.errors import NotFoundError
from flightprice.scrapers import targets
from flightprice.scrapers.locator import Locator
from flightprice.scrapers.targets import LocatorTarget
from flightprice.services.geo import city_part

logger = logging.getLogger(__name__)

RESET_VALUE_SCRIPT = """
el => {
  if ('value' in el) {
    el.value = '';
    el.dispatchEvent(new Event('input', { bubbles: true }));
  } else {
    el.textContent = '';
  }
}
"""


def sanitize_location(value: str) -> str:
    """Commas confuse the autocomplete; collapse them and extra spaces."""
    return " ".join(value.replace(",", " ").split())


def destination_matches(requested: str, accepted: Optional[str]) -> bool:
    """Case-insensitive substring match, either direction, on the city part."""
    if not accepted:
        return False
    wanted = city_part(requested)
    got = accepted.strip().lower()
    if not wanted or not got:
        return False
    return wanted in got or city_part(got) in wanted


async def read_field_value(field: ElementHandle) -> str:
    try:
        return (await field.input_value()).strip()
    except PlaywrightError:
        pass
    try:
        return (await field.inner_text()).strip()
    except PlaywrightError:
        return ""


async def clear_field(page: Page, field: ElementHandle) -> bool:
    """
    Clear with three independent techniques: DOM value reset, select-all +
    Delete, then repeated Backspace. Returns True once the field reads empty.
    """
    try:
        await field.evaluate(RESET_VALUE_SCRIPT)
    except PlaywrightError as e:
        logger.debug(f"Value reset failed: {e}")
    if not await read_field_value(field):
        return True

    try:
        await field.click(click_count=3)
        await page.keyboard.press("Control+A")
        await page.keyboard.press("Delete")
    except PlaywrightError as e:
        logger.debug(f"Select-all clear failed: {e}")
    remaining = await read_field_value(field)
    if not remaining:
        return True

    for _ in range(min(len(remaining) + 5, 60)):
        await page.keyboard.press("Backspace")
    return not await read_field_value(field)


async def accept_first_suggestion(page: Page) -> str:
    """Click the first autocomplete option, or press Enter when none shows up."""
    try:
        await page.wait_for_selector(targets.SUGGESTION_LIST, timeout=targets.SUGGESTION_WAIT_MS)
    except PlaywrightTimeout:
        logger.info("No suggestion list appeared, pressing Enter")
        await page.keyboard.press("Enter")
        return "enter"

    option = await page.query_selector(targets.FIRST_SUGGESTION)
    if option:
        try:
            await option.click(timeout=3000)
            return "suggestion"
        except PlaywrightError as e:
            logger.debug(f"Suggestion click failed: {e}")
    await page.keyboard.press("Enter")
    return "enter"


async def fill_location(
    page: Page,
    locator: Locator,
    target: LocatorTarget,
    value: str,
    stage: str,
) -> str:
    """Fill one autocomplete field and return the value the page accepted."""
    located = await locator.locate(page, target)
    if not located.found:
        raise NotFoundError(target.name, stage=stage)
    field = located.element

    try:
        await field.click(timeout=5000)
    except PlaywrightError as e:
        logger.debug(f"{target.name}: focus click failed ({e}), continuing")

    if not await clear_field(page, field):
        logger.warning(f"{target.name}: field not empty after clearing")

    text = sanitize_location(value)
    await page.keyboard.type(text, delay=random.randint(100, 200))
    how = await accept_first_suggestion(page)
    await asyncio.sleep(0.5)

    accepted = await read_field_value(field)
    logger.info(f"{target.name}: typed '{text}', accepted '{accepted}' via {how}")
    return accepted
