"""
Multi-tactic element location for an unstable, obfuscated page.

Tactics run in order, cheapest and most precise first:
1. Ranked CSS selectors
2. Visible text / aria-label / placeholder scan over clickable elements
3. Screen-position heuristic (or n-th visible candidate in document order)
4. Keyboard fallback (press Enter) when nothing is resolvable

A tactic never raises for "not found". A failed probe inside a tactic is a
TransientUIError, which is logged and absorbed so the next tactic runs.
"""

import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

from playwright.async_api import Page, ElementHandle, Error as PlaywrightError

from flightprice.errors import TransientUIError
from flightprice.scrapers.targets import LocatorTarget

logger = logging.getLogger(__name__)


@dataclass
class LocateResult:
    """Outcome of running the tactic waterfall for one target."""
    element: Optional[ElementHandle]
    tactic: str
    detail: str = ""
    key_pressed: bool = False

    @property
    def found(self) -> bool:
        return self.element is not None

    @property
    def acted(self) -> bool:
        return self.found or self.key_pressed


async def _is_visible(element: ElementHandle) -> bool:
    try:
        return await element.is_visible()
    except PlaywrightError as e:
        raise TransientUIError(f"visibility probe failed: {e}") from e


async def _describe(element: ElementHandle) -> str:
    parts = []
    for attribute in ("aria-label", "placeholder"):
        try:
            value = await element.get_attribute(attribute)
        except PlaywrightError:
            value = None
        if value:
            parts.append(value)
    try:
        parts.append(await element.inner_text())
    except PlaywrightError:
        pass
    return " ".join(p for p in parts if p).strip()


async def _visible_candidates(page: Page, selector: str) -> List[ElementHandle]:
    try:
        elements = await page.query_selector_all(selector)
    except PlaywrightError as e:
        raise TransientUIError(f"query '{selector}' failed: {e}") from e
    visible = []
    for element in elements:
        try:
            if await _is_visible(element):
                visible.append(element)
        except TransientUIError:
            continue
    return visible


# =============================================================================
# Tactics
# =============================================================================

class LocatorTactic(ABC):
    name: str = "base"

    @abstractmethod
    async def find(self, page: Page, target: LocatorTarget) -> Optional[Tuple[ElementHandle, str]]:
        """Return (element, detail) or None."""


class SelectorTactic(LocatorTactic):
    name = "selector"

    async def find(self, page, target):
        for rank, selector in enumerate(target.selectors):
            try:
                candidates = await _visible_candidates(page, selector)
            except TransientUIError as e:
                logger.debug(f"{target.name}: selector #{rank} skipped ({e})")
                continue
            if candidates:
                return candidates[0], selector
        return None


class TextSearchTactic(LocatorTactic):
    name = "text"

    async def find(self, page, target):
        if not target.keywords:
            return None
        keywords = [k.lower() for k in target.keywords]
        try:
            candidates = await _visible_candidates(page, target.candidates)
        except TransientUIError as e:
            logger.debug(f"{target.name}: text scan skipped ({e})")
            return None
        for element in candidates:
            text = (await _describe(element)).lower()
            for keyword in keywords:
                if keyword in text:
                    return element, f"text contains '{keyword}'"
        return None


def _bottom_right_first(a: dict, b: dict) -> int:
    # Rows more than 50px apart sort by height; otherwise rightmost wins
    if abs(a["y"] - b["y"]) > 50:
        return -1 if a["y"] > b["y"] else 1
    if a["x"] == b["x"]:
        return 0
    return -1 if a["x"] > b["x"] else 1


def _top_left_first(a: dict, b: dict) -> int:
    return -_bottom_right_first(a, b)


REGION_ORDERINGS = {
    "bottom-right": _bottom_right_first,
    "top-left": _top_left_first,
}


class PositionTactic(LocatorTactic):
    name = "position"

    async def find(self, page, target):
        if target.region is None and target.ordinal is None:
            return None
        try:
            candidates = await _visible_candidates(page, target.candidates)
        except TransientUIError as e:
            logger.debug(f"{target.name}: position scan skipped ({e})")
            return None

        if target.ordinal is not None:
            if len(candidates) > target.ordinal:
                return candidates[target.ordinal], f"visible candidate #{target.ordinal}"
            return None

        boxed = []
        for element in candidates:
            try:
                box = await element.bounding_box()
            except PlaywrightError:
                continue
            if box and box["width"] > 0 and box["height"] > 0:
                boxed.append((element, box))
        if not boxed:
            return None
        ordering = REGION_ORDERINGS[target.region]
        boxed.sort(key=functools.cmp_to_key(lambda a, b: ordering(a[1], b[1])))
        element, box = boxed[0]
        return element, f"{target.region} at ({box['x']:.0f}, {box['y']:.0f})"


DEFAULT_TACTICS: List[LocatorTactic] = [SelectorTactic(), TextSearchTactic(), PositionTactic()]


# =============================================================================
# Locator
# =============================================================================

class Locator:
    """Runs the tactic waterfall for a target."""

    def __init__(self, tactics: Optional[List[LocatorTactic]] = None, click_timeout: int = 5000):
        self.tactics = tactics if tactics is not None else list(DEFAULT_TACTICS)
        self.click_timeout = click_timeout

    async def _press_fallback(self, page: Page, target: LocatorTarget) -> LocateResult:
        try:
            await page.keyboard.press(target.fallback_key)
        except PlaywrightError as e:
            logger.warning(f"{target.name}: keyboard fallback failed: {e}")
            return LocateResult(element=None, tactic="none")
        logger.info(f"{target.name}: no element found, pressed {target.fallback_key}")
        return LocateResult(element=None, tactic="keyboard", detail=target.fallback_key, key_pressed=True)

    async def locate(self, page: Page, target: LocatorTarget) -> LocateResult:
        for tactic in self.tactics:
            hit = await tactic.find(page, target)
            if hit:
                element, detail = hit
                logger.info(f"{target.name}: found via {tactic.name} ({detail})")
                return LocateResult(element=element, tactic=tactic.name, detail=detail)
        if target.keyboard_fallback:
            return await self._press_fallback(page, target)
        logger.info(f"{target.name}: not found by any tactic")
        return LocateResult(element=None, tactic="none")

    async def _click(self, element: ElementHandle, target: LocatorTarget) -> None:
        try:
            await element.click(timeout=self.click_timeout)
            return
        except PlaywrightError as e:
            logger.debug(f"{target.name}: standard click failed ({e}), trying script click")
        try:
            await element.evaluate("el => el.click()")
        except PlaywrightError as e:
            raise TransientUIError(f"{target.name}: click failed: {e}") from e

    async def click(self, page: Page, target: LocatorTarget) -> LocateResult:
        """
        Locate and click. A candidate that cannot be clicked falls through to
        the next tactic; the keyboard fallback runs last when allowed.
        """
        for tactic in self.tactics:
            hit = await tactic.find(page, target)
            if not hit:
                continue
            element, detail = hit
            try:
                await self._click(element, target)
            except TransientUIError as e:
                logger.warning(str(e))
                continue
            logger.info(f"{target.name}: clicked via {tactic.name} ({detail})")
            return LocateResult(element=element, tactic=tactic.name, detail=detail)
        if target.keyboard_fallback:
            return await self._press_fallback(page, target)
        logger.info(f"{target.name}: nothing clickable found")
        return LocateResult(element=None, tactic="none")
