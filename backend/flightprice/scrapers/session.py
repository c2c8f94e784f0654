import logging
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

logger = logging.getLogger(__name__)


class BrowserSession:
    """
    One headless Chromium with a single page, scoped to one query.

    Used as ``async with BrowserSession() as page``; the browser and the
    playwright driver are released on every exit path, cancellation included.
    """

    # Browser launch arguments for headless operation
    BROWSER_ARGS = [
        "--disable-blink-features=AutomationControlled",
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-software-rasterizer",
        "--disable-extensions",
        "--disable-setuid-sandbox",
        "--disable-background-networking",
        "--disable-default-apps",
        "--disable-sync",
        "--disable-translate",
        "--mute-audio",
        "--hide-scrollbars",
    ]

    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )

    def __init__(self, headless: bool = True, locale: str = "en-US", timezone_id: str = "America/New_York"):
        self.headless = headless
        self.locale = locale
        self.timezone_id = timezone_id
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    async def open(self) -> Page:
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=self.BROWSER_ARGS,
            )
            self._context = await self._browser.new_context(
                viewport={"width": 1920, "height": 1080},
                user_agent=self.USER_AGENT,
                locale=self.locale,
                timezone_id=self.timezone_id,
            )
            self.page = await self._context.new_page()
        except BaseException:
            await self.close()
            raise
        logger.info("Browser session started")
        return self.page

    async def close(self) -> None:
        """Release context, browser and driver. Errors here never mask the caller's."""
        if self._context:
            try:
                await self._context.close()
            except Exception as e:
                logger.debug(f"Context close failed: {e}")
            self._context = None

        if self._browser:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug(f"Browser close failed: {e}")
            self._browser = None

        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Playwright stop failed: {e}")
            self._playwright = None

        self.page = None
        logger.info("Browser session closed")

    async def __aenter__(self) -> Page:
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
