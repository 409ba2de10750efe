"""Playwright probe: a real headless browser per simulated user.

Requires the ``browser`` extra (``pip install sitestress[browser]`` followed by
``playwright install``).
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from playwright.async_api import BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .base import BaseProbe, NavigationFailure, ProbeOptions, ProbeSession

logger = structlog.get_logger()

VIEWPORT = {"width": 1280, "height": 720}


class BrowserSession(ProbeSession):
    def __init__(self, context: BrowserContext, page: Page) -> None:
        super().__init__()
        self._page = page
        context.on("request", self._on_request)
        context.on("response", self._on_response)
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)

    def _on_request(self, request) -> None:
        self.diagnostics.request_log.append(
            {
                "url": request.url,
                "method": request.method,
                "resource_type": request.resource_type,
                "timestamp": time.time(),
            }
        )

    def _on_response(self, response) -> None:
        request = response.request
        for entry in self.diagnostics.request_log:
            if entry["url"] == request.url and entry["method"] == request.method:
                entry["status"] = response.status
                entry["response_timestamp"] = time.time()
                break

    def _on_console(self, message) -> None:
        self.diagnostics.console_messages.append({"type": message.type, "text": message.text})

    def _on_page_error(self, error) -> None:
        self.diagnostics.page_errors.append(str(error))

    async def navigate(self, url: str, timeout_ms: int) -> int | None:
        try:
            response = await self._page.goto(url, timeout=timeout_ms, wait_until="domcontentloaded")
        except PlaywrightError as exc:
            raise NavigationFailure(exc.message) from exc
        return response.status if response is not None else None

    async def interact(self, think_time_ms: int) -> None:
        try:
            await self._page.mouse.move(100, 100)
            await self._page.evaluate("window.scrollBy(0, 300)")
            await self._page.wait_for_timeout(think_time_ms)
        except PlaywrightError as exc:
            logger.debug("browser_interaction_failed", error=exc.message)

    async def capture_failure(self) -> None:
        try:
            self.diagnostics.page_content = await self._page.content()
        except PlaywrightError as exc:
            logger.debug("browser_capture_failed", error=exc.message)


class BrowserProbe(BaseProbe):
    """Launches an isolated browser for every visit, like a fresh user."""

    def __init__(self, headless: bool = True, **kwargs) -> None:
        super().__init__(**kwargs)
        self._headless = headless
        self._playwright: Playwright | None = None
        self._start_lock = asyncio.Lock()

    async def _driver(self) -> Playwright:
        async with self._start_lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
                logger.info("playwright_started", headless=self._headless)
            return self._playwright

    @asynccontextmanager
    async def session(self, user_id: int, options: ProbeOptions) -> AsyncIterator[BrowserSession]:
        driver = await self._driver()
        launcher = getattr(driver, options.variant.value)
        browser = await launcher.launch(headless=self._headless)
        try:
            context = await browser.new_context(
                ignore_https_errors=True,
                user_agent=options.user_agent,
                viewport=VIEWPORT,
                device_scale_factor=1,
            )
            page = await context.new_page()
            yield BrowserSession(context, page)
        finally:
            await browser.close()

    async def aclose(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.info("playwright_stopped")
