"""
Outbound fetch collaborator.

Stages never talk to the network directly; they take a PageFetcher. The
production implementation drives a Playwright Chromium browser (wiki pages
are served behind bot protection, so a real browser with stealth patches is
the reliable way to get the HTML). Tests pass in a fake with canned HTML.

Every fetch carries a timeout (settings.scrape_timeout, milliseconds). A
failed fetch raises FetchError carrying the URL and, when known, the HTTP
status; nothing is retried here. Callers catch FetchError per entity, log
it and move on.

Usage:
    async with PlaywrightFetcher() as fetcher:
        html = await fetcher.fetch_html("https://liquipedia.net/fortnite/Bugha")
"""

import logging
from typing import Any, Optional, Protocol

from playwright.async_api import Browser, BrowserContext, Error as PlaywrightError, async_playwright
from playwright_stealth import Stealth

from compsync.config import settings

logger = logging.getLogger(__name__)

# Stealth configuration to avoid bot detection (Cloudflare, etc.)
_stealth = Stealth()


class FetchError(Exception):
    """An outbound fetch failed (network error, timeout or HTTP error status)."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status = status

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class PageFetcher(Protocol):
    """What the stages need from the network."""

    async def fetch_html(self, url: str) -> str:
        ...

    async def fetch_json(self, url: str) -> Any:
        ...


class PlaywrightFetcher:
    """
    PageFetcher backed by a headless Chromium browser.

    One browser context is shared for the lifetime of the fetcher; each
    HTML fetch opens and closes its own page.
    """

    def __init__(self, headless: Optional[bool] = None, timeout: Optional[int] = None):
        self.headless = headless if headless is not None else settings.scrape_headless
        self.timeout = timeout if timeout is not None else settings.scrape_timeout

        # Playwright objects (initialized in __aenter__)
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "PlaywrightFetcher":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        self._context = await self._browser.new_context(
            user_agent=settings.user_agent,
            viewport={"width": 1920, "height": 1080},
            locale="en-US",
        )
        self._context.set_default_timeout(self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Always closes browser and Playwright, even if an exception occurred."""
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

    def _require_context(self) -> BrowserContext:
        if not self._context:
            raise RuntimeError("Fetcher not initialized. Use 'async with' context manager.")
        return self._context

    async def fetch_html(self, url: str) -> str:
        """
        Load a page and return its rendered HTML.

        Raises:
            FetchError: On navigation failure, timeout or an HTTP status >= 400
        """
        context = self._require_context()
        page = await context.new_page()
        try:
            await _stealth.apply_stealth_async(page)
            response = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout)
            if response is not None and response.status >= 400:
                raise FetchError(url, f"HTTP {response.status}", status=response.status)
            return await page.content()
        except PlaywrightError as exc:
            raise FetchError(url, str(exc)) from exc
        finally:
            await page.close()

    async def fetch_json(self, url: str) -> Any:
        """
        GET a JSON endpoint through the browser context's request client.

        Raises:
            FetchError: On network failure, timeout, HTTP error or invalid JSON
        """
        context = self._require_context()
        try:
            response = await context.request.get(url, timeout=self.timeout)
            if not response.ok:
                raise FetchError(url, f"HTTP {response.status}", status=response.status)
            return await response.json()
        except PlaywrightError as exc:
            raise FetchError(url, str(exc)) from exc
        except ValueError as exc:
            raise FetchError(url, f"invalid JSON: {exc}") from exc
