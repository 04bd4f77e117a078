from __future__ import annotations

import logging
import os

from playwright.async_api import (
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ..config import Settings, settings
from .session import AutomationSession


class BrowserSession:
    def __init__(self, user_data_dir: str | None = None, config: Settings = settings) -> None:
        self.config = config
        self.context: BrowserContext | None = None
        self.page: Page | None = None
        self._playwright: Playwright | None = None
        self._automation: AutomationSession | None = None
        self.user_data_dir = os.path.expanduser(
            user_data_dir or config.user_data_dir or "~/.web_ref_agent/profiles/default"
        )

    async def __aenter__(self) -> "BrowserSession":
        self._playwright = await async_playwright().start()
        self.context = await self._playwright.chromium.launch_persistent_context(
            user_data_dir=self.user_data_dir,
            headless=self.config.headless,
        )
        self.page = self.context.pages[0] if self.context.pages else await self.context.new_page()
        logging.info("browser_started headless=%s profile=%s", self.config.headless, self.user_data_dir)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self._automation = None
        if self.context:
            await self.context.close()
        if self._playwright:
            await self._playwright.stop()

    def _require_page(self) -> Page:
        if not self.page:
            raise RuntimeError("Browser page is not initialized. Use within an async context manager.")
        return self.page

    def automation_session(self) -> AutomationSession:
        """The AutomationSession bound to this browser's page, created on first use."""
        page = self._require_page()
        if self._automation is None or self._automation.context is not page:
            self._automation = AutomationSession(page, self.config)
        return self._automation

    async def goto(self, url: str, wait_ms: int | None = None) -> None:
        """
        Navigate to a URL and give the app a moment to hydrate.
        """
        page = self._require_page()
        await page.goto(url, wait_until="domcontentloaded", timeout=self.config.navigation_timeout_ms)
        try:
            await page.wait_for_load_state("networkidle", timeout=5000)
        except PlaywrightTimeoutError:
            logging.info("browser_networkidle_timeout url=%s", url)

        settle_ms = self.config.settle_ms if wait_ms is None else wait_ms
        if settle_ms > 0:
            await page.wait_for_timeout(settle_ms)

    async def title(self) -> str:
        return await self._require_page().title()

    async def screenshot(self, path: str):
        return await self._require_page().screenshot(path=path, full_page=False)

    def __repr__(self) -> str:
        return f"BrowserSession(headless={self.config.headless})"
