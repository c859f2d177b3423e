"""Browser session: one persistent Playwright context, one page per command.

The persistent context keeps the note.com login cookies on disk between
runs. Every flow runs inside exactly one ``with_page`` call, which owns the
page for the duration of the command and closes it on every exit path
unless debug mode keeps it open for inspection.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from noet.browser.navigation import resilient_goto
from noet.browser.stealth import apply_stealth_scripts, build_context_options

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page, Playwright

    from noet.settings.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageOperation = Callable[["Page"], Awaitable[T]]


class BrowserSession:
    """Owns the Playwright driver and the persistent browser context.

    Use as an async context manager::

        async with BrowserSession(settings) as session:
            title = await session.with_page(url, read_title)

    Args:
        settings: Resolved noet settings.
        context: An already-running context to attach to instead of
            launching one (the session then never closes it).
    """

    def __init__(self, settings: Settings, *, context: BrowserContext | None = None) -> None:
        self._settings = settings
        self._playwright: Playwright | None = None
        self._context: BrowserContext | None = context
        self._owns_context = context is None
        self._open_pages = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Launch Chromium with the persistent profile directory."""
        if self._context is not None:
            return

        from playwright.async_api import async_playwright

        user_data_dir = Path(self._settings.browser.user_data_dir)
        user_data_dir.mkdir(parents=True, exist_ok=True)

        self._playwright = await async_playwright().start()
        options = build_context_options(self._settings)
        self._context = await self._playwright.chromium.launch_persistent_context(str(user_data_dir), **options)
        self._context.set_default_timeout(self._settings.browser.timeout_ms)

        if self._settings.stealth.apply_stealth_scripts:
            await apply_stealth_scripts(self._context, self._settings.stealth.locale)

        logger.info(
            "Browser session started (profile=%s, headless=%s)",
            user_data_dir,
            self._settings.browser.headless,
        )

    async def stop(self) -> None:
        """Close the context and stop the driver; safe to call twice."""
        if self._context is not None and self._owns_context:
            try:
                await self._context.close()
            except Exception as exc:
                logger.debug("Context close failed: %s", exc)
            self._context = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.info("Browser session stopped")

    async def __aenter__(self) -> BrowserSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise RuntimeError("BrowserSession not started")
        return self._context

    @property
    def open_pages(self) -> int:
        """Pages opened by ``with_page`` and not yet closed."""
        return self._open_pages

    # ------------------------------------------------------------------
    # Scoped page
    # ------------------------------------------------------------------

    async def with_page(self, url: str, operation: PageOperation[T], *, debug: bool = False) -> T:
        """Open *url* in a new page, run *operation* on it, then close the page.

        In debug mode the page is brought to the front and left open after
        the operation, successful or not. Otherwise it is closed on every
        exit path; a failing close is logged and swallowed so the
        operation's own outcome is what the caller sees.

        Args:
            url: Address to load before handing over the page.
            operation: Coroutine function receiving the loaded page.
            debug: Keep the page visible and open.

        Returns:
            Whatever *operation* returns.
        """
        page = await self.context.new_page()
        self._open_pages += 1
        try:
            if debug:
                await page.bring_to_front()
            await resilient_goto(page, url, timeout_ms=self._settings.browser.timeout_ms)
            return await operation(page)
        finally:
            if debug:
                logger.info("Debug mode: leaving page open at %s", page.url)
            else:
                try:
                    await page.close()
                except Exception as exc:
                    logger.debug("Page close failed (ignored): %s", exc)
                self._open_pages -= 1

