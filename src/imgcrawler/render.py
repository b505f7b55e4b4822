"""
Optional headless rendering used when a plain fetch yields too little HTML.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from imgcrawler.events import EventCallback, info

# Playwright is an optional extra; without it rendering is simply unavailable.
try:
    from playwright.async_api import (
        Browser,
        Playwright,
        TimeoutError as PlaywrightTimeoutError,
        async_playwright,
    )
except ImportError:  # pragma: no cover - optional dependency
    async_playwright = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

DEFAULT_RENDER_TIMEOUT = 15.0
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class Renderer(Protocol):
    async def render(self, url: str) -> Optional[str]:
        ...

    async def close(self) -> None:
        ...


class NullRenderer:
    """Stand-in used when no browser is available."""

    async def render(self, url: str) -> Optional[str]:
        return None

    async def close(self) -> None:
        return None


class PlaywrightRenderer:
    """One shared Chromium instance; every render gets its own context."""

    def __init__(self, playwright: "Playwright", browser: "Browser", timeout: float) -> None:
        self._playwright = playwright
        self._browser = browser
        self._timeout_ms = int(timeout * 1000)
        self._closed = False

    @classmethod
    async def launch(cls, timeout: float = DEFAULT_RENDER_TIMEOUT) -> "PlaywrightRenderer":
        if async_playwright is None:
            raise RuntimeError("playwright is not installed")
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=True, args=BROWSER_ARGS)
        except BaseException:
            await playwright.stop()
            raise
        return cls(playwright, browser, timeout)

    async def render(self, url: str) -> Optional[str]:
        """Navigate to url and return the document once the network settles."""
        context = await self._browser.new_context()
        try:
            page = await context.new_page()
            try:
                await page.goto(url, wait_until="networkidle", timeout=self._timeout_ms)
            except PlaywrightTimeoutError:
                # Busy pages never go idle; take what has been built so far.
                logger.debug("Navigation timeout for %s, capturing partial document", url)
            return await page.content()
        finally:
            await context.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()


async def acquire_renderer(
    enabled: bool,
    timeout: float,
    on_event: EventCallback,
) -> Renderer:
    """Pick the renderer for a job; never raises."""
    if not enabled:
        on_event(info("JS rendering disabled by configuration"))
        return NullRenderer()
    if async_playwright is None:
        on_event(info("Playwright not installed: JS rendering OFF"))
        return NullRenderer()
    try:
        renderer = await PlaywrightRenderer.launch(timeout)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Could not launch Chromium: %s", exc)
        on_event(info("Playwright not usable in this environment, falling back to HTTP-only parsing"))
        return NullRenderer()
    on_event(info("Playwright available: JS rendering ON"))
    return renderer
