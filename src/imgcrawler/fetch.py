"""
Page retrieval with a headless-render fallback.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from typing import Optional, Tuple

import requests

from imgcrawler.events import EventCallback, info, warn
from imgcrawler.render import NullRenderer, Renderer
from imgcrawler.urls import ensure_scheme

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_MIN_CONTENT_LENGTH = 50
DEFAULT_USER_AGENT = "imgcrawler/1.0"


def is_html(content_type: str) -> bool:
    return "text/html" in content_type.lower()


def make_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = user_agent
    return session


class Fetcher:
    """
    Fetch HTML for a URL.

    The blocking requests call runs on executor (the loop default when None)
    so other domains keep crawling while it waits. Only HTML bodies are
    downloaded. If the response is not usable HTML (or is implausibly
    short), the renderer is asked for the page instead.
    """

    def __init__(
        self,
        session: requests.Session,
        on_event: EventCallback,
        renderer: Optional[Renderer] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        min_content_length: int = DEFAULT_MIN_CONTENT_LENGTH,
        executor: Optional[Executor] = None,
    ) -> None:
        self.session = session
        self.on_event = on_event
        self.renderer = renderer or NullRenderer()
        self.timeout = timeout
        self.min_content_length = min_content_length
        self.executor = executor

    def _get(self, url: str) -> Tuple[int, str, Optional[str]]:
        """Blocking GET; returns (status, content type, body if HTML)."""
        with self.session.get(url, timeout=self.timeout, allow_redirects=True, stream=True) as resp:
            content_type = resp.headers.get("content-type") or ""
            # the body is only downloaded for HTML
            body = resp.text if is_html(content_type) else None
            return resp.status_code, content_type, body

    async def _fetch_http(self, url: str, host: str) -> Optional[str]:
        try:
            loop = asyncio.get_running_loop()
            status, content_type, html = await loop.run_in_executor(self.executor, self._get, url)
        except requests.RequestException as e:
            self.on_event(warn(f"({host}) fetch error {url}: {e}", domain=host, url=url))
            return None

        if not 200 <= status < 300:
            self.on_event(warn(f"({host}) {url} -> HTTP {status}", domain=host, url=url))
        if html is None:
            logger.debug("Skipping non-HTML %s (%s)", url, content_type or "no content-type")
        return html

    async def fetch(self, url: str, host: str) -> Optional[str]:
        """Return the page HTML, or None when nothing usable was obtained."""
        url = ensure_scheme(url)
        html = await self._fetch_http(url, host)

        if html and len(html) >= self.min_content_length:
            return html

        try:
            rendered = await self.renderer.render(url)
        except Exception as e:  # pylint: disable=broad-except
            self.on_event(warn(f"({host}) browser render failed: {e}", domain=host, url=url))
            return html or None

        if rendered:
            self.on_event(info(f"({host}) rendered by browser: {url}", domain=host, url=url))
            return rendered
        return html or None
