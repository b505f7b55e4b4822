"""
Core crawling logic: per-domain BFS traversal and multi-domain scheduling.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, NamedTuple, Optional, Sequence, Set
from urllib.parse import urlparse

import requests

from imgcrawler.events import CrawlEvent, EventCallback, EventType, info, warn
from imgcrawler.extract import extract_images_and_links
from imgcrawler.fetch import (
    DEFAULT_MIN_CONTENT_LENGTH,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    Fetcher,
    make_session,
)
from imgcrawler.render import DEFAULT_RENDER_TIMEOUT, Renderer, acquire_renderer
from imgcrawler.results import ResultSink
from imgcrawler.urls import admit_link

logger = logging.getLogger(__name__)

ImageCallback = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class CrawlConfig:
    """Settings for one crawl job. Immutable once the job starts."""
    domains: Sequence[str] = ()
    concurrency: int = 200
    max_pages_per_domain: int = 20
    max_depth: int = 2
    request_timeout: float = DEFAULT_TIMEOUT
    render_timeout: float = DEFAULT_RENDER_TIMEOUT
    render: bool = True
    min_content_length: int = DEFAULT_MIN_CONTENT_LENGTH
    progress_interval: int = 5
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        object.__setattr__(self, "domains", tuple(self.domains))
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {self.concurrency}")
        if self.max_pages_per_domain < 1:
            raise ValueError(f"max_pages_per_domain must be positive, got {self.max_pages_per_domain}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must not be negative, got {self.max_depth}")
        if self.progress_interval < 1:
            raise ValueError(f"progress_interval must be positive, got {self.progress_interval}")
        if self.request_timeout <= 0 or self.render_timeout <= 0:
            raise ValueError("timeouts must be positive")


class FrontierEntry(NamedTuple):
    url: str
    depth: int


class CrawlState(str, Enum):
    INIT = "init"
    RUNNING = "running"
    DONE = "done"


def host_of(domain: str) -> str:
    """Lowercased hostname of a domain list entry."""
    try:
        hostname = urlparse(f"http://{domain}").hostname
    except ValueError:
        hostname = None
    return (hostname or domain).lower().rstrip(".")


class DomainCrawler:
    """
    Breadth-first traversal of a single domain.

    Owns its frontier and visited set exclusively; pages are fetched one at
    a time in frontier order. Every fetch attempt counts against the page
    budget, including attempts that return nothing.
    """

    def __init__(
        self,
        domain: str,
        config: CrawlConfig,
        fetcher: Fetcher,
        on_image: Callable[[str, str], None],
        on_event: EventCallback,
    ) -> None:
        self.domain = domain.strip()
        self.host = host_of(self.domain)
        self.start_url = f"http://{self.domain}"
        self.config = config
        self.fetcher = fetcher
        self.on_image = on_image
        self.on_event = on_event

        self.visited: Set[str] = set()
        self.frontier: Deque[FrontierEntry] = deque()
        self.pages_visited = 0
        self.state = CrawlState.INIT

    async def run(self) -> None:
        self.frontier.append(FrontierEntry(self.start_url, 0))
        self.state = CrawlState.RUNNING
        try:
            while self.frontier and self.pages_visited < self.config.max_pages_per_domain:
                entry = self.frontier.popleft()
                if entry.url in self.visited:
                    continue
                self.visited.add(entry.url)
                await self._visit(entry)
        finally:
            self.state = CrawlState.DONE

    async def _visit(self, entry: FrontierEntry) -> None:
        self.on_event(CrawlEvent(
            EventType.PROGRESS,
            f"({self.host}) fetching {entry.url} (depth {entry.depth})",
            domain=self.host,
            url=entry.url,
            depth=entry.depth,
        ))

        html = await self.fetcher.fetch(entry.url, self.host)
        self.pages_visited += 1

        if html:
            self._process(html, entry)

        if self.pages_visited % self.config.progress_interval == 0:
            self.on_event(CrawlEvent(
                EventType.DOMAIN_PROGRESS,
                domain=self.host,
                pages_visited=self.pages_visited,
            ))

    def _process(self, html: str, entry: FrontierEntry) -> None:
        images, links = extract_images_and_links(html, entry.url)

        for ref in images:
            self.on_image(ref, entry.url)

        if entry.depth >= self.config.max_depth:
            return

        for href in links:
            target = admit_link(href, entry.url, self.host)
            if target and target not in self.visited:
                self.frontier.append(FrontierEntry(target, entry.depth + 1))


class Orchestrator:
    """
    Crawl every domain of a config under a global concurrency bound.

    Domains are started in list order as slots free up. One renderer is
    acquired for the whole job and closed after the last domain finishes.
    """

    def __init__(
        self,
        config: CrawlConfig,
        on_event: EventCallback,
        on_found_image: Optional[ImageCallback] = None,
        *,
        sink: Optional[ResultSink] = None,
        session: Optional[requests.Session] = None,
        renderer: Optional[Renderer] = None,
    ) -> None:
        self.config = config
        self.on_event = on_event
        self.on_found_image = on_found_image
        self.sink = sink if sink is not None else ResultSink()
        self.session = session
        self.renderer = renderer
        self.processed_domains = 0

    async def run(self) -> ResultSink:
        cfg = self.config
        self.on_event(info(
            f"Crawl start: concurrency={cfg.concurrency}, "
            f"maxPagesPerDomain={cfg.max_pages_per_domain}, maxDepth={cfg.max_depth}"
        ))

        if cfg.domains:
            renderer = self.renderer
            if renderer is None:
                renderer = await acquire_renderer(cfg.render, cfg.render_timeout, self.on_event)
            # one fetch thread per domain slot
            executor = ThreadPoolExecutor(
                max_workers=cfg.concurrency, thread_name_prefix="imgcrawler-fetch"
            )
            try:
                fetcher = Fetcher(
                    self.session or make_session(cfg.user_agent),
                    self.on_event,
                    renderer,
                    timeout=cfg.request_timeout,
                    min_content_length=cfg.min_content_length,
                    executor=executor,
                )
                await self._dispatch(fetcher)
            finally:
                executor.shutdown(wait=False)
                await self._close_renderer(renderer)

        total = len(self.sink)
        self.on_event(info("All domains processed"))
        self.on_event(CrawlEvent(
            EventType.DONE,
            f"Done. Found {total} unique image URLs.",
            unique_images=total,
        ))
        return self.sink

    async def _close_renderer(self, renderer: Renderer) -> None:
        try:
            await renderer.close()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Renderer shutdown failed", exc_info=True)
            self.on_event(warn(f"Browser shutdown failed: {exc}"))

    async def _dispatch(self, fetcher: Fetcher) -> None:
        limiter = asyncio.Semaphore(self.config.concurrency)
        tasks: List[asyncio.Task] = []
        try:
            for domain in self.config.domains:
                await limiter.acquire()
                task = asyncio.create_task(self._crawl_domain(domain, fetcher))
                task.add_done_callback(lambda _task: limiter.release())
                tasks.append(task)
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def _crawl_domain(self, domain: str, fetcher: Fetcher) -> None:
        crawler = DomainCrawler(domain, self.config, fetcher, self._record_image, self.on_event)
        try:
            await crawler.run()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Crawl of %s stopped early", crawler.host, exc_info=True)
            self.on_event(warn(f"({crawler.host}) crawl stopped: {exc}", domain=crawler.host))

        self.processed_domains += 1
        self.on_event(CrawlEvent(
            EventType.DOMAIN_DONE,
            domain=crawler.host,
            pages_visited=crawler.pages_visited,
            processed_domains=self.processed_domains,
        ))

    def _record_image(self, raw_url: str, base_url: str) -> None:
        url = self.sink.add(raw_url, base_url)
        if url is not None and self.on_found_image is not None:
            self.on_found_image(url)


async def start(
    config: CrawlConfig,
    on_event: EventCallback,
    on_found_image: Optional[ImageCallback] = None,
    **kwargs,
) -> ResultSink:
    """Run a crawl job to completion and return its result sink."""
    return await Orchestrator(config, on_event, on_found_image, **kwargs).run()
