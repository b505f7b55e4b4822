"""
Crawl jobs: loading the domain list, lifecycle status and an in-memory registry.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
import time
import uuid
from collections import OrderedDict
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

import requests

from imgcrawler.core import CrawlConfig, start
from imgcrawler.events import CrawlEvent, EventLog, error, info
from imgcrawler.fetch import DEFAULT_TIMEOUT, make_session
from imgcrawler.results import ResultSink
from imgcrawler.urls import ensure_scheme

logger = logging.getLogger(__name__)

SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


class CrawlerError(Exception):
    """Base class for job-level failures."""


class DomainListError(CrawlerError):
    """The domain list could not be obtained."""


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    @property
    def finished(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.FAILED)


class CrawlJob:
    """One crawl invocation: its status, event log and results."""

    def __init__(
        self,
        job_id: Optional[str] = None,
        max_events: int = 2000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.job_id = job_id or uuid.uuid4().hex
        self.status = JobStatus.QUEUED
        self.events = EventLog(max_events)
        self.results = ResultSink()
        self._clock = clock
        self.created_at = clock()
        self.finished_at: Optional[float] = None

    def emit(self, event: CrawlEvent) -> None:
        self.events.append(event)

    def finish(self, status: JobStatus) -> None:
        self.status = status
        self.finished_at = self._clock()

    def export_results(self) -> str:
        return self.results.export()


class JobRegistry:
    """
    Jobs keyed by id.

    Finished jobs are evicted once older than ttl seconds, and the oldest
    finished jobs go first when more than max_jobs are held. Jobs that have
    not finished are never evicted.
    """

    def __init__(
        self,
        max_jobs: int = 100,
        ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_jobs = max_jobs
        self.ttl = ttl
        self._clock = clock
        self._jobs: "OrderedDict[str, CrawlJob]" = OrderedDict()

    def create(self, **kwargs) -> CrawlJob:
        job = CrawlJob(clock=self._clock, **kwargs)
        self._jobs[job.job_id] = job
        self.evict()
        return job

    def get(self, job_id: str) -> Optional[CrawlJob]:
        return self._jobs.get(job_id)

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def evict(self) -> List[str]:
        """Drop expired and surplus finished jobs; return the evicted ids."""
        now = self._clock()
        evicted = [
            job_id for job_id, job in self._jobs.items()
            if job.status.finished and job.finished_at is not None
            and now - job.finished_at > self.ttl
        ]
        for job_id in evicted:
            del self._jobs[job_id]

        if len(self._jobs) > self.max_jobs:
            finished = [job_id for job_id, job in self._jobs.items() if job.status.finished]
            for job_id in finished[:len(self._jobs) - self.max_jobs]:
                del self._jobs[job_id]
                evicted.append(job_id)

        if evicted:
            logger.debug("Evicted %d job(s)", len(evicted))
        return evicted


def parse_domain_list(text: str) -> List[str]:
    """One domain per line; blanks and # comments are skipped."""
    domains: Dict[str, None] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        line = SCHEME_RE.sub("", line).rstrip("/")
        if line:
            domains[line] = None
    return list(domains)


def load_domain_list(
    source: str,
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[str]:
    """Read the domain list from a local file or download it from a URL."""
    path = Path(source)
    if "://" not in source and path.is_file():
        try:
            return parse_domain_list(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise DomainListError(f"Cannot read domain list {source}: {e}") from e

    session = session or make_session()
    url = ensure_scheme(source)
    try:
        resp = session.get(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        raise DomainListError(f"Failed to download domain list: {e}") from e
    if not 200 <= resp.status_code < 300:
        raise DomainListError(f"Failed to download domain list: HTTP {resp.status_code}")
    return parse_domain_list(resp.text)


async def run_job(
    job: CrawlJob,
    source: str,
    config: CrawlConfig,
    session: Optional[requests.Session] = None,
    **kwargs,
) -> JobStatus:
    """
    Load the domain list from source and crawl it with config.

    The job always ends DONE or FAILED; the event log is closed afterwards.
    """
    session = session or make_session(config.user_agent)
    try:
        job.emit(info("Downloading domain list..."))
        try:
            domains = await asyncio.to_thread(
                load_domain_list, source, session, config.request_timeout
            )
        except DomainListError as e:
            job.emit(error(str(e)))
            job.finish(JobStatus.FAILED)
            return job.status

        job.emit(info(f"Loaded {len(domains)} domains. Starting crawler..."))
        job.status = JobStatus.RUNNING
        await start(
            dataclasses.replace(config, domains=domains),
            job.emit,
            sink=job.results,
            session=session,
            **kwargs,
        )
        job.finish(JobStatus.DONE)
    except Exception as e:  # pylint: disable=broad-except
        logger.exception("Job %s failed", job.job_id)
        job.emit(error(str(e)))
        job.finish(JobStatus.FAILED)
    finally:
        job.events.close()
    return job.status
