"""
Crawl events and a bounded, replayable event log.
"""
from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Deque, Dict, List, Optional

DEFAULT_MAX_EVENTS = 2000


class EventType(str, Enum):
    INFO = "info"
    PROGRESS = "progress"
    WARN = "warn"
    DOMAIN_PROGRESS = "domain-progress"
    DOMAIN_DONE = "domain-done"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class CrawlEvent:
    """A single notification of crawl progress or outcome."""
    type: EventType
    message: Optional[str] = None
    domain: Optional[str] = None
    url: Optional[str] = None
    depth: Optional[int] = None
    pages_visited: Optional[int] = None
    processed_domains: Optional[int] = None
    unique_images: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON payload with unset fields left out."""
        payload: Dict[str, Any] = {"type": self.type.value}
        fields = (
            ("message", self.message),
            ("domain", self.domain),
            ("url", self.url),
            ("depth", self.depth),
            ("pagesVisited", self.pages_visited),
            ("processedDomains", self.processed_domains),
            ("uniqueImages", self.unique_images),
        )
        for key, value in fields:
            if value is not None:
                payload[key] = value
        return payload


EventCallback = Callable[[CrawlEvent], None]


def info(message: str, **kwargs: Any) -> CrawlEvent:
    return CrawlEvent(EventType.INFO, message, **kwargs)


def warn(message: str, **kwargs: Any) -> CrawlEvent:
    return CrawlEvent(EventType.WARN, message, **kwargs)


def error(message: str, **kwargs: Any) -> CrawlEvent:
    return CrawlEvent(EventType.ERROR, message, **kwargs)


class EventLog:
    """
    Append-only event log keeping the most recent max_events entries.

    Subscribers get the retained backlog first and then live events. The
    backlog copy and the subscriber registration happen without an await in
    between, so nothing is lost or delivered twice at the switch-over.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self._events: Deque[CrawlEvent] = deque(maxlen=max_events)
        self._subscribers: List[asyncio.Queue] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, event: CrawlEvent) -> None:
        if self._closed:
            raise RuntimeError("event log is closed")
        self._events.append(event)
        for queue in self._subscribers:
            queue.put_nowait(event)

    def backlog(self) -> List[CrawlEvent]:
        return list(self._events)

    def close(self) -> None:
        """Mark the stream finished; live subscribers stop after draining."""
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(None)

    def __len__(self) -> int:
        return len(self._events)

    async def subscribe(self) -> AsyncIterator[CrawlEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        backlog = list(self._events)
        closed = self._closed
        if not closed:
            self._subscribers.append(queue)
        try:
            for event in backlog:
                yield event
            if closed:
                return
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)
