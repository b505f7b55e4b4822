"""
Job-scoped store of discovered image URLs.
"""
from __future__ import annotations

import threading
from typing import List, Optional, Set

from imgcrawler.urls import resolve_url


class ResultSink:
    """Deduplicated set of absolute image URLs."""

    def __init__(self) -> None:
        self._urls: Set[str] = set()
        self._lock = threading.Lock()

    def add(self, raw_url: str, base_url: str) -> Optional[str]:
        """
        Resolve raw_url against base_url and record it.

        Falls back to the raw string when it cannot be resolved. Returns the
        stored URL if it was new, None for a duplicate.
        """
        url = resolve_url(raw_url, base_url) or raw_url
        with self._lock:
            if url in self._urls:
                return None
            self._urls.add(url)
        return url

    def __len__(self) -> int:
        return len(self._urls)

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def snapshot(self) -> List[str]:
        with self._lock:
            return sorted(self._urls)

    def export(self) -> str:
        """Newline-delimited list of every recorded URL."""
        return "\n".join(self.snapshot())
