import threading
import time

import pytest
import requests
from requests.structures import CaseInsensitiveDict


class FakeResponse:
    def __init__(self, status_code=200, content_type="text/html; charset=utf-8", text=""):
        self.status_code = status_code
        self.headers = CaseInsensitiveDict()
        if content_type:
            self.headers["Content-Type"] = content_type
        self._text = text
        self.body_read = False
        self.closed = False

    @property
    def text(self):
        self.body_read = True
        return self._text

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeSession:
    """Stands in for requests.Session; pages maps URL -> FakeResponse or exception."""

    def __init__(self, pages=None, delay=0.0):
        self.pages = dict(pages or {})
        self.delay = delay
        self.calls = []
        self.stream_flags = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def get(self, url, timeout=None, allow_redirects=True, stream=False):
        with self._lock:
            self.calls.append(url)
            self.stream_flags.append(stream)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            page = self.pages.get(url)
            if page is None:
                return FakeResponse(404, "text/plain", "not found")
            if isinstance(page, BaseException):
                raise page
            if isinstance(page, str):
                return FakeResponse(text=page)
            return page
        finally:
            with self._lock:
                self.in_flight -= 1


class FakeRenderer:
    def __init__(self, pages=None, error=None, close_error=None):
        self.pages = dict(pages or {})
        self.error = error
        self.close_error = close_error
        self.rendered = []
        self.close_calls = 0

    async def render(self, url):
        self.rendered.append(url)
        if self.error is not None:
            raise self.error
        return self.pages.get(url)

    async def close(self):
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


def page(*body):
    """Wrap body fragments in a document long enough to skip the render fallback."""
    return "<html><head><title>test page</title></head><body>" + "".join(body) + "</body></html>"


def links(*hrefs):
    return "".join(f'<a href="{href}">link</a>' for href in hrefs)


@pytest.fixture
def events():
    return []


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")
