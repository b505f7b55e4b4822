import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import FakeRenderer, FakeResponse, FakeSession, page
from imgcrawler.events import EventType
from imgcrawler.fetch import Fetcher, is_html

URL = "http://ex.com/"
HTML = page('<img src="/a.png">')


def make_fetcher(session, events, renderer=None):
    return Fetcher(session, events.append, renderer, timeout=1.0)


def test_is_html():
    assert is_html("text/html; charset=UTF-8")
    assert is_html("TEXT/HTML")
    assert not is_html("application/json")
    assert not is_html("")


@pytest.mark.asyncio
async def test_returns_html_body(events):
    fetcher = make_fetcher(FakeSession({URL: HTML}), events)
    assert await fetcher.fetch(URL, "ex.com") == HTML
    assert events == []


@pytest.mark.asyncio
async def test_schemeless_url_gets_http(events):
    session = FakeSession({"http://ex.com/about": HTML})
    fetcher = make_fetcher(session, events)
    assert await fetcher.fetch("ex.com/about", "ex.com") == HTML
    assert session.calls == ["http://ex.com/about"]


@pytest.mark.asyncio
async def test_error_status_warns_but_keeps_html(events):
    session = FakeSession({URL: FakeResponse(404, text=HTML)})
    fetcher = make_fetcher(session, events)
    assert await fetcher.fetch(URL, "ex.com") == HTML
    assert [e.type for e in events] == [EventType.WARN]
    assert events[0].message == "(ex.com) http://ex.com/ -> HTTP 404"


@pytest.mark.asyncio
async def test_non_html_content_is_dropped(events):
    session = FakeSession({URL: FakeResponse(200, "image/png", "\x89PNG")})
    fetcher = make_fetcher(session, events)
    assert await fetcher.fetch(URL, "ex.com") is None
    assert events == []


@pytest.mark.asyncio
async def test_request_exception_becomes_warning(events, connection_error):
    fetcher = make_fetcher(FakeSession({URL: connection_error}), events)
    assert await fetcher.fetch(URL, "ex.com") is None
    assert len(events) == 1
    assert events[0].type is EventType.WARN
    assert events[0].message.startswith("(ex.com) fetch error http://ex.com/")


@pytest.mark.asyncio
async def test_short_content_falls_back_to_renderer(events):
    rendered = page('<img src="/js.png">')
    renderer = FakeRenderer({URL: rendered})
    fetcher = make_fetcher(FakeSession({URL: "<div id=app></div>"}), events, renderer)
    assert await fetcher.fetch(URL, "ex.com") == rendered
    assert renderer.rendered == [URL]
    assert [e.type for e in events] == [EventType.INFO]
    assert events[0].message == "(ex.com) rendered by browser: http://ex.com/"


@pytest.mark.asyncio
async def test_non_html_falls_back_to_renderer(events):
    rendered = page("rendered")
    renderer = FakeRenderer({URL: rendered})
    session = FakeSession({URL: FakeResponse(200, "application/octet-stream", "")})
    fetcher = make_fetcher(session, events, renderer)
    assert await fetcher.fetch(URL, "ex.com") == rendered


@pytest.mark.asyncio
async def test_long_content_skips_renderer(events):
    renderer = FakeRenderer({URL: page("rendered")})
    fetcher = make_fetcher(FakeSession({URL: HTML}), events, renderer)
    assert await fetcher.fetch(URL, "ex.com") == HTML
    assert renderer.rendered == []


@pytest.mark.asyncio
async def test_render_failure_is_a_warning(events):
    renderer = FakeRenderer(error=RuntimeError("browser crashed"))
    fetcher = make_fetcher(FakeSession({URL: "<p>short</p>"}), events, renderer)
    assert await fetcher.fetch(URL, "ex.com") == "<p>short</p>"
    assert [e.type for e in events] == [EventType.WARN]
    assert events[0].message == "(ex.com) browser render failed: browser crashed"


@pytest.mark.asyncio
async def test_render_failure_without_content_gives_none(events, connection_error):
    renderer = FakeRenderer(error=RuntimeError("no browser"))
    fetcher = make_fetcher(FakeSession({URL: connection_error}), events, renderer)
    assert await fetcher.fetch(URL, "ex.com") is None
    assert [e.type for e in events] == [EventType.WARN, EventType.WARN]


@pytest.mark.asyncio
async def test_without_renderer_short_content_is_returned(events):
    fetcher = make_fetcher(FakeSession({URL: "<p>tiny</p>"}), events)
    assert await fetcher.fetch(URL, "ex.com") == "<p>tiny</p>"


@pytest.mark.asyncio
async def test_non_html_body_is_not_downloaded(events):
    response = FakeResponse(200, "video/mp4", "binary video data")
    session = FakeSession({"http://ex.com/video.mp4": response})
    fetcher = make_fetcher(session, events)
    assert await fetcher.fetch("http://ex.com/video.mp4", "ex.com") is None
    assert session.stream_flags == [True]
    assert not response.body_read
    assert response.closed


@pytest.mark.asyncio
async def test_html_response_is_read_and_closed(events):
    response = FakeResponse(text=HTML)
    fetcher = make_fetcher(FakeSession({URL: response}), events)
    assert await fetcher.fetch(URL, "ex.com") == HTML
    assert response.body_read
    assert response.closed


@pytest.mark.asyncio
async def test_requests_run_on_given_executor(events):
    session = FakeSession({URL: HTML})
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="fetch-test") as executor:
        fetcher = Fetcher(session, events.append, executor=executor)
        seen = []
        original_get = session.get

        def recording_get(*args, **kwargs):
            seen.append(threading.current_thread().name)
            return original_get(*args, **kwargs)

        session.get = recording_get
        assert await fetcher.fetch(URL, "ex.com") == HTML
    assert seen and seen[0].startswith("fetch-test")
