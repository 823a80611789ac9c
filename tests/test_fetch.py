"""
Unit tests for fetching.

No network and no browser: requests.get and async_playwright are
replaced with fakes.

Contract:
- static: non-2xx and transport errors -> FetchError
- dynamic: readiness selector timeout -> RenderTimeoutError
- dynamic: browser and context are closed on every exit path
"""

import unittest
from unittest import mock

import requests
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from uniscrape.errors import FetchError, RenderTimeoutError
from uniscrape.fetch import fetch
from uniscrape.model import FetchMode

URL = "https://www.example.ac.uk/study"
HTML = "<html><body><div class='course'><h3>MSc AI</h3></div></body></html>"


def fake_response(status: int, text: str = HTML) -> mock.Mock:
    resp = mock.Mock()
    resp.status_code = status
    resp.text = text
    return resp


class FakePage:
    def __init__(self, goto_error=None, wait_error=None) -> None:
        self.goto_error = goto_error
        self.wait_error = wait_error
        self.waited_for = None

    async def goto(self, url, wait_until=None, timeout=None):
        if self.goto_error:
            raise self.goto_error

    async def wait_for_selector(self, selector, timeout=None):
        self.waited_for = selector
        if self.wait_error:
            raise self.wait_error

    async def content(self):
        return HTML


class FakeContext:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.closed = False

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, context: FakeContext) -> None:
        self.context = context
        self.closed = False

    async def new_context(self, **kwargs):
        return self.context

    async def close(self):
        self.closed = True


class FakePlaywright:
    def __init__(self, page: FakePage) -> None:
        self.context = FakeContext(page)
        self.browser = FakeBrowser(self.context)
        self.chromium = mock.Mock()
        self.chromium.launch = mock.AsyncMock(return_value=self.browser)

    def __call__(self):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class TestStaticFetch(unittest.IsolatedAsyncioTestCase):
    async def test_ok_returns_document(self) -> None:
        with mock.patch("uniscrape.fetch.requests.get", return_value=fake_response(200)) as get:
            doc = await fetch(URL, timeout=5)
        self.assertEqual(doc.select_one(".course h3").get_text(), "MSc AI")
        self.assertEqual(get.call_args.kwargs["timeout"], 5)
        self.assertIn("User-Agent", get.call_args.kwargs["headers"])

    async def test_http_error_status(self) -> None:
        with mock.patch("uniscrape.fetch.requests.get", return_value=fake_response(404)):
            with self.assertRaises(FetchError) as ctx:
                await fetch(URL)
        self.assertEqual(ctx.exception.url, URL)
        self.assertIn("HTTP 404", str(ctx.exception))

    async def test_transport_error(self) -> None:
        with mock.patch("uniscrape.fetch.requests.get", side_effect=requests.ConnectionError("refused")):
            with self.assertRaises(FetchError) as ctx:
                await fetch(URL)
        self.assertIsInstance(ctx.exception.__cause__, requests.ConnectionError)


class TestDynamicFetch(unittest.IsolatedAsyncioTestCase):
    async def test_rendered_page(self) -> None:
        page = FakePage()
        pw = FakePlaywright(page)
        with mock.patch("uniscrape.fetch.async_playwright", pw):
            doc = await fetch(URL, FetchMode.DYNAMIC, ".course-list")
        self.assertEqual(doc.select_one("h3").get_text(), "MSc AI")
        self.assertEqual(page.waited_for, ".course-list")
        self.assertTrue(pw.context.closed)
        self.assertTrue(pw.browser.closed)

    async def test_readiness_timeout(self) -> None:
        pw = FakePlaywright(FakePage(wait_error=PlaywrightTimeoutError("Timeout 10000ms exceeded")))
        with mock.patch("uniscrape.fetch.async_playwright", pw):
            with self.assertRaises(RenderTimeoutError) as ctx:
                await fetch(URL, FetchMode.DYNAMIC, ".course-list", render_wait=10)
        self.assertEqual(ctx.exception.selector, ".course-list")
        self.assertTrue(pw.context.closed)
        self.assertTrue(pw.browser.closed)

    async def test_navigation_error_closes_browser(self) -> None:
        pw = FakePlaywright(FakePage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED")))
        with mock.patch("uniscrape.fetch.async_playwright", pw):
            with self.assertRaises(FetchError) as ctx:
                await fetch(URL, FetchMode.DYNAMIC)
        self.assertNotIsInstance(ctx.exception, RenderTimeoutError)
        self.assertTrue(pw.context.closed)
        self.assertTrue(pw.browser.closed)


if __name__ == "__main__":
    unittest.main()
