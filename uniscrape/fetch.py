"""
Fetching (URL -> parsed document).

Two modes with the same return type:
- static:  one HTTP GET with requests (run in a worker thread)
- dynamic: headless Chromium via Playwright, for script-rendered pages

No retries here: retry and backoff belong to the run coordinator.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import requests
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from uniscrape.errors import FetchError, RenderTimeoutError
from uniscrape.model import FetchMode

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request defaults
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Connection": "keep-alive",
}

DEFAULT_TIMEOUT = 30.0
DEFAULT_RENDER_WAIT = 10.0


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


# ---------------------------------------------------------------------------
# Static mode
# ---------------------------------------------------------------------------


def _get(url: str, timeout: float) -> str:
    try:
        resp = requests.get(url, headers=DEFAULT_HEADERS, timeout=timeout)
    except requests.RequestException as exc:
        raise FetchError(url, exc) from exc

    if not 200 <= resp.status_code < 300:
        raise FetchError(url, f"HTTP {resp.status_code}")
    return resp.text


async def fetch_static(url: str, timeout: float = DEFAULT_TIMEOUT) -> BeautifulSoup:
    logger.debug("GET %s", url)
    html = await asyncio.to_thread(_get, url, timeout)
    return parse_html(html)


# ---------------------------------------------------------------------------
# Dynamic mode
# ---------------------------------------------------------------------------


async def fetch_dynamic(
    url: str,
    readiness_selector: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT,
    render_wait: float = DEFAULT_RENDER_WAIT,
) -> BeautifulSoup:
    """
    Render `url` in an isolated browser context and return the final DOM.

    Browser and context are closed on every exit path.
    """
    logger.debug("RENDER %s (ready=%s)", url, readiness_selector)
    try:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=True)
            try:
                context = await browser.new_context(
                    user_agent=USER_AGENT,
                    viewport={"width": 1920, "height": 1080},
                    locale="en-GB",
                )
                try:
                    page = await context.new_page()
                    await page.goto(url, wait_until="networkidle", timeout=int(timeout * 1000))
                    if readiness_selector:
                        try:
                            await page.wait_for_selector(readiness_selector, timeout=int(render_wait * 1000))
                        except PlaywrightTimeoutError as exc:
                            raise RenderTimeoutError(url, readiness_selector) from exc
                    html = await page.content()
                finally:
                    await context.close()
            finally:
                await browser.close()
    except PlaywrightError as exc:
        raise FetchError(url, exc) from exc

    return parse_html(html)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def fetch(
    url: str,
    mode: FetchMode = FetchMode.STATIC,
    readiness_selector: Optional[str] = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    render_wait: float = DEFAULT_RENDER_WAIT,
) -> BeautifulSoup:
    """
    Retrieve one page in the requested mode. Raises FetchError on failure.
    """
    if mode is FetchMode.DYNAMIC:
        return await fetch_dynamic(url, readiness_selector, timeout=timeout, render_wait=render_wait)
    return await fetch_static(url, timeout=timeout)
