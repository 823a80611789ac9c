"""
Error taxonomy.

Library exceptions (requests, Playwright, sqlite3) are wrapped into these
classes by the module that owns the library. Callers only ever catch the
classes below.

A rejected candidate is not an error: the validator simply returns False.
"""

from __future__ import annotations

from typing import Optional


class ScrapeError(Exception):
    """Base class for all pipeline errors."""


class FetchError(ScrapeError):
    """Network failure, timeout or non-2xx response for one page."""

    def __init__(self, url: str, cause: object) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"fetch failed for {url}: {cause}")


class RenderTimeoutError(FetchError):
    """The readiness selector never appeared in a rendered page."""

    def __init__(self, url: str, selector: str, cause: Optional[object] = None) -> None:
        self.selector = selector
        super().__init__(url, cause or f"readiness selector {selector!r} did not appear")


class ExtractionEmptyError(ScrapeError):
    """No container selector matched and heading discovery found nothing."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"no course candidates found on {url}")


class TransformError(ScrapeError):
    """A normalization rule failed on malformed input."""

    def __init__(self, field: str, cause: object) -> None:
        self.field = field
        self.cause = cause
        super().__init__(f"cannot normalize field {field!r}: {cause}")


class PersistenceError(ScrapeError):
    """A storage operation failed."""


class UnknownSourceError(ScrapeError):
    """Configuration error: the requested source id does not exist."""
