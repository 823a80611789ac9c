"""
Run coordination.

Runs sources one after another, pages of a source one after another:

    fetch (with retries) -> extract -> validate -> normalize -> dedupe -> persist

Important rules:
- a failing page or record never aborts its siblings
- each source runs under a wall-clock budget; when it is exceeded the
  in-flight fetch is cancelled, the source is reported as failed, and
  records stored from its earlier pages stay stored
- delays between pages and between sources are plain cooperative waits
- the run report is built by folding immutable per-source outcomes
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Set, Tuple

from bs4 import BeautifulSoup

from uniscrape.dedupe import dedupe
from uniscrape.errors import ExtractionEmptyError, FetchError, TransformError
from uniscrape.extract import extract_fragments
from uniscrape.fetch import fetch
from uniscrape.model import CourseRecord, PageError, RunReport, SourceDescriptor, SourceOutcome
from uniscrape.normalize import normalize
from uniscrape.persist import persist
from uniscrape.storage import CourseStore
from uniscrape.validate import is_candidate_record

logger = logging.getLogger(__name__)

Fetcher = Callable[..., Awaitable[BeautifulSoup]]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _default_report_dir() -> Path:
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "reports"


@dataclass(frozen=True)
class RunConfig:
    """Delays, timeouts and retry policy for one run (seconds)."""

    page_delay: float = 2.0
    source_delay: float = 10.0
    fetch_timeout: float = 30.0
    render_wait: float = 10.0
    source_timeout: float = 120.0
    retries: int = 1
    retry_delay: float = 2.0
    page_grace: float = 5.0
    report_dir: Path = field(default_factory=_default_report_dir)

    @property
    def page_budget(self) -> float:
        """Hard ceiling for one fetch attempt, rendering included."""
        return self.fetch_timeout + self.render_wait + self.page_grace

    @property
    def worst_page_time(self) -> float:
        """Time one page can take when every attempt hangs."""
        attempts = max(1, self.retries + 1)
        return attempts * self.page_budget + (attempts - 1) * self.retry_delay

    def leaves_room_for_siblings(self) -> bool:
        """True if one hung page cannot use up the whole source budget."""
        return self.worst_page_time < self.source_timeout


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


async def fetch_with_retries(
    source: SourceDescriptor,
    url: str,
    config: RunConfig,
    fetcher: Fetcher,
    deadline: Optional[float] = None,
) -> BeautifulSoup:
    """
    Fetch one page, retrying on FetchError or timeout.

    `deadline` (event loop time) is the end of the source budget: a retry
    that could not finish before it is not attempted.
    """
    loop = asyncio.get_running_loop()
    attempts = max(1, config.retries + 1)
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(
                fetcher(
                    url,
                    source.fetch_mode,
                    source.readiness_selector,
                    timeout=config.fetch_timeout,
                    render_wait=config.render_wait,
                ),
                timeout=config.page_budget,
            )
        except asyncio.TimeoutError:
            error = FetchError(url, f"timed out after {config.page_budget:g}s")
        except FetchError as exc:
            error = exc

        if attempt >= attempts:
            raise error
        if deadline is not None and loop.time() + config.retry_delay + config.page_budget > deadline:
            logger.warning("No budget left to retry %s: %s", url, error)
            raise error
        logger.warning("Attempt %d/%d failed for %s: %s", attempt, attempts, url, error)
        await asyncio.sleep(config.retry_delay)

    raise FetchError(url, "no attempts made")  # pragma: no cover


def build_records(
    document: BeautifulSoup,
    source: SourceDescriptor,
    page_url: str,
    today: Optional[date] = None,
) -> Tuple[List[CourseRecord], List[PageError]]:
    """
    Extract, validate and normalize one page. Pure apart from logging.
    """
    try:
        fragments = extract_fragments(document, source, page_url)
    except ExtractionEmptyError as exc:
        logger.warning("%s", exc)
        return [], []

    records: List[CourseRecord] = []
    errors: List[PageError] = []
    candidates = [f for f in fragments if is_candidate_record(f)]
    logger.info("%s: %d candidates, %d accepted", page_url, len(fragments), len(candidates))

    for fragment in candidates:
        try:
            records.append(normalize(fragment, source, today=today))
        except TransformError as exc:
            logger.warning("Dropped %r from %s: %s", fragment.title, page_url, exc)
            errors.append(PageError(source.id, page_url, str(exc)))
    return records, errors


@dataclass
class _SourceProgress:
    """Per-source state that survives cancellation of the page loop."""

    stored: int = 0
    current_url: Optional[str] = None
    errors: List[PageError] = field(default_factory=list)
    seen: Set[Tuple[str, str]] = field(default_factory=set)
    fees: List[int] = field(default_factory=list)


def _process_page(
    document: BeautifulSoup,
    source: SourceDescriptor,
    url: str,
    store: CourseStore,
    progress: _SourceProgress,
    today: Optional[date],
) -> None:
    records, errors = build_records(document, source, url, today=today)
    progress.errors.extend(errors)

    unique = dedupe(records, progress.seen)
    result = persist(unique, store, website_url=source.base_url)
    progress.stored += result.stored
    progress.fees.extend(result.fees)
    for title, message in result.errors:
        progress.errors.append(PageError(source.id, url, f"{title}: {message}"))
    logger.info("%s: stored %d of %d records", url, result.stored, len(unique))


async def _run_pages(
    source: SourceDescriptor,
    store: CourseStore,
    config: RunConfig,
    fetcher: Fetcher,
    progress: _SourceProgress,
    today: Optional[date],
    deadline: Optional[float] = None,
) -> None:
    for index, url in enumerate(source.pages):
        if index > 0 and config.page_delay > 0:
            await asyncio.sleep(config.page_delay)

        progress.current_url = url
        logger.info("Scraping %s", url)
        try:
            document = await fetch_with_retries(source, url, config, fetcher, deadline)
        except FetchError as exc:
            logger.error("Failed to scrape %s: %s", url, exc)
            progress.errors.append(PageError(source.id, url, str(exc)))
            continue

        try:
            _process_page(document, source, url, store, progress, today)
        except Exception as exc:
            # unexpected bug on one page; sibling pages still run
            logger.exception("Failed to process %s", url)
            progress.errors.append(PageError(source.id, url, f"{type(exc).__name__}: {exc}"))


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


async def run_source(
    source: SourceDescriptor,
    store: CourseStore,
    config: Optional[RunConfig] = None,
    fetcher: Fetcher = fetch,
    today: Optional[date] = None,
) -> SourceOutcome:
    cfg = config or RunConfig()
    progress = _SourceProgress()
    started = time.monotonic()
    error: Optional[str] = None

    logger.info("Source %s (%s, %d pages)", source.display_name, source.fetch_mode.value, len(source.pages))
    if not cfg.leaves_room_for_siblings():
        logger.warning(
            "One hung page can take %gs, the source budget is %gs: later pages may not run",
            cfg.worst_page_time,
            cfg.source_timeout,
        )
    deadline = asyncio.get_running_loop().time() + cfg.source_timeout
    try:
        await asyncio.wait_for(
            _run_pages(source, store, cfg, fetcher, progress, today, deadline),
            timeout=cfg.source_timeout,
        )
    except asyncio.TimeoutError:
        error = f"Timeout after {cfg.source_timeout:g}s"
        logger.error("Source %s abandoned: %s", source.id, error)
        progress.errors.append(PageError(source.id, progress.current_url or source.base_url, error))

    if error is None and progress.stored == 0:
        error = "No courses found"

    return SourceOutcome(
        name=source.display_name,
        key=source.id,
        record_count=progress.stored,
        success=error is None,
        duration_ms=int((time.monotonic() - started) * 1000),
        error=error,
        errors=tuple(progress.errors),
        institution=source.institution_name,
        fees=tuple(progress.fees),
    )


async def run(
    sources: Sequence[SourceDescriptor],
    store: CourseStore,
    config: Optional[RunConfig] = None,
    fetcher: Fetcher = fetch,
    today: Optional[date] = None,
) -> RunReport:
    """Run every source in order and return the folded report."""
    cfg = config or RunConfig()
    report = RunReport(run_timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"))

    for index, source in enumerate(sources):
        if index > 0 and cfg.source_delay > 0:
            logger.info("Waiting %gs before next source", cfg.source_delay)
            await asyncio.sleep(cfg.source_delay)
        outcome = await run_source(source, store, cfg, fetcher=fetcher, today=today)
        report = report.with_outcome(outcome)

    logger.info(
        "Run finished: %d/%d sources succeeded, %d records",
        report.succeeded,
        report.sources_attempted,
        report.total_records,
    )
    return report


# ---------------------------------------------------------------------------
# Report artifact
# ---------------------------------------------------------------------------


def write_report(report: RunReport, report_dir: Path) -> Path:
    """
    Write the run report as JSON and return the file path.
    """
    report_dir.mkdir(parents=True, exist_ok=True)
    stamp = report.run_timestamp.replace(":", "-").replace("+", "_")
    out_file = report_dir / f"run-{stamp}.json"
    out_file.write_text(json.dumps(report.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return out_file
