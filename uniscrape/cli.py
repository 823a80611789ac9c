"""
CLI (Command Line Interface).

    uniscrape                                   # list configured sources
    uniscrape <source_id>                       # all departments of one institution
    uniscrape <source_id> <department_id>       # one department
    uniscrape --all                             # every configured source

Exit codes:
    0  at least one record was stored (or the catalog was printed)
    1  nothing was stored
    2  configuration error (unknown source)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from uniscrape.errors import PersistenceError, UnknownSourceError
from uniscrape.model import RunReport, SourceDescriptor
from uniscrape.runner import RunConfig, run, write_report
from uniscrape.sources import all_sources, available_sources, get_sources
from uniscrape.storage import SQLiteStore

console = Console()

logger = logging.getLogger("uniscrape")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _print_catalog() -> int:
    """
    Show every institution and its department ids.
    """
    table = Table(title="Available sources", box=box.SIMPLE)
    table.add_column("Source id", style="bold cyan")
    table.add_column("Name")
    table.add_column("Departments", style="green")
    for entry in available_sources():
        table.add_row(entry["key"], entry["name"], ", ".join(entry["departments"]))
    console.print(table)
    console.print("Usage: uniscrape <source_id> [department_id] | uniscrape --all")
    return 0


def _print_report(report: RunReport, report_path: Path | None) -> None:
    table = Table(title="Scraping summary", box=box.SIMPLE)
    table.add_column("Source")
    table.add_column("Records", justify="right")
    table.add_column("Status")
    table.add_column("Time", justify="right")
    for o in report.per_source:
        status = "[green]ok[/]" if o.success else f"[red]{escape(o.error or 'failed')}[/]"
        table.add_row(escape(o.name), str(o.record_count), status, f"{o.duration_ms / 1000:.1f}s")
    console.print(table)

    console.print(
        f"Sources: {report.sources_attempted} | succeeded: {report.succeeded} | "
        f"failed: {report.failed} | records: {report.total_records}"
    )
    if report.errors:
        console.print(f"[red]Errors ({len(report.errors)}):[/]")
        for e in report.errors:
            console.print(f"  {escape(e.source)} {escape(e.url)}: {escape(e.error)}")
    fees = report.fee_range()
    if fees is not None:
        console.print(f"Fees: min £{fees['min']:,} | max £{fees['max']:,} | avg £{fees['avg']:,}")
    for institution, count in report.records_by_institution().items():
        console.print(f"  {escape(institution)}: {count} courses")
    if report_path is not None:
        console.print(f"Report written to: {escape(str(report_path))}")

    if report.total_records == 0:
        console.print("[yellow]No data was stored. Check network connectivity and source selectors.[/]")
    elif report.failed:
        console.print("[yellow]Partial success: some sources failed.[/]")


def _select_sources(args: argparse.Namespace) -> List[SourceDescriptor]:
    if args.all:
        return all_sources()
    return get_sources(args.source_id, args.sub_source_id)


def _config_from_args(args: argparse.Namespace) -> RunConfig:
    defaults = RunConfig()
    return RunConfig(
        page_delay=args.page_delay,
        source_delay=args.source_delay,
        fetch_timeout=args.timeout,
        render_wait=args.render_wait,
        source_timeout=args.source_timeout,
        retries=args.retries,
        retry_delay=defaults.retry_delay,
        report_dir=args.report_dir if args.report_dir is not None else defaults.report_dir,
    )


def _cmd_run(args: argparse.Namespace) -> int:
    """
    Scrape the selected sources, store the records, write the report.
    """
    try:
        sources = _select_sources(args)
    except UnknownSourceError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        console.print("Run 'uniscrape' without arguments to list available sources.")
        return 2

    config = _config_from_args(args)
    try:
        store = SQLiteStore(args.db)
    except PersistenceError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        return 1

    logger.info("Scraping %d source(s) into %s", len(sources), store.path)
    with store:
        report = asyncio.run(run(sources, store, config))

    report_path = None if args.no_report else write_report(report, config.report_dir)
    _print_report(report, report_path)
    return 0 if report.total_records > 0 else 1


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser.
    """
    defaults = RunConfig()
    parser = argparse.ArgumentParser(prog="uniscrape", description="Scrape university course listings")
    parser.add_argument("source_id", nargs="?", help="Institution id (e.g. university-of-oxford)")
    parser.add_argument("sub_source_id", nargs="?", help="Department id (e.g. computer-science)")
    parser.add_argument("--all", action="store_true", help="Scrape every configured source")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    parser.add_argument("--report-dir", type=Path, default=None, help="Directory for the JSON run report")
    parser.add_argument("--no-report", action="store_true", help="Do not write the JSON run report")
    parser.add_argument("--page-delay", type=float, default=defaults.page_delay, help="Seconds between pages")
    parser.add_argument("--source-delay", type=float, default=defaults.source_delay, help="Seconds between sources")
    parser.add_argument("--timeout", type=float, default=defaults.fetch_timeout, help="Per-request timeout (s)")
    parser.add_argument("--render-wait", type=float, default=defaults.render_wait, help="Readiness wait (s)")
    parser.add_argument("--source-timeout", type=float, default=defaults.source_timeout, help="Budget per source (s)")
    parser.add_argument("--retries", type=int, default=defaults.retries, help="Extra attempts per page")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches, and exits via SystemExit
    with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if not args.all and not args.source_id:
        raise SystemExit(_print_catalog())

    raise SystemExit(_cmd_run(args))
