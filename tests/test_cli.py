"""
Tests for CLI entry points.

These tests focus on:
- exit codes (catalog 0, unknown source 2, nothing stored 1)
- wiring of flags into the run, using a fake run coroutine and a
  temporary database / report directory (no network, no real data)
"""

import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from rich.console import Console

from uniscrape.cli import build_parser, main
from uniscrape.model import PageError, RunReport, SourceOutcome


def fake_run_returning(record_count: int):
    calls = []

    async def fake_run(sources, store, config):
        calls.append((sources, config))
        outcome = SourceOutcome(
            name=sources[0].display_name,
            key=sources[0].id,
            record_count=record_count,
            success=record_count > 0,
            duration_ms=5,
            error=None if record_count else "No courses found",
        )
        return RunReport(run_timestamp="2025-01-15T10:00:00+00:00").with_outcome(outcome)

    return fake_run, calls


class TestCLI(unittest.TestCase):
    def test_no_arguments_prints_catalog(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main([])
        self.assertEqual(ctx.exception.code, 0)

    def test_unknown_source_exits_2(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main(["no-such-university"])
        self.assertEqual(ctx.exception.code, 2)

    def test_unknown_department_exits_2(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main(["university-of-oxford", "law"])
        self.assertEqual(ctx.exception.code, 2)

    def test_run_writes_report_and_exits_0(self) -> None:
        fake_run, calls = fake_run_returning(3)
        with tempfile.TemporaryDirectory() as d:
            db = Path(d) / "courses.db"
            reports = Path(d) / "reports"
            with mock.patch("uniscrape.cli.run", fake_run):
                with self.assertRaises(SystemExit) as ctx:
                    main([
                        "university-of-oxford",
                        "computer-science",
                        "--db", str(db),
                        "--report-dir", str(reports),
                        "--page-delay", "0",
                        "--retries", "0",
                    ])
            self.assertEqual(ctx.exception.code, 0)
            self.assertTrue(db.exists())
            self.assertEqual(len(list(reports.glob("run-*.json"))), 1)

        sources, config = calls[0]
        self.assertEqual([s.id for s in sources], ["university-of-oxford/computer-science"])
        self.assertEqual(config.page_delay, 0)
        self.assertEqual(config.retries, 0)

    def test_nothing_stored_exits_1(self) -> None:
        fake_run, _ = fake_run_returning(0)
        with tempfile.TemporaryDirectory() as d:
            with mock.patch("uniscrape.cli.run", fake_run):
                with self.assertRaises(SystemExit) as ctx:
                    main(["university-of-bristol", "--db", str(Path(d) / "c.db"), "--no-report"])
        self.assertEqual(ctx.exception.code, 1)

    def test_parser_defaults(self) -> None:
        args = build_parser().parse_args(["--all"])
        self.assertTrue(args.all)
        self.assertIsNone(args.source_id)
        self.assertEqual(args.source_timeout, 120.0)

    def test_summary_prints_markup_literally(self) -> None:
        async def fake_run(sources, store, config):
            outcome = SourceOutcome(
                name="Example [/bold] University",
                key=sources[0].id,
                record_count=2,
                success=True,
                duration_ms=5,
                errors=(PageError(sources[0].id, "https://x.example/[a]", "bad [/red] tag"),),
                institution="Example [/bold] University",
                fees=(20000, 30000),
            )
            return RunReport(run_timestamp="2025-01-15T10:00:00+00:00").with_outcome(outcome)

        recorder = Console(record=True, width=200, file=io.StringIO())
        with tempfile.TemporaryDirectory() as d:
            with mock.patch("uniscrape.cli.run", fake_run), mock.patch("uniscrape.cli.console", recorder):
                with self.assertRaises(SystemExit) as ctx:
                    main(["university-of-bristol", "--db", str(Path(d) / "c.db"), "--no-report"])
        self.assertEqual(ctx.exception.code, 0)

        text = recorder.export_text()
        self.assertIn("Example [/bold] University", text)
        self.assertIn("bad [/red] tag", text)
        self.assertIn("Fees: min £20,000 | max £30,000 | avg £25,000", text)
        self.assertIn("Example [/bold] University: 2 courses", text)


if __name__ == "__main__":
    unittest.main()
