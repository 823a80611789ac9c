"""
Central data model definitions used across the pipeline.

This module defines the canonical shape of everything that flows between
the pipeline stages so that:
- all modules share the same field names
- source configuration stays plain data (no per-site subclasses)
- run results are immutable values that can be folded into a report
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Tuple


class FetchMode(str, Enum):
    """How a page is retrieved: plain HTTP or a rendered browser session."""

    STATIC = "static"
    DYNAMIC = "dynamic"


# Semantic field names understood by the extractor.
FIELD_NAMES = (
    "container",
    "title",
    "description",
    "duration",
    "fees",
    "requirements",
    "modules",
    "start_dates",
    "deadline",
    "link",
    "image",
)

FieldSelectorMap = Mapping[str, Tuple[str, ...]]


@dataclass(frozen=True)
class SourceDescriptor:
    """
    One configured source: a department of an institution with its pages.

    `selectors` are tried first, then `fallback_selectors`, then the
    registry's generic selectors (see `cascade`).
    """

    id: str
    display_name: str
    institution_name: str
    department_name: str
    base_url: str
    pages: Tuple[str, ...]
    fetch_mode: FetchMode
    selectors: FieldSelectorMap
    fallback_selectors: FieldSelectorMap = field(default_factory=dict)
    generic_selectors: FieldSelectorMap = field(default_factory=dict)
    readiness_selector: Optional[str] = None

    def cascade(self, field_name: str) -> Tuple[str, ...]:
        """
        Ordered selector list for one field: primary + fallback + generic.
        Duplicates are dropped, first position wins.
        """
        out: list[str] = []
        for mapping in (self.selectors, self.fallback_selectors, self.generic_selectors):
            for sel in mapping.get(field_name, ()):
                if sel not in out:
                    out.append(sel)
        return tuple(out)


@dataclass(frozen=True)
class RawFragment:
    """
    Values scraped for one candidate element, before any validation.

    Only `title` is required to be non-empty; everything else is optional.
    """

    title: str
    source_url: str
    scraped_at: str
    description: Optional[str] = None
    duration: Optional[str] = None
    fees: object = None
    requirements: Optional[str] = None
    modules: object = None
    start_dates: object = None
    deadline: Optional[str] = None
    link: Optional[str] = None
    image: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class CourseRecord:
    """
    Canonical course record as stored.

    `institution_name`, `department_name` and `course_type` are natural
    keys of the parent entities; they are resolved to ids on persistence.
    """

    title: str
    description: str
    duration: str
    duration_months: int
    fees: int
    location: str
    entry_requirements: str
    modules: Tuple[str, ...]
    assessment_methods: str
    career_prospects: str
    start_dates: Optional[Tuple[str, ...]]
    application_deadline: Optional[str]
    language_requirements: str
    scholarship_available: bool
    accreditation: Optional[str]
    image_url: str
    source_url: str
    last_scraped_at: str
    institution_name: str
    department_name: str
    course_type: str
    currency: str = "GBP"
    is_active: bool = True

    def to_row(self) -> dict[str, object]:
        """
        Column values for the courses table (parent entities excluded).
        """
        return {
            "title": self.title,
            "description": self.description,
            "duration": self.duration,
            "duration_months": self.duration_months,
            "fees": self.fees,
            "currency": self.currency,
            "location": self.location,
            "entry_requirements": self.entry_requirements,
            "modules": list(self.modules),
            "assessment_methods": self.assessment_methods,
            "career_prospects": self.career_prospects,
            "start_dates": list(self.start_dates) if self.start_dates is not None else None,
            "application_deadline": self.application_deadline,
            "language_requirements": self.language_requirements,
            "scholarship_available": self.scholarship_available,
            "accreditation": self.accreditation,
            "image_url": self.image_url,
            "source_url": self.source_url,
            "is_active": self.is_active,
            "last_scraped_at": self.last_scraped_at,
        }


@dataclass(frozen=True)
class PageError:
    """One failure recorded against a source (usually a single page URL)."""

    source: str
    url: str
    error: str


@dataclass(frozen=True)
class SourceOutcome:
    """Result of running one source."""

    name: str
    key: str
    record_count: int
    success: bool
    duration_ms: int
    error: Optional[str] = None
    errors: Tuple[PageError, ...] = ()
    institution: str = ""
    fees: Tuple[int, ...] = ()


@dataclass(frozen=True)
class RunReport:
    """
    Summary of one full run, folded from the per-source outcomes.
    """

    run_timestamp: str
    per_source: Tuple[SourceOutcome, ...] = ()
    errors: Tuple[PageError, ...] = ()

    @property
    def sources_attempted(self) -> int:
        return len(self.per_source)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.per_source if o.success)

    @property
    def failed(self) -> int:
        return self.sources_attempted - self.succeeded

    @property
    def total_records(self) -> int:
        return sum(o.record_count for o in self.per_source)

    def fee_range(self) -> Optional[dict[str, int]]:
        """
        Min / max / average of the known (non-zero) fees stored in this run.
        None when no stored record had a fee.
        """
        known = [fee for o in self.per_source for fee in o.fees if fee > 0]
        if not known:
            return None
        return {"min": min(known), "max": max(known), "avg": round(sum(known) / len(known))}

    def records_by_institution(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for o in self.per_source:
            name = o.institution or o.name
            counts[name] = counts.get(name, 0) + o.record_count
        return counts

    def with_outcome(self, outcome: SourceOutcome) -> "RunReport":
        """Return a new report that also contains `outcome`."""
        return RunReport(
            run_timestamp=self.run_timestamp,
            per_source=self.per_source + (outcome,),
            errors=self.errors + outcome.errors,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "runTimestamp": self.run_timestamp,
            "summary": {
                "sourcesAttempted": self.sources_attempted,
                "succeeded": self.succeeded,
                "failed": self.failed,
                "totalRecords": self.total_records,
                "feeRange": self.fee_range(),
                "byInstitution": self.records_by_institution(),
            },
            "perSource": [
                {
                    "name": o.name,
                    "key": o.key,
                    "recordCount": o.record_count,
                    "success": o.success,
                    "error": o.error,
                    "durationMs": o.duration_ms,
                }
                for o in self.per_source
            ],
            "errors": [{"source": e.source, "url": e.url, "error": e.error} for e in self.errors],
        }
