"""
Normalization (raw fragment -> canonical CourseRecord).

Every field has its own rule and the rules are independent of each
other. The result always satisfies the record invariants:

- title is non-empty and carries an academic-level prefix
- duration_months is within [3, 60]
- fees is 0 (unknown) or within [10000, 100000], never clamped

`normalize` is pure apart from reading the clock for the deadline rule
and a missing scrape timestamp; pass `today` to make it deterministic.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Tuple

from uniscrape.errors import TransformError
from uniscrape.extract import FEE_UNKNOWN, clean_text, plausible_fee
from uniscrape.model import CourseRecord, RawFragment, SourceDescriptor
from uniscrape.vocabulary import Vocabulary, contains_keyword, default_vocabulary


DESCRIPTION_PLACEHOLDER = "Course description not available"
DESCRIPTION_MAX = 500

REQUIREMENTS_DEFAULT = "UK 2:1 honours degree or international equivalent in relevant field"
REQUIREMENTS_MAX = 300

ASSESSMENT_DEFAULT = "Coursework, Examinations, and Dissertation"
LANGUAGE_REQUIREMENTS = "IELTS 7.0 overall (6.5 in each component) or equivalent"

DEFAULT_DURATION = "12 months"
DEFAULT_DURATION_MONTHS = 12
MIN_DURATION_MONTHS = 3
MAX_DURATION_MONTHS = 60

SCHOLARSHIP_FEE_THRESHOLD = 35_000

# Applications close on this day; after the cutoff month the next year's date is used.
DEADLINE_MONTH = 7
DEADLINE_DAY = 31

DEFAULT_COURSE_TYPE = "MSc"

_NUMBER_WORDS = {"one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6}
_QUANTITY = r"(\d+(?:\.\d+)?|" + "|".join(_NUMBER_WORDS) + r")"
_MONTHS_RE = re.compile(_QUANTITY + r"\s*-?\s*months?\b", re.IGNORECASE)
_YEARS_RE = re.compile(_QUANTITY + r"\s*-?\s*years?\b", re.IGNORECASE)
_LEADING_INT_RE = re.compile(r"\d+")


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------


def normalize_title(title: Optional[str], vocabulary: Optional[Vocabulary] = None) -> str:
    vocab = vocabulary or default_vocabulary()
    cleaned = clean_text(title)
    if not cleaned:
        raise ValueError("title is empty")

    lower = cleaned.lower()
    if "msc" not in lower and "master" not in lower and not contains_keyword(cleaned, vocab.degree_levels):
        cleaned = f"{vocab.default_prefix} {cleaned}"

    for short, full in vocab.abbreviations.items():
        cleaned = re.sub(r"\b" + re.escape(short) + r"\b", full, cleaned)
    return cleaned


def normalize_description(description: Optional[str]) -> str:
    cleaned = clean_text(description)
    if not cleaned:
        return DESCRIPTION_PLACEHOLDER
    if len(cleaned) > DESCRIPTION_MAX:
        cleaned = cleaned[: DESCRIPTION_MAX - 3] + "..."
    return cleaned


def standardize_duration(duration: Optional[str], vocabulary: Optional[Vocabulary] = None) -> str:
    vocab = vocabulary or default_vocabulary()
    cleaned = clean_text(duration)
    if not cleaned:
        return DEFAULT_DURATION
    return vocab.duration_phrases.get(cleaned.lower(), cleaned)


def _quantity(token: str) -> float:
    word = token.lower()
    if word in _NUMBER_WORDS:
        return float(_NUMBER_WORDS[word])
    return float(token)


def parse_duration_months(duration: Any) -> int:
    """
    "18 months" -> 18, "2 years" -> 24, "1.5 years" -> 18.
    Anything unparseable, non-finite or outside [3, 60] gives 12.
    """
    value: Optional[float] = None
    if isinstance(duration, bool):
        value = None
    elif isinstance(duration, int):
        value = float(duration) if abs(duration) <= 10**6 else None
    elif isinstance(duration, float):
        value = duration
    elif duration:
        text = str(duration)
        match = _MONTHS_RE.search(text)
        if match:
            value = _quantity(match.group(1))
        else:
            match = _YEARS_RE.search(text)
            if match:
                value = _quantity(match.group(1)) * 12

    if value is None or not math.isfinite(value):
        return DEFAULT_DURATION_MONTHS
    months = int(round(value))
    if not MIN_DURATION_MONTHS <= months <= MAX_DURATION_MONTHS:
        return DEFAULT_DURATION_MONTHS
    return months


def normalize_fees(fees: Any) -> int:
    """
    Coerce to an int fee. Implausible or unparseable values become 0.
    """
    if fees is None or isinstance(fees, bool):
        return FEE_UNKNOWN
    if isinstance(fees, float):
        return plausible_fee(int(fees)) if math.isfinite(fees) else FEE_UNKNOWN
    if isinstance(fees, int):
        return plausible_fee(fees)

    digits = re.sub(r"[£,\s]", "", str(fees))
    match = _LEADING_INT_RE.match(digits)
    if not match:
        return FEE_UNKNOWN
    return plausible_fee(int(match.group(0)))


def resolve_location(
    location: Optional[str],
    institution_name: str,
    vocabulary: Optional[Vocabulary] = None,
) -> str:
    vocab = vocabulary or default_vocabulary()
    cleaned = clean_text(location)
    if cleaned:
        return cleaned
    return vocab.institution_locations.get(institution_name, vocab.default_location)


def normalize_requirements(requirements: Optional[str]) -> str:
    cleaned = clean_text(requirements)
    if not cleaned:
        return REQUIREMENTS_DEFAULT
    return cleaned[:REQUIREMENTS_MAX]


def normalize_modules(modules: Any) -> Tuple[str, ...]:
    if isinstance(modules, (list, tuple)):
        items = [clean_text(str(m)) for m in modules if m is not None]
    elif isinstance(modules, str):
        items = [m.strip() for m in modules.split(",")]
    else:
        return ()
    return tuple(m for m in items if m)


def normalize_start_dates(start_dates: Any) -> Optional[Tuple[str, ...]]:
    if isinstance(start_dates, (list, tuple)):
        items = tuple(str(d).strip() for d in start_dates if d is not None and str(d).strip())
        return items or None
    if isinstance(start_dates, str) and start_dates.strip():
        return (start_dates.strip(),)
    return None


def career_prospects(title: str, vocabulary: Optional[Vocabulary] = None) -> str:
    vocab = vocabulary or default_vocabulary()
    lower = title.lower()
    for subject, info in vocab.subjects.items():
        if subject in lower:
            return info.career_prospects
    return vocab.default_career_prospects


def accreditation(title: str, vocabulary: Optional[Vocabulary] = None) -> Optional[str]:
    vocab = vocabulary or default_vocabulary()
    lower = title.lower()
    for subject, info in vocab.subjects.items():
        if subject in lower:
            return info.accreditation
    return None


def application_deadline(today: Optional[date] = None) -> str:
    """
    Placeholder rule, not scraped: 31 July this year, or next year once
    the current month is past July.
    """
    today = today or date.today()
    year = today.year + 1 if today.month > DEADLINE_MONTH else today.year
    return date(year, DEADLINE_MONTH, DEADLINE_DAY).isoformat()


def scholarship_available(fees: int) -> bool:
    return fees > SCHOLARSHIP_FEE_THRESHOLD


def image_url(title: str, scraped: Optional[str] = None, vocabulary: Optional[Vocabulary] = None) -> str:
    if scraped:
        return scraped
    vocab = vocabulary or default_vocabulary()
    lower = title.lower()
    for subject, url in vocab.images.items():
        if subject in lower:
            return url
    return vocab.default_image


def course_type(title: str, vocabulary: Optional[Vocabulary] = None) -> str:
    vocab = vocabulary or default_vocabulary()
    for level in vocab.degree_levels:
        if contains_keyword(title, (level,)):
            return level
    return DEFAULT_COURSE_TYPE


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _apply(field: str, rule: Callable[..., Any], *args: Any) -> Any:
    try:
        return rule(*args)
    except (ValueError, TypeError, AttributeError, OverflowError) as exc:
        raise TransformError(field, exc) from exc


def normalize(
    fragment: RawFragment,
    source: SourceDescriptor,
    *,
    today: Optional[date] = None,
    vocabulary: Optional[Vocabulary] = None,
) -> CourseRecord:
    """
    Map one validated fragment to a canonical record.

    Raises TransformError if a field rule cannot handle its input.
    """
    vocab = vocabulary or default_vocabulary()

    title = _apply("title", normalize_title, fragment.title, vocab)
    fees = _apply("fees", normalize_fees, fragment.fees)
    scraped_at = fragment.scraped_at or datetime.now(timezone.utc).isoformat(timespec="seconds")

    return CourseRecord(
        title=title,
        description=_apply("description", normalize_description, fragment.description),
        duration=_apply("duration", standardize_duration, fragment.duration, vocab),
        duration_months=_apply("duration_months", parse_duration_months, fragment.duration),
        fees=fees,
        location=_apply("location", resolve_location, fragment.location, source.institution_name, vocab),
        entry_requirements=_apply("entry_requirements", normalize_requirements, fragment.requirements),
        modules=_apply("modules", normalize_modules, fragment.modules),
        assessment_methods=ASSESSMENT_DEFAULT,
        career_prospects=career_prospects(title, vocab),
        start_dates=_apply("start_dates", normalize_start_dates, fragment.start_dates),
        application_deadline=application_deadline(today),
        language_requirements=LANGUAGE_REQUIREMENTS,
        scholarship_available=scholarship_available(fees),
        accreditation=accreditation(title, vocab),
        image_url=_apply("image_url", image_url, title, fragment.image, vocab),
        source_url=fragment.link or fragment.source_url,
        last_scraped_at=scraped_at,
        institution_name=source.institution_name,
        department_name=source.department_name,
        course_type=course_type(clean_text(fragment.title) or title, vocab),
    )
