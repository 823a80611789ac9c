"""
Extraction (parsed page -> raw fragments).

One generic algorithm driven by the selector lists of a SourceDescriptor:

- container discovery: the first container selector with >= 1 match wins,
  otherwise every h1/h2/h3 heading becomes a candidate
- per field: a selector cascade (descendant, the node itself, a sibling)
- specialised extractors for fees, deadlines, start dates, links, images

Nothing here raises for missing data: absent values are None (or 0 for
fees). Only a page with no candidates at all raises ExtractionEmptyError.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from uniscrape.errors import ExtractionEmptyError
from uniscrape.model import RawFragment, SourceDescriptor

logger = logging.getLogger(__name__)


FEE_MIN = 10_000
FEE_MAX = 100_000
FEE_UNKNOWN = 0

MONTHS = "January|February|March|April|May|June|July|August|September|October|November|December"

_AMOUNT = r"(\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?"

# Order matters: currency prefix, then amount + currency word, then "fee:" label.
FEE_PATTERNS = (
    re.compile(r"£\s*" + _AMOUNT),
    re.compile(_AMOUNT + r"\s*(?:pounds\b|gbp\b|£)", re.IGNORECASE),
    re.compile(r"\bfees?[:\s]*£?\s*" + _AMOUNT, re.IGNORECASE),
)

DEADLINE_PATTERNS = (
    re.compile(r"\b\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4}\b|\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{1,2}(?:st|nd|rd|th)?\s+(?:" + MONTHS + r")\s+\d{4}\b", re.IGNORECASE),
    re.compile(r"\b(?:" + MONTHS + r")\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4}\b", re.IGNORECASE),
)

START_DATE_PATTERN = re.compile(
    r"\b(?:" + MONTHS + r"|Autumn|Spring|Summer|Winter|Fall)(?:\s+\d{4})?\b",
    re.IGNORECASE,
)

_BULLET_RE = re.compile(r"^\s*[-•*]\s*")
_WS_RE = re.compile(r"\s+")

_IMAGE_HINTS = ("course", "programme", "study")


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def clean_text(text: Optional[str]) -> Optional[str]:
    """
    Collapse whitespace, drop newlines and a leading bullet marker.
    Returns None for empty results.
    """
    if not text:
        return None
    cleaned = _WS_RE.sub(" ", text.replace("\n", " "))
    cleaned = _BULLET_RE.sub("", cleaned).strip()
    return cleaned or None


def _node_text(node: Tag) -> str:
    return node.get_text(" ", strip=True)


def _select_one(node: Tag, selector: str) -> Optional[Tag]:
    try:
        return node.select_one(selector)
    except (SelectorSyntaxError, NotImplementedError):
        logger.debug("Skipping unusable selector %r", selector)
        return None


def _select(node: Tag, selector: str) -> List[Tag]:
    try:
        return list(node.select(selector))
    except (SelectorSyntaxError, NotImplementedError):
        logger.debug("Skipping unusable selector %r", selector)
        return []


def _matches(node: Tag, selector: str) -> bool:
    try:
        return bool(node.css.match(selector))
    except (SelectorSyntaxError, NotImplementedError):
        return False


def _siblings(node: Tag) -> Iterable[Tag]:
    parent = node.parent
    if parent is None:
        return []
    return [s for s in parent.find_all(True, recursive=False) if s is not node]


# ---------------------------------------------------------------------------
# Field cascade
# ---------------------------------------------------------------------------


def _cascade_nodes(node: Tag, selector: str) -> Iterable[Tag]:
    """Candidates for one selector, in cascade order."""
    found = _select_one(node, selector)
    if found is not None:
        yield found
    if _matches(node, selector):
        yield node
    for sib in _siblings(node):
        if _matches(sib, selector):
            yield sib
            break


def extract_text(node: Tag, selectors: Iterable[str]) -> Optional[str]:
    """
    Resolve one text field: for each selector try a descendant, the node
    itself, then a sibling. First non-empty cleaned text wins.
    """
    for selector in selectors or ():
        for candidate in _cascade_nodes(node, selector):
            text = clean_text(_node_text(candidate))
            if text:
                return text
    return None


def extract_list(node: Tag, selectors: Iterable[str]) -> List[str]:
    """
    List field (modules, start date items): the first selector that yields
    at least one non-empty item wins.
    """
    for selector in selectors or ():
        items: List[str] = []
        for el in _select(node, selector):
            text = clean_text(_node_text(el))
            if text and text not in items:
                items.append(text)
        if items:
            return items
    return []


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------


def resolve_url(href: Optional[str], base_url: str) -> Optional[str]:
    """
    Resolve an href against the source base URL.

    Absolute URLs are kept, protocol-relative ones are upgraded to https.
    """
    if not href:
        return None
    href = href.strip()
    if not href:
        return None
    if href.startswith(("http://", "https://")):
        return href
    if href.startswith("//"):
        return f"https:{href}"
    return urljoin(base_url.rstrip("/") + "/", href)


def extract_link(node: Tag, selectors: Iterable[str], base_url: str) -> Optional[str]:
    for selector in selectors or ():
        found = _select_one(node, selector)
        href = found.get("href") if found is not None else None
        if not href:
            anchor = node if node.name == "a" else node.find_parent("a")
            href = anchor.get("href") if anchor is not None else None
        if href:
            return resolve_url(str(href), base_url)
    return None


def _looks_like_course_image(img: Tag) -> bool:
    src = str(img.get("src") or "").lower()
    alt = str(img.get("alt") or "").lower()
    return any(h in alt for h in _IMAGE_HINTS) or any(h in src for h in _IMAGE_HINTS[:2])


def extract_image(
    node: Tag,
    document: BeautifulSoup,
    selectors: Iterable[str],
    base_url: str,
) -> Optional[str]:
    """
    Image URL near the candidate (inside, parent, siblings), then any
    course-looking image on the page. None when nothing is found.
    """
    selectors = tuple(selectors or ())
    if not selectors:
        return None

    for selector in selectors:
        scopes: List[Tag] = [node]
        if node.parent is not None:
            scopes.append(node.parent)
        scopes.extend(_siblings(node))
        for scope in scopes:
            img = _select_one(scope, selector)
            src = img.get("src") if img is not None else None
            if src:
                return resolve_url(str(src), base_url)

    for img in document.find_all("img"):
        if img.get("src") and _looks_like_course_image(img):
            return resolve_url(str(img["src"]), base_url)
    return None


# ---------------------------------------------------------------------------
# Fees, deadlines, start dates
# ---------------------------------------------------------------------------


def plausible_fee(amount: Optional[int]) -> int:
    """Return `amount` if it is a plausible tuition fee, else FEE_UNKNOWN."""
    if amount is None or not FEE_MIN <= amount <= FEE_MAX:
        return FEE_UNKNOWN
    return amount


def parse_fee_amount(text: Optional[str]) -> Optional[int]:
    """
    First amount found by the fee patterns (tried in order), or None.
    No range check here.
    """
    if not text:
        return None
    for pattern in FEE_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1).replace(",", ""))
    return None


def extract_fees(node: Tag, selectors: Iterable[str]) -> int:
    """
    Fee from the field text, else from the candidate + parent text.
    Always an int: the amount, or 0 when unknown or implausible.
    """
    amount = parse_fee_amount(extract_text(node, selectors))
    if amount is None:
        context = _node_text(node)
        if node.parent is not None:
            context = f"{context} {_node_text(node.parent)}"
        amount = parse_fee_amount(context)
    return plausible_fee(amount)


def parse_deadline(text: Optional[str]) -> Optional[str]:
    """First date-looking substring, returned verbatim."""
    if not text:
        return None
    for pattern in DEADLINE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def extract_deadline(node: Tag, selectors: Iterable[str]) -> Optional[str]:
    return parse_deadline(extract_text(node, selectors))


def parse_start_dates(text: Optional[str]) -> Optional[List[str]]:
    """
    Every distinct month/season token (optionally with year), in order.
    None if there is none.
    """
    if not text:
        return None
    dates: List[str] = []
    seen: set[str] = set()
    for match in START_DATE_PATTERN.finditer(text):
        value = _WS_RE.sub(" ", match.group(0)).strip()
        key = value.lower()
        if key not in seen:
            seen.add(key)
            dates.append(value)
    return dates or None


def extract_start_dates(node: Tag, selectors: Iterable[str]) -> Optional[List[str]]:
    selectors = tuple(selectors or ())
    items = extract_list(node, selectors)
    text = " ".join(items) if items else extract_text(node, selectors)
    return parse_start_dates(text)


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------


def find_containers(document: BeautifulSoup, selectors: Iterable[str]) -> List[Tag]:
    """The first container selector that matches at least one node wins."""
    for selector in selectors or ():
        nodes = _select(document, selector)
        if nodes:
            logger.debug("Container selector %r matched %d nodes", selector, len(nodes))
            return nodes
    return []


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def fragment_from_node(
    node: Tag,
    document: BeautifulSoup,
    source: SourceDescriptor,
    page_url: str,
    scraped_at: str,
) -> Optional[RawFragment]:
    """
    Resolve every field of one candidate. None if it has no title.
    """
    title = extract_text(node, source.cascade("title"))
    if not title:
        return None

    return RawFragment(
        title=title,
        source_url=page_url,
        scraped_at=scraped_at,
        description=extract_text(node, source.cascade("description")),
        duration=extract_text(node, source.cascade("duration")),
        fees=extract_fees(node, source.cascade("fees")),
        requirements=extract_text(node, source.cascade("requirements")),
        modules=extract_list(node, source.cascade("modules")),
        start_dates=extract_start_dates(node, source.cascade("start_dates")),
        deadline=extract_deadline(node, source.cascade("deadline")),
        link=extract_link(node, source.cascade("link"), source.base_url),
        image=extract_image(node, document, source.cascade("image"), source.base_url),
    )


_HEADINGS = ("h1", "h2", "h3")


def _heading_description(heading: Tag) -> Optional[str]:
    """Text of the first <p> after the heading, before the next heading."""
    for sib in heading.find_next_siblings(True):
        if sib.name in _HEADINGS:
            return None
        if sib.name == "p":
            text = clean_text(_node_text(sib))
            if text:
                return text
    return None


def discover_headings(document: BeautifulSoup, page_url: str, scraped_at: str) -> List[RawFragment]:
    """
    Generic discovery: every h1/h2/h3 is a candidate, the paragraph that
    follows it is the description.
    """
    fragments: List[RawFragment] = []
    for heading in document.find_all(list(_HEADINGS)):
        title = clean_text(_node_text(heading))
        if not title:
            continue
        fragments.append(
            RawFragment(
                title=title,
                source_url=page_url,
                scraped_at=scraped_at,
                description=_heading_description(heading),
            )
        )
    return fragments


def extract_fragments(
    document: BeautifulSoup,
    source: SourceDescriptor,
    page_url: str,
    scraped_at: Optional[str] = None,
) -> List[RawFragment]:
    """
    Turn one page into raw fragments (not yet validated).

    Raises ExtractionEmptyError when neither container discovery nor
    heading discovery produces a single titled candidate.
    """
    stamp = scraped_at or _now_iso()

    containers = find_containers(document, source.cascade("container"))
    if containers:
        fragments = [
            frag
            for frag in (fragment_from_node(n, document, source, page_url, stamp) for n in containers)
            if frag is not None
        ]
    else:
        logger.info("No container matched on %s, falling back to headings", page_url)
        fragments = discover_headings(document, page_url, stamp)

    if not fragments:
        raise ExtractionEmptyError(page_url)
    return fragments
