"""
Duplicate removal.

Two records describe the same course when their lowercased
(title, institution name) pair is equal. The first occurrence wins and
the surviving records keep their input order.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Set, Tuple

from uniscrape.model import CourseRecord


def dedupe_key(record: CourseRecord) -> Tuple[str, str]:
    return (record.title.strip().lower(), record.institution_name.strip().lower())


def dedupe(records: Iterable[CourseRecord], seen: Optional[Set[Tuple[str, str]]] = None) -> List[CourseRecord]:
    """
    Drop later duplicates. If `seen` is given, keys already in it are
    dropped too and the set is updated (used across pages of one source).
    """
    keys = seen if seen is not None else set()
    out: List[CourseRecord] = []
    for rec in records:
        key = dedupe_key(rec)
        if key in keys:
            continue
        keys.add(key)
        out.append(rec)
    return out
