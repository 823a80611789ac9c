"""
Persistence orchestration (canonical records -> storage rows).

For every record:
1. resolve or create the institution, department and course type
2. update the course if (title, institution) already exists, else insert

A failing record is logged and skipped; it never aborts the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

from uniscrape.errors import PersistenceError
from uniscrape.model import CourseRecord
from uniscrape.storage import CourseStore

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENT = "Department of Computer Science"


@dataclass(frozen=True)
class PersistResult:
    stored: int
    inserted: int = 0
    updated: int = 0
    errors: Tuple[Tuple[str, str], ...] = ()
    fees: Tuple[int, ...] = ()


def _resolve(find: Callable[[], Optional[int]], create: Callable[[], int]) -> int:
    found = find()
    if found is not None:
        return found
    return create()


def persist_record(record: CourseRecord, store: CourseStore, website_url: Optional[str] = None) -> bool:
    """
    Store one record. Returns True for an insert, False for an update.
    """
    institution_id = _resolve(
        lambda: store.find_institution_by_name(record.institution_name),
        lambda: store.create_institution(record.institution_name, city=record.location, website_url=website_url),
    )
    department_name = record.department_name or DEFAULT_DEPARTMENT
    department_id = _resolve(
        lambda: store.find_department_by_natural_key(institution_id, department_name),
        lambda: store.create_department(institution_id, department_name),
    )
    course_type_id = _resolve(
        lambda: store.find_category_by_name(record.course_type),
        lambda: store.create_category(record.course_type),
    )

    row = record.to_row()
    row.update(
        institution_id=institution_id,
        department_id=department_id,
        course_type_id=course_type_id,
    )

    existing = store.find_course_by_natural_key(record.title, institution_id)
    if existing is not None:
        store.update_course(existing, row)
        logger.debug("Updated %r (id=%s)", record.title, existing)
        return False

    new_id = store.insert_course(row)
    logger.debug("Inserted %r (id=%s)", record.title, new_id)
    return True


def persist(records: Iterable[CourseRecord], store: CourseStore, website_url: Optional[str] = None) -> PersistResult:
    """
    Store a batch with partial-failure semantics.

    Inserts and updates both count as stored.
    """
    inserted = 0
    updated = 0
    errors: list[Tuple[str, str]] = []
    fees: list[int] = []

    for record in records:
        try:
            if persist_record(record, store, website_url=website_url):
                inserted += 1
            else:
                updated += 1
            fees.append(record.fees)
        except PersistenceError as exc:
            logger.error("Failed to store %r: %s", record.title, exc)
            errors.append((record.title, str(exc)))

    return PersistResult(
        stored=inserted + updated,
        inserted=inserted,
        updated=updated,
        errors=tuple(errors),
        fees=tuple(fees),
    )
