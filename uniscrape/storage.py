"""
Relational storage for canonical course records.

This module defines the narrow storage contract the pipeline depends on
(`CourseStore`) and one implementation backed by SQLite:

    data/courses.db

Design rationale:
- parent entities (institution, department, course type) are rows with a
  UNIQUE natural key; creation is "insert if absent, then select", so two
  runs resolving the same key never create two rows
- courses are unique on (title, institution_id); the orchestrator decides
  between insert and update
- every sqlite3 error is re-raised as PersistenceError
"""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Protocol

from uniscrape.errors import PersistenceError


SCHEMA = """
CREATE TABLE IF NOT EXISTS institutions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT UNIQUE NOT NULL,
  country TEXT,
  city TEXT,
  website_url TEXT,
  created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS departments (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  institution_id INTEGER NOT NULL REFERENCES institutions(id),
  name TEXT NOT NULL,
  code TEXT,
  created_at TEXT NOT NULL,
  UNIQUE (institution_id, name)
);

CREATE TABLE IF NOT EXISTS course_types (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT UNIQUE NOT NULL,
  description TEXT
);

CREATE TABLE IF NOT EXISTS courses (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  title TEXT NOT NULL,
  institution_id INTEGER NOT NULL REFERENCES institutions(id),
  department_id INTEGER REFERENCES departments(id),
  course_type_id INTEGER REFERENCES course_types(id),
  description TEXT,
  duration TEXT,
  duration_months INTEGER NOT NULL,
  fees INTEGER NOT NULL DEFAULT 0,
  currency TEXT NOT NULL DEFAULT 'GBP',
  location TEXT,
  entry_requirements TEXT,
  modules_json TEXT,
  assessment_methods TEXT,
  career_prospects TEXT,
  start_dates_json TEXT,
  application_deadline TEXT,
  language_requirements TEXT,
  scholarship_available INTEGER NOT NULL DEFAULT 0,
  accreditation TEXT,
  image_url TEXT,
  source_url TEXT,
  is_active INTEGER NOT NULL DEFAULT 1,
  last_scraped_at TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  UNIQUE (title, institution_id)
);
"""

COURSE_COLUMNS = (
    "title",
    "institution_id",
    "department_id",
    "course_type_id",
    "description",
    "duration",
    "duration_months",
    "fees",
    "currency",
    "location",
    "entry_requirements",
    "modules_json",
    "assessment_methods",
    "career_prospects",
    "start_dates_json",
    "application_deadline",
    "language_requirements",
    "scholarship_available",
    "accreditation",
    "image_url",
    "source_url",
    "is_active",
    "last_scraped_at",
)


class CourseStore(Protocol):
    """Storage operations used by the persistence orchestrator."""

    def find_institution_by_name(self, name: str) -> Optional[int]: ...

    def create_institution(self, name: str, city: Optional[str] = None, website_url: Optional[str] = None) -> int: ...

    def find_department_by_natural_key(self, institution_id: int, name: str) -> Optional[int]: ...

    def create_department(self, institution_id: int, name: str) -> int: ...

    def find_category_by_name(self, name: str) -> Optional[int]: ...

    def create_category(self, name: str) -> int: ...

    def find_course_by_natural_key(self, title: str, institution_id: int) -> Optional[int]: ...

    def insert_course(self, row: Mapping[str, Any]) -> int: ...

    def update_course(self, course_id: int, row: Mapping[str, Any]) -> None: ...


def _default_db_path() -> Path:
    """
    Return the default database path inside the package.

    Using a function instead of a constant makes testing easier,
    because tests can pass their own path (or ":memory:").
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "courses.db"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def department_code(name: str) -> str:
    lower = name.lower()
    if "computer" in lower or "computing" in lower:
        return "CS"
    if "engineering" in lower:
        return "ENG"
    if "business" in lower:
        return "BUS"
    if "informatics" in lower:
        return "INF"
    return "DEPT"


def _course_values(row: Mapping[str, Any]) -> dict[str, Any]:
    """
    Map a record row (lists, bools) to column values (JSON text, ints).
    """
    values = dict(row)
    modules = values.pop("modules", None)
    start_dates = values.pop("start_dates", None)
    values["modules_json"] = json.dumps(list(modules or []), ensure_ascii=False)
    values["start_dates_json"] = json.dumps(list(start_dates), ensure_ascii=False) if start_dates is not None else None
    values["scholarship_available"] = int(bool(values.get("scholarship_available")))
    values["is_active"] = int(bool(values.get("is_active", True)))
    return {k: values.get(k) for k in COURSE_COLUMNS if k in values}


class SQLiteStore:
    """
    CourseStore backed by one SQLite connection.

    Writes are serialized by a lock so the store may be shared by
    concurrently running sources.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        if path is None:
            db_path: str | Path = _default_db_path()
        else:
            db_path = path
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.path = str(db_path)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as exc:
            raise PersistenceError(f"cannot open database {self.path}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                raise PersistenceError(str(exc)) from exc

    def _scalar(self, sql: str, params: tuple[Any, ...]) -> Optional[int]:
        with self._tx() as conn:
            row = conn.execute(sql, params).fetchone()
        return int(row[0]) if row else None

    # ------------------------------------------------------------------
    # Institutions
    # ------------------------------------------------------------------

    def find_institution_by_name(self, name: str) -> Optional[int]:
        return self._scalar("SELECT id FROM institutions WHERE name = ?", (name,))

    def create_institution(self, name: str, city: Optional[str] = None, website_url: Optional[str] = None) -> int:
        with self._tx() as conn:
            conn.execute(
                """
                INSERT INTO institutions(name, country, city, website_url, created_at)
                VALUES(?, 'UK', ?, ?, ?)
                ON CONFLICT(name) DO NOTHING
                """,
                (name, city, website_url, _now()),
            )
            row = conn.execute("SELECT id FROM institutions WHERE name = ?", (name,)).fetchone()
        return int(row["id"])

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------

    def find_department_by_natural_key(self, institution_id: int, name: str) -> Optional[int]:
        return self._scalar(
            "SELECT id FROM departments WHERE institution_id = ? AND name = ?",
            (institution_id, name),
        )

    def create_department(self, institution_id: int, name: str) -> int:
        with self._tx() as conn:
            conn.execute(
                """
                INSERT INTO departments(institution_id, name, code, created_at)
                VALUES(?, ?, ?, ?)
                ON CONFLICT(institution_id, name) DO NOTHING
                """,
                (institution_id, name, department_code(name), _now()),
            )
            row = conn.execute(
                "SELECT id FROM departments WHERE institution_id = ? AND name = ?",
                (institution_id, name),
            ).fetchone()
        return int(row["id"])

    # ------------------------------------------------------------------
    # Course types
    # ------------------------------------------------------------------

    def find_category_by_name(self, name: str) -> Optional[int]:
        return self._scalar("SELECT id FROM course_types WHERE name = ?", (name,))

    def create_category(self, name: str) -> int:
        description = "Master of Science" if name == "MSc" else name
        with self._tx() as conn:
            conn.execute(
                "INSERT INTO course_types(name, description) VALUES(?, ?) ON CONFLICT(name) DO NOTHING",
                (name, description),
            )
            row = conn.execute("SELECT id FROM course_types WHERE name = ?", (name,)).fetchone()
        return int(row["id"])

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------

    def find_course_by_natural_key(self, title: str, institution_id: int) -> Optional[int]:
        return self._scalar(
            "SELECT id FROM courses WHERE title = ? AND institution_id = ?",
            (title, institution_id),
        )

    def insert_course(self, row: Mapping[str, Any]) -> int:
        values = _course_values(row)
        now = _now()
        values["created_at"] = now
        values["updated_at"] = now
        cols = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        with self._tx() as conn:
            cur = conn.execute(f"INSERT INTO courses({cols}) VALUES({marks})", tuple(values.values()))
            return int(cur.lastrowid)

    def update_course(self, course_id: int, row: Mapping[str, Any]) -> None:
        values = _course_values(row)
        values["updated_at"] = _now()
        assignments = ", ".join(f"{col} = ?" for col in values)
        with self._tx() as conn:
            cur = conn.execute(
                f"UPDATE courses SET {assignments} WHERE id = ?",
                (*values.values(), course_id),
            )
            if cur.rowcount == 0:
                raise PersistenceError(f"course {course_id} does not exist")

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def count(self, table: str) -> int:
        if table not in ("institutions", "departments", "course_types", "courses"):
            raise ValueError(f"unknown table: {table!r}")
        return self._scalar(f"SELECT COUNT(*) FROM {table}", ()) or 0

    def get_course(self, course_id: int) -> Optional[dict[str, Any]]:
        with self._tx() as conn:
            row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
        if row is None:
            return None
        out = dict(row)
        out["modules"] = json.loads(out.pop("modules_json") or "[]")
        start_dates = out.pop("start_dates_json")
        out["start_dates"] = json.loads(start_dates) if start_dates is not None else None
        out["scholarship_available"] = bool(out["scholarship_available"])
        out["is_active"] = bool(out["is_active"])
        return out
