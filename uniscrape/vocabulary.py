"""
Heuristic vocabularies (keyword lists and lookup tables).

The tables live in the versioned data file:

    uniscrape/data/vocabulary.json

Keeping them out of the code means the validator and normalizer rules
can be extended without touching extraction logic, and tests can load
an alternative table from a temporary file.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional, Tuple


def _default_vocabulary_path() -> Path:
    """
    Return the path of the bundled vocabulary.json inside the package.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "vocabulary.json"


@dataclass(frozen=True)
class Subject:
    career_prospects: str
    accreditation: Optional[str]


@dataclass(frozen=True)
class Vocabulary:
    version: str
    min_title_length: int
    exclude_keywords: Tuple[str, ...]
    include_keywords: Tuple[str, ...]
    default_prefix: str
    abbreviations: Mapping[str, str]
    degree_levels: Tuple[str, ...]
    duration_phrases: Mapping[str, str]
    subjects: Mapping[str, Subject]
    default_career_prospects: str
    images: Mapping[str, str]
    default_image: str
    institution_locations: Mapping[str, str]
    default_location: str


def load_vocabulary(path: str | Path | None = None) -> Vocabulary:
    """
    Load a vocabulary table from JSON.

    Unlike user state, the table is required data: a missing or broken
    file raises (OSError / json.JSONDecodeError / KeyError).
    """
    vocab_path = Path(path) if path is not None else _default_vocabulary_path()
    data = json.loads(vocab_path.read_text(encoding="utf-8"))

    subjects = {
        str(name).lower(): Subject(
            career_prospects=str(entry["career_prospects"]),
            accreditation=entry.get("accreditation"),
        )
        for name, entry in data["subjects"].items()
    }

    return Vocabulary(
        version=str(data["version"]),
        min_title_length=int(data.get("min_title_length", 4)),
        exclude_keywords=tuple(str(k).lower() for k in data["exclude_keywords"]),
        include_keywords=tuple(str(k).lower() for k in data["include_keywords"]),
        default_prefix=str(data.get("default_prefix", "MSc")),
        abbreviations=dict(data.get("abbreviations", {})),
        degree_levels=tuple(data.get("degree_levels", ["MSc"])),
        duration_phrases={str(k).lower(): str(v) for k, v in data.get("duration_phrases", {}).items()},
        subjects=subjects,
        default_career_prospects=str(data["default_career_prospects"]),
        images={str(k).lower(): str(v) for k, v in data.get("images", {}).items()},
        default_image=str(data["default_image"]),
        institution_locations=dict(data.get("institution_locations", {})),
        default_location=str(data.get("default_location", "United Kingdom")),
    )


@lru_cache(maxsize=1)
def default_vocabulary() -> Vocabulary:
    """Bundled vocabulary, loaded once per process."""
    return load_vocabulary()


def keyword_pattern(keyword: str) -> re.Pattern[str]:
    """
    Case-insensitive whole-word pattern for a keyword (simple plural allowed).

    "career" matches "Careers", "ai" does not match "email".
    """
    return _keyword_pattern(keyword.lower())


@lru_cache(maxsize=512)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(r"\b" + re.escape(keyword) + r"s?\b", re.IGNORECASE)


def contains_keyword(text: str, keywords: Tuple[str, ...]) -> Optional[str]:
    """Return the first keyword found in `text`, or None."""
    for kw in keywords:
        if keyword_pattern(kw).search(text):
            return kw
    return None
