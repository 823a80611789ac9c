"""
Candidate validation.

Decides whether a raw fragment is a real course entry or navigational
noise (menus, section headings, overview blocks).

Rule order (DO NOT CHANGE):
1. too-short titles are rejected
2. any exclusion keyword rejects, even if an inclusion keyword matches
3. otherwise at least one inclusion keyword is required
"""

from __future__ import annotations

import logging
from typing import Optional

from uniscrape.model import RawFragment
from uniscrape.vocabulary import Vocabulary, contains_keyword, default_vocabulary

logger = logging.getLogger(__name__)


def is_course_title(title: Optional[str], vocabulary: Optional[Vocabulary] = None) -> bool:
    vocab = vocabulary or default_vocabulary()
    text = (title or "").strip()
    if len(text) < vocab.min_title_length:
        return False

    excluded = contains_keyword(text, vocab.exclude_keywords)
    if excluded:
        logger.debug("Rejected %r (exclusion keyword %r)", text, excluded)
        return False

    return contains_keyword(text, vocab.include_keywords) is not None


def is_candidate_record(fragment: RawFragment, vocabulary: Optional[Vocabulary] = None) -> bool:
    return is_course_title(fragment.title, vocabulary)
