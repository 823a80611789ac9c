"""
Source registry.

Each institution is plain data: a name, a base URL and one or more
departments. A department carries the page URLs, the fetch mode and the
per-field selector lists. The extractor is one generic algorithm driven
by these lists; there is no per-site code.

Selector lists are ordered: the first selector that yields a value wins.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from uniscrape.errors import UnknownSourceError
from uniscrape.model import FetchMode, SourceDescriptor


# ---------------------------------------------------------------------------
# Generic selectors (last step of every cascade)
# ---------------------------------------------------------------------------

GENERIC_SELECTORS: Dict[str, tuple[str, ...]] = {
    "container": (
        ".course-list .course",
        ".programme-list .programme",
        ".search-results .result",
        ".courses .course-item",
        "article[class*='course']",
        ".postgraduate-courses .course",
    ),
    "title": (".course-title", ".programme-title", "h2 a", "h3 a", ".title a", ".course-name"),
    "link": (
        "a[href*='course']",
        "a[href*='programme']",
        "a[href*='masters']",
        "a[href*='msc']",
        ".course-link",
        ".read-more",
    ),
    "fees": (".fees", ".tuition", ".cost", ".fee-amount", "[class*='fee']", "[class*='tuition']"),
    "duration": (".duration", ".length", ".study-mode", "[class*='duration']", "[class*='length']"),
}


# ---------------------------------------------------------------------------
# Institutions
# ---------------------------------------------------------------------------

INSTITUTIONS: Dict[str, Dict[str, Any]] = {
    "university-of-edinburgh": {
        "name": "University of Edinburgh",
        "base_url": "https://www.ed.ac.uk",
        "departments": {
            "school-of-informatics": {
                "name": "School of Informatics",
                "pages": [
                    "https://www.ed.ac.uk/studying/postgraduate/degrees/index.php?r=site/search&search_type=degree&search_text=MSc&search_college=science-engineering&search_school=informatics",
                    "https://www.ed.ac.uk/informatics/postgraduate/masters",
                ],
                "fetch_mode": "static",
                "selectors": {
                    "container": [".course-listing .course-item", ".degree-item", ".programme-item"],
                    "title": [".course-title", ".degree-title", "h3 a", ".programme-name"],
                    "duration": [".duration", ".course-duration", ".study-mode"],
                    "fees": [".fees", ".tuition-fee", ".fee-amount"],
                    "description": [".course-description", ".degree-description", ".overview"],
                    "link": ["a", ".course-link"],
                    "requirements": [".entry-requirements", ".requirements"],
                    "modules": [".modules li", ".curriculum li"],
                    "start_dates": [".start-dates li", ".intake-dates li"],
                },
                "fallback_selectors": {
                    "container": ["article", ".result-item", ".search-result"],
                    "title": ["h2", "h3", ".title"],
                    "link": ["a[href*='degree']", "a[href*='course']"],
                },
            },
        },
    },
    "imperial-college-london": {
        "name": "Imperial College London",
        "base_url": "https://www.imperial.ac.uk",
        "departments": {
            "department-of-computing": {
                "name": "Department of Computing",
                "pages": [
                    "https://www.imperial.ac.uk/computing/prospective-students/courses/postgraduate-taught/",
                    "https://www.imperial.ac.uk/study/courses/postgraduate-taught/computing/",
                ],
                "fetch_mode": "dynamic",
                "readiness_selector": ".course-list, .programme-list",
                "selectors": {
                    "container": [".course-listing__item", ".course-item", ".programme-card", ".course-card"],
                    "title": ["h2.course-title", ".course-title", ".programme-title", "h3"],
                    "duration": [".course-duration", ".duration", ".study-duration"],
                    "fees": [".fees", ".tuition-fees", ".course-fees", ".fee-info"],
                    "description": [".course-overview", ".programme-overview", ".course-summary", "p.lead"],
                    "link": ["a[href*='/study/courses/']", "a.course-link", "a"],
                    "requirements": [".entry-requirements", ".admission-requirements"],
                    "modules": [".course-modules li", ".modules li", ".syllabus li"],
                    "start_dates": [".start-date", ".course-start", ".intake-date"],
                    "deadline": [".application-deadline", ".deadline", ".closing-date"],
                    "image": ["img.course-image", ".course-hero img", ".course-card img", "img"],
                },
            },
            "electrical-engineering": {
                "name": "Department of Electrical and Electronic Engineering",
                "pages": ["https://www.imperial.ac.uk/electrical-engineering/study/postgraduate-taught/"],
                "fetch_mode": "static",
                "selectors": {
                    "container": [".course-listing .course"],
                    "title": [".course-title", "h3"],
                    "duration": [".duration"],
                    "fees": [".fees"],
                    "description": [".course-summary"],
                    "link": ["a"],
                },
            },
        },
    },
    "university-of-manchester": {
        "name": "University of Manchester",
        "base_url": "https://www.manchester.ac.uk",
        "departments": {
            "computer-science": {
                "name": "Department of Computer Science",
                "pages": [
                    "https://www.manchester.ac.uk/study/masters/courses/list/?subject=Computer%20Science",
                    "https://www.manchester.ac.uk/study/postgraduate-taught/courses/computer-science/",
                ],
                "fetch_mode": "dynamic",
                "readiness_selector": ".course-search-results, .course-list",
                "selectors": {
                    "container": [".course-result", ".course-item", ".programme-item"],
                    "title": [".course-title", ".programme-title", "h3 a"],
                    "duration": [".duration", ".study-mode"],
                    "fees": [".fees", ".tuition-fee"],
                    "description": [".course-summary", ".programme-summary"],
                    "link": ["a", ".course-link"],
                    "requirements": [".entry-requirements"],
                },
            },
            "business-school": {
                "name": "Alliance Manchester Business School",
                "pages": ["https://www.manchester.ac.uk/study/masters/courses/list/?subject=Business"],
                "fetch_mode": "static",
                "selectors": {
                    "container": [".course-result"],
                    "title": [".course-title h3"],
                    "duration": [".duration"],
                    "fees": [".fees"],
                    "description": [".course-summary"],
                    "link": [".course-title a"],
                },
            },
        },
    },
    "kings-college-london": {
        "name": "King's College London",
        "base_url": "https://www.kcl.ac.uk",
        "departments": {
            "informatics": {
                "name": "Department of Informatics",
                "pages": [
                    "https://www.kcl.ac.uk/study/postgraduate-taught/courses/informatics",
                    "https://www.kcl.ac.uk/informatics/study/postgraduate",
                ],
                "fetch_mode": "dynamic",
                "readiness_selector": ".course-listing, .programme-list",
                "selectors": {
                    "container": [".course-card", ".programme-item"],
                    "title": [".course-title", ".programme-name", "h3"],
                    "duration": [".duration", ".study-duration"],
                    "fees": [".fees", ".fee-information"],
                    "description": [".course-overview", ".programme-overview"],
                    "link": ["a", ".course-link"],
                },
            },
            "business-school": {
                "name": "King's Business School",
                "pages": ["https://www.kcl.ac.uk/business/study/masters"],
                "fetch_mode": "static",
                "selectors": {
                    "container": [".course-item"],
                    "title": [".course-title"],
                    "duration": [".duration"],
                    "fees": [".fees"],
                    "description": [".course-summary"],
                    "link": ["a"],
                },
            },
        },
    },
    "university-of-bristol": {
        "name": "University of Bristol",
        "base_url": "https://www.bristol.ac.uk",
        "departments": {
            "computer-science": {
                "name": "Department of Computer Science",
                "pages": [
                    "https://www.bristol.ac.uk/study/postgraduate/taught/computer-science/",
                    "https://www.bristol.ac.uk/engineering/departments/computerscience/postgraduate/",
                ],
                "fetch_mode": "static",
                "selectors": {
                    "container": [".course-listing .course", ".programme-list .programme"],
                    "title": [".course-title", ".programme-title", "h3"],
                    "duration": [".duration", ".study-mode"],
                    "fees": [".fees", ".tuition-fees"],
                    "description": [".course-overview", ".programme-overview"],
                    "link": ["a", ".course-link"],
                    "requirements": [".entry-requirements"],
                },
            },
            "engineering": {
                "name": "Faculty of Engineering",
                "pages": ["https://www.bristol.ac.uk/study/postgraduate/taught/engineering/"],
                "fetch_mode": "static",
                "selectors": {
                    "container": [".course-item"],
                    "title": [".course-title"],
                    "duration": [".duration"],
                    "fees": [".fees"],
                    "description": [".course-summary"],
                    "link": ["a"],
                },
            },
        },
    },
    "university-of-oxford": {
        "name": "University of Oxford",
        "base_url": "https://www.ox.ac.uk",
        "departments": {
            "computer-science": {
                "name": "Department of Computer Science",
                "pages": ["https://www.cs.ox.ac.uk/", "https://www.graduate.ox.ac.uk/courses"],
                "fetch_mode": "static",
                "selectors": {
                    "container": [".course-list .course", ".programme-list .programme", ".course-item", "article.course"],
                    "title": [".course-title", ".programme-title", "h2", "h3", ".title"],
                    "duration": [".duration", ".study-mode", ".course-duration"],
                    "fees": [".fees", ".tuition-fees", ".fee-amount", ".cost"],
                    "description": [".course-overview", ".programme-overview", ".description", ".summary"],
                    "link": ["a", ".course-link", ".read-more"],
                    "requirements": [".entry-requirements", ".requirements", ".admission-requirements"],
                    "modules": [".modules li", ".curriculum li", ".syllabus li"],
                    "start_dates": [".start-dates li", ".intake-dates li", ".application-dates li"],
                    "deadline": [".deadline", ".application-deadline", ".closing-date"],
                },
                "fallback_selectors": {
                    "container": ["article", ".result-item", ".search-result", ".content-item", "div[class*='course']"],
                    "title": ["h1", "h2", "h3", ".title", ".heading"],
                    "link": ["a[href*='course']", "a[href*='programme']", "a[href*='msc']", "a[href*='masters']"],
                    "description": ["p", ".description", ".summary", ".overview"],
                },
            },
        },
    },
}


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def _selector_map(raw: Optional[Dict[str, List[str]]]) -> Dict[str, tuple[str, ...]]:
    if not raw:
        return {}
    return {name: tuple(s.strip() for s in sels if s.strip()) for name, sels in raw.items()}


def _build_descriptor(inst_key: str, inst: Dict[str, Any], dept_key: str, dept: Dict[str, Any]) -> SourceDescriptor:
    return SourceDescriptor(
        id=f"{inst_key}/{dept_key}",
        display_name=f"{inst['name']} - {dept['name']}",
        institution_name=inst["name"],
        department_name=dept["name"],
        base_url=inst["base_url"].rstrip("/"),
        pages=tuple(dept["pages"]),
        fetch_mode=FetchMode(dept.get("fetch_mode", "static")),
        selectors=_selector_map(dept.get("selectors")),
        fallback_selectors=_selector_map(dept.get("fallback_selectors")),
        generic_selectors=GENERIC_SELECTORS,
        readiness_selector=dept.get("readiness_selector"),
    )


def get_sources(
    source_id: str,
    sub_source_id: Optional[str] = None,
    registry: Optional[Dict[str, Dict[str, Any]]] = None,
) -> List[SourceDescriptor]:
    """
    Return the descriptors for one institution (all departments) or for
    a single department. Unknown ids raise UnknownSourceError.
    """
    institutions = INSTITUTIONS if registry is None else registry
    key = (source_id or "").strip()
    inst = institutions.get(key)
    if inst is None:
        raise UnknownSourceError(f"Unknown source: {source_id!r}")

    departments: Dict[str, Dict[str, Any]] = inst["departments"]
    if sub_source_id:
        dept = departments.get(sub_source_id.strip())
        if dept is None:
            raise UnknownSourceError(f"Unknown department {sub_source_id!r} for source {source_id!r}")
        return [_build_descriptor(key, inst, sub_source_id.strip(), dept)]

    return [_build_descriptor(key, inst, dk, d) for dk, d in departments.items()]


def all_sources(registry: Optional[Dict[str, Dict[str, Any]]] = None) -> List[SourceDescriptor]:
    """Every configured department of every institution, in registry order."""
    institutions = INSTITUTIONS if registry is None else registry
    out: List[SourceDescriptor] = []
    for key in institutions:
        out.extend(get_sources(key, registry=institutions))
    return out


def available_sources(registry: Optional[Dict[str, Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    """
    Catalog for the CLI: [{"key", "name", "departments": [...]}, ...].
    """
    institutions = INSTITUTIONS if registry is None else registry
    return [
        {"key": key, "name": inst["name"], "departments": list(inst["departments"].keys())}
        for key, inst in institutions.items()
    ]
