"""
Shared builders for the test suite.
"""

from uniscrape.model import CourseRecord, FetchMode, SourceDescriptor


def make_record(title: str = "MSc Computing Science", institution: str = "University of Edinburgh", **kwargs) -> CourseRecord:
    values = {
        "title": title,
        "description": "A taught masters.",
        "duration": "12 months",
        "duration_months": 12,
        "fees": 35900,
        "location": "Edinburgh, Scotland",
        "entry_requirements": "UK 2:1",
        "modules": ("Algorithms", "Databases"),
        "assessment_methods": "Coursework",
        "career_prospects": "Software Engineer",
        "start_dates": ("September 2025",),
        "application_deadline": "2025-07-31",
        "language_requirements": "IELTS 7.0",
        "scholarship_available": True,
        "accreditation": None,
        "image_url": "https://img.example/cs.png",
        "source_url": "https://www.ed.ac.uk/msc-cs",
        "last_scraped_at": "2025-01-15T10:00:00+00:00",
        "institution_name": institution,
        "department_name": "School of Informatics",
        "course_type": "MSc",
    }
    values.update(kwargs)
    return CourseRecord(**values)


def make_source(
    pages=("https://www.example.ac.uk/a", "https://www.example.ac.uk/b"),
    key: str = "example-university/computing",
) -> SourceDescriptor:
    return SourceDescriptor(
        id=key,
        display_name="Example University - School of Computing",
        institution_name="Example University",
        department_name="School of Computing",
        base_url="https://www.example.ac.uk",
        pages=tuple(pages),
        fetch_mode=FetchMode.STATIC,
        selectors={
            "container": (".course",),
            "title": (".course-title",),
            "fees": (".fees",),
            "link": ("a",),
        },
    )
