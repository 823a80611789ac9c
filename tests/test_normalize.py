"""
Unit tests for normalization (raw fragment -> canonical record).

Record invariants checked here:
- title carries an academic-level prefix and expanded abbreviations
- duration_months is always within [3, 60] (unparseable -> 12)
- fees is 0 or within [10000, 100000], never clamped
- descriptions longer than 500 chars are cut to 497 + "..."
"""

import unittest
from datetime import date

from uniscrape.errors import TransformError
from uniscrape.model import FetchMode, RawFragment, SourceDescriptor
from uniscrape.normalize import (
    DESCRIPTION_PLACEHOLDER,
    REQUIREMENTS_DEFAULT,
    accreditation,
    application_deadline,
    career_prospects,
    course_type,
    image_url,
    normalize,
    normalize_description,
    normalize_fees,
    normalize_modules,
    normalize_start_dates,
    normalize_title,
    parse_duration_months,
    resolve_location,
    scholarship_available,
    standardize_duration,
)
from uniscrape.vocabulary import default_vocabulary

SOURCE = SourceDescriptor(
    id="university-of-edinburgh/school-of-informatics",
    display_name="University of Edinburgh - School of Informatics",
    institution_name="University of Edinburgh",
    department_name="School of Informatics",
    base_url="https://www.ed.ac.uk",
    pages=("https://www.ed.ac.uk/informatics/postgraduate/masters",),
    fetch_mode=FetchMode.STATIC,
    selectors={},
)

STAMP = "2025-01-15T10:00:00+00:00"


def make_fragment(**kwargs) -> RawFragment:
    values = {
        "title": "Computing Science",
        "source_url": "https://www.ed.ac.uk/informatics/postgraduate/masters",
        "scraped_at": STAMP,
    }
    values.update(kwargs)
    return RawFragment(**values)


class TestNormalizeRecord(unittest.TestCase):
    def test_computing_science_scenario(self) -> None:
        frag = make_fragment(fees="£35,900 per year", duration="12 months")
        rec = normalize(frag, SOURCE, today=date(2025, 3, 1))

        self.assertEqual(rec.title, "MSc Computing Science")
        self.assertEqual(rec.fees, 35900)
        self.assertEqual(rec.duration_months, 12)
        self.assertEqual(rec.duration, "12 months")
        # threshold is 35000, strictly greater qualifies
        self.assertTrue(rec.scholarship_available)
        self.assertEqual(rec.course_type, "MSc")
        self.assertEqual(rec.currency, "GBP")
        self.assertTrue(rec.is_active)

    def test_defaults_for_missing_fields(self) -> None:
        rec = normalize(make_fragment(), SOURCE, today=date(2025, 3, 1))

        self.assertEqual(rec.description, DESCRIPTION_PLACEHOLDER)
        self.assertEqual(rec.entry_requirements, REQUIREMENTS_DEFAULT)
        self.assertEqual(rec.fees, 0)
        self.assertFalse(rec.scholarship_available)
        self.assertEqual(rec.duration, "12 months")
        self.assertEqual(rec.duration_months, 12)
        self.assertEqual(rec.modules, ())
        self.assertIsNone(rec.start_dates)
        self.assertEqual(rec.location, "Edinburgh, Scotland")
        self.assertEqual(rec.application_deadline, "2025-07-31")
        self.assertEqual(rec.source_url, "https://www.ed.ac.uk/informatics/postgraduate/masters")
        self.assertEqual(rec.last_scraped_at, STAMP)
        self.assertEqual(rec.institution_name, "University of Edinburgh")
        self.assertEqual(rec.department_name, "School of Informatics")

    def test_link_becomes_source_url(self) -> None:
        rec = normalize(make_fragment(link="https://www.ed.ac.uk/msc-cs"), SOURCE)
        self.assertEqual(rec.source_url, "https://www.ed.ac.uk/msc-cs")

    def test_flexible_duration(self) -> None:
        rec = normalize(make_fragment(duration="flexible"), SOURCE)
        self.assertEqual(rec.duration_months, 12)

    def test_malformed_field_raises_transform_error(self) -> None:
        with self.assertRaises(TransformError) as ctx:
            normalize(make_fragment(title="   "), SOURCE)
        self.assertEqual(ctx.exception.field, "title")

    def test_course_type_from_scraped_title(self) -> None:
        cases = {
            "MRes Machine Learning": ("MRes Machine Learning", "MRes"),
            "PhD in Computer Science": ("PhD in Computer Science", "PhD"),
            "MBA Data Science": ("MBA Data Science", "MBA"),
            "Data Science": ("MSc Data Science", "MSc"),
        }
        for raw, (title, level) in cases.items():
            with self.subTest(title=raw):
                rec = normalize(make_fragment(title=raw), SOURCE, today=date(2025, 3, 1))
                self.assertEqual(rec.title, title)
                self.assertEqual(rec.course_type, level)

    def test_huge_duration_number_defaults(self) -> None:
        rec = normalize(make_fragment(duration="1" * 400 + " years"), SOURCE, today=date(2025, 3, 1))
        self.assertEqual(rec.duration_months, 12)


class TestFieldRules(unittest.TestCase):
    def test_title_prefix_and_abbreviations(self) -> None:
        self.assertEqual(normalize_title("AI"), "MSc Artificial Intelligence")
        self.assertEqual(normalize_title("MSc Comp Sci"), "MSc Computer Science")
        self.assertEqual(normalize_title("Master of Data Science"), "Master of Data Science")
        self.assertEqual(normalize_title("  MSc   ML\n"), "MSc Machine Learning")
        # whole words only
        self.assertEqual(normalize_title("MSc Email Systems"), "MSc Email Systems")
        with self.assertRaises(ValueError):
            normalize_title("")

    def test_description(self) -> None:
        self.assertEqual(normalize_description(None), DESCRIPTION_PLACEHOLDER)
        self.assertEqual(normalize_description(" Short  text "), "Short text")
        long_text = "x" * 600
        out = normalize_description(long_text)
        self.assertEqual(len(out), 500)
        self.assertTrue(out.endswith("..."))
        self.assertEqual(normalize_description("y" * 500), "y" * 500)

    def test_duration_phrases(self) -> None:
        self.assertEqual(standardize_duration("One year"), "12 months")
        self.assertEqual(standardize_duration("2 years"), "24 months")
        self.assertEqual(standardize_duration(None), "12 months")
        self.assertEqual(standardize_duration("1 year full-time"), "1 year full-time")

    def test_duration_months(self) -> None:
        cases = {
            "18 months": 18,
            "2 years": 24,
            "1.5 years": 18,
            "One year full-time": 12,
            "two years part-time": 24,
            "flexible": 12,
            "1 month": 12,
            "10 years": 12,
            "": 12,
            None: 12,
            "1" * 400 + " years": 12,
            "9" * 400 + " months": 12,
            10**400: 12,
            float("inf"): 12,
            float("nan"): 12,
        }
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertEqual(parse_duration_months(text), expected)

    def test_fees(self) -> None:
        self.assertEqual(normalize_fees(35900), 35900)
        self.assertEqual(normalize_fees(35900.0), 35900)
        self.assertEqual(normalize_fees("£35,900"), 35900)
        self.assertEqual(normalize_fees("£ 12,000 per year"), 12000)
        self.assertEqual(normalize_fees("5000"), 0)
        self.assertEqual(normalize_fees(150000), 0)
        self.assertEqual(normalize_fees("TBC"), 0)
        self.assertEqual(normalize_fees(None), 0)
        self.assertEqual(normalize_fees(True), 0)
        self.assertEqual(normalize_fees(float("inf")), 0)
        self.assertEqual(normalize_fees(float("nan")), 0)

    def test_scholarship_threshold(self) -> None:
        self.assertFalse(scholarship_available(35000))
        self.assertTrue(scholarship_available(35001))
        self.assertFalse(scholarship_available(0))

    def test_application_deadline_rolls_over_after_july(self) -> None:
        self.assertEqual(application_deadline(date(2025, 7, 31)), "2025-07-31")
        self.assertEqual(application_deadline(date(2025, 8, 1)), "2026-07-31")
        self.assertEqual(application_deadline(date(2025, 1, 1)), "2025-07-31")

    def test_location(self) -> None:
        self.assertEqual(resolve_location(None, "Imperial College London"), "London, England")
        self.assertEqual(resolve_location(None, "Unknown Institute"), "United Kingdom")
        self.assertEqual(resolve_location(" Cambridge ", "Unknown Institute"), "Cambridge")

    def test_modules_and_start_dates(self) -> None:
        self.assertEqual(normalize_modules(["Algorithms", " ", None, "Databases"]), ("Algorithms", "Databases"))
        self.assertEqual(normalize_modules("Algorithms, Databases,"), ("Algorithms", "Databases"))
        self.assertEqual(normalize_modules(None), ())
        self.assertEqual(normalize_start_dates(["September 2025"]), ("September 2025",))
        self.assertEqual(normalize_start_dates("January"), ("January",))
        self.assertIsNone(normalize_start_dates([]))
        self.assertIsNone(normalize_start_dates(None))

    def test_subject_lookups(self) -> None:
        vocab = default_vocabulary()
        self.assertIn("Data Scientist", career_prospects("MSc Data Science"))
        self.assertEqual(career_prospects("MSc Robotics"), vocab.default_career_prospects)
        self.assertIn("BCS", accreditation("MSc Computer Science"))
        self.assertIsNone(accreditation("MSc Robotics"))

    def test_image_url(self) -> None:
        vocab = default_vocabulary()
        self.assertEqual(image_url("MSc AI", "https://cdn.example/a.jpg"), "https://cdn.example/a.jpg")
        self.assertIn("Cybersecurity", image_url("MSc Cybersecurity"))
        self.assertEqual(image_url("MSc Astrophysics"), vocab.default_image)

    def test_course_type(self) -> None:
        self.assertEqual(course_type("MRes Machine Learning"), "MRes")
        self.assertEqual(course_type("MBA Global"), "MBA")
        self.assertEqual(course_type("Master of Science"), "MSc")


if __name__ == "__main__":
    unittest.main()
