"""
uniscrape: resilient extraction of university course listings into
canonical, validated records.
"""

from pathlib import Path

__version__ = (Path(__file__).resolve().parent / "VERSION").read_text(encoding="utf-8").strip()
