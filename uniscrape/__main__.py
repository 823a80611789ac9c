"""
Package entry point.

Allows running the scraper via:

    python -m uniscrape

This simply forwards execution to uniscrape.cli.main().
"""

from uniscrape.cli import main

if __name__ == "__main__":
    main()
