"""
hydropkg - Minimal package manager client for hydrosh

Fetches package archives from a mirror, featuring:
- Mirror index scraping with substring search
- Suggestions when a package name is not found
- Safe, staged archive extraction
- Plain-text manifest of installed packages
"""

__version__ = "1.0.0"
__author__ = "hydrophobis"
