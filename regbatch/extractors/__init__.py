"""
Extractors package: page HTML in, `Session` out.

Re-exports the abstract interface and the concrete regex implementation so
downstream code can import from `regbatch.extractors` directly.
"""

from regbatch.extractors.abstract import AbstractExtractor, Extractor
from regbatch.extractors.regex import RegexExtractor

__all__ = [
    "AbstractExtractor",
    "Extractor",
    "RegexExtractor",
]
