"""
Extractor interfaces for turning a session page into a `Session`.

The submission engine only depends on the `Extractor` protocol, so the parsing
strategy (regular expressions today) can be swapped without touching the
orchestration code.
"""

from __future__ import annotations

import abc
from typing import Protocol, runtime_checkable

from regbatch.domain.models import Session


@runtime_checkable
class Extractor(Protocol):
    """
    Common interface all session extractors must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier.
    """

    name: str

    def extract(self, html: str) -> Session:
        """
        Parse the anti-forgery token and captcha payload out of `html`.

        Raises
        ------
        SessionError
            With reason ``"token_not_found"`` when no token is present.
        """
        ...


class AbstractExtractor(abc.ABC):
    """
    Optional ABC helper for class-based implementations.
    """

    name: str

    @abc.abstractmethod
    def extract(self, html: str) -> Session:  # pragma: no cover - interface only
        """Parse a session out of a page."""
        raise NotImplementedError


__all__ = ["AbstractExtractor", "Extractor"]
