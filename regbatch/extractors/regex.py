"""
Regular-expression session extractor.

The token pattern is required: a page without it cannot be submitted. The
captcha pattern is best-effort; when it does not match, the payload is empty
and the submission still goes out with `captcha_input=""`.
"""

from __future__ import annotations

import re
from typing import Optional

from regbatch.config import Settings, get_settings
from regbatch.domain.errors import SessionError
from regbatch.domain.models import Session
from regbatch.extractors.abstract import AbstractExtractor
from regbatch.utils.logging import get_logger

log = get_logger(__name__)


def first_group(pattern: re.Pattern[str], text: str) -> Optional[str]:
    """First non-empty capture group of the first match, or None."""
    match = pattern.search(text)
    if not match:
        return None
    for group in match.groups() or (match.group(0),):
        if group:
            return group.strip()
    return None


class RegexExtractor(AbstractExtractor):
    """
    Extract the `_token` hidden input and the captcha text with regexes.
    """

    name: str = "regex"

    def __init__(
        self,
        token_pattern: Optional[str] = None,
        captcha_pattern: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.token_pattern = re.compile(token_pattern or settings.token_pattern)
        self.captcha_pattern = re.compile(
            captcha_pattern or settings.captcha_pattern, re.DOTALL | re.IGNORECASE
        )

    def extract(self, html: str) -> Session:
        token = first_group(self.token_pattern, html or "")
        if not token:
            raise SessionError("token_not_found")

        captcha = first_group(self.captcha_pattern, html or "")
        if captcha is None:
            log.warning("[SESSION] Captcha not found on page; submitting empty captcha")
            captcha = ""

        return Session(anti_forgery_token=token, captcha_payload=captcha)


__all__ = ["RegexExtractor", "first_group"]
