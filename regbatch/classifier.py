"""
Response classification for form submissions.

Maps an endpoint response to one of four verdicts: success, expired session,
validation error, or unrecognized. Also parses the registration details shown
on a success page or on the registration lookup page. Missing details become
placeholders; they never turn a success into a failure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from regbatch.config import Settings, get_settings
from regbatch.domain.models import PLACEHOLDER, RegistrationInfo
from regbatch.extractors.regex import first_group

_SPACES = re.compile(r"\s+")

# Field patterns of the registration summary block.
_LOOKUP_PATTERNS = {
    "name": re.compile(r"Nama KTP\s*:\s*([\w ]+)"),
    "national_id": re.compile(r"Nomor KTP\s*:\s*(\*+\d+)"),
    "phone_number": re.compile(r"Nomor HP\s*:\s*(\*+\d+)"),
    "visit_date": re.compile(r"Tanggal Datang\s*:\s*([\d\-]+)"),
    "attendance_window": re.compile(r"Wajib Hadir\s*:\s*([\d.: \-]+)"),
}


class Verdict(str, Enum):
    SUCCESS = "success"
    EXPIRED = "expired"
    VALIDATION = "validation"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class Classification:
    verdict: Verdict
    message: str = ""


def _text_of(node: Tag) -> str:
    return _SPACES.sub(" ", node.get_text(" ", strip=True)).strip()


def strip_tags(fragment: str) -> str:
    """Plain text of an HTML fragment, whitespace collapsed."""
    return _text_of(BeautifulSoup(fragment or "", "html.parser"))


class ResponseClassifier:
    """
    Marker-based classifier configured from `Settings`.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        self.website = settings.endpoint_url
        self.success_marker = settings.success_marker
        self.expired_markers: List[str] = list(settings.expired_markers)
        self.expired_statuses = set(settings.expired_statuses)
        self.validation_selector = ", ".join(settings.validation_selectors)
        self.queue_pattern = re.compile(settings.queue_pattern)
        self.ref_pattern = re.compile(settings.ref_pattern)

    def classify(self, status_code: int, body: str) -> Classification:
        body = body or ""
        if self.success_marker and self.success_marker in body:
            return Classification(Verdict.SUCCESS)

        if status_code in self.expired_statuses or any(
            marker in body for marker in self.expired_markers
        ):
            return Classification(Verdict.EXPIRED, "session expired")

        messages = self._validation_messages(body)
        if messages:
            return Classification(Verdict.VALIDATION, "; ".join(messages))
        if status_code == 422:
            return Classification(Verdict.VALIDATION, "submission rejected (HTTP 422)")

        return Classification(Verdict.UNRECOGNIZED, "unrecognized response")

    def _validation_messages(self, body: str) -> List[str]:
        """Text of every validation block, outermost blocks only, in page order."""
        if not self.validation_selector or not body:
            return []
        soup = BeautifulSoup(body, "html.parser")
        taken: set[int] = set()
        messages: List[str] = []
        for element in soup.select(self.validation_selector):
            if any(id(parent) in taken for parent in element.parents):
                continue
            taken.add(id(element))
            text = _text_of(element)
            if text and text not in messages:
                messages.append(text)
        return messages

    def parse_registration(self, body: str, sources: Sequence[str] = ()) -> RegistrationInfo:
        """
        Registration details from `body`, then from any extra `sources` for
        fields the first page did not show.
        """
        pages = [body or "", *sources]
        info = {"website": self.website}

        patterns = {"queue_number": self.queue_pattern, "ref": self.ref_pattern}
        patterns.update(_LOOKUP_PATTERNS)
        for field_name, pattern in patterns.items():
            value = PLACEHOLDER
            for page in pages:
                found = first_group(pattern, page)
                if found:
                    value = found
                    break
            info[field_name] = value
        return RegistrationInfo(**info)


__all__ = ["Classification", "ResponseClassifier", "Verdict", "strip_tags"]
