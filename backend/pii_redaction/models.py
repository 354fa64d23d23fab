# backend/pii_redaction/models.py

from dataclasses import dataclass
from typing import Any, List, Optional

EMAIL = "email"
PHONE = "phone"


@dataclass(frozen=True)
class TextRun:
    """
    One positioned text unit as reported by the document engine.

    Coordinates are page-native: origin at the bottom-left corner, Y grows upward.
    `origin_x`/`origin_y` are the translation part of the run's placement transform
    (tx, ty), i.e. the baseline start of the run.
    """
    raw_text: str
    origin_x: float
    origin_y: float
    width: float
    height: float


@dataclass(frozen=True)
class PIIMatch:
    """A detected email/phone with its top-left, Y-down bounding box on the page."""
    text: str
    type: str
    page_number: int
    x: float
    y: float
    width: float
    height: float


@dataclass
class PageRedactionSet:
    page_number: int
    items: List[PIIMatch]
    page_height: float
    page_width: float


@dataclass(frozen=True)
class RedactionStatistics:
    total_redactions: int = 0
    emails: int = 0
    phones: int = 0
    pages_affected: int = 0

    def to_dict(self) -> dict:
        return {
            "totalRedactions": self.total_redactions,
            "emails": self.emails,
            "phones": self.phones,
            "pagesAffected": self.pages_affected,
        }


@dataclass(frozen=True)
class RedactionOptions:
    # Set when the output is rasterized afterwards, where a permission lock is pointless.
    skip_permission_lock: bool = False


@dataclass(frozen=True)
class BestEffortResult:
    """Outcome of a secondary step whose failure must not abort the pipeline."""
    ok: bool
    value: Any = None
    error: Optional[str] = None


@dataclass
class RedactionOutcome:
    """What the redact path hands back to the transport layer."""
    statistics: RedactionStatistics
    document_bytes: Optional[bytes] = None
    processing_time_ms: int = 0

    @property
    def redacted(self) -> bool:
        return self.document_bytes is not None
