# backend/pii_redaction/entity_detection.py

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Tuple

from .models import EMAIL, PHONE

logger = logging.getLogger(__name__)

# ==============================================================================
# 1. MATCH RULES
# ==============================================================================

@dataclass(frozen=True)
class MatchRule:
    """A single named pattern tagged with the PII type it detects."""
    name: str
    pii_type: str
    pattern: re.Pattern

    def find(self, text: str) -> List[str]:
        return [match.group(0) for match in self.pattern.finditer(text)]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


EMAIL_RULES = [
    MatchRule("email", EMAIL, re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", re.ASCII)),
]

# Phone digits are ASCII only, separators use Unicode \s (so U+00A0 and friends count),
# and word edges are ASCII word edges.
_WORD_START = r"(?<![A-Za-z0-9_])"
_WORD_END = r"(?![A-Za-z0-9_])"

# Evaluated in this order; overlapping hits are expected and merged by `_merge_first_seen`.
PHONE_RULES = [
    # +1-555-123-4567, +44 20 1234 5678
    MatchRule("international_plus", PHONE,
              re.compile(r"\+[0-9]{1,3}[\s.-]?\(?[0-9]{1,4}\)?[\s.-]?[0-9]{1,4}[\s.-]?[0-9]{1,4}[\s.-]?[0-9]{0,4}")),
    # (555) 123-4567, (02) 1234 5678
    MatchRule("parenthesized_local", PHONE,
              re.compile(r"\(?[0-9]{2,4}\)?[\s.-]?[0-9]{3,4}[\s.-]?[0-9]{3,4}")),
    # 555-123-4567, 555.123.4567
    MatchRule("simple_separated", PHONE,
              re.compile(r"[0-9]{3}[\s.-][0-9]{3}[\s.-][0-9]{4}")),
    # 00 44 20 1234 5678
    MatchRule("international_double_zero", PHONE,
              re.compile(_WORD_START + r"00\s?[0-9]{1,3}[\s.-]?[0-9]{1,4}[\s.-]?[0-9]{1,4}[\s.-]?[0-9]{1,4}" + _WORD_END)),
    # 5551234567
    MatchRule("compact_digits", PHONE,
              re.compile(_WORD_START + r"[0-9]{10,15}" + _WORD_END)),
]


def _merge_first_seen(rules: Iterable[MatchRule], text: str) -> List[str]:
    """Runs every rule over the full text; the first occurrence of each literal substring wins."""
    seen = set()
    merged = []
    for rule in rules:
        for found in rule.find(text):
            if found not in seen:
                seen.add(found)
                merged.append(found)
    return merged

# ==============================================================================
# 2. PUBLIC DETECTION API
# ==============================================================================

class Classification(NamedTuple):
    is_email: bool
    is_phone: bool


def is_email(text: str) -> bool:
    return any(rule.matches(text) for rule in EMAIL_RULES)


def is_phone(text: str) -> bool:
    return any(rule.matches(text) for rule in PHONE_RULES)


def classify(text: str) -> Classification:
    return Classification(is_email=is_email(text), is_phone=is_phone(text))


def find_emails(text: str) -> List[str]:
    return _merge_first_seen(EMAIL_RULES, text) if text else []


def find_phones(text: str) -> List[str]:
    """
    Returns every phone-shaped substring of `text`, de-duplicated by exact literal.

    Two differently formatted substrings for the same number are both kept, and a
    substring matched by several rules appears once, at its first-seen position.
    """
    return _merge_first_seen(PHONE_RULES, text) if text else []


def contains_pii(text: str) -> bool:
    if not text:
        return False
    classification = classify(text)
    return classification.is_email or classification.is_phone


def identify_pii_entities(text: str) -> List[Tuple[str, str]]:
    """
    Lists `(pii_type, matched_text)` pairs for a text run: all emails first, then all phones.
    """
    entities = [(EMAIL, email) for email in find_emails(text)]
    entities.extend((PHONE, phone) for phone in find_phones(text))
    return entities
