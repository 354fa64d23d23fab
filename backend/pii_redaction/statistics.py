# backend/pii_redaction/statistics.py

from typing import Any, Dict, Iterable, List

from .models import EMAIL, PHONE, PageRedactionSet, PIIMatch, RedactionStatistics

NO_PII_MESSAGE = "No personal information found in the document"


def get_redaction_stats(page_sets: Iterable[PageRedactionSet]) -> RedactionStatistics:
    """Folds every match into counts. `pages_affected` is the number of page sets."""
    emails = phones = total = pages = 0
    for page_set in page_sets:
        pages += 1
        for item in page_set.items:
            total += 1
            if item.type == EMAIL:
                emails += 1
            elif item.type == PHONE:
                phones += 1
    return RedactionStatistics(total_redactions=total, emails=emails, phones=phones, pages_affected=pages)


def _item_payload(item: PIIMatch, include_text: bool) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"type": item.type}
    if include_text:
        payload["text"] = item.text
    else:
        payload["textLength"] = len(item.text)
    payload["coordinates"] = {
        "x": round(item.x),
        "y": round(item.y),
        "width": round(item.width),
        "height": round(item.height),
    }
    return payload


def build_analysis_report(page_sets: List[PageRedactionSet], include_text: bool = False) -> Dict[str, Any]:
    """
    Client-facing analysis body. Privacy-conscious callers leave `include_text` off,
    which reports only the length of each match.
    """
    return {
        "found": len(page_sets) > 0,
        "statistics": get_redaction_stats(page_sets).to_dict(),
        "details": [
            {
                "page": page_set.page_number,
                "items": [_item_payload(item, include_text) for item in page_set.items],
            }
            for page_set in page_sets
        ],
    }


def build_no_match_response(processing_time_ms: int) -> Dict[str, Any]:
    return {
        "message": NO_PII_MESSAGE,
        "redactions": RedactionStatistics().to_dict(),
        "processingTime": processing_time_ms,
    }
