"""Tests for statistics aggregation and the client-facing payloads."""

from pii_redaction.models import PageRedactionSet, PIIMatch
from pii_redaction.statistics import (
    NO_PII_MESSAGE,
    build_analysis_report,
    build_no_match_response,
    get_redaction_stats,
)


def _match(pii_type, text, page=1):
    return PIIMatch(text=text, type=pii_type, page_number=page, x=10.4, y=20.6, width=100.2, height=12)


def test_counts_by_type():
    page_sets = [PageRedactionSet(1, [
        _match("email", "a@b.com"),
        _match("phone", "647-852-1083"),
        _match("phone", "416-555-1234"),
    ], 400, 600)]

    stats = get_redaction_stats(page_sets)

    assert stats.total_redactions == 3
    assert stats.emails == 1
    assert stats.phones == 2
    assert stats.pages_affected == 1


def test_totals_add_up_across_pages():
    page_sets = [
        PageRedactionSet(1, [_match("email", "a@b.com")], 400, 600),
        PageRedactionSet(4, [_match("phone", "647-852-1083", 4), _match("email", "c@d.org", 4)], 400, 600),
    ]
    stats = get_redaction_stats(page_sets)
    assert stats.total_redactions == stats.emails + stats.phones == 3
    assert stats.pages_affected == len(page_sets)


def test_empty_input_is_all_zero():
    assert get_redaction_stats([]).to_dict() == {
        "totalRedactions": 0, "emails": 0, "phones": 0, "pagesAffected": 0,
    }


def test_analysis_report_hides_text_by_default():
    report = build_analysis_report([PageRedactionSet(2, [_match("email", "a@b.com", 2)], 400, 600)])

    assert report["found"] is True
    item = report["details"][0]["items"][0]
    assert report["details"][0]["page"] == 2
    assert "text" not in item
    assert item["textLength"] == len("a@b.com")
    assert item["coordinates"] == {"x": 10, "y": 21, "width": 100, "height": 12}


def test_analysis_report_can_include_text():
    report = build_analysis_report([PageRedactionSet(1, [_match("phone", "647-852-1083")], 400, 600)],
                                   include_text=True)
    assert report["details"][0]["items"][0]["text"] == "647-852-1083"


def test_no_match_response():
    response = build_no_match_response(42)
    assert response["message"] == NO_PII_MESSAGE
    assert response["redactions"]["totalRedactions"] == 0
    assert response["processingTime"] == 42
