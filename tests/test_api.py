"""Tests for the HTTP surface."""

import json
import runpy

import fitz
import pytest
import uvicorn
from fastapi.testclient import TestClient

import main


@pytest.fixture
def client():
    return TestClient(main.app)


def _upload(data, filename="document.pdf", content_type="application/pdf"):
    return {"pdf": (filename, data, content_type)}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_root_banner(client):
    body = client.get("/").json()
    assert body["service"] == main.SERVICE_NAME


def test_rejects_non_pdf_upload(client):
    response = client.post("/api/editor/redact", files=_upload(b"This is not a PDF", "fake.txt", "text/plain"))
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid file type"
    assert body["category"] == "input_error"
    assert "hint" in body
    assert "technicalDetails" not in body


def test_rejects_oversized_upload(client, monkeypatch):
    monkeypatch.setattr(main, "MAX_FILE_SIZE", 1024)
    response = client.post("/api/editor/redact", files=_upload(b"%PDF-1.4\n" + b"0" * 4096, "large.pdf"))
    assert response.status_code == 413
    body = response.json()
    assert body["error"] == "File too large"
    assert "hint" in body
    assert body["message"] == "File too large. Maximum file size is 1024 bytes."


def test_size_limit_message_follows_applied_limit():
    assert main.format_size_limit(10 * 1024 * 1024) == "10MB"
    assert main.format_size_limit(int(2.5 * 1024 * 1024)) == "2.5MB"
    assert main.format_size_limit(10) == "10 bytes"


def test_running_main_starts_uvicorn(monkeypatch):
    started = {}

    def fake_run(app, host, port):
        started.update(app=app, host=host, port=port)

    monkeypatch.setattr(uvicorn, "run", fake_run)
    monkeypatch.setenv("PORT", "8123")
    runpy.run_path(main.__file__, run_name="__main__")

    assert started["port"] == 8123
    assert started["host"] == "0.0.0.0"
    assert started["app"].title == main.SERVICE_NAME


def test_malformed_pdf_gets_categorized_error(client):
    response = client.post("/api/editor/redact", files=_upload(b"%PDF-1.4\nmalformed data here", "malformed.pdf"))
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid PDF File"
    assert body["category"] == "format_error"
    assert "technicalDetails" not in body


def test_password_protected_pdf_is_rejected_with_hint(client, password_protected_pdf):
    response = client.post("/api/editor/analyze", files=_upload(password_protected_pdf, "locked.pdf"))
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "PDF is Password Protected"
    assert "password" in body["hint"].lower()
    assert "secret@example.com" not in response.text


def test_analyze_reports_lengths_not_text(client, contact_pdf):
    response = client.post("/api/editor/analyze", files=_upload(contact_pdf))
    assert response.status_code == 200
    body = response.json()
    assert body["found"] is True
    assert body["statistics"]["totalRedactions"] == 2
    assert "test@example.com" not in response.text
    item = body["details"][0]["items"][0]
    assert set(item) == {"type", "textLength", "coordinates"}


def test_redact_without_pii_short_circuits(client, clean_pdf):
    response = client.post("/api/editor/redact", files=_upload(clean_pdf))
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "No personal information found in the document"
    assert body["redactions"]["totalRedactions"] == 0


def test_redact_returns_page_images(client, two_page_pdf):
    response = client.post("/api/editor/redact", files=_upload(two_page_pdf, "resume.pdf"))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["format"] == "png"
    assert body["pageCount"] == 2
    assert [image["pageNumber"] for image in body["images"]] == [1, 2]
    assert body["statistics"]["pagesAffected"] == 2


def test_redact_pdf_returns_locked_document(client, contact_pdf):
    response = client.post("/api/editor/redact-pdf", files=_upload(contact_pdf, "resume.pdf"))
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="redacted_resume.pdf"' in response.headers["content-disposition"]
    assert json.loads(response.headers["x-redaction-stats"])["totalRedactions"] == 2

    document = fitz.open(stream=response.content, filetype="pdf")
    try:
        assert document.page_count == 1
        assert not document.permissions & fitz.PDF_PERM_PRINT
    finally:
        document.close()


def test_unexpected_errors_hide_internal_text(client, contact_pdf, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("internal failure near test@example.com")

    monkeypatch.setattr(main, "analyze_document", explode)
    response = client.post("/api/editor/analyze", files=_upload(contact_pdf))
    assert response.status_code == 500
    assert response.json()["error"] == "Processing Error"
    assert "test@example.com" not in response.text
