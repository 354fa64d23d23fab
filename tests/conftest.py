"""Shared fixtures: PDFs built on the fly with PyMuPDF."""

import fitz
import pytest

from pii_redaction.document_engine import DocumentEngine

PAGE_WIDTH = 600
PAGE_HEIGHT = 400


def build_pdf(*pages, width=PAGE_WIDTH, height=PAGE_HEIGHT, **save_options) -> bytes:
    """
    Each positional argument is one page: a list of `(text, (x, baseline_y))` pairs,
    with PyMuPDF's top-left coordinates. Extra keyword arguments go to `tobytes`.
    """
    document = fitz.open()
    for lines in pages:
        page = document.new_page(width=width, height=height)
        for text, point in lines:
            page.insert_text(point, text, fontsize=12, fontname="helv")
    data = document.tobytes(**save_options)
    document.close()
    return data


def build_literal_text_pdf(text: str, x: float = 50, baseline_y: float = 80) -> bytes:
    """One page whose content stream shows `text` through a plain `( ... ) Tj` operator."""
    document = fitz.open()
    page = document.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
    page.insert_text((x, baseline_y), "placeholder", fontsize=12, fontname="helv")
    xref = page.get_contents()[0]
    native_y = PAGE_HEIGHT - baseline_y
    stream = f"BT /helv 12 Tf 1 0 0 1 {x} {native_y} Tm ({text}) Tj ET".encode("latin-1")
    document.update_stream(xref, stream)
    data = document.tobytes()
    document.close()
    return data


@pytest.fixture
def engine(tmp_path):
    return DocumentEngine(temp_dir=str(tmp_path))


@pytest.fixture
def contact_pdf():
    return build_pdf([
        ("Contact Information:", (50, 50)),
        ("Email: test@example.com", (50, 80)),
        ("Phone: 647-852-1083", (50, 100)),
    ])


@pytest.fixture
def clean_pdf():
    return build_pdf([("This is a test document with no personal information.", (50, 50))])


@pytest.fixture
def two_page_pdf():
    return build_pdf(
        [("Email: page1@example.com", (50, 50))],
        [("Phone: 416-555-9999", (50, 50))],
    )


@pytest.fixture
def password_protected_pdf():
    return build_pdf(
        [("Email: secret@example.com", (50, 50))],
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner-secret",
        user_pw="user-secret",
    )


@pytest.fixture
def owner_restricted_pdf():
    return build_pdf(
        [("Email: restricted@example.com", (50, 50))],
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner-secret",
        user_pw="",
        permissions=fitz.PDF_PERM_ACCESSIBILITY,
    )
