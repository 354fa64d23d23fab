# backend/pii_redaction/document_engine.py

import logging
import os
import secrets
import tempfile
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import fitz  # PyMuPDF

from .errors import FormatError, ProtectionError
from .models import TextRun

logger = logging.getLogger(__name__)

# ==============================================================================
# 1. SAVE STRATEGIES
# ==============================================================================

@dataclass(frozen=True)
class SaveStrategy:
    name: str
    options: Dict[str, int] = field(default_factory=dict)


# Tried in order by the redaction engine; the first one that produces bytes wins.
SAVE_STRATEGIES = (
    SaveStrategy("without_object_streams", {"use_objstms": 0, "garbage": 1, "deflate": 1}),
    SaveStrategy("default", {}),
    SaveStrategy("with_object_streams", {"use_objstms": 1, "garbage": 3, "deflate": 1}),
)

# ==============================================================================
# 2. DOCUMENT ENGINE
# ==============================================================================

class DocumentEngine:
    """
    Every PDF capability the redaction pipeline needs, implemented over PyMuPDF.

    Geometry handed in and out of this class is page-native: origin bottom-left,
    Y increasing upward. PyMuPDF itself works top-left/Y-down, so the flip happens here.
    Only the translation of a text run's placement is reported; rotated, skewed or
    non-uniformly scaled runs (and rotated pages) are not corrected for.
    """

    def __init__(self, temp_dir: Optional[str] = None):
        self.temp_dir = temp_dir
        self.text_flags = fitz.TEXT_PRESERVE_WHITESPACE

    # --- Loading ---

    def open(self, data: bytes, tolerate_protection: bool = False) -> fitz.Document:
        """
        Parses PDF bytes.

        Strict mode refuses any encrypted document with ProtectionError. Tolerant mode
        accepts documents that open without a user password (owner-restricted files)
        and only refuses those that really need one.
        """
        try:
            document = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise FormatError(detail=str(e)) from e

        if document.needs_pass:
            document.close()
            raise ProtectionError(detail="Document requires a password to open.")
        if not tolerate_protection and self.is_protected(document):
            document.close()
            raise ProtectionError(detail="Document carries encryption markers.")
        return document

    @staticmethod
    def is_protected(document: fitz.Document) -> bool:
        metadata = document.metadata or {}
        return bool(document.is_encrypted or metadata.get("encryption"))

    def copy_pages(self, source: fitz.Document) -> fitz.Document:
        """Deep-copies every page into a freshly created, unencrypted document."""
        target = fitz.open()
        try:
            target.insert_pdf(source)
        except Exception:
            target.close()
            raise
        return target

    # --- Pages ---

    @staticmethod
    def page_size(page: fitz.Page) -> Tuple[float, float]:
        return page.rect.width, page.rect.height

    def text_runs(self, page: fitz.Page) -> List[TextRun]:
        """Lists every text span of the page in content order, in page-native coordinates."""
        page_height = page.rect.height
        runs = []
        raw = page.get_text("dict", flags=self.text_flags)
        for block in raw.get("blocks", []):
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    x0, _, x1, _ = span["bbox"]
                    origin_x, origin_y = span["origin"]
                    runs.append(TextRun(
                        raw_text=span["text"],
                        origin_x=origin_x,
                        origin_y=page_height - origin_y,
                        width=x1 - x0,
                        height=span["size"],
                    ))
        return runs

    @staticmethod
    def draw_rectangle(page: fitz.Page, x: float, y: float, width: float, height: float,
                       fill: Tuple[float, float, float]) -> None:
        """Paints an opaque, borderless rectangle given in page-native coordinates."""
        page_height = page.rect.height
        rect = fitz.Rect(x, page_height - (y + height), x + width, page_height - y)
        page.draw_rect(rect, color=None, fill=fill, width=0, fill_opacity=1, overlay=True)

    # --- Content streams ---

    @staticmethod
    def content_streams(page: fitz.Page) -> List[int]:
        return page.get_contents()

    @staticmethod
    def read_stream(document: fitz.Document, xref: int) -> bytes:
        return document.xref_stream(xref) or b""

    @staticmethod
    def write_stream(document: fitz.Document, xref: int, data: bytes) -> None:
        document.update_stream(xref, data)

    # --- Saving ---

    @staticmethod
    def serialize(document: fitz.Document, strategy: SaveStrategy) -> bytes:
        return document.tobytes(**strategy.options)

    def apply_permission_lock(self, data: bytes) -> bytes:
        """
        Re-encrypts a PDF with an empty open password and a random owner password,
        allowing accessibility extraction only (no printing, modification or copying).
        """
        with temporary_pdf_paths(2, self.temp_dir) as (input_path, output_path):
            with open(input_path, "wb") as buffer:
                buffer.write(data)
            document = fitz.open(input_path)
            try:
                document.save(
                    output_path,
                    encryption=fitz.PDF_ENCRYPT_AES_256,
                    owner_pw=secrets.token_urlsafe(24),
                    user_pw="",
                    permissions=fitz.PDF_PERM_ACCESSIBILITY,
                )
            finally:
                document.close()
            with open(output_path, "rb") as locked:
                return locked.read()

    # --- Rendering ---

    @staticmethod
    def render_png(page: fitz.Page, scale: float) -> Tuple[bytes, int, int]:
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
        return pix.tobytes("png"), pix.width, pix.height


@contextmanager
def temporary_pdf_paths(count: int, temp_dir: Optional[str] = None) -> Iterator[List[str]]:
    """
    Yields `count` unique temporary file paths and deletes them on every exit path,
    including exceptions raised inside the block.
    """
    paths = []
    try:
        for _ in range(count):
            handle, path = tempfile.mkstemp(prefix=f"pii-{int(time.time() * 1000)}-", suffix=".pdf", dir=temp_dir)
            os.close(handle)
            paths.append(path)
        yield paths
    finally:
        for path in paths:
            try:
                if os.path.exists(path):
                    os.remove(path)
            except OSError as e:
                logger.error(f"Error during cleanup of temporary file {path}: {e}")

# ==============================================================================
# 3. PROCESS-WIDE ACCESSOR
# ==============================================================================

_engine: Optional[DocumentEngine] = None
_engine_lock = threading.Lock()


def get_document_engine() -> DocumentEngine:
    """Returns the shared engine, building it on first use. It is never mutated afterwards."""
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                fitz.TOOLS.mupdf_display_errors(False)
                _engine = DocumentEngine(temp_dir=os.getenv("PII_REDACTOR_TEMP_DIR") or None)
                logger.info(f"Document engine initialized with PyMuPDF (fitz) version: {fitz.__version__}")
    return _engine
