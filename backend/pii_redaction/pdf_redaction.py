# backend/pii_redaction/pdf_redaction.py

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

import fitz

from .document_engine import SAVE_STRATEGIES, DocumentEngine, SaveStrategy, get_document_engine
from .errors import ProtectionError, RedactionError
from .models import BestEffortResult, PageRedactionSet, RedactionOptions
from .validation import validate_output

logger = logging.getLogger(__name__)

# Light gray, #D3D3D3
REDACTION_COLOR = (211 / 255, 211 / 255, 211 / 255)
REDACTION_PADDING = 2

# Literal-string operands of the Tj operator, and TJ arrays.
_TJ_OPERATION = re.compile(rb"\((?:[^()\\]|\\.)*\)\s*Tj", re.DOTALL)
_TJ_ARRAY_OPERATION = re.compile(rb"\[(?:[^\[\]\\]|\\.)*\]\s*TJ", re.DOTALL)
_LITERAL_STRING = re.compile(rb"\((?:[^()\\]|\\.)*\)", re.DOTALL)

# ==============================================================================
# 1. CONTENT-STREAM TOKEN STRIPPING
# ==============================================================================

def escape_pdf_literal(text: str) -> bytes:
    """Encodes text the way it appears inside a PDF literal string `( ... )`."""
    escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    return escaped.encode("latin-1")


def strip_literal_from_stream(content: bytes, literal: bytes) -> Tuple[bytes, int]:
    """
    Removes `literal` from every Tj/TJ literal-string operand in a content stream.

    Returns the rewritten stream and the number of removals made. Text written as hex
    strings, with CID encodings, or split across kerned TJ elements is left untouched.
    """
    removed = 0

    def strip_operand(match):
        nonlocal removed
        operand = match.group(0)
        count = operand.count(literal)
        if not count:
            return operand
        removed += count
        return operand.replace(literal, b"")

    def strip_array(match):
        return _LITERAL_STRING.sub(strip_operand, match.group(0))

    content = _TJ_OPERATION.sub(strip_operand, content)
    content = _TJ_ARRAY_OPERATION.sub(strip_array, content)
    return content, removed


def strip_text_tokens(engine: DocumentEngine, document: fitz.Document, page: fitz.Page,
                      texts: Iterable[str]) -> BestEffortResult:
    """
    Attempts to delete the matched strings from the page's show-text operators.

    Never raises: the result reports how many operands were rewritten, or why nothing was.
    """
    try:
        literals = [escape_pdf_literal(text) for text in texts if text]
        total_removed = 0
        for xref in engine.content_streams(page):
            content = engine.read_stream(document, xref)
            rewritten = content
            for literal in literals:
                rewritten, removed = strip_literal_from_stream(rewritten, literal)
                total_removed += removed
            if rewritten != content:
                engine.write_stream(document, xref, rewritten)
        if not total_removed:
            return BestEffortResult(ok=False, value=0, error="no literal show-text operand held the matched text")
        return BestEffortResult(ok=True, value=total_removed)
    except Exception as e:
        return BestEffortResult(ok=False, value=0, error=f"{type(e).__name__}: {e}")

# ==============================================================================
# 2. REDACTION ENGINE
# ==============================================================================

class PDFRedactor:
    """
    Paints opaque blocks over matched regions, strips the matched text where it can,
    saves through an ordered list of strategies and optionally locks permissions.
    """

    def __init__(self, engine: Optional[DocumentEngine] = None,
                 save_strategies: Sequence[SaveStrategy] = SAVE_STRATEGIES):
        self.engine = engine or get_document_engine()
        self.save_strategies = tuple(save_strategies)

    def redact(self, document_bytes: bytes, page_sets: List[PageRedactionSet],
               options: Optional[RedactionOptions] = None) -> bytes:
        options = options or RedactionOptions()
        document, original_page_count = self._load_working_copy(document_bytes)

        try:
            if original_page_count == 0:
                raise RedactionError("Input PDF has no pages.")

            total_applied = 0
            for page_set in page_sets:
                total_applied += self._redact_page(document, page_set)
            logger.info(f"Applied {total_applied} redaction overlay(s) across {len(page_sets)} page(s).")

            output = self._save_with_fallback(document)
        finally:
            document.close()

        if options.skip_permission_lock:
            logger.info("Skipping permission lock for this document.")
        else:
            lock = self._apply_permission_lock(output)
            if lock.ok:
                logger.info("Permission lock applied (printing, modification and copying disabled).")
                output = lock.value
            else:
                logger.warning(f"Failed to apply permission lock, continuing without it: {lock.error}")

        logger.info(f"Output PDF size: {len(output)} bytes (input was {len(document_bytes)} bytes).")
        validate_output(output, original_page_count, self.engine)
        return output

    def _load_working_copy(self, document_bytes: bytes) -> Tuple[fitz.Document, int]:
        """
        Loads an unprotected document directly. A protected one is loaded tolerantly and
        copied page by page into a fresh, unencrypted document; if even that fails the
        document cannot be processed.
        """
        try:
            document = self.engine.open(document_bytes)
            return document, document.page_count
        except ProtectionError:
            logger.warning("PDF is encrypted, attempting to remove encryption by copying to a new document.")

        try:
            protected = self.engine.open(document_bytes, tolerate_protection=True)
        except ProtectionError as e:
            logger.error(f"Failed to remove encryption: {e.detail}")
            raise ProtectionError(
                "This PDF is encrypted/password-protected and cannot be processed.",
                detail=e.detail,
            ) from e

        try:
            original_page_count = protected.page_count
            working_copy = self.engine.copy_pages(protected)
        except Exception as e:
            logger.error(f"Failed to remove encryption: {e}")
            raise ProtectionError(
                "This PDF is encrypted/password-protected and cannot be processed.",
                detail=str(e),
            ) from e
        finally:
            protected.close()

        logger.info("Successfully removed encryption.")
        return working_copy, original_page_count

    def _redact_page(self, document: fitz.Document, page_set: PageRedactionSet) -> int:
        page_index = page_set.page_number - 1
        if not 0 <= page_index < document.page_count:
            raise RedactionError(detail=f"Page {page_set.page_number} does not exist in the document.")

        page = document.load_page(page_index)
        _, page_height = self.engine.page_size(page)

        stripped = strip_text_tokens(self.engine, document, page, [item.text for item in page_set.items])
        if stripped.ok:
            logger.info(f"Page {page_set.page_number}: removed {stripped.value} text token(s) from the content stream.")
        else:
            logger.warning(f"Page {page_set.page_number}: text token removal skipped, overlay only ({stripped.error}).")

        for item in page_set.items:
            self.engine.draw_rectangle(
                page,
                x=item.x - REDACTION_PADDING,
                y=page_height - item.y - item.height - REDACTION_PADDING,
                width=item.width + REDACTION_PADDING * 2,
                height=item.height + REDACTION_PADDING * 2,
                fill=REDACTION_COLOR,
            )
        return len(page_set.items)

    def _save_with_fallback(self, document: fitz.Document) -> bytes:
        failures = []
        for strategy in self.save_strategies:
            try:
                logger.info(f"Attempting save with strategy '{strategy.name}'.")
                return self.engine.serialize(document, strategy)
            except Exception as e:
                logger.warning(f"Save strategy '{strategy.name}' failed: {e}")
                failures.append(f"{strategy.name}: {e}")

        logger.error("All save strategies failed.")
        raise RedactionError(
            "Failed to save redacted PDF after trying multiple strategies.",
            detail="; ".join(failures),
        )

    def _apply_permission_lock(self, data: bytes) -> BestEffortResult:
        try:
            return BestEffortResult(ok=True, value=self.engine.apply_permission_lock(data))
        except Exception as e:
            return BestEffortResult(ok=False, error=f"{type(e).__name__}: {e}")


def redact_sensitive_info(document_bytes: bytes, page_sets: List[PageRedactionSet],
                          options: Optional[RedactionOptions] = None,
                          engine: Optional[DocumentEngine] = None) -> bytes:
    """
    Returns sanitized PDF bytes for the given matches, already validated against the
    input's page count. Raises ProtectionError, RedactionError or ValidationError.
    """
    return PDFRedactor(engine).redact(document_bytes, page_sets, options)
