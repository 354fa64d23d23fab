# backend/pii_redaction/validation.py

import logging
from typing import Optional

from .document_engine import DocumentEngine, get_document_engine
from .errors import FormatError, InputError, RedactorError, ValidationError

logger = logging.getLogger(__name__)

PDF_HEADER = b"%PDF"
# An emitted PDF smaller than this cannot hold a header, one page and a trailer.
MIN_OUTPUT_BYTES = 200

# ==============================================================================
# 1. PRE-FLIGHT CHECK
# ==============================================================================

def check_pdf_integrity(document_bytes: Optional[bytes], engine: Optional[DocumentEngine] = None) -> int:
    """
    Cheap structural sniff run before extraction. Returns the page count.

    Raises InputError for missing data, FormatError for anything that is not a readable
    PDF, and ProtectionError for documents that need a password to open.
    """
    if not document_bytes:
        raise InputError()
    if len(document_bytes) < 5:
        raise FormatError("File too small to be a valid PDF.")
    if not document_bytes[:5].startswith(PDF_HEADER):
        raise FormatError("Not a valid PDF file (missing PDF header).")

    engine = engine or get_document_engine()
    document = engine.open(document_bytes, tolerate_protection=True)
    try:
        page_count = document.page_count
    finally:
        document.close()

    if page_count == 0:
        raise FormatError(detail="Document contains no pages.")
    logger.info(f"PDF pre-check passed ({page_count} page(s)).")
    return page_count

# ==============================================================================
# 2. OUTPUT VALIDATION
# ==============================================================================

def validate_output(output_bytes: bytes, original_page_count: int, engine: Optional[DocumentEngine] = None) -> None:
    """
    Verifies a rewritten PDF before it may be returned to a client.

    Checks run in order and stop at the first failure: minimum size, re-load (encryption
    markers tolerated since a permission lock may already be applied), at least one page,
    and non-zero dimensions on every page. A page-count mismatch against the input is
    only logged.
    """
    if len(output_bytes) < MIN_OUTPUT_BYTES:
        raise ValidationError("Output PDF is too small and likely corrupted.",
                              detail=f"{len(output_bytes)} bytes")

    engine = engine or get_document_engine()
    try:
        document = engine.open(output_bytes, tolerate_protection=True)
    except RedactorError as e:
        raise ValidationError("Output PDF could not be re-loaded.", detail=e.detail or e.message) from e

    try:
        output_page_count = document.page_count
        logger.info(f"Output PDF validation: {output_page_count} pages.")

        if output_page_count == 0:
            raise ValidationError("Output PDF has no pages.")

        if output_page_count != original_page_count:
            logger.warning(f"Page count mismatch: input had {original_page_count} pages, "
                           f"output has {output_page_count} pages.")

        for page_index in range(output_page_count):
            width, height = engine.page_size(document.load_page(page_index))
            if width == 0 or height == 0:
                raise ValidationError(f"Page {page_index + 1} has invalid dimensions.")
    except ValidationError:
        raise
    except Exception as e:
        logger.error(f"Output PDF validation failed: {e}", exc_info=True)
        raise ValidationError(detail=str(e)) from e
    finally:
        document.close()
