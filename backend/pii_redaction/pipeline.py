# backend/pii_redaction/pipeline.py

import logging
import time
from typing import Any, Dict, Optional

from .document_engine import DocumentEngine, get_document_engine
from .models import RedactionOptions, RedactionOutcome
from .pdf_processing import PIIExtractor
from .pdf_redaction import PDFRedactor
from .statistics import build_analysis_report, get_redaction_stats
from .validation import check_pdf_integrity

logger = logging.getLogger(__name__)


def analyze_document(document_bytes: bytes, include_text: bool = False,
                     engine: Optional[DocumentEngine] = None) -> Dict[str, Any]:
    """Pre-flight, extraction and statistics only; the document is never rewritten."""
    engine = engine or get_document_engine()
    check_pdf_integrity(document_bytes, engine)

    page_sets = PIIExtractor(engine).extract_matches(document_bytes)
    report = build_analysis_report(page_sets, include_text=include_text)
    logger.info(f"Analysis complete: {report['statistics']}")
    return report


def redact_document(document_bytes: bytes, options: Optional[RedactionOptions] = None,
                    engine: Optional[DocumentEngine] = None) -> RedactionOutcome:
    """
    Full pipeline: pre-flight, extraction, redaction (with validation) and statistics.

    When nothing is found the outcome carries zero statistics and no document bytes;
    no re-encoding of the input happens in that case.
    """
    start_time = time.monotonic()
    engine = engine or get_document_engine()

    logger.info("Step 1: Checking PDF structure.")
    check_pdf_integrity(document_bytes, engine)

    logger.info("Step 2: Extracting PII coordinates.")
    page_sets = PIIExtractor(engine).extract_matches(document_bytes)
    statistics = get_redaction_stats(page_sets)

    if not page_sets:
        logger.info("No PII found in document.")
        return RedactionOutcome(statistics=statistics, processing_time_ms=_elapsed_ms(start_time))

    logger.info(f"Found PII: {statistics.total_redactions} items "
                f"({statistics.emails} emails, {statistics.phones} phones).")

    logger.info(f"Step 3: Applying redactions on {statistics.pages_affected} page(s).")
    redacted = PDFRedactor(engine).redact(document_bytes, page_sets, options)

    return RedactionOutcome(
        statistics=statistics,
        document_bytes=redacted,
        processing_time_ms=_elapsed_ms(start_time),
    )


def _elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)
