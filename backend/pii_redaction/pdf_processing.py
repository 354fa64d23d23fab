# backend/pii_redaction/pdf_processing.py

import logging
from typing import List, Optional

from .document_engine import DocumentEngine, get_document_engine
from .entity_detection import contains_pii, identify_pii_entities
from .errors import ExtractionError, RedactorError
from .models import PageRedactionSet, PIIMatch, TextRun

logger = logging.getLogger(__name__)

# ==============================================================================
# 1. TEXT AND COORDINATE EXTRACTION
# ==============================================================================

def matches_for_run(run: TextRun, page_number: int, page_height: float) -> List[PIIMatch]:
    """
    Turns one text run into PII matches with a top-left, Y-down bounding box.

    Every token found in the run shares the run's full box; locating the token
    inside the run is not attempted.
    """
    text = run.raw_text.strip()
    if not text or not contains_pii(text):
        return []

    flipped_y = page_height - run.origin_y
    top_y = flipped_y - run.height

    return [
        PIIMatch(
            text=token,
            type=pii_type,
            page_number=page_number,
            x=run.origin_x,
            y=top_y,
            width=run.width,
            height=run.height,
        )
        for pii_type, token in identify_pii_entities(text)
    ]


class PIIExtractor:
    """Walks every page of a document and collects positioned PII matches."""

    def __init__(self, engine: Optional[DocumentEngine] = None):
        self.engine = engine or get_document_engine()

    def extract_matches(self, document_bytes: bytes) -> List[PageRedactionSet]:
        """
        Returns one PageRedactionSet per page holding at least one match, in page order.

        `page_number` is the absolute 1-based page number; pages without matches are
        simply absent. Raises ExtractionError when the document cannot be read.
        """
        try:
            document = self.engine.open(document_bytes, tolerate_protection=True)
        except RedactorError as e:
            raise ExtractionError(detail=f"{e.message} {e.detail or ''}".strip()) from e

        try:
            if document.page_count == 0:
                raise ExtractionError(detail="Document contains no pages.")

            page_sets = []
            for page_index in range(document.page_count):
                page = document.load_page(page_index)
                page_width, page_height = self.engine.page_size(page)
                page_number = page_index + 1

                items = []
                for run in self.engine.text_runs(page):
                    items.extend(matches_for_run(run, page_number, page_height))

                if items:
                    logger.info(f"Page {page_number}: {len(items)} PII match(es) found.")
                    page_sets.append(PageRedactionSet(
                        page_number=page_number,
                        items=items,
                        page_height=page_height,
                        page_width=page_width,
                    ))
            return page_sets
        except ExtractionError:
            raise
        except Exception as e:
            logger.error(f"Failed to extract text from PDF: {e}", exc_info=True)
            raise ExtractionError(detail=str(e)) from e
        finally:
            document.close()

    def extract_all_text(self, document_bytes: bytes) -> str:
        """Dumps the text of every page, one section per page, for debugging."""
        try:
            document = self.engine.open(document_bytes, tolerate_protection=True)
        except RedactorError as e:
            raise ExtractionError(detail=f"{e.message} {e.detail or ''}".strip()) from e

        try:
            all_text = ""
            for page_index in range(document.page_count):
                page = document.load_page(page_index)
                page_text = " ".join(run.raw_text for run in self.engine.text_runs(page))
                all_text += f"\n--- Page {page_index + 1} ---\n{page_text}\n"
            return all_text
        except Exception as e:
            logger.error(f"Failed to extract text from PDF: {e}", exc_info=True)
            raise ExtractionError(detail=str(e)) from e
        finally:
            document.close()


def extract_matches(document_bytes: bytes, engine: Optional[DocumentEngine] = None) -> List[PageRedactionSet]:
    return PIIExtractor(engine).extract_matches(document_bytes)


def extract_all_text(document_bytes: bytes, engine: Optional[DocumentEngine] = None) -> str:
    return PIIExtractor(engine).extract_all_text(document_bytes)
