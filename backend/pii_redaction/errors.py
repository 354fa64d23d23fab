# backend/pii_redaction/errors.py

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class RedactorError(Exception):
    """
    Base class for every categorized failure of the redaction engine.

    `message` is always a fixed, PII-free sentence. `detail` carries the lower-level
    diagnostic (usually the text of the underlying exception) and is only shown to
    clients when the deployment opts in.
    """
    category = "processing_error"
    title = "Processing Error"
    hint = "Please try again or contact support if the issue persists."
    status_code = 500

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message()
        self.detail = detail
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return "An error occurred while processing your PDF."


class InputError(RedactorError):
    category = "input_error"
    title = "No PDF file uploaded"
    hint = 'Upload a PDF file using the "pdf" field.'
    status_code = 400

    @classmethod
    def default_message(cls) -> str:
        return "No document data was provided."


class UnsupportedFileError(InputError):
    title = "Invalid file type"
    hint = "Only PDF documents are accepted. Export the file to PDF and upload it again."

    @classmethod
    def default_message(cls) -> str:
        return "Invalid file type. Only PDF files are allowed."


class FileTooLargeError(InputError):
    title = "File too large"
    hint = "Split the document into smaller parts or compress it, then upload again."
    status_code = 413

    @classmethod
    def default_message(cls) -> str:
        return "The uploaded file exceeds the maximum allowed size."


class FormatError(RedactorError):
    category = "format_error"
    title = "Invalid PDF File"
    hint = "The file appears to be corrupted or is not a valid PDF. Please try a different file."
    status_code = 400

    @classmethod
    def default_message(cls) -> str:
        return "Invalid or corrupted PDF file."


class ProtectionError(RedactorError):
    category = "protection_error"
    title = "PDF is Password Protected"
    hint = ("Remove the password protection using your PDF viewer (File > Properties > Security) "
            "or a PDF unlocking tool, then try again.")
    status_code = 400

    @classmethod
    def default_message(cls) -> str:
        return "This PDF is encrypted/password-protected and cannot be processed."


class ExtractionError(RedactorError):
    category = "extraction_error"
    title = "Cannot Read PDF"
    hint = "The PDF may be image-based (scanned) or use an unsupported format."

    @classmethod
    def default_message(cls) -> str:
        return "Failed to extract text from PDF."


class RedactionError(RedactorError):
    category = "redaction_error"
    title = "Redaction Failed"
    hint = "The document could not be rewritten. Try re-saving it with another PDF tool and retry."

    @classmethod
    def default_message(cls) -> str:
        return "Failed to redact PDF."


class ValidationError(RedactorError):
    category = "validation_error"
    title = "Output Validation Failed"
    hint = "The redacted document failed its integrity check and was not returned. Please retry."

    @classmethod
    def default_message(cls) -> str:
        return "Output PDF validation failed."


def to_error_payload(error: Exception, expose_details: bool = False) -> Dict[str, Any]:
    """
    Converts any exception into the structured, user-facing error body.

    Uncategorized exceptions are reported as a generic processing error; their text is
    treated as diagnostic detail only, since it may echo document content.
    """
    if not isinstance(error, RedactorError):
        logger.error(f"Uncategorized error reached the error mapper: {type(error).__name__}")
        error = RedactorError(detail=str(error))

    payload = {
        "error": error.title,
        "category": error.category,
        "message": error.message,
        "hint": error.hint,
    }
    if expose_details and error.detail:
        payload["technicalDetails"] = error.detail
    return payload
