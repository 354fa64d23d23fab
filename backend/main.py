from fastapi import FastAPI, UploadFile, File, Request
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.concurrency import run_in_threadpool # CPU-bound PDF work must not block the event loop
import json
import os
import logging
import sys

from pii_redaction.errors import FileTooLargeError, RedactorError, UnsupportedFileError, to_error_payload
from pii_redaction.models import RedactionOptions
from pii_redaction.pipeline import analyze_document, redact_document
from pii_redaction.rasterization import render_pages_to_png, total_image_size
from pii_redaction.statistics import build_no_match_response

# --- Logging Configuration ---
log_level_str = os.getenv("PII_REDACTOR_LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_str, logging.INFO)

logging.basicConfig(
    level=log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)

SERVICE_NAME = "PDF Privacy Redaction Server"
SERVICE_VERSION = "1.0.0"

# --- Environment Configuration ---
MAX_FILE_SIZE_MB = float(os.getenv("PII_REDACTOR_MAX_FILE_SIZE_MB", "10"))
MAX_FILE_SIZE = int(MAX_FILE_SIZE_MB * 1024 * 1024)
# Hardened deployments keep this off so lower-level error text never reaches clients.
EXPOSE_ERROR_DETAILS = os.getenv("PII_REDACTOR_EXPOSE_ERROR_DETAILS", "false").lower() == "true"
INCLUDE_MATCH_TEXT = os.getenv("PII_REDACTOR_INCLUDE_MATCH_TEXT", "false").lower() == "true"
RENDER_SCALE = float(os.getenv("PII_REDACTOR_RENDER_SCALE", "2.0"))
PORT = int(os.getenv("PORT", "5000"))

_temp_dir_from_env = os.getenv("PII_REDACTOR_TEMP_DIR")
if _temp_dir_from_env:
    os.makedirs(_temp_dir_from_env, exist_ok=True)
    logging.info(f"Using custom temporary directory from environment: {_temp_dir_from_env}")

# --- FastAPI App Initialization ---
app = FastAPI(
    title=SERVICE_NAME,
    description="Removes email addresses and phone numbers from PDF documents.",
    version=SERVICE_VERSION,
)

origins_str = os.getenv("PII_REDACTOR_CORS_ORIGINS", "*")
origins = [o.strip() for o in origins_str.split(',') if o.strip()]
logging.info(f"CORS Origins configured: {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    expose_headers=["Content-Type", "Content-Length", "Content-Disposition", "X-Redaction-Stats", "X-Processing-Time"],
)


@app.exception_handler(RedactorError)
async def redactor_error_handler(request: Request, exc: RedactorError):
    logging.error(f"{exc.category} while handling {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=to_error_payload(exc, EXPOSE_ERROR_DETAILS))

# --- Helper Functions ---

def format_size_limit(size_in_bytes: int) -> str:
    megabytes = size_in_bytes / (1024 * 1024)
    if megabytes >= 1:
        return f"{megabytes:g}MB"
    return f"{size_in_bytes} bytes"


async def read_pdf_upload(file: UploadFile) -> bytes:
    """Applies the upload gates (type, size, emptiness) and returns the raw bytes."""
    filename = file.filename or ""
    if file.content_type != "application/pdf" and not filename.lower().endswith(".pdf"):
        logging.error(f"File validation failed: Not a PDF. Filename: '{filename}'")
        raise UnsupportedFileError(detail=f"content type: {file.content_type}")

    data = await file.read(MAX_FILE_SIZE + 1)
    if len(data) > MAX_FILE_SIZE:
        limit = format_size_limit(MAX_FILE_SIZE)
        logging.warning(f"Upload rejected: '{filename}' exceeds {limit}.")
        raise FileTooLargeError(f"File too large. Maximum file size is {limit}.")

    logging.info(f"Processing PDF: {filename} ({len(data)} bytes)")
    return data


def unexpected_error_response(error: Exception) -> JSONResponse:
    logging.error(f"An unexpected error occurred: {error}", exc_info=True)
    return JSONResponse(status_code=500, content=to_error_payload(error, EXPOSE_ERROR_DETAILS))


def redacted_filename(filename: str) -> str:
    sanitized_name = os.path.splitext(os.path.basename(filename or "document.pdf"))[0].strip('. ')
    sanitized_name = sanitized_name.encode("ascii", "ignore").decode("ascii")
    return f"redacted_{sanitized_name or 'document'}.pdf"

# --- API Endpoints ---

@app.get("/", summary="Root Endpoint", tags=["General"])
async def read_root():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "message": "Welcome to the PDF Redaction Server",
        "availableRoutes": {"api": "/api/editor - PDF redaction API", "docs": "/docs"},
    }


@app.get("/api/health", summary="API Health Check", tags=["General"])
async def health_check():
    return {"status": "ok", "service": SERVICE_NAME, "version": SERVICE_VERSION}


@app.post("/api/editor/analyze", summary="Locate emails and phone numbers without redacting", tags=["Redaction"])
async def analyze_pdf(pdf: UploadFile = File(...)):
    data = await read_pdf_upload(pdf)
    try:
        return await run_in_threadpool(analyze_document, data, include_text=INCLUDE_MATCH_TEXT)
    except RedactorError:
        raise
    except Exception as e:
        return unexpected_error_response(e)


@app.post("/api/editor/redact", summary="Redact PII and return the pages as PNG images", tags=["Redaction"])
async def redact_pdf_to_images(pdf: UploadFile = File(...)):
    """
    Redacts emails and phone numbers, then flattens the redacted document to one PNG per
    page so that no text layer survives. No permission lock is applied since the PDF
    itself is never returned.
    """
    data = await read_pdf_upload(pdf)
    try:
        outcome = await run_in_threadpool(redact_document, data, RedactionOptions(skip_permission_lock=True))
        if not outcome.redacted:
            return build_no_match_response(outcome.processing_time_ms)

        images = await run_in_threadpool(render_pages_to_png, outcome.document_bytes, RENDER_SCALE)
        statistics = outcome.statistics.to_dict()
        logging.info(f"Conversion complete: {len(images)} images, total size {total_image_size(images)} bytes")
        return {
            "success": True,
            "message": f"Successfully redacted {outcome.statistics.total_redactions} item(s) from {pdf.filename}",
            "originalFilename": pdf.filename,
            "format": "png",
            "pageCount": len(images),
            "images": images,
            "totalSize": total_image_size(images),
            "statistics": statistics,
            "processingTime": outcome.processing_time_ms,
        }
    except RedactorError:
        raise
    except Exception as e:
        return unexpected_error_response(e)


@app.post("/api/editor/redact-pdf", summary="Redact PII and return a permission-locked PDF", tags=["Redaction"])
async def redact_pdf_document(pdf: UploadFile = File(...)):
    data = await read_pdf_upload(pdf)
    try:
        outcome = await run_in_threadpool(redact_document, data)
        if not outcome.redacted:
            return build_no_match_response(outcome.processing_time_ms)

        return Response(
            content=outcome.document_bytes,
            media_type="application/pdf",
            headers={
                "Content-Disposition": f'attachment; filename="{redacted_filename(pdf.filename)}"',
                "X-Redaction-Stats": json.dumps(outcome.statistics.to_dict()),
                "X-Processing-Time": str(outcome.processing_time_ms),
            },
        )
    except RedactorError:
        raise
    except Exception as e:
        return unexpected_error_response(e)


if __name__ == "__main__":
    import uvicorn
    logging.info(f"Starting {SERVICE_NAME} on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
