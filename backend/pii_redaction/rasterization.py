# backend/pii_redaction/rasterization.py

import base64
import logging
from typing import Any, Dict, List, Optional

from .document_engine import DocumentEngine, get_document_engine

logger = logging.getLogger(__name__)


def render_pages_to_png(document_bytes: bytes, scale: float = 2.0,
                        engine: Optional[DocumentEngine] = None) -> List[Dict[str, Any]]:
    """
    Renders every page to a PNG (72 * scale DPI), returned base64-encoded in page order.

    Flattening a redacted PDF this way leaves no text layer behind the overlays.
    """
    engine = engine or get_document_engine()
    logger.info(f"Converting PDF to PNG images at {scale}x scale ({int(72 * scale)} DPI).")

    document = engine.open(document_bytes, tolerate_protection=True)
    try:
        images = []
        for page_index in range(document.page_count):
            png, width, height = engine.render_png(document.load_page(page_index), scale)
            images.append({
                "pageNumber": page_index + 1,
                "width": width,
                "height": height,
                "data": base64.b64encode(png).decode("ascii"),
                "mimeType": "image/png",
                "size": len(png),
            })
            logger.info(f"Page {page_index + 1}/{document.page_count} converted - {len(png)} bytes")
        return images
    finally:
        document.close()


def total_image_size(images: List[Dict[str, Any]]) -> int:
    return sum(image["size"] for image in images)
