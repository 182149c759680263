"""
Best-effort local PDF reading used when the remote conversion service is
unavailable.

Container metadata comes from pypdf and is reliable. Text is recovered by
scanning the leading bytes for printable runs, which is crude: the result is
flagged ``is_approximate`` and consumers should treat it as low-confidence.
"""

from __future__ import annotations

import io
import logging
import re
from datetime import datetime
from typing import Any, Callable, Optional

from pypdf import PdfReader

from offer_pipeline.core.config import (
    FALLBACK_MAX_TEXT_CHARS,
    FALLBACK_MIN_RUN_LENGTH,
    FALLBACK_SCAN_MAX_BYTES,
)
from offer_pipeline.models.dto import DocumentMetadata, ExtractedText

logger = logging.getLogger(__name__)

_PRINTABLE_RUN = re.compile(
    rb"[\x20-\x7E\xC0-\xFF]{%d,}" % FALLBACK_MIN_RUN_LENGTH
)


def _safe(getter: Callable[[], Any]) -> Any:
    try:
        return getter()
    except Exception:
        logger.debug("PDF metadata field unreadable", exc_info=True)
        return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_datetime(value: Any) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


def read_pdf_metadata(data: bytes) -> DocumentMetadata:
    """Parse page count and document info; raises on unreadable containers."""
    reader = PdfReader(io.BytesIO(data), strict=False)
    page_count = len(reader.pages)
    info = _safe(lambda: reader.metadata)
    if info is None:
        return DocumentMetadata(page_count=page_count)

    return DocumentMetadata(
        page_count=page_count,
        title=_as_text(_safe(lambda: info.title)),
        author=_as_text(_safe(lambda: info.author)),
        subject=_as_text(_safe(lambda: info.subject)),
        creator=_as_text(_safe(lambda: info.creator)),
        producer=_as_text(_safe(lambda: info.producer)),
        created_at=_as_datetime(_safe(lambda: info.creation_date)),
        modified_at=_as_datetime(_safe(lambda: info.modification_date)),
    )


def scan_printable_text(data: bytes) -> str:
    """Join printable byte runs from the first bytes of ``data``."""
    head = data[:FALLBACK_SCAN_MAX_BYTES]
    runs = [m.decode("latin-1") for m in _PRINTABLE_RUN.findall(head)]
    return " ".join(runs)[:FALLBACK_MAX_TEXT_CHARS]


def parse_pdf_locally(data: bytes | None) -> ExtractedText:
    """
    Local fallback extraction. Never raises.

    A corrupt or unreadable document degrades to empty text with a zero
    page count.
    """
    if not data:
        return ExtractedText(source="local_fallback", is_approximate=True)

    try:
        metadata = read_pdf_metadata(data)
    except Exception as e:
        logger.warning(f"Local PDF parsing failed: {type(e).__name__}: {e}")
        return ExtractedText(
            text="",
            page_count=0,
            source="local_fallback",
            is_approximate=True,
        )

    text = scan_printable_text(data)
    logger.info(
        "Local fallback recovered %d chars from %d pages",
        len(text),
        metadata.page_count,
    )
    return ExtractedText(
        text=text,
        page_count=metadata.page_count,
        source="local_fallback",
        is_approximate=True,
        metadata=metadata,
    )
