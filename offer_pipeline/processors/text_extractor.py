"""
Text extraction stage.

Primary path submits the document URL to the remote OCR conversion service
with a hard timeout and bounded retries for timeouts/connection failures.
When the remote path is unavailable or fails entirely, a local best-effort
scan of the raw bytes is used instead.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Optional

from offer_pipeline.clients.ports import TextConversionPort
from offer_pipeline.clients.text_conversion_client import fetch_document_bytes
from offer_pipeline.core.config import (
    DEFAULT_OCR_LANGUAGE,
    DEFAULT_PAGE_RANGE,
    MAX_RETRIES,
    TEXT_CONVERSION_TIMEOUT_SECONDS,
)
from offer_pipeline.core.exceptions import BaseError, ServiceProcessingError
from offer_pipeline.models.dto import Document, ExtractedText
from offer_pipeline.processors.local_pdf_parser import parse_pdf_locally
from offer_pipeline.resilience.retry import (
    RetryConfig,
    async_retry_with_backoff,
    call_with_timeout,
    is_transient_error,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "text_conversion"
NO_TEXT_MESSAGE = "No text could be extracted from the PDF"

DocumentFetcher = Callable[[str], Awaitable[bytes]]


class TextExtractor:
    """Obtain plain text from an offer document.

    Args:
        conversion_client: Remote conversion service; None disables the primary path
        language: OCR language code
        pages: Page range ("0-" = all pages)
        timeout: Hard timeout per remote call, seconds
        max_retries: Maximum attempts for transient failures (including the first)
        fallback_on_empty: Use the local scan when the remote path finds no text
        document_fetcher: Downloads bytes for the fallback when only a URL is known
    """

    def __init__(
        self,
        conversion_client: Optional[TextConversionPort],
        *,
        language: str = DEFAULT_OCR_LANGUAGE,
        pages: str = DEFAULT_PAGE_RANGE,
        timeout: float = TEXT_CONVERSION_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        fallback_on_empty: bool = False,
        document_fetcher: Optional[DocumentFetcher] = fetch_document_bytes,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self.conversion_client = conversion_client
        self.language = language
        self.pages = pages
        self.timeout = timeout
        self.fallback_on_empty = fallback_on_empty
        self.document_fetcher = document_fetcher
        self.retry_config = retry_config or RetryConfig(max_attempts=max_retries)

    async def extract_text(self, document: Document) -> ExtractedText:
        """Extract text, falling back to the local scan when the remote path fails.

        Expected failures never raise; they come back as an ExtractedText
        whose ``extraction_error`` is set.
        """
        if self.conversion_client is None or not document.url:
            logger.info("Remote conversion unavailable, using local fallback")
            return await self._fallback(document, primary_error=None)

        t0 = time.perf_counter()
        try:
            result = await self.extract_remote(document.url)
        except BaseError as e:
            logger.error(
                f"Remote text extraction failed: {e.describe()}",
                extra={"service": SERVICE_NAME, "error_code": e.error_code},
            )
            return await self._fallback(document, primary_error=e.describe())

        logger.info(
            "Remote text extraction finished",
            extra={
                "service": SERVICE_NAME,
                "duration_ms": int((time.perf_counter() - t0) * 1000),
            },
        )
        if result.no_text and self.fallback_on_empty:
            logger.info("Remote path found no text, trying local fallback")
            fallback = await self._fallback(document, primary_error=None)
            if fallback.text:
                return fallback
        return result

    async def extract_remote(self, url: str) -> ExtractedText:
        """Remote path only.

        Raises:
            BaseError: Terminal failure, or transient failure after retries.
        """
        response = await async_retry_with_backoff(
            self._convert_once,
            self.retry_config,
            is_transient_error,
            url,
        )

        if not response.body:
            logger.warning(
                "No text extracted from PDF",
                extra={"service": SERVICE_NAME},
            )
            return ExtractedText(
                text="",
                page_count=response.page_count,
                extraction_error=NO_TEXT_MESSAGE,
                error_kind="no_text",
                source="remote",
                credits_remaining=response.credits_remaining,
            )

        return ExtractedText(
            text=response.body,
            page_count=response.page_count,
            source="remote",
            credits_remaining=response.credits_remaining,
        )

    async def _convert_once(self, url: str):
        response = await call_with_timeout(
            self.conversion_client.convert_to_text,
            self.timeout,
            SERVICE_NAME,
            url,
            language=self.language,
            pages=self.pages,
            inline=True,
            timeout=self.timeout,
        )
        if response.error:
            raise ServiceProcessingError(
                SERVICE_NAME, response.message or "Text conversion processing error"
            )
        return response

    async def _load_bytes(self, document: Document) -> Optional[bytes]:
        if document.content:
            return document.content
        if not document.url or self.document_fetcher is None:
            return None
        try:
            return await self.document_fetcher(document.url)
        except BaseError as e:
            logger.warning(f"Could not download document for fallback: {e.describe()}")
            return None

    async def _fallback(
        self, document: Document, primary_error: Optional[str]
    ) -> ExtractedText:
        data = await self._load_bytes(document)
        result = parse_pdf_locally(data)
        if primary_error is None:
            return result
        if result.text:
            return result.model_copy(update={"primary_error": primary_error})
        return result.model_copy(
            update={
                "extraction_error": primary_error,
                "error_kind": "processing_error",
                "primary_error": primary_error,
            }
        )
