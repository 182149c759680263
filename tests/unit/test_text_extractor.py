"""Unit tests for the text extraction stage."""

import io
from unittest.mock import AsyncMock, patch

import pytest
from pypdf import PdfWriter

from offer_pipeline.core.exceptions import AuthenticationError, ExternalServiceError
from offer_pipeline.models.dto import Document
from offer_pipeline.models.service_models import TextConversionResponse
from offer_pipeline.processors.text_extractor import NO_TEXT_MESSAGE, TextExtractor


def make_pdf():
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


class FakeConversionClient:
    """Replays a scripted sequence of responses or exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def convert_to_text(self, url, *, language, pages, inline=True, timeout=None):
        self.calls.append({"url": url, "language": language, "pages": pages, "inline": inline})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("offer_pipeline.resilience.retry._sleep", new_callable=AsyncMock) as sleep:
        yield sleep


URL_DOC = Document(url="https://files.test/offer.pdf")


class TestRemotePath:
    """Tests for the primary remote conversion."""

    @pytest.mark.asyncio
    async def test_success(self):
        client = FakeConversionClient(
            TextConversionResponse(body="BMW 320d Touring", page_count=2, credits_remaining=99)
        )
        extractor = TextExtractor(client)

        result = await extractor.extract_text(URL_DOC)

        assert result.text == "BMW 320d Touring"
        assert result.page_count == 2
        assert result.source == "remote"
        assert result.is_approximate is False
        assert result.credits_remaining == 99
        assert client.calls == [
            {"url": "https://files.test/offer.pdf", "language": "deu", "pages": "0-", "inline": True}
        ]

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, no_sleep):
        client = FakeConversionClient(
            ExternalServiceError("text_conversion", "timeout"),
            TextConversionResponse(body="Text", page_count=1),
        )
        extractor = TextExtractor(client, max_retries=2)

        result = await extractor.extract_text(URL_DOC)

        assert result.text == "Text"
        assert len(client.calls) == 2
        no_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_server_error_not_retried_on_remote_path(self):
        client = FakeConversionClient(ExternalServiceError("text_conversion", "error"))
        extractor = TextExtractor(client, max_retries=3, document_fetcher=None)

        result = await extractor.extract_text(URL_DOC)

        assert len(client.calls) == 1
        assert result.failed
        assert result.extraction_error.startswith("TEXT_CONVERSION_ERROR")

    @pytest.mark.asyncio
    async def test_empty_body_is_no_text_not_failure(self):
        client = FakeConversionClient(TextConversionResponse(body=None, page_count=1))
        extractor = TextExtractor(client)

        result = await extractor.extract_text(URL_DOC)

        assert result.text == ""
        assert result.error_kind == "no_text"
        assert result.extraction_error == NO_TEXT_MESSAGE
        assert result.no_text
        assert not result.failed

    @pytest.mark.asyncio
    async def test_processing_error_is_terminal(self):
        client = FakeConversionClient(
            TextConversionResponse(error=True, message="Password protected document")
        )
        fetcher = AsyncMock(return_value=b"not a pdf")
        extractor = TextExtractor(client, document_fetcher=fetcher)

        result = await extractor.extract_text(URL_DOC)

        assert len(client.calls) == 1
        assert result.failed
        assert result.extraction_error == (
            "TEXT_CONVERSION_PROCESSING_ERROR: Password protected document"
        )
        fetcher.assert_awaited_once_with("https://files.test/offer.pdf")


class TestFallback:
    """Tests for the local fallback path."""

    @pytest.mark.asyncio
    async def test_no_client_uses_local_scan(self):
        extractor = TextExtractor(None)
        result = await extractor.extract_text(Document(content=make_pdf()))

        assert result.source == "local_fallback"
        assert result.is_approximate is True
        assert result.page_count == 1
        assert result.text

    @pytest.mark.asyncio
    async def test_no_url_uses_local_scan(self):
        client = FakeConversionClient(TextConversionResponse(body="unused"))
        extractor = TextExtractor(client)

        result = await extractor.extract_text(Document(content=make_pdf()))

        assert client.calls == []
        assert result.source == "local_fallback"

    @pytest.mark.asyncio
    async def test_auth_failure_falls_back_without_retry(self):
        client = FakeConversionClient(AuthenticationError("text_conversion", 401))
        extractor = TextExtractor(client, max_retries=3)
        document = Document(url="https://files.test/offer.pdf", content=make_pdf())

        result = await extractor.extract_text(document)

        assert len(client.calls) == 1
        assert result.source == "local_fallback"
        assert result.text
        assert result.extraction_error is None
        assert result.primary_error.startswith("TEXT_CONVERSION_AUTHENTICATION_FAILED")
        assert not result.failed

    @pytest.mark.asyncio
    async def test_fallback_without_text_reports_primary_error(self):
        client = FakeConversionClient(AuthenticationError("text_conversion", 401))
        fetcher = AsyncMock(side_effect=ExternalServiceError("document_source", "unavailable"))
        extractor = TextExtractor(client, document_fetcher=fetcher)

        result = await extractor.extract_text(URL_DOC)

        assert result.text == ""
        assert result.failed
        assert result.extraction_error.startswith("TEXT_CONVERSION_AUTHENTICATION_FAILED")

    @pytest.mark.asyncio
    async def test_fallback_on_empty(self):
        client = FakeConversionClient(TextConversionResponse(body="", page_count=1))
        extractor = TextExtractor(client, fallback_on_empty=True)
        document = Document(url="https://files.test/offer.pdf", content=make_pdf())

        result = await extractor.extract_text(document)

        assert result.source == "local_fallback"
        assert result.text

    @pytest.mark.asyncio
    async def test_empty_remote_kept_without_fallback_on_empty(self):
        client = FakeConversionClient(TextConversionResponse(body="", page_count=1))
        extractor = TextExtractor(client)
        document = Document(url="https://files.test/offer.pdf", content=make_pdf())

        result = await extractor.extract_text(document)

        assert result.source == "remote"
        assert result.no_text
