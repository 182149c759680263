"""Unit tests for the httpx adapters, using httpx.MockTransport."""

import json

import httpx
import pytest

from offer_pipeline.clients.completion_client import AnthropicCompletionClient
from offer_pipeline.clients.text_conversion_client import (
    PdfCoTextConversionClient,
    fetch_document_bytes,
    parse_conversion_result,
)
from offer_pipeline.clients.vocabulary_client import RestVocabularyClient
from offer_pipeline.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ExternalServiceError,
    MalformedResponseError,
)
from offer_pipeline.core.settings import VocabularySettings
from offer_pipeline.models.service_models import CompletionRequest


def make_transport(handler, seen=None):
    def wrapped(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return handler(request)

    return httpx.MockTransport(wrapped)


class TestTextConversionClient:
    """Tests for PdfCoTextConversionClient."""

    @pytest.mark.asyncio
    async def test_convert_success(self):
        seen = []
        transport = make_transport(
            lambda r: httpx.Response(
                200,
                json={"body": "BMW 320d", "pageCount": 2, "error": False, "remainingCredits": 880},
            ),
            seen,
        )
        async with PdfCoTextConversionClient(
            "https://ocr.test", "secret", transport=transport
        ) as client:
            result = await client.convert_to_text("https://files.test/offer.pdf", language="deu", pages="0-")

        assert result.body == "BMW 320d"
        assert result.page_count == 2
        assert result.credits_remaining == 880
        assert result.error is False

        request = seen[0]
        assert request.url.path == "/v1/pdf/convert/to/text"
        assert request.headers["x-api-key"] == "secret"
        payload = json.loads(request.content)
        assert payload["url"] == "https://files.test/offer.pdf"
        assert payload["lang"] == "deu"
        assert payload["pages"] == "0-"
        assert payload["inline"] is True

    @pytest.mark.asyncio
    async def test_unauthorized_raises_authentication_error(self):
        transport = make_transport(lambda r: httpx.Response(401, text="bad key"))
        async with PdfCoTextConversionClient("https://ocr.test", "wrong", transport=transport) as client:
            with pytest.raises(AuthenticationError) as exc_info:
                await client.convert_to_text("https://files.test/a.pdf", language="deu", pages="0-")
        assert exc_info.value.error_code == "TEXT_CONVERSION_AUTHENTICATION_FAILED"

    @pytest.mark.asyncio
    async def test_server_error_is_retryable_service_error(self):
        transport = make_transport(lambda r: httpx.Response(502, text="bad gateway"))
        async with PdfCoTextConversionClient("https://ocr.test", "secret", transport=transport) as client:
            with pytest.raises(ExternalServiceError) as exc_info:
                await client.convert_to_text("https://files.test/a.pdf", language="deu", pages="0-")
        assert exc_info.value.error_type == "error"
        assert exc_info.value.details["http_code"] == 502
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_transport_timeout_is_classified(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        async with PdfCoTextConversionClient(
            "https://ocr.test", "secret", transport=make_transport(handler)
        ) as client:
            with pytest.raises(ExternalServiceError) as exc_info:
                await client.convert_to_text("https://files.test/a.pdf", language="deu", pages="0-")
        assert exc_info.value.error_type == "timeout"

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        transport = make_transport(lambda r: httpx.Response(200, json={}))
        async with PdfCoTextConversionClient("https://ocr.test", None, transport=transport) as client:
            with pytest.raises(ConfigurationError):
                await client.convert_to_text("https://files.test/a.pdf", language="deu", pages="0-")

    @pytest.mark.asyncio
    async def test_remaining_credits(self):
        seen = []
        transport = make_transport(
            lambda r: httpx.Response(200, json={"remainingCredits": 1234}), seen
        )
        async with PdfCoTextConversionClient("https://ocr.test", "secret", transport=transport) as client:
            assert await client.get_remaining_credits() == 1234
        assert seen[0].url.path == "/v1/account/balance"

    @pytest.mark.asyncio
    async def test_remaining_credits_never_raises(self):
        transport = make_transport(lambda r: httpx.Response(500, text="down"))
        async with PdfCoTextConversionClient("https://ocr.test", "secret", transport=transport) as client:
            assert await client.get_remaining_credits() is None

    def test_parse_conversion_result_rejects_non_string_body(self):
        with pytest.raises(MalformedResponseError):
            parse_conversion_result({"body": ["page"], "pageCount": 1})

    def test_parse_conversion_result_empty_body(self):
        result = parse_conversion_result({"body": "", "pageCount": 1, "error": False})
        assert result.body is None
        assert result.page_count == 1

    @pytest.mark.asyncio
    async def test_fetch_document_bytes(self):
        transport = make_transport(lambda r: httpx.Response(200, content=b"%PDF-1.4 data"))
        data = await fetch_document_bytes("https://files.test/a.pdf", transport=transport)
        assert data == b"%PDF-1.4 data"


class TestCompletionClient:
    """Tests for AnthropicCompletionClient."""

    def request(self):
        return CompletionRequest(
            system="Du bist ein Experte.",
            prompt="Analysiere dieses Angebot",
            model="test-model",
            max_tokens=100,
            temperature=0.0,
        )

    @pytest.mark.asyncio
    async def test_complete_success(self):
        seen = []
        reply = {
            "content": [{"type": "text", "text": '{"vehicle": {"make": "BMW"}}'}],
            "usage": {"input_tokens": 120, "output_tokens": 30},
        }
        transport = make_transport(lambda r: httpx.Response(200, json=reply), seen)
        async with AnthropicCompletionClient(
            "https://llm.test", "secret", api_version="2023-06-01", transport=transport
        ) as client:
            response = await client.complete(self.request())

        assert response.first_text() == '{"vehicle": {"make": "BMW"}}'
        assert response.usage.total == 150

        request = seen[0]
        assert request.url.path == "/v1/messages"
        assert request.headers["x-api-key"] == "secret"
        assert request.headers["anthropic-version"] == "2023-06-01"
        payload = json.loads(request.content)
        assert payload["model"] == "test-model"
        assert payload["system"] == "Du bist ein Experte."
        assert payload["messages"] == [{"role": "user", "content": "Analysiere dieses Angebot"}]
        assert payload["temperature"] == 0.0

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        transport = make_transport(lambda r: httpx.Response(429, text="slow down"))
        async with AnthropicCompletionClient("https://llm.test", "secret", transport=transport) as client:
            with pytest.raises(ExternalServiceError) as exc_info:
                await client.complete(self.request())
        assert exc_info.value.error_code == "COMPLETION_RATE_LIMIT"

    @pytest.mark.asyncio
    async def test_forbidden(self):
        transport = make_transport(lambda r: httpx.Response(403, text="nope"))
        async with AnthropicCompletionClient("https://llm.test", "secret", transport=transport) as client:
            with pytest.raises(AuthenticationError):
                await client.complete(self.request())

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        transport = make_transport(lambda r: httpx.Response(200, json={"content": "oops"}))
        async with AnthropicCompletionClient("https://llm.test", "secret", transport=transport) as client:
            with pytest.raises(MalformedResponseError):
                await client.complete(self.request())

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        transport = make_transport(lambda r: httpx.Response(200, text="<html>"))
        async with AnthropicCompletionClient("https://llm.test", "secret", transport=transport) as client:
            with pytest.raises(MalformedResponseError):
                await client.complete(self.request())

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        transport = make_transport(lambda r: httpx.Response(200, json={}))
        async with AnthropicCompletionClient("https://llm.test", None, transport=transport) as client:
            with pytest.raises(ConfigurationError):
                await client.complete(self.request())


class TestVocabularyClient:
    """Tests for RestVocabularyClient."""

    @pytest.mark.asyncio
    async def test_fetch_vocabulary(self):
        seen = []
        rows = [
            {"id": 1, "name": "Audi"},
            {"id": 2, "name": "BMW"},
            {"id": None, "name": "Broken"},
            {"id": 3},
        ]
        transport = make_transport(lambda r: httpx.Response(200, json=rows), seen)
        async with RestVocabularyClient("https://db.test", "anon", transport=transport) as client:
            entries = await client.fetch_vocabulary("makes")

        assert [(e.id, e.display_name) for e in entries] == [("1", "Audi"), ("2", "BMW")]
        request = seen[0]
        assert request.url.path == "/rest/v1/makes"
        assert request.url.params["select"] == "id,name"
        assert request.url.params["order"] == "name"
        assert request.headers["apikey"] == "anon"
        assert request.headers["authorization"] == "Bearer anon"

    @pytest.mark.asyncio
    async def test_rejects_non_list(self):
        transport = make_transport(lambda r: httpx.Response(200, json={"rows": []}))
        async with RestVocabularyClient("https://db.test", transport=transport) as client:
            with pytest.raises(MalformedResponseError):
                await client.fetch_vocabulary("makes")

    @pytest.mark.asyncio
    async def test_server_error(self):
        transport = make_transport(lambda r: httpx.Response(503, text="down"))
        async with RestVocabularyClient("https://db.test", transport=transport) as client:
            with pytest.raises(ExternalServiceError) as exc_info:
                await client.fetch_vocabulary("makes")
        assert exc_info.value.error_code == "VOCABULARY_ERROR"

    def test_from_settings_requires_base_url(self):
        with pytest.raises(ConfigurationError):
            RestVocabularyClient.from_settings(VocabularySettings(VOCABULARY_BASE_URL=None))
