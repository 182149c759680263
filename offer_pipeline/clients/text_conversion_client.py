import logging
from typing import Optional

import httpx

from offer_pipeline.clients.http_errors import (
    check_response,
    raise_transport_error,
    read_json_object,
)
from offer_pipeline.core.config import (
    DEFAULT_OCR_LANGUAGE,
    DEFAULT_PAGE_RANGE,
    TEXT_CONVERSION_TIMEOUT_SECONDS,
)
from offer_pipeline.core.exceptions import ConfigurationError, MalformedResponseError
from offer_pipeline.core.settings import TextConversionSettings
from offer_pipeline.models.service_models import TextConversionResponse

logger = logging.getLogger(__name__)

SERVICE_NAME = "text_conversion"

CONVERT_PATH = "/v1/pdf/convert/to/text"
BALANCE_PATH = "/v1/account/balance"


def parse_conversion_result(data: dict) -> TextConversionResponse:
    """Normalize the conversion service's JSON answer."""
    try:
        page_count = int(data.get("pageCount") or 0)
        credits = data.get("remainingCredits")
        credits_remaining = int(credits) if credits is not None else None
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(SERVICE_NAME, "non-numeric page or credit count") from e

    body = data.get("body")
    if body is not None and not isinstance(body, str):
        raise MalformedResponseError(SERVICE_NAME, "body is not a string")

    return TextConversionResponse(
        body=body or None,
        page_count=page_count,
        error=bool(data.get("error")),
        message=data.get("message"),
        credits_remaining=credits_remaining,
    )


class PdfCoTextConversionClient:
    """OCR text-conversion adapter over httpx (async).

    Endpoints:
    - POST /v1/pdf/convert/to/text -> {"body": "...", "pageCount": 2, "error": false, ...}
    - GET  /v1/account/balance      -> {"remainingCredits": 1234}
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        timeout: float = TEXT_CONVERSION_TIMEOUT_SECONDS,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: TextConversionSettings) -> "PdfCoTextConversionClient":
        api_key = settings.TEXT_CONVERSION_API_KEY
        return cls(
            base_url=settings.TEXT_CONVERSION_BASE_URL,
            api_key=api_key.get_secret_value() if api_key else None,
            timeout=settings.TEXT_CONVERSION_TIMEOUT_SECONDS,
            verify=settings.TEXT_CONVERSION_VERIFY_SSL,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ConfigurationError("TEXT_CONVERSION_API_KEY")
        return {"x-api-key": self._api_key, "Content-Type": "application/json"}

    async def convert_to_text(
        self,
        url: str,
        *,
        language: str = DEFAULT_OCR_LANGUAGE,
        pages: str = DEFAULT_PAGE_RANGE,
        inline: bool = True,
        timeout: Optional[float] = None,
    ) -> TextConversionResponse:
        payload = {
            "url": url,
            "inline": inline,
            "async": False,
            "lang": language,
            "pages": pages,
            "unwrap": True,
        }
        try:
            resp = await self._client.post(
                CONVERT_PATH,
                json=payload,
                headers=self._headers(),
                timeout=timeout or self.timeout,
            )
        except httpx.HTTPError as e:
            raise_transport_error(e, SERVICE_NAME)

        check_response(resp, SERVICE_NAME)
        result = parse_conversion_result(read_json_object(resp, SERVICE_NAME))
        logger.debug(
            "Conversion response: error=%s pages=%d text_length=%d credits=%s",
            result.error,
            result.page_count,
            len(result.body or ""),
            result.credits_remaining,
        )
        return result

    async def get_remaining_credits(self) -> Optional[int]:
        """Account balance, or None when it cannot be determined."""
        if not self._api_key:
            logger.warning("No text conversion API key configured")
            return None
        try:
            resp = await self._client.get(BALANCE_PATH, headers=self._headers())
            check_response(resp, SERVICE_NAME)
            data = read_json_object(resp, SERVICE_NAME)
            return int(data.get("remainingCredits") or 0)
        except Exception:
            logger.warning("Failed to check text conversion credits", exc_info=True)
            return None


async def fetch_document_bytes(
    url: str,
    *,
    timeout: float = TEXT_CONVERSION_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bytes:
    """Download a document so the local fallback can scan it."""
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        try:
            resp = await client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise_transport_error(e, "document_source")
        check_response(resp, "document_source")
        return resp.content
