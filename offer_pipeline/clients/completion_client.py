import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from offer_pipeline.clients.http_errors import (
    check_response,
    raise_transport_error,
    read_json_object,
)
from offer_pipeline.core.config import EXTRACTION_TIMEOUT_SECONDS
from offer_pipeline.core.exceptions import ConfigurationError, MalformedResponseError
from offer_pipeline.core.settings import CompletionSettings
from offer_pipeline.models.service_models import CompletionRequest, CompletionResponse

logger = logging.getLogger(__name__)

SERVICE_NAME = "completion"

MESSAGES_PATH = "/v1/messages"


def _build_payload(request: CompletionRequest) -> dict:
    return {
        "model": request.model,
        "max_tokens": request.max_tokens,
        "temperature": request.temperature,
        "system": request.system,
        "messages": [{"role": "user", "content": request.prompt}],
    }


class AnthropicCompletionClient:
    """Messages-API completion adapter over httpx (async)."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        api_version: str = "2023-06-01",
        timeout: float = EXTRACTION_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.api_version = api_version
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: CompletionSettings) -> "AnthropicCompletionClient":
        api_key = settings.COMPLETION_API_KEY
        return cls(
            base_url=settings.COMPLETION_BASE_URL,
            api_key=api_key.get_secret_value() if api_key else None,
            api_version=settings.COMPLETION_API_VERSION,
            timeout=settings.COMPLETION_TIMEOUT_SECONDS,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def complete(
        self,
        request: CompletionRequest,
        *,
        timeout: Optional[float] = None,
    ) -> CompletionResponse:
        """
        Send one system+user exchange and return the parsed reply.

        Raises:
            AuthenticationError: On 401/403.
            ExternalServiceError: On timeouts, network failures or non-2xx answers.
            MalformedResponseError: When the reply does not match the Messages shape.
        """
        if not self._api_key:
            raise ConfigurationError("COMPLETION_API_KEY")

        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": self.api_version,
            "content-type": "application/json",
        }
        try:
            resp = await self._client.post(
                MESSAGES_PATH,
                json=_build_payload(request),
                headers=headers,
                timeout=timeout or self.timeout,
            )
        except httpx.HTTPError as e:
            raise_transport_error(e, SERVICE_NAME)

        check_response(resp, SERVICE_NAME)
        data = read_json_object(resp, SERVICE_NAME)
        try:
            result = CompletionResponse.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(SERVICE_NAME, "unexpected reply shape") from e

        logger.debug(
            "Completion received",
            extra={
                "service": SERVICE_NAME,
                "input_tokens": result.usage.input_tokens,
                "output_tokens": result.usage.output_tokens,
            },
        )
        return result
