import logging
from typing import Optional

import httpx

from offer_pipeline.clients.http_errors import check_response, raise_transport_error
from offer_pipeline.core.exceptions import ConfigurationError, MalformedResponseError
from offer_pipeline.core.settings import VocabularySettings
from offer_pipeline.models.dto import ReferenceEntry

logger = logging.getLogger(__name__)

SERVICE_NAME = "vocabulary"


class RestVocabularyClient:
    """Read-only vocabulary adapter for a PostgREST-style endpoint.

    ``GET /rest/v1/{name}?select=id,{column}&order={column}`` -> [{"id": 1, "name": "BMW"}, ...]
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        name_column: str = "name",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.name_column = name_column
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: VocabularySettings) -> "RestVocabularyClient":
        if not settings.VOCABULARY_BASE_URL:
            raise ConfigurationError("VOCABULARY_BASE_URL")
        api_key = settings.VOCABULARY_API_KEY
        return cls(
            base_url=settings.VOCABULARY_BASE_URL,
            api_key=api_key.get_secret_value() if api_key else None,
            name_column=settings.VOCABULARY_NAME_COLUMN,
            timeout=settings.VOCABULARY_TIMEOUT_SECONDS,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            return {}
        return {"apikey": self._api_key, "Authorization": f"Bearer {self._api_key}"}

    async def fetch_vocabulary(self, name: str) -> list[ReferenceEntry]:
        params = {
            "select": f"id,{self.name_column}",
            "order": self.name_column,
        }
        try:
            resp = await self._client.get(
                f"/rest/v1/{name}", params=params, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise_transport_error(e, SERVICE_NAME)

        check_response(resp, SERVICE_NAME)
        try:
            rows = resp.json()
        except ValueError as e:
            raise MalformedResponseError(SERVICE_NAME, "body is not valid JSON") from e
        if not isinstance(rows, list):
            raise MalformedResponseError(SERVICE_NAME, "expected a list of rows")

        entries = []
        for row in rows:
            if not isinstance(row, dict) or row.get("id") is None:
                logger.debug("Skipping vocabulary row without id: %r", row)
                continue
            display_name = row.get(self.name_column)
            if not isinstance(display_name, str):
                continue
            entries.append(ReferenceEntry(id=str(row["id"]), display_name=display_name))

        logger.info(
            "Loaded %d entries for vocabulary '%s'",
            len(entries),
            name,
            extra={"vocabulary": name, "service": SERVICE_NAME},
        )
        return entries
