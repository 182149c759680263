"""Protocols for the external services the pipeline consumes.

Components receive implementations through their constructors; the httpx
adapters in this package are the production implementations and tests pass
in fakes.
"""

from __future__ import annotations

from typing import Optional, Protocol

from offer_pipeline.models.dto import ReferenceEntry
from offer_pipeline.models.service_models import (
    CompletionRequest,
    CompletionResponse,
    TextConversionResponse,
)


class TextConversionPort(Protocol):  # pragma: no cover - contract
    """Remote OCR-capable PDF-to-text conversion."""

    async def convert_to_text(
        self,
        url: str,
        *,
        language: str,
        pages: str,
        inline: bool = True,
        timeout: Optional[float] = None,
    ) -> TextConversionResponse: ...


class CompletionPort(Protocol):  # pragma: no cover - contract
    """Generative completion service."""

    async def complete(
        self,
        request: CompletionRequest,
        *,
        timeout: Optional[float] = None,
    ) -> CompletionResponse: ...


class VocabularyPort(Protocol):  # pragma: no cover - contract
    """Read-only source of reference vocabularies, rows ordered by name."""

    async def fetch_vocabulary(self, name: str) -> list[ReferenceEntry]: ...
