"""
On-demand resolution of individual fields.

Used for progressive enhancement: only fields still missing from a prior
extraction are requested, each with its own small completion call so a
failing field cannot block the others.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from offer_pipeline.clients.ports import CompletionPort
from offer_pipeline.core.config import (
    CHOICE_EXACT_CONFIDENCE,
    CHOICE_INEXACT_CONFIDENCE,
    DEFAULT_COMPLETION_MODEL,
    FIELD_RESOLUTION_MAX_CONCURRENCY,
    FIELD_RESOLUTION_MAX_TOKENS,
    FIELD_RESOLUTION_STAGGER_SECONDS,
    FIELD_RESOLUTION_TEMPERATURE,
    FIELD_RESOLUTION_TEXT_CHARS,
    FIELD_RESOLUTION_TIMEOUT_SECONDS,
    NULL_SENTINEL,
)
from offer_pipeline.core.exceptions import BaseError
from offer_pipeline.models.dto import FieldResolution, StructuredResult
from offer_pipeline.models.service_models import CompletionRequest
from offer_pipeline.processors.prompts import (
    FIELD_SYSTEM_PROMPT,
    build_choice_prompt,
    build_field_prompt,
)
from offer_pipeline.resilience.retry import call_with_timeout
from offer_pipeline.utils.field_paths import (
    coerce_field_value,
    missing_paths,
    split_field_path,
    with_values,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "completion"


def _normalize_answer(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    value = raw.strip()
    if not value or value == NULL_SENTINEL:
        return None
    return value


class FieldResolver:
    """Resolve single fields, or only the missing ones, with minimal-token calls.

    Args:
        completion_client: Completion service
        model: Model identifier
        max_concurrency: Upper bound on in-flight field requests
        stagger_seconds: Delay added per dispatch index to spread requests
        timeout: Hard timeout per field request, seconds
    """

    def __init__(
        self,
        completion_client: CompletionPort,
        *,
        model: str = DEFAULT_COMPLETION_MODEL,
        max_concurrency: int = FIELD_RESOLUTION_MAX_CONCURRENCY,
        stagger_seconds: float = FIELD_RESOLUTION_STAGGER_SECONDS,
        timeout: float = FIELD_RESOLUTION_TIMEOUT_SECONDS,
    ) -> None:
        self.completion_client = completion_client
        self.model = model
        self.max_concurrency = max(1, max_concurrency)
        self.stagger_seconds = stagger_seconds
        self.timeout = timeout

    async def _ask(self, prompt: str) -> Optional[str]:
        request = CompletionRequest(
            system=FIELD_SYSTEM_PROMPT,
            prompt=prompt,
            model=self.model,
            max_tokens=FIELD_RESOLUTION_MAX_TOKENS,
            temperature=FIELD_RESOLUTION_TEMPERATURE,
        )
        response = await call_with_timeout(
            self.completion_client.complete,
            self.timeout,
            SERVICE_NAME,
            request,
            timeout=self.timeout,
        )
        return _normalize_answer(response.first_text())

    async def resolve_single_field(
        self,
        text: str,
        field_name: str,
        description: Optional[str] = None,
    ) -> Optional[str]:
        """Ask for exactly one value. Returns None when absent or on failure."""
        prompt = build_field_prompt(
            (text or "")[:FIELD_RESOLUTION_TEXT_CHARS], field_name, description
        )
        try:
            return await self._ask(prompt)
        except BaseError as e:
            logger.error(
                f"Error extracting field {field_name}: {e.describe()}",
                extra={"field": field_name, "error_code": e.error_code},
            )
            return None

    async def resolve_choice_field(
        self,
        text: str,
        field_name: str,
        options: list[str],
        context: Optional[dict[str, str]] = None,
    ) -> FieldResolution:
        """Pick one of ``options``; confidence reflects whether the answer is a listed option."""
        prompt = build_choice_prompt(
            (text or "")[:FIELD_RESOLUTION_TEXT_CHARS], field_name, options, context
        )
        try:
            value = await self._ask(prompt)
        except BaseError as e:
            logger.error(
                f"Failed to resolve {field_name}: {e.describe()}",
                extra={"field": field_name, "error_code": e.error_code},
            )
            value = None

        if value is None:
            return FieldResolution(field=field_name, value=None, confidence=0)

        lowered = value.lower()
        exact = next((opt for opt in options if opt.lower() == lowered), None)
        if exact is not None:
            return FieldResolution(
                field=field_name, value=exact, confidence=CHOICE_EXACT_CONFIDENCE
            )
        return FieldResolution(
            field=field_name, value=value, confidence=CHOICE_INEXACT_CONFIDENCE
        )

    async def resolve_missing_fields(
        self,
        text: str,
        existing_result: StructuredResult,
        required_field_paths: list[str],
    ) -> StructuredResult:
        """Fill only the required paths that are still absent.

        Returns ``existing_result`` itself when nothing is missing; otherwise a
        new result, the input is never mutated.
        """
        missing = missing_paths(existing_result, required_field_paths)
        if not missing:
            return existing_result

        for path in missing:
            split_field_path(path)

        logger.info("Extracting missing fields: %s", ", ".join(missing))

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def resolve(index: int, path: str) -> tuple[str, Optional[str]]:
            if index and self.stagger_seconds:
                await asyncio.sleep(self.stagger_seconds * index)
            async with semaphore:
                return path, await self.resolve_single_field(text, path)

        answers = await asyncio.gather(
            *(resolve(i, path) for i, path in enumerate(missing))
        )

        values: dict[str, Any] = {}
        for path, raw in answers:
            if raw is None:
                continue
            ok, value = coerce_field_value(path, raw)
            if not ok:
                logger.warning(
                    f"Discarding uncoercible value for {path}: {raw!r}",
                    extra={"field": path},
                )
                continue
            values[path] = value

        if not values:
            return existing_result.model_copy(deep=True)
        return with_values(existing_result, values)
