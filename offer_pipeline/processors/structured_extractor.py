"""
LLM-based structured extractor.

Builds the extraction prompt from document text, calls the completion
service with retries, and validates the reply into a ``StructuredResult``.
Degenerate input and every expected failure come back as a zero-confidence
result carrying an error tag; this stage never raises for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from offer_pipeline.clients.ports import CompletionPort
from offer_pipeline.core.config import (
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_CONFIDENCE_SCORE,
    EXTRACTION_MAX_TOKENS,
    EXTRACTION_TEMPERATURE,
    EXTRACTION_TIMEOUT_SECONDS,
    MAX_RETRIES,
    MAX_TEXT_LENGTH,
    MIN_TEXT_LENGTH,
    TRUNCATION_MARKER,
)
from offer_pipeline.core.exceptions import (
    AuthenticationError,
    BaseError,
    InputTooShortError,
    MalformedResponseError,
)
from offer_pipeline.models.dto import (
    DealerData,
    ExtractionMetadata,
    LeasingTerms,
    ServiceFlags,
    StructuredResult,
    VehicleData,
)
from offer_pipeline.models.service_models import CompletionRequest, CompletionResponse
from offer_pipeline.processors.prompts import (
    EXTRACTION_SYSTEM_PROMPT,
    build_extraction_prompt,
)
from offer_pipeline.processors.response_parser import (
    parse_extraction_reply,
    reported_confidence,
)
from offer_pipeline.resilience.retry import (
    RetryConfig,
    async_retry_with_backoff,
    call_with_timeout,
    is_retryable_completion_error,
)
from offer_pipeline.utils.field_paths import is_present

logger = logging.getLogger(__name__)

SERVICE_NAME = "completion"

IMPORTANT_FIELDS = (
    "vehicle.make",
    "vehicle.model",
    "vehicle.fuel_type",
    "leasing.monthly_rate",
    "leasing.purchase_price",
)


@dataclass
class ExtractionOptions:
    max_tokens: int = EXTRACTION_MAX_TOKENS
    temperature: float = EXTRACTION_TEMPERATURE
    timeout_s: float = EXTRACTION_TIMEOUT_SECONDS
    max_retries: int = MAX_RETRIES


def truncate_text(text: str, max_length: int = MAX_TEXT_LENGTH) -> tuple[str, bool]:
    """Cut text to ``max_length`` and append the truncation marker."""
    if len(text) <= max_length:
        return text, False
    return text[:max_length] + TRUNCATION_MARKER, True


def compute_field_coverage_confidence(result: StructuredResult) -> int:
    """Heuristic 0-100 score from which important fields were found."""
    found = sum(1 for path in IMPORTANT_FIELDS if is_present(result, path))
    score = found / len(IMPORTANT_FIELDS) * 70

    if result.dealer.name:
        score += 10
    if result.vehicle.mileage is not None:
        score += 10
    if any(v is not None for v in result.services.model_dump().values()):
        score += 10

    return min(100, round(score))


class StructuredExtractor:
    """Extract a StructuredResult from document text via the completion service."""

    def __init__(
        self,
        completion_client: CompletionPort,
        *,
        model: str = DEFAULT_COMPLETION_MODEL,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self.completion_client = completion_client
        self.model = model
        self._retry_config = retry_config

    def _retry_config_for(self, options: ExtractionOptions) -> RetryConfig:
        if self._retry_config is not None:
            return self._retry_config
        return RetryConfig(max_attempts=options.max_retries)

    async def extract_structured(
        self,
        text: Optional[str],
        options: Optional[ExtractionOptions] = None,
    ) -> StructuredResult:
        options = options or ExtractionOptions()

        stripped_length = len(text.strip()) if text else 0
        if stripped_length < MIN_TEXT_LENGTH:
            err = InputTooShortError(stripped_length, MIN_TEXT_LENGTH)
            logger.warning(
                "Text too short or empty",
                extra={"error_code": err.error_code},
            )
            return StructuredResult.failed(err.describe(), self.model)

        prompt_text, truncated = truncate_text(text)
        logger.info(
            "Processing text: original_length=%d truncated=%s",
            len(text),
            truncated,
        )

        request = CompletionRequest(
            system=EXTRACTION_SYSTEM_PROMPT,
            prompt=build_extraction_prompt(prompt_text),
            model=self.model,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
        )

        try:
            result = await async_retry_with_backoff(
                self._extract_once,
                self._retry_config_for(options),
                is_retryable_completion_error,
                request,
                options.timeout_s,
            )
        except AuthenticationError as e:
            logger.error(
                "Completion API authentication failed - check COMPLETION_API_KEY",
                extra={"service": SERVICE_NAME, "error_code": e.error_code},
            )
            return StructuredResult.failed(e.describe(), self.model)
        except BaseError as e:
            logger.error(
                f"All extraction attempts failed: {e.describe()}",
                extra={"service": SERVICE_NAME, "error_code": e.error_code},
            )
            return StructuredResult.failed(e.describe(), self.model)

        logger.info(
            "Extraction successful: %s %s",
            result.vehicle.make,
            result.vehicle.model,
            extra={"confidence": result.metadata.confidence_score},
        )
        return result

    async def _extract_once(
        self, request: CompletionRequest, timeout: float
    ) -> StructuredResult:
        response = await call_with_timeout(
            self.completion_client.complete,
            timeout,
            SERVICE_NAME,
            request,
            timeout=timeout,
        )
        return self._build_result(response)

    def _build_result(self, response: CompletionResponse) -> StructuredResult:
        reply = response.first_text()
        if reply is None:
            raise MalformedResponseError(SERVICE_NAME, "no text block in reply")

        payload = parse_extraction_reply(reply)
        confidence = reported_confidence(payload)
        if confidence is None:
            confidence = DEFAULT_CONFIDENCE_SCORE

        return StructuredResult(
            vehicle=payload.vehicle or VehicleData(),
            leasing=payload.leasing or LeasingTerms(),
            dealer=payload.dealer or DealerData(),
            services=payload.services or ServiceFlags(),
            metadata=ExtractionMetadata(
                confidence_score=confidence,
                model_identifier=self.model,
                tokens_consumed=response.usage.total,
            ),
        )
