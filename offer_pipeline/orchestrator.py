from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Optional, Sequence

from pydantic import BaseModel, Field

from offer_pipeline.clients.completion_client import AnthropicCompletionClient
from offer_pipeline.clients.text_conversion_client import PdfCoTextConversionClient
from offer_pipeline.clients.vocabulary_client import RestVocabularyClient
from offer_pipeline.core.config import APPROXIMATE_TEXT_MAX_CONFIDENCE
from offer_pipeline.core.logging_config import configure_structured_logging
from offer_pipeline.core.settings import (
    PipelineSettings,
    get_completion_settings,
    get_pipeline_settings,
    get_text_conversion_settings,
    get_vocabulary_settings,
)
from offer_pipeline.models.dto import (
    Document,
    ExtractedText,
    FieldMappingResult,
    MappingRequest,
    StructuredResult,
    ValidationReport,
)
from offer_pipeline.processors.field_resolver import FieldResolver
from offer_pipeline.processors.reference_mapping import ReferenceMappingEngine
from offer_pipeline.processors.structured_extractor import (
    ExtractionOptions,
    StructuredExtractor,
    compute_field_coverage_confidence,
)
from offer_pipeline.processors.text_extractor import TextExtractor
from offer_pipeline.processors.validator import validate
from offer_pipeline.utils.field_paths import get_path

logger = logging.getLogger(__name__)

# record path -> reference vocabulary
MAPPED_FIELDS = {
    "vehicle.make": "makes",
    "vehicle.fuel_type": "fuel_types",
    "vehicle.transmission": "transmission_types",
}


class PipelineResult(BaseModel):
    """Everything one document run produced, for the caller to persist or display."""

    run_id: str
    extracted_text: ExtractedText
    result: StructuredResult
    validation: ValidationReport
    mappings: dict[str, FieldMappingResult] = Field(default_factory=dict)
    coverage_confidence: int = 0
    duration_seconds: float = 0.0


def _generate_run_id() -> str:
    return str(uuid.uuid4())


def _cap_confidence(result: StructuredResult, ceiling: int) -> StructuredResult:
    if result.metadata.confidence_score <= ceiling:
        return result
    metadata = result.metadata.model_copy(update={"confidence_score": ceiling})
    return result.model_copy(update={"metadata": metadata})


class OfferPipeline:
    """Text extraction -> structured extraction -> validation -> resolution -> mapping.

    ``field_resolver`` and ``mapping_engine`` are optional; without them the
    corresponding stages are skipped.
    """

    def __init__(
        self,
        text_extractor: TextExtractor,
        structured_extractor: StructuredExtractor,
        *,
        validator: Callable[..., ValidationReport] = validate,
        field_resolver: Optional[FieldResolver] = None,
        mapping_engine: Optional[ReferenceMappingEngine] = None,
        settings: Optional[PipelineSettings] = None,
        default_options: Optional[ExtractionOptions] = None,
    ) -> None:
        self.text_extractor = text_extractor
        self.structured_extractor = structured_extractor
        self.validator = validator
        self.field_resolver = field_resolver
        self.mapping_engine = mapping_engine
        self.settings = settings or PipelineSettings()
        self.default_options = default_options
        self._owned_clients: list = []

    @classmethod
    def from_settings(cls, *, configure_logging: bool = True) -> "OfferPipeline":
        """Build a pipeline with HTTP adapters configured from the environment.

        The vocabulary stage is enabled only when ``VOCABULARY_BASE_URL`` is set.
        Root logging is set up from ``LOG_LEVEL`` and ``LOG_JSON`` unless
        ``configure_logging`` is False. Call ``aclose()`` when done.
        """
        text_settings = get_text_conversion_settings()
        completion_settings = get_completion_settings()
        vocabulary_settings = get_vocabulary_settings()
        settings = get_pipeline_settings()

        if configure_logging:
            configure_structured_logging(
                level=settings.LOG_LEVEL, json_format=settings.LOG_JSON
            )

        conversion_client = PdfCoTextConversionClient.from_settings(text_settings)
        completion_client = AnthropicCompletionClient.from_settings(completion_settings)
        owned: list = [conversion_client, completion_client]

        mapping_engine = None
        if vocabulary_settings.VOCABULARY_BASE_URL:
            vocabulary_client = RestVocabularyClient.from_settings(vocabulary_settings)
            owned.append(vocabulary_client)
            mapping_engine = ReferenceMappingEngine(vocabulary_client)

        pipeline = cls(
            TextExtractor(
                conversion_client,
                language=text_settings.TEXT_CONVERSION_LANGUAGE,
                timeout=text_settings.TEXT_CONVERSION_TIMEOUT_SECONDS,
                max_retries=text_settings.TEXT_CONVERSION_MAX_RETRIES,
            ),
            StructuredExtractor(completion_client, model=completion_settings.COMPLETION_MODEL),
            field_resolver=FieldResolver(
                completion_client,
                model=completion_settings.COMPLETION_MODEL,
                max_concurrency=settings.FIELD_RESOLUTION_MAX_CONCURRENCY,
                stagger_seconds=settings.FIELD_RESOLUTION_STAGGER_SECONDS,
            ),
            mapping_engine=mapping_engine,
            settings=settings,
            default_options=ExtractionOptions(
                max_tokens=completion_settings.COMPLETION_MAX_TOKENS,
                temperature=completion_settings.COMPLETION_TEMPERATURE,
                timeout_s=completion_settings.COMPLETION_TIMEOUT_SECONDS,
                max_retries=completion_settings.COMPLETION_MAX_RETRIES,
            ),
        )
        pipeline._owned_clients = owned
        return pipeline

    async def aclose(self) -> None:
        for client in self._owned_clients:
            await client.aclose()
        self._owned_clients = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    def _validate(self, result: StructuredResult) -> ValidationReport:
        return self.validator(
            result, low_confidence_threshold=self.settings.LOW_CONFIDENCE_THRESHOLD
        )

    async def _map_references(
        self, result: StructuredResult
    ) -> dict[str, FieldMappingResult]:
        if self.mapping_engine is None:
            return {}

        requests = [
            MappingRequest(vocabulary=vocabulary, value=get_path(result, path))
            for path, vocabulary in MAPPED_FIELDS.items()
        ]
        mappings = await self.mapping_engine.map_fields(requests)

        threshold = self.settings.MAPPING_ACCEPT_MIN_CONFIDENCE
        accepted: dict[str, FieldMappingResult] = {}
        for vocabulary, mapping in mappings.items():
            if mapping.canonical_id is not None and mapping.confidence < threshold:
                logger.info(
                    "Rejecting low-confidence mapping",
                    extra={"vocabulary": vocabulary, "confidence": mapping.confidence},
                )
                mapping = FieldMappingResult.not_found()
            accepted[vocabulary] = mapping
        return accepted

    async def run(
        self,
        document: Document,
        *,
        required_field_paths: Optional[Sequence[str]] = None,
        options: Optional[ExtractionOptions] = None,
    ) -> PipelineResult:
        """Process one document end-to-end.

        Args:
            document: Offer document (bytes and/or URL)
            required_field_paths: Dotted paths to re-request individually when
                the first extraction left them empty
            options: Structured extraction options; defaults to the options
                built from settings, if any

        Returns:
            PipelineResult; expected failures are reported inside it, never raised.
        """
        run_id = _generate_run_id()
        t0 = time.perf_counter()
        logger.info("Pipeline run started", extra={"run_id": run_id})

        extracted = await self.text_extractor.extract_text(document)
        if extracted.no_text:
            logger.info("Document has no extractable text", extra={"run_id": run_id})

        result = await self.structured_extractor.extract_structured(
            extracted.text, options or self.default_options
        )
        if extracted.is_approximate:
            logger.info(
                "Text came from the approximate local scan, capping confidence",
                extra={"run_id": run_id, "confidence": result.metadata.confidence_score},
            )
            result = _cap_confidence(result, APPROXIMATE_TEXT_MAX_CONFIDENCE)

        validation = self._validate(result)

        if (
            required_field_paths
            and self.field_resolver is not None
            and result.metadata.confidence_score > 0
        ):
            resolved = await self.field_resolver.resolve_missing_fields(
                extracted.text, result, list(required_field_paths)
            )
            if resolved is not result:
                result = resolved
                validation = self._validate(result)

        if not validation.is_valid:
            logger.warning(
                "Extraction failed validation: %s",
                "; ".join(validation.errors),
                extra={"run_id": run_id},
            )

        mappings = await self._map_references(result)
        duration = time.perf_counter() - t0

        logger.info(
            "Pipeline run finished",
            extra={
                "run_id": run_id,
                "duration_ms": int(duration * 1000),
                "confidence": result.metadata.confidence_score,
            },
        )
        return PipelineResult(
            run_id=run_id,
            extracted_text=extracted,
            result=result,
            validation=validation,
            mappings=mappings,
            coverage_confidence=compute_field_coverage_confidence(result),
            duration_seconds=duration,
        )
