"""
Typed contracts passed between pipeline stages and returned to callers.

Every record is a plain pydantic model with no behavior beyond validation, so
callers can persist or transport it with ``model_dump()`` / ``model_dump_json()``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from offer_pipeline.core.config import DEFAULT_COMPLETION_MODEL


# =============================================================================
# Documents and text
# =============================================================================


class DocumentMetadata(BaseModel):
    """Container-level metadata parsed from the PDF itself."""

    model_config = ConfigDict(frozen=True)

    page_count: int = 0
    title: str | None = None
    author: str | None = None
    subject: str | None = None
    creator: str | None = None
    producer: str | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None


class Document(BaseModel):
    """
    An uploaded offer document: raw bytes, a fetchable URL, or both.

    Frozen so nothing downstream can alter it once extraction begins.
    """

    model_config = ConfigDict(frozen=True)

    content: bytes | None = None
    url: str | None = None
    file_name: str | None = None
    metadata: DocumentMetadata | None = None

    @model_validator(mode="after")
    def _require_source(self) -> "Document":
        if not self.content and not self.url:
            raise ValueError("Document needs either content bytes or a url")
        return self


TextSource = Literal["remote", "local_fallback", "none"]
TextErrorKind = Literal["no_text", "processing_error"]


class ExtractedText(BaseModel):
    """
    Plain text obtained from a document.

    Empty text is a legitimate outcome. ``no_text`` separates "nothing to
    extract" from ``failed`` extraction.

    ``primary_error`` keeps the remote failure when the local fallback
    produced the text.
    """

    text: str = ""
    page_count: int = 0
    extraction_error: str | None = None
    error_kind: TextErrorKind | None = None
    primary_error: str | None = None
    source: TextSource = "none"
    is_approximate: bool = False
    credits_remaining: int | None = None
    metadata: DocumentMetadata | None = None

    @property
    def failed(self) -> bool:
        return self.error_kind == "processing_error"

    @property
    def no_text(self) -> bool:
        return not self.text and not self.failed


# =============================================================================
# Structured result
# =============================================================================


class _Group(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_assignment=True)


class VehicleData(_Group):
    make: str | None = None
    model: str | None = None
    variant: str | None = None
    year: int | None = None
    mileage: int | None = None
    fuel_type: str | None = None
    transmission: str | None = None
    power_kw: float | None = None
    power_ps: float | None = None
    color: str | None = None
    doors: int | None = None
    seats: int | None = None
    first_registration: str | None = None


class LeasingTerms(_Group):
    monthly_rate: float | None = None
    duration_months: int | None = None
    annual_mileage: int | None = None
    down_payment: float | None = None
    final_payment: float | None = None
    total_cost: float | None = None
    interest_rate: float | None = None
    purchase_price: float | None = None


class DealerData(_Group):
    name: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    phone: str | None = None
    email: str | None = None
    contact_person: str | None = None


class ServiceFlags(_Group):
    insurance_included: bool | None = None
    maintenance_included: bool | None = None
    tires_included: bool | None = None
    gap_protection: bool | None = None
    warranty_extension: bool | None = None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExtractionMetadata(BaseModel):
    """Trust signal for a StructuredResult. ``confidence_score == 0`` means do not use."""

    confidence_score: int = Field(default=0, ge=0, le=100)
    extraction_timestamp: str = Field(default_factory=_utc_now_iso)
    model_identifier: str = DEFAULT_COMPLETION_MODEL
    tokens_consumed: int | None = None
    error: str | None = None


STRUCTURED_GROUPS = ("vehicle", "leasing", "dealer", "services")


class StructuredResult(BaseModel):
    """Normalized offer data extracted from a document."""

    vehicle: VehicleData = Field(default_factory=VehicleData)
    leasing: LeasingTerms = Field(default_factory=LeasingTerms)
    dealer: DealerData = Field(default_factory=DealerData)
    services: ServiceFlags = Field(default_factory=ServiceFlags)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)

    @classmethod
    def failed(
        cls,
        error: str,
        model_identifier: str = DEFAULT_COMPLETION_MODEL,
    ) -> "StructuredResult":
        """Empty zero-confidence result carrying an error tag."""
        return cls(
            metadata=ExtractionMetadata(
                confidence_score=0,
                model_identifier=model_identifier,
                error=error,
            )
        )

    def to_record(self) -> dict[str, Any]:
        """Serializable dict without absent leaves."""
        return self.model_dump(exclude_none=True)


class ExtractedPayload(BaseModel):
    """
    Schema the completion reply is validated against before it is trusted.
    """

    model_config = ConfigDict(extra="ignore")

    vehicle: VehicleData | None = None
    leasing: LeasingTerms | None = None
    dealer: DealerData | None = None
    services: ServiceFlags | None = None
    metadata: dict[str, Any] | None = None


# =============================================================================
# Reference mapping
# =============================================================================


class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    FALLBACK = "fallback"
    NOT_FOUND = "not_found"


class ReferenceEntry(BaseModel):
    """One canonical ``(id, display_name)`` pair of a vocabulary."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str


class FieldMappingResult(BaseModel):
    canonical_id: str | None = None
    confidence: int = Field(default=0, ge=0, le=100)
    match_type: MatchType = MatchType.NOT_FOUND

    @classmethod
    def not_found(cls) -> "FieldMappingResult":
        return cls(canonical_id=None, confidence=0, match_type=MatchType.NOT_FOUND)


class MappingRequest(BaseModel):
    vocabulary: str
    value: str | None = None


# =============================================================================
# Validation and resolution
# =============================================================================


class ValidationReport(BaseModel):
    is_valid: bool
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class FieldResolution(BaseModel):
    """Single-field answer with a heuristic confidence."""

    field: str
    value: str | None = None
    confidence: int = Field(default=0, ge=0, le=100)
