"""
Map free-text values to canonical reference identifiers.

Strategies are tried in order:
    1. exact, case-insensitive display-name match (confidence 100)
    2. Levenshtein similarity above 80% (confidence = rounded similarity)
    3. vocabulary alias tables (fixed confidence per vocabulary)
    4. not found (confidence 0)

Reference tables are loaded lazily, once per vocabulary per engine, and kept
until ``clear_cache()``. Results are never cached by input value.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from rapidfuzz.distance import Levenshtein

from offer_pipeline.clients.ports import VocabularyPort
from offer_pipeline.core.config import EXACT_MATCH_CONFIDENCE, FUZZY_MIN_SIMILARITY
from offer_pipeline.core.exceptions import BaseError
from offer_pipeline.models.dto import (
    FieldMappingResult,
    MappingRequest,
    MatchType,
    ReferenceEntry,
)
from offer_pipeline.processors.alias_tables import ALIAS_TABLES, AliasRule

logger = logging.getLogger(__name__)


def similarity_percent(value: str, candidate: str) -> tuple[int, float]:
    """Levenshtein distance and similarity % of two lower-cased strings."""
    distance = Levenshtein.distance(value.lower(), candidate.lower())
    max_length = max(len(value), len(candidate))
    if max_length == 0:
        return 0, 100.0
    return distance, (max_length - distance) / max_length * 100


def find_exact_match(
    entries: list[ReferenceEntry], value: str
) -> Optional[FieldMappingResult]:
    value_lower = value.lower()
    for entry in entries:
        if entry.display_name.lower() == value_lower:
            return FieldMappingResult(
                canonical_id=entry.id,
                confidence=EXACT_MATCH_CONFIDENCE,
                match_type=MatchType.EXACT,
            )
    return None


def find_fuzzy_match(
    entries: list[ReferenceEntry],
    value: str,
    min_similarity: float = FUZZY_MIN_SIMILARITY,
) -> Optional[FieldMappingResult]:
    """Closest entry by edit distance among those above ``min_similarity``."""
    best: Optional[FieldMappingResult] = None
    best_distance: Optional[int] = None

    for entry in entries:
        distance, similarity = similarity_percent(value, entry.display_name)
        if similarity > min_similarity and (best_distance is None or distance < best_distance):
            best_distance = distance
            best = FieldMappingResult(
                canonical_id=entry.id,
                confidence=round(similarity),
                match_type=MatchType.FUZZY,
            )
    return best


def find_alias_match(
    rule: Optional[AliasRule], entries: list[ReferenceEntry], value: str
) -> Optional[FieldMappingResult]:
    if rule is None:
        return None
    entry = rule.find(value, entries)
    if entry is None:
        return None
    return FieldMappingResult(
        canonical_id=entry.id, confidence=rule.confidence, match_type=MatchType.FUZZY
    )


class ReferenceMappingEngine:
    """Resolve free-text values against cached reference vocabularies.

    Args:
        vocabulary_source: Read-only vocabulary provider
        alias_tables: Vocabulary name -> alias rule
    """

    def __init__(
        self,
        vocabulary_source: VocabularyPort,
        alias_tables: Optional[dict[str, AliasRule]] = None,
    ) -> None:
        self.vocabulary_source = vocabulary_source
        self.alias_tables = ALIAS_TABLES if alias_tables is None else alias_tables
        self._cache: dict[str, list[ReferenceEntry]] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._generation = 0

    async def _load(self, vocabulary: str, generation: int) -> list[ReferenceEntry]:
        entries = await self.vocabulary_source.fetch_vocabulary(vocabulary)
        # a clear_cache() during the load makes this result stale
        if generation == self._generation:
            self._cache[vocabulary] = entries
        return entries

    def _forget_task(self, vocabulary: str, task: asyncio.Task) -> None:
        if self._inflight.get(vocabulary) is task:
            del self._inflight[vocabulary]

    async def get_table(self, vocabulary: str) -> list[ReferenceEntry]:
        """Cached table for ``vocabulary``; an empty list when it cannot be loaded."""
        cached = self._cache.get(vocabulary)
        if cached is not None:
            return cached

        # No await between the check and the registration, so concurrent
        # first callers always find the same in-flight task.
        task = self._inflight.get(vocabulary)
        if task is None:
            task = asyncio.ensure_future(self._load(vocabulary, self._generation))
            self._inflight[vocabulary] = task
            task.add_done_callback(lambda t: self._forget_task(vocabulary, t))

        try:
            return await asyncio.shield(task)
        except BaseError as e:
            logger.error(
                f"Error fetching vocabulary {vocabulary}: {e.describe()}",
                extra={"vocabulary": vocabulary, "error_code": e.error_code},
            )
            return []

    async def map_to_id(self, vocabulary: str, value: Optional[str]) -> FieldMappingResult:
        if not value or not value.strip():
            return FieldMappingResult.not_found()

        value = value.strip()
        entries = await self.get_table(vocabulary)

        result = (
            find_exact_match(entries, value)
            or find_fuzzy_match(entries, value)
            or find_alias_match(self.alias_tables.get(vocabulary), entries, value)
        )
        if result is None:
            logger.debug(
                "No reference match for %r", value, extra={"vocabulary": vocabulary}
            )
            return FieldMappingResult.not_found()
        return result

    async def map_fields(
        self, requests: list[MappingRequest]
    ) -> dict[str, FieldMappingResult]:
        """Map several values concurrently, keyed by vocabulary name."""
        results = await asyncio.gather(
            *(self.map_to_id(req.vocabulary, req.value) for req in requests)
        )
        return {req.vocabulary: result for req, result in zip(requests, results)}

    def clear_cache(self) -> None:
        """Drop all cached tables; the next access reloads from the source."""
        self._generation += 1
        self._cache.clear()
        self._inflight.clear()
