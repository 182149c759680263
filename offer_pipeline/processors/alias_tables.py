"""
Hand-curated synonym groups per reference vocabulary.

Each rule lists groups of ``(canonical_key, aliases)``. A group applies when
the input contains the trigger terms; the vocabulary entry chosen is the first
one whose display name contains the group's match terms. ``match_aliases``
controls whether aliases also count as match terms (brand names) or only the
canonical key does (fuel and transmission categories).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from offer_pipeline.core.config import (
    BRAND_ALIAS_CONFIDENCE,
    FUEL_ALIAS_CONFIDENCE,
    TRANSMISSION_ALIAS_CONFIDENCE,
)
from offer_pipeline.models.dto import ReferenceEntry


@dataclass(frozen=True)
class AliasGroup:
    canonical_key: str
    aliases: tuple[str, ...]


@dataclass(frozen=True)
class AliasRule:
    confidence: int
    groups: tuple[AliasGroup, ...]
    trigger_on_key: bool = False
    match_aliases: bool = False

    def _triggers(self, group: AliasGroup) -> tuple[str, ...]:
        if self.trigger_on_key:
            return (group.canonical_key,) + group.aliases
        return group.aliases

    def _match_terms(self, group: AliasGroup) -> tuple[str, ...]:
        if self.match_aliases:
            return group.aliases + (group.canonical_key,)
        return (group.canonical_key,)

    def find(self, value: str, entries: Iterable[ReferenceEntry]) -> Optional[ReferenceEntry]:
        value_lower = value.lower()
        entries = list(entries)
        for group in self.groups:
            if not any(term in value_lower for term in self._triggers(group)):
                continue
            terms = self._match_terms(group)
            for entry in entries:
                name = entry.display_name.lower()
                if any(term in name for term in terms):
                    return entry
        return None


def _groups(table: dict[str, list[str]]) -> tuple[AliasGroup, ...]:
    return tuple(AliasGroup(key, tuple(aliases)) for key, aliases in table.items())


BRAND_ALIASES = _groups(
    {
        "mercedes": ["mercedes-benz", "mercedes benz", "mb"],
        "volkswagen": ["vw", "volkswagen"],
        "bmw": ["bayerische motoren werke"],
        "vw": ["volkswagen"],
        "mb": ["mercedes-benz", "mercedes"],
    }
)

FUEL_ALIASES = _groups(
    {
        "benzin": ["benzin", "petrol", "gasoline", "super"],
        "diesel": ["diesel", "dieselmotor"],
        "elektro": ["elektro", "electric", "ev", "bev"],
        "hybrid": ["hybrid", "plug-in hybrid", "phev"],
        "gas": ["gas", "lpg", "cng", "erdgas"],
    }
)

TRANSMISSION_ALIASES = _groups(
    {
        "automatik": ["automatik", "automatic", "auto", "automatikgetriebe", "dsg", "dct"],
        "manuell": ["manuell", "manual", "schaltgetriebe", "handschaltung", "6-gang"],
        "sequentiell": ["sequentiell", "sequential", "smg"],
    }
)

ALIAS_TABLES: dict[str, AliasRule] = {
    "makes": AliasRule(
        confidence=BRAND_ALIAS_CONFIDENCE,
        groups=BRAND_ALIASES,
        trigger_on_key=True,
        match_aliases=True,
    ),
    "fuel_types": AliasRule(confidence=FUEL_ALIAS_CONFIDENCE, groups=FUEL_ALIASES),
    "transmission_types": AliasRule(
        confidence=TRANSMISSION_ALIAS_CONFIDENCE, groups=TRANSMISSION_ALIASES
    ),
}
