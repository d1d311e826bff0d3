"""Matching geography features to population records.

Datasets disagree on how regions are identified: the geography carries ISO3
codes and English names, the statistics API carries its own codes and
official names ("Türkiye", "Iran (Islamic Rep. of)"), and some records have
no code at all. Matching runs through four tiers and the first tier that
finds anything wins:

1. identical ISO3 code (case-sensitive),
2. identical display name,
3. one display name contains the other,
4. both names sit in the same alias class.

Each tier scans the records in input order and returns the first hit, so the
result only depends on the `(feature, records)` pair. No scoring is applied
across tiers: a code match beats a better-looking name match.
"""

from __future__ import annotations

from typing import Callable, Iterable, Sequence

from .aliases import DEFAULT_ALIASES, AliasTable
from .models import GeoFeature, MatchTier, PopulationRecord, ResolvedMatch

_Predicate = Callable[[GeoFeature, PopulationRecord, AliasTable], bool]


def _same_code(feature: GeoFeature, record: PopulationRecord, aliases: AliasTable) -> bool:
    return bool(feature.identifier_code) and record.identifier_code == feature.identifier_code


def _same_name(feature: GeoFeature, record: PopulationRecord, aliases: AliasTable) -> bool:
    return bool(feature.display_name) and record.display_name == feature.display_name


def _contains(feature: GeoFeature, record: PopulationRecord, aliases: AliasTable) -> bool:
    left = feature.display_name
    right = record.display_name
    if not left or not right:
        return False
    return left in right or right in left


def _aliased(feature: GeoFeature, record: PopulationRecord, aliases: AliasTable) -> bool:
    return aliases.equivalent(feature.display_name, record.display_name)


_TIERS: tuple[tuple[MatchTier, _Predicate], ...] = (
    (MatchTier.CODE, _same_code),
    (MatchTier.NAME, _same_name),
    (MatchTier.CONTAINMENT, _contains),
    (MatchTier.ALIAS, _aliased),
)


def resolve_match(
    feature: GeoFeature,
    records: Sequence[PopulationRecord],
    aliases: AliasTable = DEFAULT_ALIASES,
) -> ResolvedMatch:
    for tier, predicate in _TIERS:
        for record in records:
            if predicate(feature, record, aliases):
                return ResolvedMatch(feature=feature, record=record, tier=tier)
    return ResolvedMatch(feature=feature, record=None, tier=None)


def resolve(
    feature: GeoFeature,
    records: Sequence[PopulationRecord],
    aliases: AliasTable = DEFAULT_ALIASES,
) -> PopulationRecord | None:
    """Return the record matching `feature`, or None when nothing matches."""
    return resolve_match(feature, records, aliases).record


def resolve_all(
    features: Iterable[GeoFeature],
    records: Sequence[PopulationRecord],
    aliases: AliasTable = DEFAULT_ALIASES,
) -> list[ResolvedMatch]:
    return [resolve_match(feature, records, aliases) for feature in features]
