"""Coverage report: how geography features resolve against a dataset."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from .aliases import DEFAULT_ALIASES, AliasTable
from .models import GeoFeature, PopulationRecord, ResolvedMatch, Scope
from .resolver import resolve_all


@dataclass(slots=True)
class CoverageReport:
    scope: Scope
    year: int
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    tier_counts: dict[str, int] = field(default_factory=dict)
    unmatched_features: list[str] = field(default_factory=list)
    unused_records: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope.value,
            "year": self.year,
            "tier_counts": dict(self.tier_counts),
            "unmatched_features": list(self.unmatched_features),
            "unused_records": list(self.unused_records),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def build_coverage_report(
    features: Sequence[GeoFeature],
    records: Sequence[PopulationRecord],
    *,
    scope: Scope,
    year: int,
    aliases: AliasTable = DEFAULT_ALIASES,
) -> CoverageReport:
    report = CoverageReport(scope=scope, year=year)
    matches = resolve_all(features, records, aliases)

    tiers = Counter(match.tier.value for match in matches if match.tier is not None)
    report.tier_counts = dict(sorted(tiers.items()))
    report.unmatched_features = sorted(_feature_label(m) for m in matches if not m.matched)

    used = {id(match.record) for match in matches if match.record is not None}
    report.unused_records = [
        f"{record.identifier_code or '-'}({record.display_name})"
        for record in records
        if id(record) not in used
    ]

    matched_total = sum(tiers.values())
    report.add_info(
        f"Coverage {scope.value} {year}: features={len(features)}, records={len(records)}, "
        f"matched={matched_total}, unmatched={len(report.unmatched_features)}"
    )
    if tiers:
        report.add_info(
            "Matches by tier: " + ", ".join(f"{tier}={count}" for tier, count in report.tier_counts.items())
        )
    if report.unmatched_features:
        report.add_warning("Features without data: " + _format_code_list(report.unmatched_features))
    if report.unused_records:
        report.add_warning("Records not shown on the map: " + _format_code_list(report.unused_records))
    if features and matched_total == 0:
        report.add_error("No geography feature matched any record.")
    return report


def _feature_label(match: ResolvedMatch) -> str:
    feature = match.feature
    return f"{feature.identifier_code or '-'}({feature.display_name})"


def _format_code_list(values: list[str], limit: int = 12) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    shown = ", ".join(values[:limit])
    return f"{shown}, ... (+{len(values) - limit} more)"


def format_report_lines(report: CoverageReport) -> Iterable[str]:
    for info in report.infos:
        yield f"[INFO] {info}"
    for warning in report.warnings:
        yield f"[WARN] {warning}"
    for error in report.errors:
        yield f"[ERROR] {error}"
    if report.ok:
        yield "[OK] Coverage check completed with no errors."
