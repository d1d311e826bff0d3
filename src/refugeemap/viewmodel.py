"""View model consumed by the rendering boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .aliases import DEFAULT_ALIASES, AliasTable
from .classify import bucket_edges, classify_feature, classify_record, shared_domain_max
from .models import (
    Channel,
    ClassificationResult,
    DemographicPyramid,
    GeoFeature,
    LoadState,
    PopulationRecord,
    RankingEntry,
    Scope,
)
from .ranking import rank
from .resolver import resolve
from .session import MapSession

TOOLTIP_LABELS = {
    Scope.ASYLUM: "refugees hosted",
    Scope.ORIGIN: "refugees originating",
}
NO_DATA_TEXT = "no data"


@dataclass(frozen=True, slots=True)
class Tooltip:
    display_name: str
    count: int | str
    label: str

    @property
    def text(self) -> str:
        if isinstance(self.count, int):
            return f"{self.display_name}\n{self.count:,} {self.label}"
        return f"{self.display_name}\nNo data available"


@dataclass(frozen=True, slots=True)
class PyramidView:
    state: LoadState
    pyramid: DemographicPyramid | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class _Classified:
    records: dict[GeoFeature, PopulationRecord | None]
    buckets: dict[GeoFeature, ClassificationResult]


class MapViewModel:
    """Derives styles, tooltips, rankings and pyramids from a session.

    Per-feature matches and buckets are computed once per
    `(generation, domain_max, bucket_count)` key and scope; nothing is
    recomputed while the key is unchanged. Outside the READY state every
    feature is reported as no-data and rankings are empty.
    """

    def __init__(
        self,
        session: MapSession,
        *,
        bucket_count: int = 10,
        top_n_default: int = 10,
        aliases: AliasTable = DEFAULT_ALIASES,
    ) -> None:
        if bucket_count < 1:
            raise ValueError("bucket_count must be >= 1")
        self.session = session
        self.bucket_count = bucket_count
        self.top_n_default = top_n_default
        self.aliases = aliases
        self._cache: dict[Scope, tuple[tuple[int, int, int], _Classified]] = {}
        self.recompute_count = 0

    @property
    def load_state(self) -> LoadState:
        return self.session.load_state

    @property
    def error_message(self) -> str | None:
        return self.session.error_message

    @property
    def domain_max(self) -> int:
        dataset = self.session.dataset
        if dataset is None:
            return 0
        return shared_domain_max(dataset.host, dataset.origin)

    def legend(self) -> tuple[float, ...]:
        return bucket_edges(self.domain_max, self.bucket_count)

    def _classified(self, scope: Scope) -> _Classified | None:
        dataset = self.session.dataset
        if dataset is None:
            return None
        domain_max = self.domain_max
        key = (dataset.generation, domain_max, self.bucket_count)
        cached = self._cache.get(scope)
        if cached is not None and cached[0] == key:
            return cached[1]

        records = dataset.records_for(scope)
        matched: dict[GeoFeature, PopulationRecord | None] = {}
        buckets: dict[GeoFeature, ClassificationResult] = {}
        for feature in self.session.geography:
            record = resolve(feature, records, self.aliases)
            matched[feature] = record
            buckets[feature] = classify_record(record, domain_max=domain_max, bucket_count=self.bucket_count)
        result = _Classified(records=matched, buckets=buckets)
        self._cache[scope] = (key, result)
        self.recompute_count += 1
        return result

    def _record_for(self, feature: GeoFeature, scope: Scope) -> PopulationRecord | None:
        classified = self._classified(scope)
        if classified is None:
            return None
        if feature in classified.records:
            return classified.records[feature]
        dataset = self.session.dataset
        return resolve(feature, dataset.records_for(scope), self.aliases) if dataset else None

    def style_for(self, feature: GeoFeature, scope: Scope = Scope.ASYLUM) -> ClassificationResult:
        dataset = self.session.dataset
        classified = self._classified(scope)
        if dataset is None or classified is None:
            return ClassificationResult.no_data()
        cached = classified.buckets.get(feature)
        if cached is not None:
            return cached
        return classify_feature(
            feature,
            dataset.records_for(scope),
            domain_max=self.domain_max,
            bucket_count=self.bucket_count,
            aliases=self.aliases,
        )

    def tooltip_for(self, feature: GeoFeature, scope: Scope = Scope.ASYLUM) -> Tooltip:
        record = self._record_for(feature, scope)
        count: int | str = record.count if record is not None else NO_DATA_TEXT
        return Tooltip(display_name=feature.display_name, count=count, label=TOOLTIP_LABELS[scope])

    def top_n(self, limit: int | None = None, scope: Scope = Scope.ASYLUM) -> list[RankingEntry]:
        dataset = self.session.dataset
        if dataset is None:
            return []
        return rank(dataset.records_for(scope), self.top_n_default if limit is None else limit)

    def pyramid_for(self, selection: str) -> PyramidView:
        """Demographic pyramid for an origin code, if it is the current selection."""
        if self.session.selected_origin != selection:
            return PyramidView(state=LoadState.IDLE)
        state = self.session.channel_state(Channel.DEMOGRAPHICS)
        if state is LoadState.ERROR:
            error = self.session.channel_error(Channel.DEMOGRAPHICS)
            return PyramidView(state=state, error=str(error) if error else None)
        if state is LoadState.READY:
            return PyramidView(state=state, pyramid=self.session.pyramid)
        return PyramidView(state=state)

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready summary of the current view."""
        dataset = self.session.dataset
        payload: dict[str, Any] = {
            "state": self.load_state.value,
            "error": self.error_message,
            "year": self.session.selected_year,
            "domain_max": self.domain_max,
            "legend": list(self.legend()),
        }
        if dataset is None:
            return payload
        for scope in Scope:
            classified = self._classified(scope)
            buckets = classified.buckets if classified else {}
            payload[scope.value] = {
                "records": len(dataset.records_for(scope)),
                "top": [entry.to_dict() for entry in self.top_n(scope=scope)],
                "styles": {
                    feature.identifier_code or feature.display_name: result.bucket_index
                    for feature, result in buckets.items()
                },
            }
        return payload

