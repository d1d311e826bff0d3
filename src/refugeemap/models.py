"""Domain models shared across pipeline modules."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class Scope(str, enum.Enum):
    """Which side of the displacement a statistic counts."""

    ASYLUM = "asylum"
    ORIGIN = "origin"

    @property
    def code_field(self) -> str:
        return "coa_iso" if self is Scope.ASYLUM else "coo_iso"

    @property
    def name_field(self) -> str:
        return "coa_name" if self is Scope.ASYLUM else "coo_name"

    @property
    def query_flag(self) -> str:
        return "coa_all" if self is Scope.ASYLUM else "coo_all"


class LoadState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class Channel(str, enum.Enum):
    HOST = "host"
    ORIGIN = "origin"
    GEOGRAPHY = "geography"
    DEMOGRAPHICS = "demographics"


class MatchTier(str, enum.Enum):
    """Resolver precedence tier that produced a match, strongest first."""

    CODE = "code"
    NAME = "name"
    CONTAINMENT = "containment"
    ALIAS = "alias"


NO_DATA = "no-data"


@dataclass(frozen=True, slots=True)
class PopulationRecord:
    """One normalized statistic row. `count` is always positive."""

    identifier_code: str | None
    display_name: str
    year: int
    count: int

    def __post_init__(self) -> None:
        if self.count <= 0:
            raise ValueError(f"PopulationRecord count must be > 0, got {self.count}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.identifier_code,
            "name": self.display_name,
            "year": self.year,
            "count": self.count,
        }


@dataclass(frozen=True, slots=True, eq=False)
class GeoFeature:
    """Region polygon from the geography dataset. Geometry is passed through untouched."""

    identifier_code: str
    display_name: str
    geometry: Any = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeoFeature):
            return NotImplemented
        return (
            self.identifier_code == other.identifier_code
            and self.display_name == other.display_name
        )

    def __hash__(self) -> int:
        return hash((self.identifier_code, self.display_name))


@dataclass(frozen=True, slots=True)
class ResolvedMatch:
    feature: GeoFeature
    record: PopulationRecord | None
    tier: MatchTier | None

    @property
    def matched(self) -> bool:
        return self.record is not None


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    bucket_index: int | str
    matched: bool

    @classmethod
    def no_data(cls) -> ClassificationResult:
        return cls(bucket_index=NO_DATA, matched=False)


@dataclass(frozen=True, slots=True)
class RankingEntry:
    record: PopulationRecord
    rank: int

    def to_dict(self) -> dict[str, Any]:
        return {"rank": self.rank, **self.record.to_dict()}


@dataclass(frozen=True, slots=True)
class PyramidBand:
    age_band: str
    female_count: int
    male_count: int


@dataclass(frozen=True, slots=True)
class DemographicPyramid:
    """Paired female/male counts per age band.

    `scale_max` is only meant for proportional bar sizing.
    """

    bands: tuple[PyramidBand, ...]
    scale_max: int

    @property
    def is_empty(self) -> bool:
        return not self.bands

    def to_dict(self) -> dict[str, Any]:
        return {
            "scale_max": self.scale_max,
            "bands": [
                {"age_band": b.age_band, "female": b.female_count, "male": b.male_count}
                for b in self.bands
            ],
        }


@dataclass(frozen=True, slots=True)
class DatasetGeneration:
    """Immutable statistics snapshot for one year selection."""

    generation: int
    year: int
    host: tuple[PopulationRecord, ...] = ()
    origin: tuple[PopulationRecord, ...] = ()

    def records_for(self, scope: Scope) -> tuple[PopulationRecord, ...]:
        return self.host if scope is Scope.ASYLUM else self.origin
