from __future__ import annotations

import asyncio
from typing import Any

import pytest

from refugeemap.errors import FetchError
from refugeemap.models import DemographicPyramid, GeoFeature, PopulationRecord, Scope


def record(name: str, count: int, code: str | None = None, year: int = 2024) -> PopulationRecord:
    return PopulationRecord(identifier_code=code, display_name=name, year=year, count=count)


def feature(code: str, name: str) -> GeoFeature:
    return GeoFeature(identifier_code=code, display_name=name, geometry={"type": "Polygon", "coordinates": []})


def population_payload(scope: Scope, rows: list[tuple[str | None, str, int | None]], year: int = 2024) -> dict[str, Any]:
    return {
        "items": [
            {scope.code_field: code, scope.name_field: name, "year": year, "refugees": count}
            for code, name, count in rows
        ]
    }


class FakeSource:
    """In-memory statistics source; `gates` hold a year's responses until set."""

    def __init__(self) -> None:
        self.population: dict[tuple[int, Scope], list[PopulationRecord] | Exception] = {}
        self.demographics: dict[tuple[int, str], DemographicPyramid | Exception] = {}
        self.gates: dict[int, asyncio.Event] = {}
        self.calls: list[tuple[int, Scope]] = []

    async def fetch_population(self, year: int, scope: Scope) -> list[PopulationRecord]:
        self.calls.append((year, scope))
        gate = self.gates.get(year)
        if gate is not None:
            await gate.wait()
        result = self.population[(year, scope)]
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def fetch_demographics(self, year: int, origin_code: str) -> DemographicPyramid:
        result = self.demographics.get((year, origin_code))
        if result is None:
            raise FetchError(f"no demographics for {origin_code}")
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def world() -> list[GeoFeature]:
    return [
        feature("USA", "United States of America"),
        feature("DEU", "Germany"),
        feature("TUR", "Turkey"),
        feature("SYR", "Syria"),
        feature("ATA", "Antarctica"),
    ]


@pytest.fixture
def source() -> FakeSource:
    fake = FakeSource()
    fake.population[(2024, Scope.ASYLUM)] = [
        record("United States of America", 900_000, "USA"),
        record("Germany", 500_000, "DEU"),
        record("Türkiye", 3_000_000),
    ]
    fake.population[(2024, Scope.ORIGIN)] = [
        record("Syrian Arab Rep.", 6_000_000, "SYR"),
        record("Germany", 100, "DEU"),
    ]
    fake.population[(2023, Scope.ASYLUM)] = [record("Germany", 42, "DEU", year=2023)]
    fake.population[(2023, Scope.ORIGIN)] = [record("Germany", 7, "DEU", year=2023)]
    return fake
