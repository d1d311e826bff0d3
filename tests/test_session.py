from __future__ import annotations

import asyncio

import pytest
from conftest import record

from refugeemap.errors import EmptyResultError, FetchTimeoutError, NetworkError, SchemaError
from refugeemap.models import Channel, DemographicPyramid, LoadState, PyramidBand, Scope
from refugeemap.session import GEOGRAPHY_ERROR_MESSAGE, STATISTICS_ERROR_MESSAGE, MapSession


def _ready_session(source, world) -> MapSession:
    session = MapSession(source)
    session.set_geography(world)
    return session


def test_initial_state_is_idle(source):
    session = MapSession(source)
    assert session.load_state is LoadState.IDLE
    assert all(session.channel_state(channel) is LoadState.IDLE for channel in Channel)
    assert session.dataset is None


def test_select_year_reaches_ready(source, world):
    session = _ready_session(source, world)

    state = asyncio.run(session.select_year(2024))

    assert state is LoadState.READY
    assert session.dataset is not None
    assert session.dataset.year == 2024
    assert [r.display_name for r in session.dataset.host][:2] == ["United States of America", "Germany"]
    assert sorted(source.calls) == [(2024, Scope.ASYLUM), (2024, Scope.ORIGIN)]
    assert session.error_message is None


def test_loading_state_between_begin_and_apply(source, world):
    session = _ready_session(source, world)
    generation = session.begin_year(2024)
    assert session.load_state is LoadState.LOADING
    assert session.dataset is None

    session.apply_year_result(generation, host=[record("A", 1)], origin=[record("B", 2)])
    assert session.load_state is LoadState.READY


def test_ready_requires_geography(source):
    session = MapSession(source)
    asyncio.run(session.select_year(2024))
    assert session.channel_state(Channel.HOST) is LoadState.READY
    assert session.load_state is LoadState.IDLE
    assert session.dataset is None


@pytest.mark.parametrize(
    "failure",
    [NetworkError("down"), FetchTimeoutError("slow"), SchemaError("bad shape")],
)
def test_any_channel_failure_fails_closed(source, world, failure):
    source.population[(2024, Scope.ORIGIN)] = failure
    session = _ready_session(source, world)

    state = asyncio.run(session.select_year(2024))

    assert state is LoadState.ERROR
    assert session.channel_state(Channel.HOST) is LoadState.READY
    assert session.channel_state(Channel.ORIGIN) is LoadState.ERROR
    assert session.channel_error(Channel.ORIGIN) is failure
    assert session.dataset is None
    assert session.error_message == STATISTICS_ERROR_MESSAGE


def test_empty_normalized_result_is_an_error(source, world):
    source.population[(2024, Scope.ASYLUM)] = []
    session = _ready_session(source, world)

    assert asyncio.run(session.select_year(2024)) is LoadState.ERROR
    assert isinstance(session.channel_error(Channel.HOST), EmptyResultError)


def test_unexpected_exception_does_not_escape(source, world):
    source.population[(2024, Scope.ASYLUM)] = KeyError("boom")
    session = _ready_session(source, world)

    assert asyncio.run(session.select_year(2024)) is LoadState.ERROR


def test_recovers_after_error_on_next_year(source, world):
    source.population[(2023, Scope.ASYLUM)] = NetworkError("down")
    session = _ready_session(source, world)

    assert asyncio.run(session.select_year(2023)) is LoadState.ERROR
    assert asyncio.run(session.select_year(2024)) is LoadState.READY
    assert session.dataset.year == 2024


def test_stale_generation_is_discarded(source, world):
    session = _ready_session(source, world)
    old = session.begin_year(2023)
    new = session.begin_year(2024)

    applied = session.apply_year_result(old, host=[record("Old", 1)], origin=[record("Old", 1)])

    assert not applied
    assert session.load_state is LoadState.LOADING
    assert session.dataset is None

    assert session.apply_year_result(new, host=[record("New", 2)], origin=[record("New", 2)])
    assert session.dataset.host[0].display_name == "New"


def test_late_response_for_previous_year_does_not_mutate_state(source, world):
    gate = asyncio.Event()
    source.gates[2023] = gate
    session = _ready_session(source, world)

    async def scenario():
        slow = asyncio.create_task(session.select_year(2023))
        await asyncio.sleep(0)
        await session.select_year(2024)
        snapshot = session.dataset
        gate.set()
        await slow
        return snapshot

    snapshot = asyncio.run(scenario())

    assert session.selected_year == 2024
    assert session.dataset is snapshot
    assert session.dataset.year == 2024
    assert session.load_state is LoadState.READY


def test_stale_failure_does_not_flip_state_to_error(source, world):
    gate = asyncio.Event()
    source.gates[2023] = gate
    source.population[(2023, Scope.ASYLUM)] = NetworkError("down")
    session = _ready_session(source, world)

    async def scenario():
        slow = asyncio.create_task(session.select_year(2023))
        await asyncio.sleep(0)
        await session.select_year(2024)
        gate.set()
        await slow

    asyncio.run(scenario())
    assert session.load_state is LoadState.READY


def test_geography_loaded_once(source, world):
    calls = []

    async def loader():
        calls.append(1)
        return world

    session = MapSession(source, geography_loader=loader)

    async def scenario():
        await session.load_geography()
        await session.load_geography()

    asyncio.run(scenario())
    assert len(calls) == 1
    assert session.channel_state(Channel.GEOGRAPHY) is LoadState.READY


def test_geography_failure_fails_composite(source):
    async def loader():
        raise NetworkError("no map")

    session = MapSession(source, geography_loader=loader)

    async def scenario():
        await asyncio.gather(session.load_geography(), session.select_year(2024))

    asyncio.run(scenario())
    assert session.load_state is LoadState.ERROR
    assert session.error_message == GEOGRAPHY_ERROR_MESSAGE
    assert session.dataset is None


def test_empty_geography_is_an_error(source):
    async def loader():
        return []

    session = MapSession(source, geography_loader=loader)
    assert asyncio.run(session.load_geography()) is LoadState.ERROR


def _pyramid(female: int, male: int) -> DemographicPyramid:
    band = PyramidBand(age_band="0-4", female_count=female, male_count=male)
    return DemographicPyramid(bands=(band,), scale_max=max(female, male))


def test_select_region_loads_pyramid(source, world):
    source.demographics[(2024, "SYR")] = _pyramid(3, 4)
    session = _ready_session(source, world)

    async def scenario():
        await session.select_year(2024)
        return await session.select_region("SYR")

    assert asyncio.run(scenario()) is LoadState.READY
    assert session.pyramid.scale_max == 4
    assert session.load_state is LoadState.READY


def test_region_failure_does_not_affect_map(source, world):
    session = _ready_session(source, world)

    async def scenario():
        await session.select_year(2024)
        return await session.select_region("XXX")

    assert asyncio.run(scenario()) is LoadState.ERROR
    assert session.load_state is LoadState.READY
    assert session.pyramid is None


def test_stale_region_result_is_discarded(source, world):
    session = _ready_session(source, world)
    old = session.begin_region("SYR")
    session.begin_region("AFG")

    assert not session.apply_region_result(old, _pyramid(1, 1))
    assert session.pyramid is None
    assert session.selected_origin == "AFG"


def test_year_change_clears_region(source, world):
    source.demographics[(2024, "SYR")] = _pyramid(3, 4)
    session = _ready_session(source, world)

    async def scenario():
        await session.select_year(2024)
        await session.select_region("SYR")
        await session.select_year(2023)

    asyncio.run(scenario())
    assert session.pyramid is None
    assert session.channel_state(Channel.DEMOGRAPHICS) is LoadState.IDLE


def test_select_region_requires_year(source):
    with pytest.raises(RuntimeError):
        asyncio.run(MapSession(source).select_region("SYR"))


def test_geography_loader_os_error_ends_in_error(source):
    async def loader():
        raise FileNotFoundError("Geography file not found: world.shp")

    session = MapSession(source, geography_loader=loader)

    assert asyncio.run(session.load_geography()) is LoadState.ERROR
    assert session.channel_state(Channel.GEOGRAPHY) is LoadState.ERROR
    assert "FileNotFoundError" in str(session.channel_error(Channel.GEOGRAPHY))
    assert session.error_message == GEOGRAPHY_ERROR_MESSAGE


def test_apply_year_result_without_year_raises(source):
    session = MapSession(source)
    with pytest.raises(RuntimeError):
        session.apply_year_result(0, host=[record("A", 1)], origin=[record("B", 2)])
