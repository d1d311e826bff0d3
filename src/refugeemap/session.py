"""Load-state machine for one map session.

Every channel (host, origin, geography, demographics) moves through
`IDLE -> LOADING -> READY | ERROR` and back to `LOADING` on a new selection.
Selecting a year bumps a generation counter; results are applied through
`apply_year_result`, which drops anything tagged with an older generation no
matter when it arrives. In-flight requests are never cancelled, only
ignored.

The composite state is fail-closed: if any required channel fails for the
active year, nothing from that year is shown, even the parts that loaded.
All mutation happens on the event loop thread at await resumption points,
so no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, Sequence

from .errors import EmptyResultError, FetchError
from .models import (
    Channel,
    DatasetGeneration,
    DemographicPyramid,
    GeoFeature,
    LoadState,
    PopulationRecord,
    Scope,
)

_LOGGER = logging.getLogger("refugeemap.session")

STATISTICS_ERROR_MESSAGE = "couldn't load refugee data from UNHCR API"
GEOGRAPHY_ERROR_MESSAGE = "Failed to load map data"
DEMOGRAPHICS_ERROR_MESSAGE = "couldn't load demographic data from UNHCR API"

_USER_MESSAGES = {
    Channel.HOST: STATISTICS_ERROR_MESSAGE,
    Channel.ORIGIN: STATISTICS_ERROR_MESSAGE,
    Channel.GEOGRAPHY: GEOGRAPHY_ERROR_MESSAGE,
    Channel.DEMOGRAPHICS: DEMOGRAPHICS_ERROR_MESSAGE,
}

GeographyLoader = Callable[[], Awaitable[Sequence[GeoFeature]]]
YearResult = Sequence[PopulationRecord] | BaseException


class StatisticsSource(Protocol):
    async def fetch_population(self, year: int, scope: Scope) -> list[PopulationRecord]: ...

    async def fetch_demographics(self, year: int, origin_code: str) -> DemographicPyramid: ...


class MapSession:
    """Owns all mutable state of one interactive map session."""

    def __init__(
        self,
        source: StatisticsSource,
        *,
        geography_loader: GeographyLoader | None = None,
    ) -> None:
        self.source = source
        self._geography_loader = geography_loader
        self._states: dict[Channel, LoadState] = {channel: LoadState.IDLE for channel in Channel}
        self._errors: dict[Channel, FetchError] = {}

        self.geography: tuple[GeoFeature, ...] = ()
        self.selected_year: int | None = None
        self._generation = 0
        self._dataset: DatasetGeneration | None = None

        self.selected_origin: str | None = None
        self._demographics_generation = 0
        self.pyramid: DemographicPyramid | None = None

    # -- state ------------------------------------------------------------

    def channel_state(self, channel: Channel) -> LoadState:
        return self._states[channel]

    def channel_error(self, channel: Channel) -> FetchError | None:
        return self._errors.get(channel)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def dataset(self) -> DatasetGeneration | None:
        """Visible statistics snapshot; None unless the composite is READY."""
        if self.load_state is not LoadState.READY:
            return None
        return self._dataset

    @property
    def load_state(self) -> LoadState:
        """Composite map state across geography, host and origin."""
        required = (Channel.GEOGRAPHY, Channel.HOST, Channel.ORIGIN)
        states = [self._states[channel] for channel in required]
        if LoadState.ERROR in states:
            return LoadState.ERROR
        if LoadState.LOADING in states:
            return LoadState.LOADING
        if all(state is LoadState.READY for state in states) and self._dataset is not None:
            return LoadState.READY
        return LoadState.IDLE

    @property
    def error_message(self) -> str | None:
        for channel in (Channel.GEOGRAPHY, Channel.HOST, Channel.ORIGIN):
            if self._states[channel] is LoadState.ERROR:
                return _USER_MESSAGES[channel]
        return None

    def _set_state(self, channel: Channel, state: LoadState, error: FetchError | None = None) -> None:
        previous = self._states[channel]
        self._states[channel] = state
        if error is None:
            self._errors.pop(channel, None)
        else:
            self._errors[channel] = error
        if previous is not state:
            _LOGGER.debug("%s: %s -> %s", channel.value, previous.value, state.value)

    # -- geography --------------------------------------------------------

    async def load_geography(self) -> LoadState:
        """Load the geography channel once per session."""
        if self._states[Channel.GEOGRAPHY] is LoadState.READY:
            return LoadState.READY
        if self._geography_loader is None:
            raise RuntimeError("MapSession was created without a geography loader")

        self._set_state(Channel.GEOGRAPHY, LoadState.LOADING)
        try:
            features = await self._geography_loader()
            if not features:
                raise EmptyResultError("Geography dataset has no features")
        except Exception as exc:
            error = _as_fetch_error(exc, Channel.GEOGRAPHY)
            _LOGGER.error("Geography load failed: %s", error)
            self._set_state(Channel.GEOGRAPHY, LoadState.ERROR, error)
            return LoadState.ERROR

        self.geography = tuple(features)
        self._set_state(Channel.GEOGRAPHY, LoadState.READY)
        return LoadState.READY

    def set_geography(self, features: Sequence[GeoFeature]) -> None:
        """Install an already loaded geography dataset."""
        if not features:
            self._set_state(
                Channel.GEOGRAPHY,
                LoadState.ERROR,
                EmptyResultError("Geography dataset has no features"),
            )
            return
        self.geography = tuple(features)
        self._set_state(Channel.GEOGRAPHY, LoadState.READY)

    # -- statistics -------------------------------------------------------

    def begin_year(self, year: int) -> int:
        """Start a new generation for `year` and return its tag."""
        self._generation += 1
        self.selected_year = year
        self._dataset = None
        self._set_state(Channel.HOST, LoadState.LOADING)
        self._set_state(Channel.ORIGIN, LoadState.LOADING)

        # A pyramid belongs to a (year, origin) pair; it is stale now.
        self._demographics_generation += 1
        self.pyramid = None
        self.selected_origin = None
        self._set_state(Channel.DEMOGRAPHICS, LoadState.IDLE)

        _LOGGER.info("Loading statistics for %d (generation %d)", year, self._generation)
        return self._generation

    def apply_year_result(self, generation: int, *, host: YearResult, origin: YearResult) -> bool:
        """Apply joined host/origin results. Returns False when discarded as stale."""
        if generation != self._generation:
            _LOGGER.debug(
                "Discarding stale statistics (generation %d, active %d)",
                generation,
                self._generation,
            )
            return False

        year = self.selected_year
        if year is None:
            raise RuntimeError("apply_year_result called before begin_year")

        outcomes = {
            Channel.HOST: _as_outcome(host, Channel.HOST),
            Channel.ORIGIN: _as_outcome(origin, Channel.ORIGIN),
        }
        for channel, outcome in outcomes.items():
            if isinstance(outcome, FetchError):
                _LOGGER.error("%s statistics failed for %s: %s", channel.value, year, outcome)
                self._set_state(channel, LoadState.ERROR, outcome)
            else:
                self._set_state(channel, LoadState.READY)

        host_records = outcomes[Channel.HOST]
        origin_records = outcomes[Channel.ORIGIN]
        if isinstance(host_records, FetchError) or isinstance(origin_records, FetchError):
            self._dataset = None
            return True

        self._dataset = DatasetGeneration(
            generation=generation,
            year=year,
            host=tuple(host_records),
            origin=tuple(origin_records),
        )
        return True

    async def select_year(self, year: int) -> LoadState:
        """Fetch host and origin statistics in parallel for `year`."""
        generation = self.begin_year(year)
        host, origin = await asyncio.gather(
            self.source.fetch_population(year, Scope.ASYLUM),
            self.source.fetch_population(year, Scope.ORIGIN),
            return_exceptions=True,
        )
        self.apply_year_result(generation, host=host, origin=origin)
        return self.load_state

    # -- demographics -----------------------------------------------------

    def begin_region(self, origin_code: str) -> int:
        self._demographics_generation += 1
        self.selected_origin = origin_code
        self.pyramid = None
        self._set_state(Channel.DEMOGRAPHICS, LoadState.LOADING)
        return self._demographics_generation

    def apply_region_result(self, generation: int, result: DemographicPyramid | BaseException) -> bool:
        if generation != self._demographics_generation:
            _LOGGER.debug("Discarding stale demographics (generation %d)", generation)
            return False
        if isinstance(result, DemographicPyramid):
            self.pyramid = result
            self._set_state(Channel.DEMOGRAPHICS, LoadState.READY)
            return True
        error = _as_fetch_error(result, Channel.DEMOGRAPHICS)
        _LOGGER.error("Demographics failed for %s: %s", self.selected_origin, error)
        self._set_state(Channel.DEMOGRAPHICS, LoadState.ERROR, error)
        return True

    async def select_region(self, origin_code: str) -> LoadState:
        """Fetch the demographic pyramid for one origin in the selected year.

        Failures only affect the demographics channel, never the map.
        """
        if self.selected_year is None:
            raise RuntimeError("Select a year before selecting a region")
        year = self.selected_year
        generation = self.begin_region(origin_code)
        result: Any
        try:
            result = await self.source.fetch_demographics(year, origin_code)
        except Exception as exc:
            result = exc
        self.apply_region_result(generation, result)
        return self._states[Channel.DEMOGRAPHICS]


def _as_fetch_error(exc: BaseException, channel: Channel) -> FetchError:
    if isinstance(exc, FetchError):
        return exc
    if not isinstance(exc, Exception):
        raise exc
    _LOGGER.exception("Unexpected error while loading %s", channel.value, exc_info=exc)
    return FetchError(f"Unexpected {type(exc).__name__}: {exc}")


def _as_outcome(result: YearResult, channel: Channel) -> Sequence[PopulationRecord] | FetchError:
    if isinstance(result, BaseException):
        return _as_fetch_error(result, channel)
    if not result:
        return EmptyResultError(f"No {channel.value} records after normalization")
    return result
