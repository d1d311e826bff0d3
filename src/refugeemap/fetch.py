"""Async HTTP access to the UNHCR statistics API and the geography dataset."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

from .config import ApiConfig
from .demographics import normalize_demographics_payload
from .errors import FetchTimeoutError, NetworkError, SchemaError
from .geography import parse_geo_features
from .models import DemographicPyramid, GeoFeature, PopulationRecord, Scope
from .normalize import normalize_population

_LOGGER = logging.getLogger("refugeemap.fetch")


class UnhcrClient:
    """Thin async client; every request carries one overall deadline.

    Timeouts, transport failures, non-2xx statuses and undecodable bodies are
    translated into the library's FetchError subclasses.
    """

    def __init__(
        self,
        cfg: ApiConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cfg = cfg
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(cfg.request_timeout_s),
            headers={"User-Agent": cfg.user_agent, "Accept": "application/json"},
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self) -> UnhcrClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_json(self, url: str, *, params: Mapping[str, Any] | None = None) -> Any:
        try:
            response = await asyncio.wait_for(
                self._client.get(url, params=params),
                timeout=self.cfg.request_timeout_s,
            )
            response.raise_for_status()
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise FetchTimeoutError(
                f"Request to {url} exceeded {self.cfg.request_timeout_s:g}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise NetworkError(
                f"Request to {url} failed with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise SchemaError(f"Response from {url} is not valid JSON") from exc

    async def fetch_population(self, year: int, scope: Scope) -> list[PopulationRecord]:
        params = {"year": year, scope.query_flag: "true", "limit": self.cfg.page_size}
        payload = await self.get_json(f"{self.cfg.base_url}/population/", params=params)
        records = normalize_population(payload, year=year, scope=scope)
        _LOGGER.info("Fetched %d %s records for %d", len(records), scope.value, year)
        return records

    async def fetch_demographics(self, year: int, origin_code: str) -> DemographicPyramid:
        params = {
            "year": year,
            "coo": origin_code,
            "coa_all": "true",
            "limit": self.cfg.page_size,
        }
        payload = await self.get_json(f"{self.cfg.base_url}/demographics/", params=params)
        return normalize_demographics_payload(payload, year=year, origin_code=origin_code)

    async def fetch_geography(self, url: str) -> list[GeoFeature]:
        payload = await self.get_json(url)
        features = parse_geo_features(payload)
        _LOGGER.info("Loaded %d geography features from %s", len(features), url)
        return features
