"""Geography dataset loading: GeoJSON payloads and local vector files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from .errors import SchemaError
from .models import GeoFeature

_LOGGER = logging.getLogger("refugeemap.geography")

ISO_PROPERTY_CANDIDATES = (
    "iso_a3",
    "ISO_A3",
    "ADM0_A3",
    "ISO_A3_EH",
    "iso3",
    "ISO3",
)
NAME_PROPERTY_CANDIDATES = ("name", "NAME", "ADMIN", "NAME_EN", "name_en", "admin")


def _first_existing_key(keys: Iterable[str], candidates: Sequence[str]) -> str | None:
    existing = {str(key).lower(): str(key) for key in keys}
    for candidate in candidates:
        match = existing.get(candidate.lower())
        if match:
            return match
    return None


def _clean_iso(value: Any) -> str:
    if value is None:
        return ""
    normalized = str(value).strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        return ""
    return normalized


def parse_geo_features(payload: Any) -> list[GeoFeature]:
    """Convert a GeoJSON FeatureCollection into GeoFeatures.

    The ISO3 code is read from the first known property name and falls back
    to the feature `id`; codes that are not three letters (e.g. "-99") are
    kept as an empty code so they never match by code.
    """
    if not isinstance(payload, Mapping):
        raise SchemaError("geography: expected GeoJSON object")
    features_raw = payload.get("features")
    if not isinstance(features_raw, list):
        raise SchemaError("geography: 'features' must be a list")

    features: list[GeoFeature] = []
    skipped = 0
    for idx, raw in enumerate(features_raw):
        if not isinstance(raw, Mapping):
            raise SchemaError(f"geography: features[{idx}] must be an object")
        props = raw.get("properties") or {}
        if not isinstance(props, Mapping):
            raise SchemaError(f"geography: features[{idx}].properties must be an object")

        iso_key = _first_existing_key(props.keys(), ISO_PROPERTY_CANDIDATES)
        code = _clean_iso(props.get(iso_key)) if iso_key else ""
        if not code:
            code = _clean_iso(raw.get("id"))

        name_key = _first_existing_key(props.keys(), NAME_PROPERTY_CANDIDATES)
        name_raw = props.get(name_key) if name_key else None
        name = str(name_raw).strip() if name_raw is not None else ""

        if not code and not name:
            skipped += 1
            continue
        features.append(GeoFeature(identifier_code=code, display_name=name, geometry=raw.get("geometry")))

    if skipped:
        _LOGGER.warning("geography: skipped %d features without code or name", skipped)
    return features


class GeographyRepository:
    """Local vector dataset access (GeoJSON, shapefile, GeoPackage) via GeoPandas."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load_frame(self) -> Any:
        gpd = self._require_geopandas()
        return gpd.read_file(self.path)

    def load_features(self) -> list[GeoFeature]:
        if not self.path.exists():
            raise FileNotFoundError(f"Geography file not found: {self.path}")
        frame = self.load_frame()
        return features_from_frame(frame)

    @staticmethod
    def _require_geopandas() -> Any:
        try:
            import geopandas as gpd
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError("geopandas is required for local geography files") from exc
        return gpd


def features_from_frame(frame: Any) -> list[GeoFeature]:
    """Convert a (Geo)DataFrame into GeoFeatures, picking the best ISO3 column."""
    columns = [str(col) for col in frame.columns if str(col) != "geometry"]
    iso_col = _select_best_iso_column(frame, columns)
    name_col = _first_existing_key(columns, NAME_PROPERTY_CANDIDATES)
    if iso_col is None and name_col is None:
        cols = ", ".join(columns)
        raise SchemaError(f"geography: no ISO3 or name column found. Available columns: {cols}")

    has_geometry = "geometry" in frame.columns
    features: list[GeoFeature] = []
    for row in frame.to_dict(orient="records"):
        code = _clean_iso(row.get(iso_col)) if iso_col else ""
        name_raw = row.get(name_col) if name_col else None
        name = str(name_raw).strip() if name_raw is not None else ""
        if not code and not name:
            continue
        features.append(
            GeoFeature(
                identifier_code=code,
                display_name=name,
                geometry=row.get("geometry") if has_geometry else None,
            )
        )
    return features


def _select_best_iso_column(frame: Any, columns: Sequence[str]) -> str | None:
    """Pick the ISO3-like column with the most valid three-letter values."""
    candidates: list[str] = []
    for candidate in ISO_PROPERTY_CANDIDATES:
        match = _first_existing_key(columns, [candidate])
        if match and match not in candidates:
            candidates.append(match)
    for column in columns:
        norm = "".join(ch for ch in column.upper() if ch.isalnum())
        if "A3" in norm and column not in candidates:
            candidates.append(column)

    best_col: str | None = None
    best_score: tuple[int, int] | None = None
    for candidate in candidates:
        values = [_clean_iso(value) for value in frame[candidate].tolist()]
        valid = [value for value in values if value]
        score = (len(valid), len(set(valid)))
        if best_score is None or score > best_score:
            best_col = candidate
            best_score = score

    if best_score is None or best_score[0] == 0:
        return None
    return best_col
