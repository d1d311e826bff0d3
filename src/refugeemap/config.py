"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml


DEFAULT_API_BASE_URL = "https://api.unhcr.org/population/v1"
DEFAULT_GEOGRAPHY_URL = (
    "https://raw.githubusercontent.com/johan/world.geo.json/master/countries.geo.json"
)


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _int_list(value: Any, field_name: str) -> tuple[int, ...]:
    if not isinstance(value, list) or not value:
        raise ValueError(f"Expected non-empty list for '{field_name}'")
    return tuple(_int(item, f"{field_name}[{idx}]") for idx, item in enumerate(value))


def _optional_path(value: Any, field_name: str, root_dir: Path) -> Path | None:
    if value is None:
        return None
    p = Path(_str(value, field_name))
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class ApiConfig:
    base_url: str
    request_timeout_s: float
    page_size: int
    user_agent: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ApiConfig:
        timeout = _float(raw.get("request_timeout_s", 5.0), "api.request_timeout_s")
        page_size = _int(raw.get("page_size", 1000), "api.page_size")
        if timeout <= 0:
            raise ValueError("api.request_timeout_s must be > 0")
        if page_size < 1:
            raise ValueError("api.page_size must be >= 1")
        return cls(
            base_url=_str(raw.get("base_url", DEFAULT_API_BASE_URL), "api.base_url").rstrip("/"),
            request_timeout_s=timeout,
            page_size=page_size,
            user_agent=_str(raw.get("user_agent", "refugee-maps/0.1"), "api.user_agent"),
        )


@dataclass(frozen=True, slots=True)
class GeographyConfig:
    url: str
    path: Path | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> GeographyConfig:
        return cls(
            url=_str(raw.get("url", DEFAULT_GEOGRAPHY_URL), "geography.url"),
            path=_optional_path(raw.get("path"), "geography.path", root_dir),
        )


@dataclass(frozen=True, slots=True)
class ClassificationConfig:
    bucket_count: int
    top_n: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ClassificationConfig:
        bucket_count = _int(raw.get("bucket_count", 10), "classification.bucket_count")
        top_n = _int(raw.get("top_n", 10), "classification.top_n")
        if bucket_count < 1:
            raise ValueError("classification.bucket_count must be >= 1")
        if top_n < 0:
            raise ValueError("classification.top_n must be >= 0")
        return cls(bucket_count=bucket_count, top_n=top_n)


@dataclass(frozen=True, slots=True)
class YearsConfig:
    available: tuple[int, ...]
    default: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> YearsConfig:
        available = _int_list(raw.get("available", [2024, 2023, 2022, 2021, 2020]), "years.available")
        default = _int(raw.get("default", available[0]), "years.default")
        if default not in available:
            raise ValueError("years.default must be one of years.available")
        return cls(available=available, default=default)


@dataclass(frozen=True, slots=True)
class PathsConfig:
    aliases: Path | None
    logs_dir: Path | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            aliases=_optional_path(raw.get("aliases"), "paths.aliases", root_dir),
            logs_dir=_optional_path(raw.get("logs_dir"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path | None
    api: ApiConfig
    geography: GeographyConfig
    classification: ClassificationConfig
    years: YearsConfig
    paths: PathsConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path | None) -> AppConfig:
        root_dir = source_path.parent.resolve() if source_path is not None else Path.cwd()
        return cls(
            source_path=source_path.resolve() if source_path is not None else None,
            api=ApiConfig.from_mapping(_mapping(raw.get("api"), "api")),
            geography=GeographyConfig.from_mapping(_mapping(raw.get("geography"), "geography"), root_dir),
            classification=ClassificationConfig.from_mapping(
                _mapping(raw.get("classification"), "classification")
            ),
            years=YearsConfig.from_mapping(_mapping(raw.get("years"), "years")),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
        )

    @classmethod
    def default(cls) -> AppConfig:
        return cls.from_mapping({}, None)


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
