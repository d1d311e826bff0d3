"""CLI entrypoint for inspecting refugee map datasets from a terminal."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from .aliases import AliasTable, load_alias_table
from .config import AppConfig, load_config
from .demographics import bar_fraction
from .fetch import UnhcrClient
from .geography import GeographyRepository
from .models import Channel, GeoFeature, LoadState, RankingEntry, Scope
from .report import build_coverage_report, format_report_lines
from .session import GeographyLoader, MapSession
from .util import setup_logging, write_json
from .viewmodel import MapViewModel

LOGGER = logging.getLogger("refugeemap.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="refugeemap",
        description="Refugee population map data inspection.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")
        p.add_argument("--year", type=int, default=None, help="Statistics year (default from config).")

    report_p = subparsers.add_parser(
        "report",
        help="Load geography and statistics for a year and print the top-N tables.",
    )
    add_common(report_p)
    report_p.add_argument("--limit", type=int, default=None, help="Rows per ranking table.")
    report_p.add_argument("--json", type=Path, default=None, help="Write the view snapshot as JSON.")

    coverage_p = subparsers.add_parser(
        "coverage",
        help="Show how geography features resolve against one statistics dataset.",
    )
    add_common(coverage_p)
    coverage_p.add_argument(
        "--scope",
        choices=[scope.value for scope in Scope],
        default=Scope.ASYLUM.value,
        help="Which dataset to resolve against.",
    )
    coverage_p.add_argument("--json", type=Path, default=None, help="Write the report as JSON.")

    pyramid_p = subparsers.add_parser("pyramid", help="Print the demographic pyramid for an origin.")
    add_common(pyramid_p)
    pyramid_p.add_argument("--origin", required=True, help="ISO3 code of the origin country.")

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    config_path = Path(args.config)
    cfg = load_config(config_path) if config_path.exists() else AppConfig.default()
    log_path = cfg.paths.logs_dir / "refugeemap.log" if cfg.paths.logs_dir else None
    setup_logging(log_path, verbose=args.verbose)
    if not config_path.exists():
        LOGGER.info("Config %s not found; using built-in defaults.", config_path)
    return cfg


def _resolve_year(cfg: AppConfig, requested: int | None) -> int:
    year = cfg.years.default if requested is None else requested
    if year not in cfg.years.available:
        LOGGER.warning("Year %d is not in the configured year list %s", year, list(cfg.years.available))
    return year


def _geography_loader(cfg: AppConfig, client: UnhcrClient) -> GeographyLoader:
    path = cfg.geography.path
    if path is not None:
        repo = GeographyRepository(path)

        async def load_local() -> list[GeoFeature]:
            return await asyncio.to_thread(repo.load_features)

        return load_local

    url = cfg.geography.url

    async def load_remote() -> list[GeoFeature]:
        return await client.fetch_geography(url)

    return load_remote


def _ranking_lines(title: str, entries: Sequence[RankingEntry]) -> list[str]:
    lines = [title]
    for entry in entries:
        lines.append(f"  {entry.rank:>3}. {entry.record.display_name:<40} {entry.record.count:>12,}")
    if not entries:
        lines.append("  (no data)")
    return lines


async def _run_report(
    cfg: AppConfig,
    aliases: AliasTable,
    *,
    year: int,
    limit: int | None,
    json_path: Path | None,
) -> int:
    async with UnhcrClient(cfg.api) as client:
        session = MapSession(client, geography_loader=_geography_loader(cfg, client))
        view = MapViewModel(
            session,
            bucket_count=cfg.classification.bucket_count,
            top_n_default=cfg.classification.top_n,
            aliases=aliases,
        )
        await asyncio.gather(session.load_geography(), session.select_year(year))

    if view.load_state is not LoadState.READY:
        LOGGER.error("Map data unavailable for %d: %s", year, view.error_message)
        return 1

    for line in _ranking_lines(f"Top refugee hosting countries ({year})", view.top_n(limit, Scope.ASYLUM)):
        LOGGER.info(line)
    for line in _ranking_lines(f"Top refugee origin countries ({year})", view.top_n(limit, Scope.ORIGIN)):
        LOGGER.info(line)
    LOGGER.info("Shared domain max: %s over %d buckets", f"{view.domain_max:,}", view.bucket_count)

    if json_path is not None:
        write_json(json_path, view.snapshot())
        LOGGER.info("View snapshot written to %s", json_path)
    return 0


async def _run_coverage(
    cfg: AppConfig,
    aliases: AliasTable,
    *,
    year: int,
    scope: Scope,
    json_path: Path | None,
) -> int:
    async with UnhcrClient(cfg.api) as client:
        session = MapSession(client, geography_loader=_geography_loader(cfg, client))
        await asyncio.gather(session.load_geography(), session.select_year(year))

    dataset = session.dataset
    if dataset is None:
        LOGGER.error("Map data unavailable for %d: %s", year, session.error_message)
        return 1

    report = build_coverage_report(
        session.geography,
        dataset.records_for(scope),
        scope=scope,
        year=year,
        aliases=aliases,
    )
    for line in format_report_lines(report):
        LOGGER.info(line)
    if json_path is not None:
        write_json(json_path, report.to_dict())
        LOGGER.info("Coverage report written to %s", json_path)
    return 0 if report.ok else 1


async def _run_pyramid(cfg: AppConfig, *, year: int, origin: str) -> int:
    async with UnhcrClient(cfg.api) as client:
        session = MapSession(client)
        session.begin_year(year)
        state = await session.select_region(origin.strip().upper())

    if state is LoadState.ERROR:
        LOGGER.error(
            "Demographics unavailable for %s in %d: %s",
            origin,
            year,
            session.channel_error(Channel.DEMOGRAPHICS),
        )
        return 1
    pyramid = session.pyramid
    if pyramid is None or pyramid.is_empty:
        LOGGER.info("No demographic rows for %s in %d.", origin, year)
        return 0

    LOGGER.info("Demographics for %s (%d), scale max %s", origin, year, f"{pyramid.scale_max:,}")
    width = 20
    for band in pyramid.bands:
        female_bar = "#" * round(bar_fraction(band.female_count, pyramid.scale_max) * width)
        male_bar = "#" * round(bar_fraction(band.male_count, pyramid.scale_max) * width)
        LOGGER.info(
            "%6s  F %12s %*s|%-*s %12s M",
            band.age_band,
            f"{band.female_count:,}",
            width,
            female_bar,
            width,
            male_bar,
            f"{band.male_count:,}",
        )
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    year = _resolve_year(cfg, args.year)
    try:
        aliases = load_alias_table(cfg.paths.aliases)
    except ValueError as exc:
        LOGGER.error("Failed loading alias table '%s': %s", cfg.paths.aliases, exc)
        return 1

    try:
        if command == "report":
            return asyncio.run(
                _run_report(cfg, aliases, year=year, limit=args.limit, json_path=args.json)
            )
        if command == "coverage":
            return asyncio.run(
                _run_coverage(cfg, aliases, year=year, scope=Scope(args.scope), json_path=args.json)
            )
        if command == "pyramid":
            return asyncio.run(_run_pyramid(cfg, year=year, origin=str(args.origin)))
    except (FileNotFoundError, RuntimeError) as exc:
        LOGGER.error("%s failed: %s", command, exc)
        return 1
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
