"""Raw statistics payload normalization into PopulationRecord lists."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .errors import SchemaError
from .models import PopulationRecord, Scope

_LOGGER = logging.getLogger("refugeemap.normalize")


def require_items(payload: Any, *, source: str) -> list[Any]:
    """Return the `items` list of an API payload or raise SchemaError."""
    if not isinstance(payload, Mapping):
        raise SchemaError(f"{source}: expected JSON object, got {type(payload).__name__}")
    if "items" not in payload:
        raise SchemaError(f"{source}: response has no 'items' field")
    items = payload["items"]
    if not isinstance(items, list):
        raise SchemaError(f"{source}: 'items' must be a list, got {type(items).__name__}")
    return items


def _count(value: Any, *, idx: int, source: str) -> int:
    # A null/absent count is treated as zero and later dropped.
    if value is None:
        return 0
    if isinstance(value, bool):
        raise SchemaError(f"{source}: items[{idx}].refugees must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise SchemaError(f"{source}: items[{idx}].refugees must be an integer, got {value!r}")


def _optional_code(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    code = value.strip()
    return code or None


def normalize_population(
    payload: Any,
    *,
    year: int,
    scope: Scope,
) -> list[PopulationRecord]:
    """Convert a statistics response into records, dropping non-positive counts.

    Input order is preserved; the resolver and ranker rely on it for
    deterministic tie breaking.
    """
    source = f"population[{scope.value}, {year}]"
    items = require_items(payload, source=source)

    records: list[PopulationRecord] = []
    dropped = 0
    for idx, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise SchemaError(f"{source}: items[{idx}] must be an object")
        name_raw = item.get(scope.name_field)
        if not isinstance(name_raw, str) or not name_raw.strip():
            raise SchemaError(f"{source}: items[{idx}] is missing '{scope.name_field}'")

        count = _count(item.get("refugees"), idx=idx, source=source)
        if count <= 0:
            dropped += 1
            continue

        item_year = item.get("year")
        records.append(
            PopulationRecord(
                identifier_code=_optional_code(item.get(scope.code_field)),
                display_name=name_raw.strip(),
                year=item_year if isinstance(item_year, int) and not isinstance(item_year, bool) else year,
                count=count,
            )
        )

    _LOGGER.debug(
        "%s: %d records kept, %d dropped with non-positive counts",
        source,
        len(records),
        dropped,
    )
    return records


def dataset_max(records: Iterable[PopulationRecord]) -> int:
    return max((record.count for record in records), default=0)
