"""Reshape sex x age-band statistic rows into a two-sided pyramid."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

from .models import DemographicPyramid, PyramidBand
from .normalize import require_items

# (display label, field suffix) in display order.
AGE_BANDS: tuple[tuple[str, str], ...] = (
    ("0-4", "0_4"),
    ("5-11", "5_11"),
    ("12-17", "12_17"),
    ("18-59", "18_59"),
    ("60+", "60"),
)
_SEX_PREFIX = {"F": "f_", "M": "m_"}


def _as_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return max(int(value), 0)
    if isinstance(value, str):
        try:
            return max(int(value.strip()), 0)
        except ValueError:
            return 0
    return 0


def _row_counts(row: Mapping[str, Any], sex: str, suffix: str) -> int:
    """Count for one sex/band in a row, accepting tagged or prefixed fields."""
    prefix = _SEX_PREFIX[sex]
    tag = row.get("sex")
    if isinstance(tag, str) and tag.strip():
        if tag.strip().upper() != sex:
            return 0
        if suffix in row:
            return _as_count(row.get(suffix))
    return _as_count(row.get(f"{prefix}{suffix}"))


def reshape_demographics(rows: Iterable[Mapping[str, Any]]) -> DemographicPyramid:
    """Sum female and male counts per canonical age band over all rows.

    Missing rows and fields count as zero. Empty input yields a pyramid with
    no bands and `scale_max == 0`.
    """
    rows = [row for row in rows if isinstance(row, Mapping)]
    if not rows:
        return DemographicPyramid(bands=(), scale_max=0)

    bands: list[PyramidBand] = []
    for label, suffix in AGE_BANDS:
        female = sum(_row_counts(row, "F", suffix) for row in rows)
        male = sum(_row_counts(row, "M", suffix) for row in rows)
        bands.append(PyramidBand(age_band=label, female_count=female, male_count=male))

    scale_max = max(max(band.female_count, band.male_count) for band in bands)
    return DemographicPyramid(bands=tuple(bands), scale_max=scale_max)


def normalize_demographics_payload(payload: Any, *, year: int, origin_code: str) -> DemographicPyramid:
    items = require_items(payload, source=f"demographics[{origin_code}, {year}]")
    return reshape_demographics(items)


def bar_fraction(count: int, scale_max: int) -> float:
    """Proportional bar length in [0, 1]; zero when there is nothing to scale."""
    if scale_max <= 0 or count <= 0:
        return 0.0
    return min(count / scale_max, 1.0)
