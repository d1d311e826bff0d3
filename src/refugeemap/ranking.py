"""Top-N ranking of population records."""

from __future__ import annotations

from typing import Sequence

from .models import PopulationRecord, RankingEntry


def rank(records: Sequence[PopulationRecord], limit: int) -> list[RankingEntry]:
    """Return at most `limit` records by descending count, ranked from 1.

    `sorted` is stable, so equal counts keep their input order.
    """
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    ordered = sorted(records, key=lambda record: record.count, reverse=True)
    return [
        RankingEntry(record=record, rank=position)
        for position, record in enumerate(ordered[:limit], start=1)
    ]
