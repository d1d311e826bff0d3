"""Equal-width quantization of counts into ordered choropleth buckets."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from .aliases import DEFAULT_ALIASES, AliasTable
from .models import ClassificationResult, GeoFeature, PopulationRecord
from .normalize import dataset_max
from .resolver import resolve


def _check_bucket_count(bucket_count: int) -> None:
    if bucket_count < 1:
        raise ValueError(f"bucket_count must be >= 1, got {bucket_count}")


def classify(count: float, domain_max: float, bucket_count: int) -> int:
    """Map `count` to a bucket in `[0, bucket_count - 1]`.

    Intervals are `[i*d/k, (i+1)*d/k)` with the last one closed so that
    `domain_max` lands in the top bucket. Out-of-domain counts clamp to the
    edge buckets. A non-positive `domain_max` (nothing loaded) puts every
    count in bucket 0.
    """
    _check_bucket_count(bucket_count)
    if domain_max <= 0 or count <= 0:
        return 0
    if count >= domain_max:
        return bucket_count - 1
    index = math.floor(count * bucket_count / domain_max)
    return min(max(index, 0), bucket_count - 1)


def classify_feature(
    feature: GeoFeature,
    records: Sequence[PopulationRecord],
    *,
    domain_max: float,
    bucket_count: int,
    aliases: AliasTable = DEFAULT_ALIASES,
) -> ClassificationResult:
    record = resolve(feature, records, aliases)
    return classify_record(record, domain_max=domain_max, bucket_count=bucket_count)


def classify_record(
    record: PopulationRecord | None,
    *,
    domain_max: float,
    bucket_count: int,
) -> ClassificationResult:
    """Bucket for an already resolved record; None means no data."""
    if record is None:
        return ClassificationResult.no_data()
    return ClassificationResult(
        bucket_index=classify(record.count, domain_max, bucket_count),
        matched=True,
    )


def bucket_edges(domain_max: float, bucket_count: int) -> tuple[float, ...]:
    """Interval boundaries for a legend, `bucket_count + 1` values."""
    _check_bucket_count(bucket_count)
    if domain_max <= 0:
        return tuple(0.0 for _ in range(bucket_count + 1))
    step = domain_max / bucket_count
    edges = [i * step for i in range(bucket_count)]
    edges.append(float(domain_max))
    return tuple(edges)


def shared_domain_max(*datasets: Iterable[PopulationRecord]) -> int:
    """Largest count across several datasets so their maps share one scale."""
    return max((dataset_max(records) for records in datasets), default=0)
