"""Bucketing strategies used by the report histograms."""

from __future__ import annotations

from bisect import bisect_right
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple, TypeVar

from models.ranges import Range

T = TypeVar("T")

BUCKET_COUNT = 20
HOURLY_WINDOW_LIMIT = timedelta(hours=48)

HOUR = "hour"
DAY = "day"


def count_into_buckets(buckets: Sequence[Range[T]], samples: Iterable[T]) -> Dict[Range[T], int]:
    """Count samples per bucket, keeping every bucket (empty ones included) in order."""
    ordered = sorted(buckets)
    histogram: Dict[Range[T], int] = {bucket: 0 for bucket in ordered}
    starts = [bucket.start for bucket in ordered]
    for sample in samples:
        index = bisect_right(starts, sample) - 1
        if index >= 0 and ordered[index].contains(sample):
            histogram[ordered[index]] += 1
    return histogram


def _edges(low: T, high: T, bucket_count: int) -> List[T]:
    span = high - low  # type: ignore[operator]
    edges: List[T] = []
    for index in range(bucket_count):
        edge = low + span * index / bucket_count  # type: ignore[operator]
        if not edges or edges[-1] < edge < high:
            edges.append(edge)
    if edges[-1] < high:  # type: ignore[operator]
        edges.append(high)
    return edges


def equal_width_buckets(low: T, high: T, bucket_count: int = BUCKET_COUNT) -> List[Range[T]]:
    """Split ``[low, high]`` into ``bucket_count`` contiguous buckets of equal width.

    Works for any unit that supports subtraction, addition and scaling by a
    number (``float``, ``timedelta``). Bucket edges are computed from the span
    rather than by accumulating a rounded width, so the last edge is exactly
    ``high``. Edges that collapse onto each other (identical samples, or a span
    too small for the unit's resolution) are merged; a zero span produces one
    closed bucket ``[low, low]``.
    """
    if bucket_count < 1:
        raise ValueError("bucket_count must be positive")
    edges = _edges(low, high, bucket_count)
    if len(edges) == 1:
        return [Range(low, high, True)]
    pairs = list(zip(edges, edges[1:]))
    return [
        Range(start, end, index == len(pairs) - 1)
        for index, (start, end) in enumerate(pairs)
    ]


def equal_width_histogram(
    samples: Sequence[T], bucket_count: int = BUCKET_COUNT
) -> Dict[Range[T], int]:
    if not samples:
        return {}
    buckets = equal_width_buckets(min(samples), max(samples), bucket_count)
    return count_into_buckets(buckets, samples)


def inter_arrival_times(timestamps: Iterable[datetime]) -> List[timedelta]:
    ordered = sorted(timestamps)
    return [later - earlier for earlier, later in zip(ordered, ordered[1:])]


def calendar_granularity(effective_start: datetime, effective_end: datetime) -> str:
    if effective_end - effective_start <= HOURLY_WINDOW_LIMIT:
        return HOUR
    return DAY


def _next_unit_start(moment: datetime, granularity: str) -> datetime:
    if granularity == HOUR:
        unit_start = moment.replace(minute=0, second=0, microsecond=0)
        step = timedelta(hours=1)
    else:
        unit_start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
        step = timedelta(days=1)
    # The last unit of the calendar has no successor; datetime.max closes it.
    if datetime.max - unit_start < step:
        return datetime.max
    return unit_start + step


def calendar_buckets(
    effective_start: datetime, effective_end: datetime
) -> Tuple[str, List[Range[datetime]]]:
    """Cut ``[effective_start, effective_end]`` along hour or day boundaries.

    Windows up to 48 hours use hourly buckets, longer ones daily buckets. Inner
    buckets cover a whole calendar unit ``[HH:00:00, HH+1:00:00)``; the first
    bucket starts at ``effective_start`` and the last one is closed at
    ``effective_end``.

    Every bucket is materialised up front, so a daily window spanning the
    whole calendar yields millions of buckets.
    """
    granularity = calendar_granularity(effective_start, effective_end)
    buckets: List[Range[datetime]] = []
    cursor = effective_start
    while True:
        boundary = _next_unit_start(cursor, granularity)
        if boundary >= effective_end:
            buckets.append(Range(cursor, effective_end, True))
            return granularity, buckets
        buckets.append(Range(cursor, boundary))
        cursor = boundary


def calendar_histogram(
    timestamps: Sequence[datetime], effective_start: datetime, effective_end: datetime
) -> Tuple[str, Dict[Range[datetime], int]]:
    granularity, buckets = calendar_buckets(effective_start, effective_end)
    return granularity, count_into_buckets(buckets, timestamps)
