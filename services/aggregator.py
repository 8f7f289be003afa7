"""Aggregation logic shared by the report assemblers."""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Sequence

from models.records import Measurement

GroupKey = Callable[[Measurement], str]

OUTLIER_SIGMAS = 2.0


@dataclass
class ActivityRanking:
    """Most/least active groups and each group's share of the total."""

    most_active: List[str] = field(default_factory=list)
    least_active: List[str] = field(default_factory=list)
    load_ratio: Dict[str, float] = field(default_factory=dict)


@dataclass
class ValueStatistics:
    """Descriptive statistics for a batch of measured values."""

    count: int = 0
    mean: float = 0.0
    variance: float = 0.0
    std_dev: float = 0.0
    min_value: float = 0.0
    max_value: float = 0.0


def deviates(value: float, mean: float, std_dev: float, sigmas: float = OUTLIER_SIGMAS) -> bool:
    return abs(value - mean) >= sigmas * std_dev


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def rank_activity(
        self, measurements: Iterable[Measurement], key: GroupKey
    ) -> ActivityRanking:
        counts = Counter(key(measurement) for measurement in measurements)
        total = sum(counts.values())
        if not total:
            return ActivityRanking()

        highest = max(counts.values())
        lowest = min(counts.values())
        return ActivityRanking(
            most_active=sorted(code for code, count in counts.items() if count == highest),
            least_active=sorted(code for code, count in counts.items() if count == lowest),
            load_ratio={code: count / total for code, count in sorted(counts.items())},
        )

    def describe(self, values: Sequence[float]) -> ValueStatistics:
        """Mean and Bessel-corrected variance; both stay 0 below two values.

        ``min_value`` and ``max_value`` are filled from a single value too.
        """
        if not values:
            return ValueStatistics()

        stats = ValueStatistics(
            count=len(values),
            min_value=min(values),
            max_value=max(values),
        )
        if stats.count < 2:
            return stats

        stats.mean = math.fsum(values) / stats.count
        stats.variance = math.fsum((value - stats.mean) ** 2 for value in values) / (
            stats.count - 1
        )
        stats.std_dev = math.sqrt(stats.variance)
        return stats

    def group_mean_outliers(
        self,
        measurements: Iterable[Measurement],
        key: GroupKey,
        expected_mean: float,
        expected_std_dev: float,
    ) -> List[str]:
        """Groups whose mean value drifts at least two expected deviations away."""
        grouped: Dict[str, List[float]] = defaultdict(list)
        for measurement in measurements:
            grouped[key(measurement)].append(measurement.value)

        return sorted(
            code
            for code, values in grouped.items()
            if deviates(math.fsum(values) / len(values), expected_mean, expected_std_dev)
        )

    def sample_outliers(
        self, measurements: Iterable[Measurement], stats: ValueStatistics
    ) -> List[Measurement]:
        # Undefined below two samples; a zero deviation flags nothing.
        if stats.count < 2 or stats.std_dev == 0:
            return []
        return [
            measurement
            for measurement in measurements
            if deviates(measurement.value, stats.mean, stats.std_dev)
        ]
