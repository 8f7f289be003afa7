"""Immutable report values returned by the report service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, List, Mapping, NamedTuple, Optional, Tuple, TypeVar

from models.ranges import Range
from models.records import Measurement

T = TypeVar("T")


class HistogramEntry(NamedTuple):
    start: object
    end: object
    is_last: bool
    count: int


@dataclass(frozen=True)
class Report(Generic[T]):
    """Fields shared by every report.

    ``start_date`` and ``end_date`` echo the caller's input verbatim (``None``
    for an open bound). ``histogram`` is ordered by ascending bucket start.
    """

    code: str
    start_date: Optional[str]
    end_date: Optional[str]
    number_of_measurements: int
    histogram: Mapping[Range[T], int]

    def histogram_entries(self) -> List[HistogramEntry]:
        return [
            HistogramEntry(bucket.start, bucket.end, bucket.is_last, count)
            for bucket, count in self.histogram.items()
        ]


@dataclass(frozen=True)
class NetworkReport(Report[datetime]):
    most_active_gateways: Tuple[str, ...]
    least_active_gateways: Tuple[str, ...]
    gateways_load_ratio: Mapping[str, float]
    granularity: Optional[str] = None


@dataclass(frozen=True)
class GatewayReport(Report[timedelta]):
    """Gateway statistics; the histogram counts inter-arrival durations.

    ``battery_charge`` reflects the current ``BATTERY_CHARGE`` parameter and
    ignores the requested window.
    """

    most_active_sensors: Tuple[str, ...]
    least_active_sensors: Tuple[str, ...]
    sensors_load_ratio: Mapping[str, float]
    outlier_sensors: Tuple[str, ...]
    battery_charge: float


@dataclass(frozen=True)
class SensorReport(Report[float]):
    """Sensor statistics; the histogram counts non-outlier values."""

    mean: float
    variance: float
    std_dev: float
    minimum_measured_value: float
    maximum_measured_value: float
    outliers: Tuple[Measurement, ...]
