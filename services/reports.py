"""Network, gateway and sensor report assembly."""

from __future__ import annotations

import logging
from datetime import datetime
from operator import attrgetter
from types import MappingProxyType
from typing import List, Optional, Tuple

from datastore.mock_store import WeatherStore
from models.records import DATE_FORMAT, Gateway, Measurement, Network, Parameter, Sensor
from models.reports import GatewayReport, NetworkReport, SensorReport
from services.aggregator import Aggregator
from services.errors import ElementNotFoundError, InvalidInputDataError
from services.histogram import (
    calendar_histogram,
    equal_width_histogram,
    inter_arrival_times,
)

logger = logging.getLogger(__name__)

_EMPTY: MappingProxyType = MappingProxyType({})


def parse_window_bound(text: Optional[str], default: datetime) -> datetime:
    """Parse a ``yyyy-MM-dd HH:mm:ss`` bound; ``None`` means unbounded."""
    if text is None:
        return default
    try:
        return datetime.strptime(text, DATE_FORMAT)
    except ValueError as exc:
        raise InvalidInputDataError(
            f"Invalid date {text!r}: expected format yyyy-MM-dd HH:mm:ss"
        ) from exc


def _within(
    measurements: List[Measurement], start: datetime, end: datetime
) -> List[Measurement]:
    return [m for m in measurements if start <= m.timestamp <= end]


class ReportService:
    """Builds read-only reports from a snapshot of the stored measurements."""

    def __init__(self, store: WeatherStore, aggregator: Optional[Aggregator] = None) -> None:
        self.store = store
        self.aggregator = aggregator or Aggregator()

    def network_report(
        self, code: Optional[str], start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> NetworkReport:
        network: Network = self._resolve(code, self.store.get_network, "Network")
        start, end = self._window(start_date, end_date)

        measurements = _within(self.store.measurements_for(network_code=network.code), start, end)
        self._log_scan("network", network.code, measurements)
        if not measurements:
            return NetworkReport(
                code=network.code,
                start_date=start_date,
                end_date=end_date,
                number_of_measurements=0,
                histogram=_EMPTY,
                most_active_gateways=(),
                least_active_gateways=(),
                gateways_load_ratio=_EMPTY,
            )

        ranking = self.aggregator.rank_activity(measurements, attrgetter("gateway_code"))
        timestamps = [m.timestamp for m in measurements]
        effective_start = start if start_date is not None else min(timestamps)
        effective_end = end if end_date is not None else max(timestamps)
        granularity, histogram = calendar_histogram(timestamps, effective_start, effective_end)

        return NetworkReport(
            code=network.code,
            start_date=start_date,
            end_date=end_date,
            number_of_measurements=len(measurements),
            histogram=MappingProxyType(histogram),
            most_active_gateways=tuple(ranking.most_active),
            least_active_gateways=tuple(ranking.least_active),
            gateways_load_ratio=MappingProxyType(ranking.load_ratio),
            granularity=granularity,
        )

    def gateway_report(
        self, code: Optional[str], start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> GatewayReport:
        gateway: Gateway = self._resolve(code, self.store.get_gateway, "Gateway")
        start, end = self._window(start_date, end_date)
        battery_charge = gateway.parameter_value(Parameter.BATTERY_CHARGE) or 0.0

        measurements = _within(self.store.measurements_for(gateway_code=gateway.code), start, end)
        self._log_scan("gateway", gateway.code, measurements)
        if not measurements:
            return GatewayReport(
                code=gateway.code,
                start_date=start_date,
                end_date=end_date,
                number_of_measurements=0,
                histogram=_EMPTY,
                most_active_sensors=(),
                least_active_sensors=(),
                sensors_load_ratio=_EMPTY,
                outlier_sensors=(),
                battery_charge=battery_charge,
            )

        by_sensor = attrgetter("sensor_code")
        ranking = self.aggregator.rank_activity(measurements, by_sensor)

        outliers: List[str] = []
        expected_mean = gateway.parameter_value(Parameter.EXPECTED_MEAN)
        expected_std_dev = gateway.parameter_value(Parameter.EXPECTED_STD_DEV)
        if expected_mean is not None and expected_std_dev is not None:
            outliers = self.aggregator.group_mean_outliers(
                measurements, by_sensor, expected_mean, expected_std_dev
            )

        durations = inter_arrival_times(m.timestamp for m in measurements)
        histogram = equal_width_histogram(durations)

        return GatewayReport(
            code=gateway.code,
            start_date=start_date,
            end_date=end_date,
            number_of_measurements=len(measurements),
            histogram=MappingProxyType(histogram),
            most_active_sensors=tuple(ranking.most_active),
            least_active_sensors=tuple(ranking.least_active),
            sensors_load_ratio=MappingProxyType(ranking.load_ratio),
            outlier_sensors=tuple(outliers),
            battery_charge=battery_charge,
        )

    def sensor_report(
        self, code: Optional[str], start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> SensorReport:
        sensor: Sensor = self._resolve(code, self.store.get_sensor, "Sensor")
        start, end = self._window(start_date, end_date)

        measurements = _within(self.store.measurements_for(sensor_code=sensor.code), start, end)
        self._log_scan("sensor", sensor.code, measurements)

        stats = self.aggregator.describe([m.value for m in measurements])
        outliers = self.aggregator.sample_outliers(measurements, stats)
        outlier_ids = {id(m) for m in outliers}
        regular_values = [m.value for m in measurements if id(m) not in outlier_ids]

        return SensorReport(
            code=sensor.code,
            start_date=start_date,
            end_date=end_date,
            number_of_measurements=len(measurements),
            histogram=MappingProxyType(equal_width_histogram(regular_values)),
            mean=stats.mean,
            variance=stats.variance,
            std_dev=stats.std_dev,
            minimum_measured_value=stats.min_value,
            maximum_measured_value=stats.max_value,
            outliers=tuple(outliers),
        )

    @staticmethod
    def _resolve(code: Optional[str], lookup, kind: str):
        if not code:
            raise InvalidInputDataError(f"{kind} code is mandatory")
        entity = lookup(code)
        if entity is None:
            raise ElementNotFoundError(f"{kind} {code} not found")
        return entity

    @staticmethod
    def _window(start_date: Optional[str], end_date: Optional[str]) -> Tuple[datetime, datetime]:
        return (
            parse_window_bound(start_date, datetime.min),
            parse_window_bound(end_date, datetime.max),
        )

    @staticmethod
    def _log_scan(kind: str, code: str, measurements: List[Measurement]) -> None:
        logger.debug(
            "Computing report",
            extra={
                "report_kind": kind,
                "entity_code": code,
                "measurement_count": len(measurements),
            },
        )
