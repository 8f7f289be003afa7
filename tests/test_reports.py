from __future__ import annotations

import math
from datetime import datetime, timedelta

import pytest

from datastore.mock_store import WeatherStore
from models.ranges import Range
from models.records import Gateway, Measurement, Network, Parameter, Sensor
from services.errors import ElementNotFoundError, InvalidInputDataError
from services.histogram import DAY, HOUR
from services.reports import ReportService, parse_window_bound


@pytest.fixture()
def store() -> WeatherStore:
    store = WeatherStore()
    store.networks.put_item(Network(code="NET_01"))
    store.gateways.put_items([Gateway(code="GW_0001"), Gateway(code="GW_0002")])
    store.sensors.put_items([Sensor(code="S_000001"), Sensor(code="S_000002")])
    return store


@pytest.fixture()
def reports(store: WeatherStore) -> ReportService:
    return ReportService(store)


def _add(
    store: WeatherStore,
    timestamp: datetime,
    value: float = 1.0,
    gateway_code: str = "GW_0001",
    sensor_code: str = "S_000001",
) -> None:
    store.add_measurements(
        [
            Measurement(
                network_code="NET_01",
                gateway_code=gateway_code,
                sensor_code=sensor_code,
                value=value,
                timestamp=timestamp,
            )
        ]
    )


def test_parse_window_bound() -> None:
    assert parse_window_bound(None, datetime.min) == datetime.min
    assert parse_window_bound("2024-03-01 08:15:00", datetime.min) == datetime(2024, 3, 1, 8, 15)
    with pytest.raises(InvalidInputDataError):
        parse_window_bound("2024-03-01T08:15:00", datetime.min)


@pytest.mark.parametrize("method", ["network_report", "gateway_report", "sensor_report"])
def test_missing_code_is_invalid(reports: ReportService, method: str) -> None:
    with pytest.raises(InvalidInputDataError):
        getattr(reports, method)(None)


@pytest.mark.parametrize(
    "method, code",
    [("network_report", "NET_99"), ("gateway_report", "GW_9999"), ("sensor_report", "S_999999")],
)
def test_unknown_code_is_checked_before_dates(reports: ReportService, method: str, code: str) -> None:
    with pytest.raises(ElementNotFoundError):
        getattr(reports, method)(code, "not a date", None)


def test_malformed_date_is_invalid(reports: ReportService) -> None:
    with pytest.raises(InvalidInputDataError):
        reports.sensor_report("S_000001", None, "01/02/2024")


def test_network_report_ranks_gateways(store: WeatherStore, reports: ReportService) -> None:
    base = datetime(2024, 1, 1, 10, 15)
    for minutes in (0, 10, 20):
        _add(store, base + timedelta(minutes=minutes), gateway_code="GW_0001")
    _add(store, base + timedelta(minutes=30), gateway_code="GW_0002")

    report = reports.network_report("NET_01")

    assert report.number_of_measurements == 4
    assert report.most_active_gateways == ("GW_0001",)
    assert report.least_active_gateways == ("GW_0002",)
    assert dict(report.gateways_load_ratio) == {"GW_0001": 0.75, "GW_0002": 0.25}


def test_network_histogram_uses_observed_bounds_when_open(
    store: WeatherStore, reports: ReportService
) -> None:
    for timestamp in (
        datetime(2024, 1, 1, 10, 15),
        datetime(2024, 1, 1, 10, 45),
        datetime(2024, 1, 1, 11, 30),
        datetime(2024, 1, 1, 12, 0),
    ):
        _add(store, timestamp)

    report = reports.network_report("NET_01")

    assert report.granularity == HOUR
    assert list(report.histogram.items()) == [
        (Range(datetime(2024, 1, 1, 10, 15), datetime(2024, 1, 1, 11)), 2),
        (Range(datetime(2024, 1, 1, 11), datetime(2024, 1, 1, 12), True), 2),
    ]


def test_network_histogram_is_daily_for_long_windows(
    store: WeatherStore, reports: ReportService
) -> None:
    _add(store, datetime(2024, 1, 1, 6))
    _add(store, datetime(2024, 1, 2, 6))
    _add(store, datetime(2024, 1, 4, 6))

    report = reports.network_report("NET_01", "2024-01-01 00:00:00", "2024-01-04 12:00:00")

    assert report.granularity == DAY
    entries = report.histogram_entries()
    assert [entry.count for entry in entries] == [1, 1, 0, 1]
    assert entries[0].start == datetime(2024, 1, 1)
    assert entries[-1].end == datetime(2024, 1, 4, 12)
    assert entries[-1].is_last
    assert sum(entry.count for entry in entries) == report.number_of_measurements


def test_network_report_near_calendar_end(store: WeatherStore, reports: ReportService) -> None:
    _add(store, datetime(9999, 12, 31, 23, 0))

    report = reports.network_report("NET_01", "9999-12-31 22:00:00", "9999-12-31 23:30:00")

    assert report.granularity == HOUR
    assert [entry.count for entry in report.histogram_entries()] == [0, 1]
    assert report.histogram_entries()[-1].is_last


def test_window_bounds_are_inclusive(store: WeatherStore, reports: ReportService) -> None:
    _add(store, datetime(2024, 1, 1, 0, 0, 0))
    _add(store, datetime(2024, 1, 1, 12, 0, 0))
    _add(store, datetime(2024, 1, 1, 12, 0, 1))

    report = reports.sensor_report("S_000001", "2024-01-01 00:00:00", "2024-01-01 12:00:00")

    assert report.number_of_measurements == 2
    assert report.start_date == "2024-01-01 00:00:00"
    assert report.end_date == "2024-01-01 12:00:00"


def test_empty_network_report(reports: ReportService) -> None:
    report = reports.network_report("NET_01")

    assert report.number_of_measurements == 0
    assert report.most_active_gateways == ()
    assert report.least_active_gateways == ()
    assert dict(report.gateways_load_ratio) == {}
    assert dict(report.histogram) == {}
    assert report.start_date is None and report.end_date is None


def test_gateway_report_battery_and_outliers(store: WeatherStore, reports: ReportService) -> None:
    gateway = Gateway(
        code="GW_0001",
        parameters=[
            Parameter(code=Parameter.EXPECTED_MEAN, value=20.0),
            Parameter(code=Parameter.EXPECTED_STD_DEV, value=2.0),
            Parameter(code=Parameter.BATTERY_CHARGE, value=87.5),
        ],
    )
    store.gateways.put_item(gateway)
    start = datetime(2024, 1, 1)
    _add(store, start, 20.0, sensor_code="S_000001")
    _add(store, start + timedelta(seconds=60), 21.0, sensor_code="S_000001")
    _add(store, start + timedelta(seconds=180), 30.0, sensor_code="S_000002")
    _add(store, start + timedelta(seconds=240), 31.0, sensor_code="S_000002")

    report = reports.gateway_report("GW_0001")

    assert report.battery_charge == 87.5
    assert report.outlier_sensors == ("S_000002",)
    assert report.most_active_sensors == ("S_000001", "S_000002")
    assert dict(report.sensors_load_ratio) == {"S_000001": 0.5, "S_000002": 0.5}

    entries = report.histogram_entries()
    assert entries[0].start == timedelta(seconds=60)
    assert entries[-1].end == timedelta(seconds=120)
    assert sum(entry.count for entry in entries) == 3


def test_gateway_report_without_expected_parameters(
    store: WeatherStore, reports: ReportService
) -> None:
    _add(store, datetime(2024, 1, 1), 1000.0)
    _add(store, datetime(2024, 1, 1, 0, 1), -1000.0, sensor_code="S_000002")

    report = reports.gateway_report("GW_0001")

    assert report.outlier_sensors == ()
    assert report.battery_charge == 0.0


def test_empty_gateway_report_keeps_battery(store: WeatherStore, reports: ReportService) -> None:
    store.gateways.put_item(
        Gateway(code="GW_0002", parameters=[Parameter(code=Parameter.BATTERY_CHARGE, value=40.0)])
    )

    report = reports.gateway_report("GW_0002")

    assert report.number_of_measurements == 0
    assert report.battery_charge == 40.0
    assert report.outlier_sensors == ()
    assert dict(report.histogram) == {}


def test_sensor_report_statistics_and_outliers(store: WeatherStore, reports: ReportService) -> None:
    start = datetime(2024, 1, 1)
    for minute in range(9):
        _add(store, start + timedelta(minutes=minute), 10.0)
    _add(store, start + timedelta(minutes=9), 100.0)

    report = reports.sensor_report("S_000001")

    assert report.number_of_measurements == 10
    assert report.mean == 19.0
    assert report.variance == 810.0
    assert report.std_dev == pytest.approx(math.sqrt(810.0))
    assert report.minimum_measured_value == 10.0
    assert report.maximum_measured_value == 100.0
    assert [m.value for m in report.outliers] == [100.0]
    assert dict(report.histogram) == {Range(10.0, 10.0, True): 9}


def test_sensor_report_single_measurement(store: WeatherStore, reports: ReportService) -> None:
    _add(store, datetime(2024, 1, 1), 4.2)

    report = reports.sensor_report("S_000001")

    assert report.mean == 0.0
    assert report.variance == 0.0
    assert report.minimum_measured_value == 4.2
    assert report.maximum_measured_value == 4.2
    assert report.outliers == ()
    assert dict(report.histogram) == {Range(4.2, 4.2, True): 1}


def test_reports_are_read_only(store: WeatherStore, reports: ReportService) -> None:
    _add(store, datetime(2024, 1, 1), 1.0)
    report = reports.network_report("NET_01")

    with pytest.raises(TypeError):
        report.gateways_load_ratio["GW_0002"] = 1.0  # type: ignore[index]
    with pytest.raises(AttributeError):
        report.code = "NET_02"  # type: ignore[misc]
