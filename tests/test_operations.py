from __future__ import annotations

import logging

import pytest

from datastore.mock_store import WeatherStore
from models.records import ThresholdType, UserType
from services.errors import (
    ElementNotFoundError,
    IdAlreadyInUseError,
    InvalidInputDataError,
    UnauthorizedError,
)
from services.importer import ImportService
from services.weather_report import WeatherReport
from storage.uploads import UploadBucket

MAINTAINER = "maintainer"
VIEWER = "viewer"


@pytest.fixture()
def facade() -> WeatherReport:
    store = WeatherStore()
    importer = ImportService(bucket=UploadBucket(), store=store, workers=1)
    facade = WeatherReport(store=store, importer=importer)
    facade.users.create_user(MAINTAINER, UserType.MAINTAINER)
    facade.users.create_user(VIEWER, UserType.VIEWER)
    yield facade
    facade.shutdown()


def test_create_user_rejects_duplicates(facade: WeatherReport) -> None:
    with pytest.raises(IdAlreadyInUseError):
        facade.users.create_user(VIEWER)
    with pytest.raises(InvalidInputDataError):
        facade.users.create_user(None)
    assert facade.users.get_user(MAINTAINER).type is UserType.MAINTAINER


def test_maintainer_gate(facade: WeatherReport) -> None:
    with pytest.raises(InvalidInputDataError):
        facade.networks.create_network("NET_01", None, None, None)
    with pytest.raises(UnauthorizedError):
        facade.networks.create_network("NET_01", None, None, VIEWER)
    with pytest.raises(UnauthorizedError):
        facade.networks.create_network("NET_01", None, None, "ghost")

    assert facade.networks.get_networks() == []


@pytest.mark.parametrize(
    "operations, method, bad_code",
    [
        ("networks", "create_network", "NET_1"),
        ("networks", "create_network", "net_01"),
        ("gateways", "create_gateway", "GW_001"),
        ("gateways", "create_gateway", "GW_00011"),
        ("sensors", "create_sensor", "S_00001"),
        ("sensors", "create_sensor", "SENSOR_000001"),
    ],
)
def test_code_formats(facade: WeatherReport, operations: str, method: str, bad_code: str) -> None:
    create = getattr(getattr(facade, operations), method)

    with pytest.raises(InvalidInputDataError):
        create(bad_code, None, None, MAINTAINER)
    with pytest.raises(InvalidInputDataError):
        create(None, None, None, MAINTAINER)


def test_network_lifecycle_stamps_audit(facade: WeatherReport) -> None:
    created = facade.networks.create_network("NET_01", "North", "Hills", MAINTAINER)

    assert created.audit.created_by == MAINTAINER
    assert created.audit.created_at is not None
    assert created.audit.modified_by is None

    with pytest.raises(IdAlreadyInUseError):
        facade.networks.create_network("NET_01", None, None, MAINTAINER)

    updated = facade.networks.update_network("NET_01", "North-East", None, MAINTAINER)
    assert updated.name == "North-East"
    assert updated.description is None
    assert updated.audit.modified_by == MAINTAINER
    assert facade.networks.get_networks("NET_01")[0].name == "North-East"

    with pytest.raises(ElementNotFoundError):
        facade.networks.update_network("NET_02", None, None, MAINTAINER)


def test_delete_notifies(facade: WeatherReport, caplog: pytest.LogCaptureFixture) -> None:
    facade.sensors.create_sensor("S_000001", None, None, MAINTAINER)
    caplog.set_level(logging.INFO, logger="services.alerting")

    deleted = facade.sensors.delete_sensor("S_000001", MAINTAINER)

    assert deleted.code == "S_000001"
    assert facade.sensors.get_sensors() == []
    records = [record for record in caplog.records if record.getMessage() == "Element deleted"]
    assert len(records) == 1
    assert records[0].entity_code == "S_000001"
    assert records[0].element_kind == "Sensor"
    assert records[0].username == MAINTAINER

    with pytest.raises(ElementNotFoundError):
        facade.sensors.delete_sensor("S_000001", MAINTAINER)


def test_get_networks_ignores_unknown_codes(facade: WeatherReport) -> None:
    facade.networks.create_network("NET_01", None, None, MAINTAINER)
    facade.networks.create_network("NET_02", None, None, MAINTAINER)

    assert [n.code for n in facade.networks.get_networks("NET_02", "NET_99")] == ["NET_02"]
    assert [n.code for n in facade.networks.get_networks()] == ["NET_01", "NET_02"]


def test_operators(facade: WeatherReport) -> None:
    facade.networks.create_network("NET_01", None, None, MAINTAINER)
    facade.networks.create_operator("Ada", "Lovelace", "ada@example.com", None, MAINTAINER)

    with pytest.raises(IdAlreadyInUseError):
        facade.networks.create_operator("Ada", "L", "ada@example.com", None, MAINTAINER)
    with pytest.raises(InvalidInputDataError):
        facade.networks.create_operator(None, "Lovelace", "x@example.com", None, MAINTAINER)
    with pytest.raises(ElementNotFoundError):
        facade.networks.add_operator_to_network("NET_01", "nobody@example.com", MAINTAINER)

    network = facade.networks.add_operator_to_network("NET_01", "ada@example.com", MAINTAINER)
    network = facade.networks.add_operator_to_network("NET_01", "ada@example.com", MAINTAINER)

    assert network.operator_emails == ["ada@example.com"]
    assert [o.email for o in facade.store.operators_for("NET_01")] == ["ada@example.com"]


def test_parameters(facade: WeatherReport) -> None:
    facade.gateways.create_gateway("GW_0001", None, None, MAINTAINER)

    parameter = facade.gateways.create_parameter(
        "GW_0001", "BATTERY_CHARGE", "Battery", None, 80.0, MAINTAINER
    )
    assert parameter.value == 80.0

    with pytest.raises(IdAlreadyInUseError):
        facade.gateways.create_parameter("GW_0001", "BATTERY_CHARGE", None, None, 1.0, MAINTAINER)
    with pytest.raises(ElementNotFoundError):
        facade.gateways.update_parameter("GW_0001", "EXPECTED_MEAN", 1.0, MAINTAINER)
    with pytest.raises(ElementNotFoundError):
        facade.gateways.create_parameter("GW_0002", "X", None, None, 1.0, MAINTAINER)

    facade.gateways.update_parameter("GW_0001", "BATTERY_CHARGE", 55.0, MAINTAINER)

    gateway = facade.gateways.get_gateways("GW_0001")[0]
    assert gateway.parameter_value("BATTERY_CHARGE") == 55.0
    assert gateway.audit.modified_by == MAINTAINER


def test_thresholds(facade: WeatherReport) -> None:
    facade.sensors.create_sensor("S_000001", None, None, MAINTAINER)

    with pytest.raises(ElementNotFoundError):
        facade.sensors.update_threshold("S_000001", ThresholdType.LESS_THAN, 0.0, MAINTAINER)
    with pytest.raises(InvalidInputDataError):
        facade.sensors.create_threshold("S_000001", None, 0.0, MAINTAINER)

    facade.sensors.create_threshold("S_000001", ThresholdType.GREATER_THAN, 24.0, MAINTAINER)
    with pytest.raises(IdAlreadyInUseError):
        facade.sensors.create_threshold("S_000001", ThresholdType.LESS_THAN, 0.0, MAINTAINER)

    threshold = facade.sensors.update_threshold(
        "S_000001", ThresholdType.LESS_OR_EQUAL, -5.0, MAINTAINER
    )

    assert threshold.is_violated_by(-5.0)
    assert not threshold.is_violated_by(-4.9)
    assert facade.sensors.get_sensors("S_000001")[0].threshold == threshold


def test_connect_and_disconnect_gateways(facade: WeatherReport) -> None:
    facade.networks.create_network("NET_01", None, None, MAINTAINER)
    facade.networks.create_network("NET_02", None, None, MAINTAINER)
    facade.gateways.create_gateway("GW_0001", None, None, MAINTAINER)
    facade.gateways.create_gateway("GW_0002", None, None, MAINTAINER)

    facade.topology.connect_gateway("NET_01", "GW_0001", MAINTAINER)
    facade.topology.connect_gateway("NET_01", "GW_0002", MAINTAINER)
    assert [g.code for g in facade.topology.get_network_gateways("NET_01")] == [
        "GW_0001",
        "GW_0002",
    ]

    facade.topology.connect_gateway("NET_02", "GW_0002", MAINTAINER)
    assert [g.code for g in facade.topology.get_network_gateways("NET_01")] == ["GW_0001"]
    assert [g.code for g in facade.topology.get_network_gateways("NET_02")] == ["GW_0002"]

    network = facade.topology.disconnect_gateway("NET_01", "GW_0001", MAINTAINER)
    assert network.gateway_codes == []

    with pytest.raises(ElementNotFoundError):
        facade.topology.disconnect_gateway("NET_01", "GW_0001", MAINTAINER)
    with pytest.raises(ElementNotFoundError):
        facade.topology.connect_gateway("NET_03", "GW_0001", MAINTAINER)
    with pytest.raises(ElementNotFoundError):
        facade.topology.connect_gateway("NET_01", "GW_0003", MAINTAINER)
    with pytest.raises(InvalidInputDataError):
        facade.topology.connect_gateway(None, "GW_0001", MAINTAINER)
    with pytest.raises(UnauthorizedError):
        facade.topology.connect_gateway("NET_01", "GW_0001", VIEWER)


def test_network_gateways_requires_existing_network(facade: WeatherReport) -> None:
    with pytest.raises(InvalidInputDataError):
        facade.topology.get_network_gateways(None)
    with pytest.raises(ElementNotFoundError):
        facade.topology.get_network_gateways("NET_99")


def test_connect_and_disconnect_sensors(facade: WeatherReport) -> None:
    facade.gateways.create_gateway("GW_0001", None, None, MAINTAINER)
    facade.sensors.create_sensor("S_000001", None, None, MAINTAINER)

    gateway = facade.topology.connect_sensor("S_000001", "GW_0001", MAINTAINER)

    assert gateway.sensor_codes == ["S_000001"]
    assert [s.code for s in facade.topology.get_gateway_sensors("GW_0001")] == ["S_000001"]

    facade.topology.disconnect_sensor("S_000001", "GW_0001", MAINTAINER)
    assert facade.topology.get_gateway_sensors("GW_0001") == []
    with pytest.raises(ElementNotFoundError):
        facade.topology.disconnect_sensor("S_000001", "GW_0001", MAINTAINER)


def test_deleting_a_gateway_detaches_it(facade: WeatherReport) -> None:
    facade.networks.create_network("NET_01", None, None, MAINTAINER)
    facade.gateways.create_gateway("GW_0001", None, None, MAINTAINER)
    facade.topology.connect_gateway("NET_01", "GW_0001", MAINTAINER)

    facade.gateways.delete_gateway("GW_0001", MAINTAINER)

    assert facade.networks.get_networks("NET_01")[0].gateway_codes == []
