"""Entity management and topology operations.

Every mutation goes through the maintainer gate: a missing username is invalid
input, an unknown user or a viewer is unauthorized. Reads are open to anyone.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from datastore.mock_store import MockRecordTable, WeatherStore
from models.records import (
    AuditTrail,
    Gateway,
    Network,
    Operator,
    Parameter,
    Sensor,
    Threshold,
    ThresholdType,
    User,
    UserType,
)
from services.alerting import AlertingService
from services.errors import (
    ElementNotFoundError,
    IdAlreadyInUseError,
    InvalidInputDataError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

NETWORK_CODE_PATTERN = re.compile(r"NET_\d{2}")
GATEWAY_CODE_PATTERN = re.compile(r"GW_\d{4}")
SENSOR_CODE_PATTERN = re.compile(r"S_\d{6}")


def _require(value: Optional[str], what: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInputDataError(f"{what} is mandatory")
    return value


def _select(table: MockRecordTable, codes) -> list:
    records = table.scan()
    if not codes:
        return records
    wanted = set(codes)
    return [record for record in records if record.code in wanted]


class _Operations:
    def __init__(self, store: WeatherStore, alerting: Optional[AlertingService] = None) -> None:
        self.store = store
        self.alerting = alerting or AlertingService()

    def _require_maintainer(self, username: Optional[str]) -> User:
        if username is None:
            raise InvalidInputDataError("Username is mandatory")
        user = self.store.get_user(username)
        if user is None or user.type is not UserType.MAINTAINER:
            raise UnauthorizedError(
                f"User {username} does not exist or is not allowed to perform this operation"
            )
        return user

    def _network(self, code: str) -> Network:
        network = self.store.get_network(code)
        if network is None:
            raise ElementNotFoundError(f"Network {code} not found")
        return network

    def _gateway(self, code: str) -> Gateway:
        gateway = self.store.get_gateway(code)
        if gateway is None:
            raise ElementNotFoundError(f"Gateway {code} not found")
        return gateway

    def _sensor(self, code: str) -> Sensor:
        sensor = self.store.get_sensor(code)
        if sensor is None:
            raise ElementNotFoundError(f"Sensor {code} not found")
        return sensor

    @staticmethod
    def _check_format(code: str, pattern: re.Pattern, kind: str) -> None:
        if not pattern.fullmatch(code):
            raise InvalidInputDataError(f"{kind} code {code!r} does not match {pattern.pattern}")


class UserOperations(_Operations):
    """User registration; creating users is not gated."""

    def create_user(self, username: Optional[str], user_type: UserType = UserType.VIEWER) -> User:
        username = _require(username, "Username")
        if self.store.get_user(username) is not None:
            raise IdAlreadyInUseError(f"User {username} already exists")
        user = User(username=username, type=UserType(user_type))
        self.store.users.put_item(user)
        logger.info("User created", extra={"username": username, "status": user.type.value})
        return user

    def get_user(self, username: str) -> User:
        user = self.store.get_user(username)
        if user is None:
            raise ElementNotFoundError(f"User {username} not found")
        return user

    def get_users(self) -> List[User]:
        return self.store.users.scan()


class NetworkOperations(_Operations):
    def create_network(
        self,
        code: Optional[str],
        name: Optional[str],
        description: Optional[str],
        username: Optional[str],
    ) -> Network:
        self._require_maintainer(username)
        code = _require(code, "Network code")
        self._check_format(code, NETWORK_CODE_PATTERN, "Network")
        if self.store.get_network(code) is not None:
            raise IdAlreadyInUseError(f"Network {code} already exists")

        network = Network(
            code=code, name=name, description=description, audit=AuditTrail.created(username)
        )
        self.store.networks.put_item(network)
        logger.info("Network created", extra={"entity_code": code, "username": username})
        return network

    def update_network(
        self,
        code: Optional[str],
        name: Optional[str],
        description: Optional[str],
        username: Optional[str],
    ) -> Network:
        self._require_maintainer(username)
        network = self._network(_require(code, "Network code"))
        network.name = name
        network.description = description
        network.audit.touch(username)
        self.store.networks.put_item(network)
        return network

    def delete_network(self, code: Optional[str], username: Optional[str]) -> Network:
        self._require_maintainer(username)
        network = self._network(_require(code, "Network code"))
        self.store.networks.delete_item(network.code)
        self.alerting.notify_deletion(username, network.code, "Network")
        return network

    def get_networks(self, *codes: str) -> List[Network]:
        """Networks matching ``codes`` (unknown codes are ignored); all when none given."""
        return _select(self.store.networks, codes)

    def create_operator(
        self,
        first_name: Optional[str],
        last_name: Optional[str],
        email: Optional[str],
        phone_number: Optional[str],
        username: Optional[str],
    ) -> Operator:
        self._require_maintainer(username)
        first_name = _require(first_name, "Operator first name")
        last_name = _require(last_name, "Operator last name")
        email = _require(email, "Operator email")
        if self.store.get_operator(email) is not None:
            raise IdAlreadyInUseError(f"Operator {email} already exists")

        operator = Operator(
            email=email, first_name=first_name, last_name=last_name, phone_number=phone_number
        )
        self.store.operators.put_item(operator)
        return operator

    def get_operators(self) -> List[Operator]:
        return self.store.operators.scan()

    def add_operator_to_network(
        self, network_code: Optional[str], operator_email: Optional[str], username: Optional[str]
    ) -> Network:
        self._require_maintainer(username)
        network = self._network(_require(network_code, "Network code"))
        operator_email = _require(operator_email, "Operator email")
        if self.store.get_operator(operator_email) is None:
            raise ElementNotFoundError(f"Operator {operator_email} not found")

        if operator_email not in network.operator_emails:
            network.operator_emails.append(operator_email)
        network.audit.touch(username)
        self.store.networks.put_item(network)
        return network


class GatewayOperations(_Operations):
    def create_gateway(
        self,
        code: Optional[str],
        name: Optional[str],
        description: Optional[str],
        username: Optional[str],
    ) -> Gateway:
        self._require_maintainer(username)
        code = _require(code, "Gateway code")
        self._check_format(code, GATEWAY_CODE_PATTERN, "Gateway")
        if self.store.get_gateway(code) is not None:
            raise IdAlreadyInUseError(f"Gateway {code} already exists")

        gateway = Gateway(
            code=code, name=name, description=description, audit=AuditTrail.created(username)
        )
        self.store.gateways.put_item(gateway)
        logger.info("Gateway created", extra={"entity_code": code, "username": username})
        return gateway

    def update_gateway(
        self,
        code: Optional[str],
        name: Optional[str],
        description: Optional[str],
        username: Optional[str],
    ) -> Gateway:
        self._require_maintainer(username)
        gateway = self._gateway(_require(code, "Gateway code"))
        gateway.name = name
        gateway.description = description
        gateway.audit.touch(username)
        self.store.gateways.put_item(gateway)
        return gateway

    def delete_gateway(self, code: Optional[str], username: Optional[str]) -> Gateway:
        self._require_maintainer(username)
        gateway = self._gateway(_require(code, "Gateway code"))
        for network in self.store.networks.scan():
            if gateway.code in network.gateway_codes:
                network.gateway_codes.remove(gateway.code)
                self.store.networks.put_item(network)
        self.store.gateways.delete_item(gateway.code)
        self.alerting.notify_deletion(username, gateway.code, "Gateway")
        return gateway

    def get_gateways(self, *codes: str) -> List[Gateway]:
        return _select(self.store.gateways, codes)

    def create_parameter(
        self,
        gateway_code: Optional[str],
        code: Optional[str],
        name: Optional[str],
        description: Optional[str],
        value: float,
        username: Optional[str],
    ) -> Parameter:
        self._require_maintainer(username)
        gateway = self._gateway(_require(gateway_code, "Gateway code"))
        code = _require(code, "Parameter code")
        if gateway.parameter(code) is not None:
            raise IdAlreadyInUseError(f"Parameter {code} already exists on gateway {gateway.code}")

        parameter = Parameter(code=code, value=value, name=name, description=description)
        gateway.parameters.append(parameter)
        gateway.audit.touch(username)
        self.store.gateways.put_item(gateway)
        return parameter

    def update_parameter(
        self,
        gateway_code: Optional[str],
        code: Optional[str],
        value: float,
        username: Optional[str],
    ) -> Parameter:
        self._require_maintainer(username)
        gateway = self._gateway(_require(gateway_code, "Gateway code"))
        code = _require(code, "Parameter code")
        parameter = gateway.parameter(code)
        if parameter is None:
            raise ElementNotFoundError(f"Parameter {code} not found on gateway {gateway.code}")

        parameter.value = value
        gateway.audit.touch(username)
        self.store.gateways.put_item(gateway)
        return parameter


class SensorOperations(_Operations):
    def create_sensor(
        self,
        code: Optional[str],
        name: Optional[str],
        description: Optional[str],
        username: Optional[str],
    ) -> Sensor:
        self._require_maintainer(username)
        code = _require(code, "Sensor code")
        self._check_format(code, SENSOR_CODE_PATTERN, "Sensor")
        if self.store.get_sensor(code) is not None:
            raise IdAlreadyInUseError(f"Sensor {code} already exists")

        sensor = Sensor(
            code=code, name=name, description=description, audit=AuditTrail.created(username)
        )
        self.store.sensors.put_item(sensor)
        logger.info("Sensor created", extra={"entity_code": code, "username": username})
        return sensor

    def update_sensor(
        self,
        code: Optional[str],
        name: Optional[str],
        description: Optional[str],
        username: Optional[str],
    ) -> Sensor:
        self._require_maintainer(username)
        sensor = self._sensor(_require(code, "Sensor code"))
        sensor.name = name
        sensor.description = description
        sensor.audit.touch(username)
        self.store.sensors.put_item(sensor)
        return sensor

    def delete_sensor(self, code: Optional[str], username: Optional[str]) -> Sensor:
        self._require_maintainer(username)
        sensor = self._sensor(_require(code, "Sensor code"))
        for gateway in self.store.gateways.scan():
            if sensor.code in gateway.sensor_codes:
                gateway.sensor_codes.remove(sensor.code)
                self.store.gateways.put_item(gateway)
        self.store.sensors.delete_item(sensor.code)
        self.alerting.notify_deletion(username, sensor.code, "Sensor")
        return sensor

    def get_sensors(self, *codes: str) -> List[Sensor]:
        return _select(self.store.sensors, codes)

    def create_threshold(
        self,
        sensor_code: Optional[str],
        threshold_type: Optional[ThresholdType],
        value: float,
        username: Optional[str],
    ) -> Threshold:
        self._require_maintainer(username)
        sensor = self._sensor(_require(sensor_code, "Sensor code"))
        if threshold_type is None:
            raise InvalidInputDataError("Threshold type is mandatory")
        if sensor.threshold is not None:
            raise IdAlreadyInUseError(f"Sensor {sensor.code} already has a threshold")
        return self._store_threshold(sensor, threshold_type, value, username)

    def update_threshold(
        self,
        sensor_code: Optional[str],
        threshold_type: Optional[ThresholdType],
        value: float,
        username: Optional[str],
    ) -> Threshold:
        self._require_maintainer(username)
        sensor = self._sensor(_require(sensor_code, "Sensor code"))
        if threshold_type is None:
            raise InvalidInputDataError("Threshold type is mandatory")
        if sensor.threshold is None:
            raise ElementNotFoundError(f"Sensor {sensor.code} has no threshold")
        return self._store_threshold(sensor, threshold_type, value, username)

    def _store_threshold(
        self, sensor: Sensor, threshold_type: ThresholdType, value: float, username: str
    ) -> Threshold:
        threshold = Threshold(type=ThresholdType(threshold_type), value=value)
        sensor.threshold = threshold
        sensor.audit.touch(username)
        self.store.sensors.put_item(sensor)
        return threshold


class TopologyOperations(_Operations):
    """Links between networks, gateways and sensors.

    A child is attached to at most one parent; connecting it elsewhere moves it.
    """

    def get_network_gateways(self, network_code: Optional[str]) -> List[Gateway]:
        network = self._network(_require(network_code, "Network code"))
        gateways = (self.store.get_gateway(code) for code in network.gateway_codes)
        return [gateway for gateway in gateways if gateway is not None]

    def get_gateway_sensors(self, gateway_code: Optional[str]) -> List[Sensor]:
        gateway = self._gateway(_require(gateway_code, "Gateway code"))
        sensors = (self.store.get_sensor(code) for code in gateway.sensor_codes)
        return [sensor for sensor in sensors if sensor is not None]

    def connect_gateway(
        self, network_code: Optional[str], gateway_code: Optional[str], username: Optional[str]
    ) -> Network:
        self._require_maintainer(username)
        network_code = _require(network_code, "Network code")
        gateway_code = _require(gateway_code, "Gateway code")
        network = self._network(network_code)
        self._gateway(gateway_code)

        for other in self.store.networks.scan():
            if other.code != network.code and gateway_code in other.gateway_codes:
                other.gateway_codes.remove(gateway_code)
                other.audit.touch(username)
                self.store.networks.put_item(other)

        if gateway_code not in network.gateway_codes:
            network.gateway_codes.append(gateway_code)
        network.audit.touch(username)
        self.store.networks.put_item(network)
        return network

    def disconnect_gateway(
        self, network_code: Optional[str], gateway_code: Optional[str], username: Optional[str]
    ) -> Network:
        self._require_maintainer(username)
        network_code = _require(network_code, "Network code")
        gateway_code = _require(gateway_code, "Gateway code")
        network = self._network(network_code)
        if gateway_code not in network.gateway_codes:
            raise ElementNotFoundError(
                f"Gateway {gateway_code} is not connected to network {network_code}"
            )

        network.gateway_codes.remove(gateway_code)
        network.audit.touch(username)
        self.store.networks.put_item(network)
        return network

    def connect_sensor(
        self, sensor_code: Optional[str], gateway_code: Optional[str], username: Optional[str]
    ) -> Gateway:
        self._require_maintainer(username)
        sensor_code = _require(sensor_code, "Sensor code")
        gateway_code = _require(gateway_code, "Gateway code")
        self._sensor(sensor_code)
        gateway = self._gateway(gateway_code)

        for other in self.store.gateways.scan():
            if other.code != gateway.code and sensor_code in other.sensor_codes:
                other.sensor_codes.remove(sensor_code)
                other.audit.touch(username)
                self.store.gateways.put_item(other)

        if sensor_code not in gateway.sensor_codes:
            gateway.sensor_codes.append(sensor_code)
        gateway.audit.touch(username)
        self.store.gateways.put_item(gateway)
        return gateway

    def disconnect_sensor(
        self, sensor_code: Optional[str], gateway_code: Optional[str], username: Optional[str]
    ) -> Gateway:
        self._require_maintainer(username)
        sensor_code = _require(sensor_code, "Sensor code")
        gateway_code = _require(gateway_code, "Gateway code")
        gateway = self._gateway(gateway_code)
        if sensor_code not in gateway.sensor_codes:
            raise ElementNotFoundError(
                f"Sensor {sensor_code} is not connected to gateway {gateway_code}"
            )

        gateway.sensor_codes.remove(sensor_code)
        gateway.audit.touch(username)
        self.store.gateways.put_item(gateway)
        return gateway
