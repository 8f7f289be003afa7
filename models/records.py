"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class UserType(str, Enum):
    """Roles a user can hold. Only maintainers may mutate entities."""

    VIEWER = "VIEWER"
    MAINTAINER = "MAINTAINER"


class ThresholdType(str, Enum):
    """Comparison that makes a measured value anomalous for a sensor."""

    LESS_THAN = "LESS_THAN"
    GREATER_THAN = "GREATER_THAN"
    LESS_OR_EQUAL = "LESS_OR_EQUAL"
    GREATER_OR_EQUAL = "GREATER_OR_EQUAL"
    EQUAL = "EQUAL"
    NOT_EQUAL = "NOT_EQUAL"


@dataclass(slots=True)
class AuditTrail:
    """Creator and last modifier of an entity."""

    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_by: Optional[str] = None
    modified_at: Optional[datetime] = None

    @classmethod
    def created(cls, username: str) -> AuditTrail:
        return cls(created_by=username, created_at=datetime.now())

    def touch(self, username: str) -> None:
        self.modified_by = username
        self.modified_at = datetime.now()


@dataclass(frozen=True, slots=True)
class Measurement:
    """A single value reported by a sensor.

    Network and gateway codes are tags copied from the imported row, not
    references to the topology.
    """

    network_code: str
    gateway_code: str
    sensor_code: str
    value: float
    timestamp: datetime
    id: Optional[int] = None


@dataclass(slots=True)
class Parameter:
    """A named value attached to a gateway."""

    EXPECTED_MEAN = "EXPECTED_MEAN"
    EXPECTED_STD_DEV = "EXPECTED_STD_DEV"
    BATTERY_CHARGE = "BATTERY_CHARGE"

    code: str
    value: float
    name: Optional[str] = None
    description: Optional[str] = None


@dataclass(slots=True)
class Threshold:
    type: ThresholdType
    value: float

    def is_violated_by(self, measured: float) -> bool:
        if self.type is ThresholdType.LESS_THAN:
            return measured < self.value
        if self.type is ThresholdType.GREATER_THAN:
            return measured > self.value
        if self.type is ThresholdType.LESS_OR_EQUAL:
            return measured <= self.value
        if self.type is ThresholdType.GREATER_OR_EQUAL:
            return measured >= self.value
        if self.type is ThresholdType.EQUAL:
            return measured == self.value
        return measured != self.value


@dataclass(slots=True)
class Operator:
    """A person notified about threshold violations on a network."""

    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None


@dataclass(slots=True)
class User:
    username: str
    type: UserType


@dataclass(slots=True)
class Network:
    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    gateway_codes: List[str] = field(default_factory=list)
    operator_emails: List[str] = field(default_factory=list)
    audit: AuditTrail = field(default_factory=AuditTrail)


@dataclass(slots=True)
class Gateway:
    """A group of sensors monitoring the same physical quantity."""

    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    parameters: List[Parameter] = field(default_factory=list)
    sensor_codes: List[str] = field(default_factory=list)
    audit: AuditTrail = field(default_factory=AuditTrail)

    def parameter(self, code: str) -> Optional[Parameter]:
        for parameter in self.parameters:
            if parameter.code == code:
                return parameter
        return None

    def parameter_value(self, code: str) -> Optional[float]:
        parameter = self.parameter(code)
        return parameter.value if parameter is not None else None


@dataclass(slots=True)
class Sensor:
    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    threshold: Optional[Threshold] = None
    audit: AuditTrail = field(default_factory=AuditTrail)
