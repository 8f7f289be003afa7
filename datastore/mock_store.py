from __future__ import annotations

import copy
from functools import lru_cache
from operator import attrgetter
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Optional, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from app.schemas import ImportResult
from models.records import Gateway, Measurement, Network, Operator, Sensor, User
from settings import get_settings

R = TypeVar("R")


class MockRecordTable(Generic[R]):
    """Keyed in-memory table, optionally mirrored to a JSON file."""

    def __init__(
        self,
        name: str,
        record_type: Type[R],
        key: Callable[[R], Hashable],
        persistence_path: Optional[Path] = None,
        copy_items: bool = True,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self._key = key
        self._copy_items = copy_items
        self._adapter: TypeAdapter[List[R]] = TypeAdapter(List[record_type])  # type: ignore[valid-type]
        self._items: Dict[Hashable, R] = {}
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def put_item(self, item: R) -> None:
        self.put_items([item])

    def put_items(self, items: Iterable[R]) -> None:
        with self._lock:
            for item in items:
                self._items[self._key(item)] = self._copy(item)
            self._persist()

    def get_item(self, key: Hashable) -> Optional[R]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            return self._copy(item)

    def delete_item(self, key: Hashable) -> Optional[R]:
        with self._lock:
            item = self._items.pop(key, None)
            if item is not None:
                self._persist()
            return item

    def scan(self) -> list[R]:
        """Return copies of all stored records in insertion order."""

        with self._lock:
            return [self._copy(item) for item in self._items.values()]

    def _copy(self, item: R) -> R:
        return copy.deepcopy(item) if self._copy_items else item

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = self._adapter.dump_json(list(self._items.values()), indent=2)
        self.persistence_path.write_bytes(payload)

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_bytes() or b"[]"
            records = self._adapter.validate_json(raw)
        except (OSError, ValidationError):
            records = []

        for record in records:
            self._items[self._key(record)] = record


def _table_path(root: Optional[Path], name: str) -> Optional[Path]:
    return root / f"{name}.json" if root else None


class WeatherStore:
    """Tables for every entity kind plus the read interface used by the reports."""

    def __init__(self, root_path: Optional[Path] = None) -> None:
        self.root_path = root_path
        self.users = MockRecordTable(
            "users", User, attrgetter("username"), _table_path(root_path, "users")
        )
        self.operators = MockRecordTable(
            "operators", Operator, attrgetter("email"), _table_path(root_path, "operators")
        )
        self.networks = MockRecordTable(
            "networks", Network, attrgetter("code"), _table_path(root_path, "networks")
        )
        self.gateways = MockRecordTable(
            "gateways", Gateway, attrgetter("code"), _table_path(root_path, "gateways")
        )
        self.sensors = MockRecordTable(
            "sensors", Sensor, attrgetter("code"), _table_path(root_path, "sensors")
        )
        self.measurements = MockRecordTable(
            "measurements",
            Measurement,
            attrgetter("id"),
            _table_path(root_path, "measurements"),
            copy_items=False,
        )
        self.imports = MockRecordTable(
            "imports", ImportResult, attrgetter("import_id"), _table_path(root_path, "imports")
        )
        self._id_lock = Lock()
        self._next_measurement_id = 1 + max(
            (measurement.id or 0 for measurement in self.measurements.scan()), default=0
        )

    def get_user(self, username: str) -> Optional[User]:
        return self.users.get_item(username)

    def get_operator(self, email: str) -> Optional[Operator]:
        return self.operators.get_item(email)

    def get_network(self, code: str) -> Optional[Network]:
        return self.networks.get_item(code)

    def get_gateway(self, code: str) -> Optional[Gateway]:
        return self.gateways.get_item(code)

    def get_sensor(self, code: str) -> Optional[Sensor]:
        return self.sensors.get_item(code)

    def add_measurements(self, measurements: Iterable[Measurement]) -> List[Measurement]:
        """Store measurements, assigning each a fresh identifier."""
        with self._id_lock:
            stored = []
            for measurement in measurements:
                stored.append(
                    Measurement(
                        network_code=measurement.network_code,
                        gateway_code=measurement.gateway_code,
                        sensor_code=measurement.sensor_code,
                        value=measurement.value,
                        timestamp=measurement.timestamp,
                        id=self._next_measurement_id,
                    )
                )
                self._next_measurement_id += 1
        self.measurements.put_items(stored)
        return stored

    def measurements_for(
        self,
        *,
        network_code: Optional[str] = None,
        gateway_code: Optional[str] = None,
        sensor_code: Optional[str] = None,
    ) -> List[Measurement]:
        return [
            measurement
            for measurement in self.measurements.scan()
            if (network_code is None or measurement.network_code == network_code)
            and (gateway_code is None or measurement.gateway_code == gateway_code)
            and (sensor_code is None or measurement.sensor_code == sensor_code)
        ]

    def operators_for(self, network_code: str) -> List[Operator]:
        network = self.get_network(network_code)
        if network is None:
            return []
        operators = (self.get_operator(email) for email in network.operator_emails)
        return [operator for operator in operators if operator is not None]

    def parameters_for(self, gateway_code: str) -> Dict[str, float]:
        gateway = self.get_gateway(gateway_code)
        if gateway is None:
            return {}
        return {parameter.code: parameter.value for parameter in gateway.parameters}


@lru_cache
def build_default_store(path: Optional[str] = None) -> WeatherStore:
    settings = get_settings()
    store_path = settings.store_path if path is None else path
    return WeatherStore(root_path=Path(store_path) if store_path else None)
