"""Single entry point wiring the store, the operations and the report service."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from datastore.mock_store import WeatherStore, build_default_store
from services.aggregator import Aggregator
from services.alerting import AlertingService
from services.importer import ImportService
from services.operations import (
    GatewayOperations,
    NetworkOperations,
    SensorOperations,
    TopologyOperations,
    UserOperations,
)
from services.reports import ReportService
from settings import get_settings
from storage.uploads import build_default_bucket


class WeatherReport:
    def __init__(
        self,
        store: WeatherStore,
        importer: ImportService,
        alerting: Optional[AlertingService] = None,
    ) -> None:
        alerting = alerting or importer.alerting
        self.store = store
        self.importer = importer
        self.users = UserOperations(store, alerting)
        self.networks = NetworkOperations(store, alerting)
        self.gateways = GatewayOperations(store, alerting)
        self.sensors = SensorOperations(store, alerting)
        self.topology = TopologyOperations(store, alerting)
        self.reports = ReportService(store, Aggregator())

    def shutdown(self) -> None:
        self.importer.shutdown()


@lru_cache
def build_default_weather_report(workers: Optional[int] = None) -> WeatherReport:
    """Factory that wires the facade with the default store and upload bucket."""
    store = build_default_store()
    importer = ImportService(
        bucket=build_default_bucket(),
        store=store,
        workers=workers or get_settings().import_workers,
    )
    return WeatherReport(store=store, importer=importer)
