from __future__ import annotations

import asyncio
import io
import logging
from datetime import datetime
from pathlib import Path

import pytest
from fastapi import BackgroundTasks, UploadFile

from app.schemas import ImportStatus
from datastore.mock_store import WeatherStore
from models.records import Network, Operator, Sensor, Threshold, ThresholdType
from services.importer import ImportService
from storage.uploads import UploadBucket

HEADER = "date,networkCode,gatewayCode,sensorCode,value\n"


@pytest.fixture()
def importer(tmp_path) -> ImportService:
    service = ImportService(
        bucket=UploadBucket(root_path=tmp_path / "uploads"),
        store=WeatherStore(),
        workers=1,
    )
    yield service
    service.shutdown()


def _write(tmp_path: Path, body: str, name: str = "measurements.csv") -> Path:
    path = tmp_path / name
    path.write_text(body)
    return path


def test_import_path_stores_measurements(importer: ImportService, tmp_path) -> None:
    path = _write(
        tmp_path,
        HEADER
        + "2024-01-01 10:00:00,NET_01,GW_0001,S_000001,21.5\n"
        + "2024-01-01 10:05:00,NET_01,GW_0001,S_000002,-3\n",
    )

    result = importer.import_path(path)

    assert result.status is ImportStatus.processed
    assert result.imported_count == 2
    assert result.errors == []
    assert result.filename == "measurements.csv"
    assert result.processed_at is not None

    stored = importer.store.measurements_for(gateway_code="GW_0001")
    assert [(m.sensor_code, m.value) for m in stored] == [("S_000001", 21.5), ("S_000002", -3.0)]
    assert stored[0].timestamp == datetime(2024, 1, 1, 10, 0)
    assert [m.id for m in stored] == [1, 2]


def test_header_names_are_case_insensitive(importer: ImportService, tmp_path) -> None:
    path = _write(
        tmp_path,
        "DATE, NetworkCode ,GATEWAYCODE,SensorCode,Value\n"
        "2024-01-01 10:00:00,NET_01,GW_0001,S_000001,1\n",
    )

    assert importer.import_path(path).status is ImportStatus.processed


def test_invalid_rows_are_skipped(
    importer: ImportService, tmp_path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING, logger="services.importer")
    path = _write(
        tmp_path,
        HEADER
        + "2024-01-01 10:00:00,NET_01,GW_0001,S_000001,1.0\n"
        + "2024-01-01T10:00:00,NET_01,GW_0001,S_000001,1.0\n"
        + "2024-01-01 10:00:00,NET_01,GW_0001,S_000001,high\n"
        + "2024-01-01 10:00:00,NET_01,GW_0001,,1.0\n",
    )

    result = importer.import_path(path)

    assert result.status is ImportStatus.partial
    assert result.imported_count == 1
    assert [(error.row_number, error.reason) for error in result.errors] == [
        (3, "invalid date"),
        (4, "invalid numeric value"),
        (5, "missing sensorcode"),
    ]
    skipped = [record for record in caplog.records if record.getMessage() == "Skipping row"]
    assert [record.row_number for record in skipped] == [3, 4, 5]


def test_only_invalid_rows_fail_the_import(importer: ImportService, tmp_path) -> None:
    path = _write(tmp_path, HEADER + "yesterday,NET_01,GW_0001,S_000001,1.0\n")

    result = importer.import_path(path)

    assert result.status is ImportStatus.failed
    assert result.imported_count == 0


def test_missing_columns_fail_the_import(importer: ImportService, tmp_path) -> None:
    path = _write(tmp_path, "date,sensorCode,value\n2024-01-01 10:00:00,S_000001,1.0\n")

    result = importer.import_path(path)

    assert result.status is ImportStatus.failed
    assert len(result.errors) == 1
    assert "CSV missing required columns" in result.errors[0].reason
    assert "networkcode" in result.errors[0].reason


def test_threshold_violation_alerts_network_operators(
    importer: ImportService, tmp_path, caplog: pytest.LogCaptureFixture
) -> None:
    store = importer.store
    store.operators.put_items(
        [
            Operator(email="ada@example.com", first_name="Ada", last_name="L", phone_number="555"),
            Operator(email="bob@example.com", first_name="Bob", last_name="M"),
        ]
    )
    store.networks.put_item(
        Network(code="NET_01", operator_emails=["ada@example.com", "bob@example.com"])
    )
    store.sensors.put_item(
        Sensor(code="S_000001", threshold=Threshold(type=ThresholdType.GREATER_THAN, value=24.0))
    )
    caplog.set_level(logging.INFO, logger="services.alerting")
    path = _write(
        tmp_path,
        HEADER
        + "2024-01-01 10:00:00,NET_01,GW_0001,S_000001,24.0\n"
        + "2024-01-01 11:00:00,NET_01,GW_0001,S_000001,24.5\n",
    )

    importer.import_path(path)

    messages = [record.getMessage() for record in caplog.records]
    assert messages.count("Measured a value out of threshold bounds, alerting operators") == 1
    emails = [r.recipient for r in caplog.records if r.getMessage() == "Sending email"]
    sms = [r.recipient for r in caplog.records if r.getMessage() == "Sending SMS"]
    assert emails == ["ada@example.com", "bob@example.com"]
    assert sms == ["ada@example.com"]


def test_enqueue_file_processes_in_background(importer: ImportService) -> None:
    upload = UploadFile(
        filename="batch.csv",
        file=io.BytesIO((HEADER + "2024-01-01 10:00:00,NET_01,GW_0001,S_000001,1\n").encode()),
    )
    tasks = BackgroundTasks()

    import_id = importer.enqueue_file(tasks, upload)
    asyncio.run(tasks())
    importer.wait_for(import_id, timeout=5)

    result = importer.fetch_result(import_id)
    assert result.status is ImportStatus.processed
    assert result.imported_count == 1
    assert importer.bucket.list_keys() == [f"{import_id}/batch.csv"]


def test_enqueue_rejects_empty_upload(importer: ImportService) -> None:
    upload = UploadFile(filename="empty.csv", file=io.BytesIO(b""))

    with pytest.raises(ValueError, match="empty"):
        importer.enqueue_file(BackgroundTasks(), upload)


def test_fetch_unknown_import(importer: ImportService) -> None:
    with pytest.raises(KeyError):
        importer.fetch_result("missing")
