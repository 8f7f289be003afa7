"""Background import of measurement CSV files."""

from __future__ import annotations

import csv
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, TextIO, Tuple
from uuid import uuid4

from fastapi import BackgroundTasks, UploadFile

from app.schemas import ImportResult, ImportRowError, ImportStatus
from datastore.mock_store import WeatherStore
from models.records import DATE_FORMAT, Measurement, Sensor
from services.alerting import AlertingService
from storage.uploads import UploadBucket

logger = logging.getLogger(__name__)

DATE_COLUMN = "date"
NETWORK_COLUMN = "networkcode"
GATEWAY_COLUMN = "gatewaycode"
SENSOR_COLUMN = "sensorcode"
VALUE_COLUMN = "value"
REQUIRED_COLUMNS = (DATE_COLUMN, NETWORK_COLUMN, GATEWAY_COLUMN, SENSOR_COLUMN, VALUE_COLUMN)


class ImportService:
    """Stores uploads, parses them on a worker pool and records the outcome."""

    def __init__(
        self,
        bucket: UploadBucket,
        store: WeatherStore,
        alerting: Optional[AlertingService] = None,
        workers: int = 4,
    ) -> None:
        self.bucket = bucket
        self.store = store
        self.alerting = alerting or AlertingService()
        self.executor = ThreadPoolExecutor(max_workers=workers)
        self._futures: Dict[str, Future[None]] = {}
        self._futures_lock = Lock()

    def enqueue_file(self, background_tasks: BackgroundTasks, file: UploadFile) -> str:
        """Persist the upload and schedule its import; returns the import id."""
        file.file.seek(0)
        contents = file.file.read()
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        if not contents:
            raise ValueError("Uploaded file is empty.")

        import_id = self._submit(file.filename or "upload.csv", contents)
        background_tasks.add_task(file.close)
        return import_id

    def import_path(self, path: Path) -> ImportResult:
        """Import a local CSV file synchronously."""
        path = Path(path)
        import_id = str(uuid4())
        uploaded_at = datetime.now(timezone.utc)
        key = self.bucket.put_upload(import_id, path.name, path.read_bytes())
        self.store.imports.put_item(
            ImportResult(
                import_id=import_id,
                status=ImportStatus.uploaded,
                uploaded_at=uploaded_at,
                filename=path.name,
            )
        )
        self._process_import(import_id, key, uploaded_at, path.name)
        return self.fetch_result(import_id)

    def fetch_result(self, import_id: str) -> ImportResult:
        result = self.store.imports.get_item(import_id)
        if result is None:
            raise KeyError(f"Import {import_id!r} not found.")
        return result

    def wait_for(self, import_id: str, timeout: Optional[float] = None) -> None:
        """Block until a pending import finishes; no-op when nothing is pending."""
        with self._futures_lock:
            future = self._futures.get(import_id)
        if future is not None:
            future.result(timeout=timeout)

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _submit(self, filename: str, contents: bytes) -> str:
        import_id = str(uuid4())
        filename = Path(filename).name
        key = self.bucket.put_upload(import_id, filename, contents)

        uploaded_at = datetime.now(timezone.utc)
        self.store.imports.put_item(
            ImportResult(
                import_id=import_id,
                status=ImportStatus.uploaded,
                uploaded_at=uploaded_at,
                filename=filename,
            )
        )
        logger.info("Import accepted", extra={"import_id": import_id, "object_key": key})

        future = self.executor.submit(
            self._process_import, import_id, key, uploaded_at, filename
        )
        with self._futures_lock:
            self._futures[import_id] = future
        future.add_done_callback(lambda _f, iid=import_id: self._clear_future(iid))
        return import_id

    def _clear_future(self, import_id: str) -> None:
        with self._futures_lock:
            self._futures.pop(import_id, None)

    def _process_import(
        self, import_id: str, key: str, uploaded_at: datetime, filename: Optional[str] = None
    ) -> None:
        start_time = time.perf_counter()
        self.store.imports.put_item(
            ImportResult(
                import_id=import_id,
                status=ImportStatus.processing,
                uploaded_at=uploaded_at,
                filename=filename,
            )
        )

        errors: List[ImportRowError] = []
        imported_count = 0
        try:
            with self.bucket.open_text(key) as handle:
                measurements, errors = self._parse(import_id, handle)
            stored = self.store.add_measurements(measurements)
            imported_count = len(stored)
            self._check_thresholds(stored)

            if errors and not imported_count:
                status = ImportStatus.failed
            elif errors:
                status = ImportStatus.partial
            else:
                status = ImportStatus.processed
        except (KeyError, ValueError, csv.Error) as exc:
            logger.error(
                "Import failed", extra={"import_id": import_id, "reason": str(exc)}
            )
            status = ImportStatus.failed
            errors.append(ImportRowError(row_number=1, reason=str(exc)))

        processing_ms = int((time.perf_counter() - start_time) * 1000)
        self.store.imports.put_item(
            ImportResult(
                import_id=import_id,
                status=status,
                uploaded_at=uploaded_at,
                filename=filename,
                processed_at=datetime.now(timezone.utc),
                processing_ms=processing_ms,
                imported_count=imported_count,
                errors=errors,
            )
        )
        logger.info(
            "Import finished",
            extra={
                "import_id": import_id,
                "status": status.value,
                "row_count": imported_count,
                "error_count": len(errors),
                "processing_ms": processing_ms,
            },
        )

    def _parse(
        self, import_id: str, handle: TextIO
    ) -> Tuple[List[Measurement], List[ImportRowError]]:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            raise ValueError("CSV file is missing a header row.")

        normalized = {name.lower().strip(): name for name in reader.fieldnames}
        missing = [column for column in REQUIRED_COLUMNS if column not in normalized]
        if missing:
            raise ValueError(f"CSV missing required columns: {', '.join(missing)}")

        measurements: List[Measurement] = []
        errors: List[ImportRowError] = []
        for row_number, row in enumerate(reader, start=2):
            fields = {
                column: (row.get(normalized[column]) or "").strip()
                for column in REQUIRED_COLUMNS
            }
            try:
                measurements.append(self._to_measurement(fields))
            except ValueError as exc:
                reason = str(exc)
                logger.warning(
                    "Skipping row",
                    extra={"import_id": import_id, "row_number": row_number, "reason": reason},
                )
                errors.append(ImportRowError(row_number=row_number, reason=reason))
        return measurements, errors

    @staticmethod
    def _to_measurement(fields: Dict[str, str]) -> Measurement:
        for column in REQUIRED_COLUMNS:
            if not fields[column]:
                raise ValueError(f"missing {column}")
        try:
            timestamp = datetime.strptime(fields[DATE_COLUMN], DATE_FORMAT)
        except ValueError:
            raise ValueError("invalid date") from None
        try:
            value = float(fields[VALUE_COLUMN])
        except ValueError:
            raise ValueError("invalid numeric value") from None

        return Measurement(
            network_code=fields[NETWORK_COLUMN],
            gateway_code=fields[GATEWAY_COLUMN],
            sensor_code=fields[SENSOR_COLUMN],
            value=value,
            timestamp=timestamp,
        )

    def _check_thresholds(self, measurements: List[Measurement]) -> None:
        sensors: Dict[str, Optional[Sensor]] = {}
        for measurement in measurements:
            if measurement.sensor_code not in sensors:
                sensors[measurement.sensor_code] = self.store.get_sensor(measurement.sensor_code)
            sensor = sensors[measurement.sensor_code]
            if sensor is None or sensor.threshold is None:
                continue
            if sensor.threshold.is_violated_by(measurement.value):
                operators = self.store.operators_for(measurement.network_code)
                self.alerting.notify_threshold_violation(operators, sensor.code)

