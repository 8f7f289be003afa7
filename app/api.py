"""HTTP route definitions for imports and reports."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Type

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile, status

from app.schemas import (
    GatewayReportResponse,
    ImportResult,
    ImportUploadResponse,
    NetworkReportResponse,
    SensorReportResponse,
)
from services.errors import (
    ElementNotFoundError,
    IdAlreadyInUseError,
    InvalidInputDataError,
    UnauthorizedError,
    WeatherReportError,
)
from services.weather_report import WeatherReport, build_default_weather_report

router = APIRouter()

_STATUS_BY_ERROR: Dict[Type[WeatherReportError], int] = {
    ElementNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidInputDataError: status.HTTP_400_BAD_REQUEST,
    IdAlreadyInUseError: status.HTTP_409_CONFLICT,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
}


def get_weather_report() -> WeatherReport:
    return build_default_weather_report()


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise domain errors as ``HTTPException`` with the matching status."""
    try:
        yield
    except WeatherReportError as exc:
        status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
        raise HTTPException(status_code=status_code, detail=exc.message) from exc


_START_DATE = Query(None, description="Inclusive lower bound, yyyy-MM-dd HH:mm:ss.")
_END_DATE = Query(None, description="Inclusive upper bound, yyyy-MM-dd HH:mm:ss.")


@router.post(
    "/imports",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportUploadResponse,
    summary="Upload a measurements CSV for asynchronous import.",
)
async def upload_measurements(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="CSV with date,networkCode,gatewayCode,sensorCode,value."),
    service: WeatherReport = Depends(get_weather_report),
) -> ImportUploadResponse:
    try:
        import_id = service.importer.enqueue_file(background_tasks, file)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return ImportUploadResponse(import_id=import_id)


@router.get(
    "/imports/{import_id}",
    response_model=ImportResult,
    summary="Fetch the status and row errors of an import.",
)
async def get_import_result(
    import_id: str,
    service: WeatherReport = Depends(get_weather_report),
) -> ImportResult:
    try:
        return service.importer.fetch_result(import_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import {import_id} not found.",
        ) from exc


@router.get(
    "/networks/{code}/report",
    response_model=NetworkReportResponse,
    summary="Measurement statistics for a network.",
)
def network_report(
    code: str,
    start_date: Optional[str] = _START_DATE,
    end_date: Optional[str] = _END_DATE,
    service: WeatherReport = Depends(get_weather_report),
) -> NetworkReportResponse:
    with translate_errors():
        report = service.reports.network_report(code, start_date, end_date)
    return NetworkReportResponse.from_report(report)


@router.get(
    "/gateways/{code}/report",
    response_model=GatewayReportResponse,
    summary="Measurement statistics for a gateway.",
)
def gateway_report(
    code: str,
    start_date: Optional[str] = _START_DATE,
    end_date: Optional[str] = _END_DATE,
    service: WeatherReport = Depends(get_weather_report),
) -> GatewayReportResponse:
    with translate_errors():
        report = service.reports.gateway_report(code, start_date, end_date)
    return GatewayReportResponse.from_report(report)


@router.get(
    "/sensors/{code}/report",
    response_model=SensorReportResponse,
    summary="Measurement statistics for a sensor.",
)
def sensor_report(
    code: str,
    start_date: Optional[str] = _START_DATE,
    end_date: Optional[str] = _END_DATE,
    service: WeatherReport = Depends(get_weather_report),
) -> SensorReportResponse:
    with translate_errors():
        report = service.reports.sensor_report(code, start_date, end_date)
    return SensorReportResponse.from_report(report)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
