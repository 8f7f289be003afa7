"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from models.records import ThresholdType, UserType
from models.reports import GatewayReport, NetworkReport, Report, SensorReport

T = TypeVar("T")


class ImportStatus(str, Enum):
    """Import lifecycle states exposed via the API."""

    uploaded = "uploaded"
    processing = "processing"
    processed = "processed"
    partial = "partial"
    failed = "failed"


class ImportUploadResponse(BaseModel):
    """Immediate response payload after accepting a CSV upload."""

    import_id: str = Field(..., description="Generated identifier for the import.")


class ImportRowError(BaseModel):
    """Details about a row that failed validation or parsing."""

    row_number: int = Field(..., ge=1)
    reason: str


class ImportResult(BaseModel):
    """Full record representing an imported CSV file."""

    import_id: str
    status: ImportStatus
    uploaded_at: datetime
    filename: Optional[str] = None
    processed_at: Optional[datetime] = None
    processing_ms: Optional[int] = Field(
        default=None, description="Duration in milliseconds from start to finish."
    )
    imported_count: int = Field(default=0, ge=0)
    errors: List[ImportRowError] = Field(default_factory=list)


class HistogramBucket(BaseModel, Generic[T]):
    """One bucket; every bucket but the last excludes its ``end``."""

    start: T
    end: T
    is_last: bool
    count: int = Field(..., ge=0)


def _buckets(report: Report) -> List[dict]:
    return [entry._asdict() for entry in report.histogram_entries()]


class MeasurementModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    network_code: str
    gateway_code: str
    sensor_code: str
    value: float
    timestamp: datetime


class ReportResponse(BaseModel):
    code: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    number_of_measurements: int = Field(..., ge=0)


class NetworkReportResponse(ReportResponse):
    most_active_gateways: List[str]
    least_active_gateways: List[str]
    gateways_load_ratio: Dict[str, float]
    granularity: Optional[str] = None
    histogram: List[HistogramBucket[datetime]]

    @classmethod
    def from_report(cls, report: NetworkReport) -> NetworkReportResponse:
        return cls(
            code=report.code,
            start_date=report.start_date,
            end_date=report.end_date,
            number_of_measurements=report.number_of_measurements,
            most_active_gateways=list(report.most_active_gateways),
            least_active_gateways=list(report.least_active_gateways),
            gateways_load_ratio=dict(report.gateways_load_ratio),
            granularity=report.granularity,
            histogram=_buckets(report),
        )


class GatewayReportResponse(ReportResponse):
    """Gateway report; histogram bounds are inter-arrival times in seconds."""

    most_active_sensors: List[str]
    least_active_sensors: List[str]
    sensors_load_ratio: Dict[str, float]
    outlier_sensors: List[str]
    battery_charge: float
    histogram: List[HistogramBucket[float]]

    @classmethod
    def from_report(cls, report: GatewayReport) -> GatewayReportResponse:
        return cls(
            code=report.code,
            start_date=report.start_date,
            end_date=report.end_date,
            number_of_measurements=report.number_of_measurements,
            most_active_sensors=list(report.most_active_sensors),
            least_active_sensors=list(report.least_active_sensors),
            sensors_load_ratio=dict(report.sensors_load_ratio),
            outlier_sensors=list(report.outlier_sensors),
            battery_charge=report.battery_charge,
            histogram=[
                {
                    **bucket,
                    "start": bucket["start"].total_seconds(),
                    "end": bucket["end"].total_seconds(),
                }
                for bucket in _buckets(report)
            ],
        )


class SensorReportResponse(ReportResponse):
    mean: float
    variance: float
    std_dev: float
    minimum_measured_value: float
    maximum_measured_value: float
    outliers: List[MeasurementModel]
    histogram: List[HistogramBucket[float]]

    @classmethod
    def from_report(cls, report: SensorReport) -> SensorReportResponse:
        return cls(
            code=report.code,
            start_date=report.start_date,
            end_date=report.end_date,
            number_of_measurements=report.number_of_measurements,
            mean=report.mean,
            variance=report.variance,
            std_dev=report.std_dev,
            minimum_measured_value=report.minimum_measured_value,
            maximum_measured_value=report.maximum_measured_value,
            outliers=[MeasurementModel.model_validate(item) for item in report.outliers],
            histogram=_buckets(report),
        )


class AuditModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_by: Optional[str] = None
    modified_at: Optional[datetime] = None


class UserCreate(BaseModel):
    username: Optional[str] = None
    type: UserType = UserType.VIEWER


class UserModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    username: str
    type: UserType


class EntityCreate(BaseModel):
    """Body shared by network, gateway and sensor creation."""

    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class EntityUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class OperatorCreate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None


class OperatorModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None


class ParameterCreate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    value: float


class ParameterUpdate(BaseModel):
    value: float


class ParameterModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    value: float


class ThresholdPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: Optional[ThresholdType] = None
    value: float


class NetworkModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    gateway_codes: List[str] = Field(default_factory=list)
    operator_emails: List[str] = Field(default_factory=list)
    audit: AuditModel


class GatewayModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    parameters: List[ParameterModel] = Field(default_factory=list)
    sensor_codes: List[str] = Field(default_factory=list)
    audit: AuditModel


class SensorModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    threshold: Optional[ThresholdPayload] = None
    audit: AuditModel
