"""Entity management routes; the acting user comes from the ``X-Username`` header."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from app.api import get_weather_report, translate_errors
from app.schemas import (
    EntityCreate,
    EntityUpdate,
    GatewayModel,
    NetworkModel,
    OperatorCreate,
    OperatorModel,
    ParameterCreate,
    ParameterModel,
    ParameterUpdate,
    SensorModel,
    ThresholdPayload,
    UserCreate,
    UserModel,
)
from services.weather_report import WeatherReport

router = APIRouter()


def _only(items: list, kind: str, code: str):
    if not items:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} {code} not found")
    return items[0]


@router.post("/users", status_code=status.HTTP_201_CREATED, response_model=UserModel)
def create_user(
    body: UserCreate, service: WeatherReport = Depends(get_weather_report)
) -> UserModel:
    with translate_errors():
        user = service.users.create_user(body.username, body.type)
    return UserModel.model_validate(user)


@router.get("/users", response_model=List[UserModel])
def list_users(service: WeatherReport = Depends(get_weather_report)) -> List[UserModel]:
    return [UserModel.model_validate(user) for user in service.users.get_users()]


@router.get("/users/{username}", response_model=UserModel)
def get_user(username: str, service: WeatherReport = Depends(get_weather_report)) -> UserModel:
    with translate_errors():
        return UserModel.model_validate(service.users.get_user(username))


# Networks and operators


@router.post("/networks", status_code=status.HTTP_201_CREATED, response_model=NetworkModel)
def create_network(
    body: EntityCreate,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> NetworkModel:
    with translate_errors():
        network = service.networks.create_network(
            body.code, body.name, body.description, x_username
        )
    return NetworkModel.model_validate(network)


@router.get("/networks", response_model=List[NetworkModel])
def list_networks(
    codes: List[str] = Query(default=[]),
    service: WeatherReport = Depends(get_weather_report),
) -> List[NetworkModel]:
    return [NetworkModel.model_validate(item) for item in service.networks.get_networks(*codes)]


@router.get("/networks/{code}", response_model=NetworkModel)
def get_network(code: str, service: WeatherReport = Depends(get_weather_report)) -> NetworkModel:
    network = _only(service.networks.get_networks(code), "Network", code)
    return NetworkModel.model_validate(network)


@router.put("/networks/{code}", response_model=NetworkModel)
def update_network(
    code: str,
    body: EntityUpdate,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> NetworkModel:
    with translate_errors():
        network = service.networks.update_network(code, body.name, body.description, x_username)
    return NetworkModel.model_validate(network)


@router.delete("/networks/{code}", response_model=NetworkModel)
def delete_network(
    code: str,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> NetworkModel:
    with translate_errors():
        network = service.networks.delete_network(code, x_username)
    return NetworkModel.model_validate(network)


@router.post("/operators", status_code=status.HTTP_201_CREATED, response_model=OperatorModel)
def create_operator(
    body: OperatorCreate,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> OperatorModel:
    with translate_errors():
        operator = service.networks.create_operator(
            body.first_name, body.last_name, body.email, body.phone_number, x_username
        )
    return OperatorModel.model_validate(operator)


@router.get("/operators", response_model=List[OperatorModel])
def list_operators(service: WeatherReport = Depends(get_weather_report)) -> List[OperatorModel]:
    return [OperatorModel.model_validate(item) for item in service.networks.get_operators()]


@router.put("/networks/{code}/operators/{email}", response_model=NetworkModel)
def add_operator_to_network(
    code: str,
    email: str,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> NetworkModel:
    with translate_errors():
        network = service.networks.add_operator_to_network(code, email, x_username)
    return NetworkModel.model_validate(network)


# Gateways and parameters


@router.post("/gateways", status_code=status.HTTP_201_CREATED, response_model=GatewayModel)
def create_gateway(
    body: EntityCreate,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> GatewayModel:
    with translate_errors():
        gateway = service.gateways.create_gateway(
            body.code, body.name, body.description, x_username
        )
    return GatewayModel.model_validate(gateway)


@router.get("/gateways", response_model=List[GatewayModel])
def list_gateways(
    codes: List[str] = Query(default=[]),
    service: WeatherReport = Depends(get_weather_report),
) -> List[GatewayModel]:
    return [GatewayModel.model_validate(item) for item in service.gateways.get_gateways(*codes)]


@router.get("/gateways/{code}", response_model=GatewayModel)
def get_gateway(code: str, service: WeatherReport = Depends(get_weather_report)) -> GatewayModel:
    gateway = _only(service.gateways.get_gateways(code), "Gateway", code)
    return GatewayModel.model_validate(gateway)


@router.put("/gateways/{code}", response_model=GatewayModel)
def update_gateway(
    code: str,
    body: EntityUpdate,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> GatewayModel:
    with translate_errors():
        gateway = service.gateways.update_gateway(code, body.name, body.description, x_username)
    return GatewayModel.model_validate(gateway)


@router.delete("/gateways/{code}", response_model=GatewayModel)
def delete_gateway(
    code: str,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> GatewayModel:
    with translate_errors():
        gateway = service.gateways.delete_gateway(code, x_username)
    return GatewayModel.model_validate(gateway)


@router.post(
    "/gateways/{code}/parameters",
    status_code=status.HTTP_201_CREATED,
    response_model=ParameterModel,
)
def create_parameter(
    code: str,
    body: ParameterCreate,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> ParameterModel:
    with translate_errors():
        parameter = service.gateways.create_parameter(
            code, body.code, body.name, body.description, body.value, x_username
        )
    return ParameterModel.model_validate(parameter)


@router.put("/gateways/{code}/parameters/{parameter_code}", response_model=ParameterModel)
def update_parameter(
    code: str,
    parameter_code: str,
    body: ParameterUpdate,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> ParameterModel:
    with translate_errors():
        parameter = service.gateways.update_parameter(
            code, parameter_code, body.value, x_username
        )
    return ParameterModel.model_validate(parameter)


# Sensors and thresholds


@router.post("/sensors", status_code=status.HTTP_201_CREATED, response_model=SensorModel)
def create_sensor(
    body: EntityCreate,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> SensorModel:
    with translate_errors():
        sensor = service.sensors.create_sensor(body.code, body.name, body.description, x_username)
    return SensorModel.model_validate(sensor)


@router.get("/sensors", response_model=List[SensorModel])
def list_sensors(
    codes: List[str] = Query(default=[]),
    service: WeatherReport = Depends(get_weather_report),
) -> List[SensorModel]:
    return [SensorModel.model_validate(item) for item in service.sensors.get_sensors(*codes)]


@router.get("/sensors/{code}", response_model=SensorModel)
def get_sensor(code: str, service: WeatherReport = Depends(get_weather_report)) -> SensorModel:
    sensor = _only(service.sensors.get_sensors(code), "Sensor", code)
    return SensorModel.model_validate(sensor)


@router.put("/sensors/{code}", response_model=SensorModel)
def update_sensor(
    code: str,
    body: EntityUpdate,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> SensorModel:
    with translate_errors():
        sensor = service.sensors.update_sensor(code, body.name, body.description, x_username)
    return SensorModel.model_validate(sensor)


@router.delete("/sensors/{code}", response_model=SensorModel)
def delete_sensor(
    code: str,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> SensorModel:
    with translate_errors():
        sensor = service.sensors.delete_sensor(code, x_username)
    return SensorModel.model_validate(sensor)


@router.post(
    "/sensors/{code}/threshold",
    status_code=status.HTTP_201_CREATED,
    response_model=ThresholdPayload,
)
def create_threshold(
    code: str,
    body: ThresholdPayload,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> ThresholdPayload:
    with translate_errors():
        threshold = service.sensors.create_threshold(code, body.type, body.value, x_username)
    return ThresholdPayload.model_validate(threshold)


@router.put("/sensors/{code}/threshold", response_model=ThresholdPayload)
def update_threshold(
    code: str,
    body: ThresholdPayload,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> ThresholdPayload:
    with translate_errors():
        threshold = service.sensors.update_threshold(code, body.type, body.value, x_username)
    return ThresholdPayload.model_validate(threshold)


# Topology


@router.get("/networks/{code}/gateways", response_model=List[GatewayModel])
def network_gateways(
    code: str, service: WeatherReport = Depends(get_weather_report)
) -> List[GatewayModel]:
    with translate_errors():
        gateways = service.topology.get_network_gateways(code)
    return [GatewayModel.model_validate(item) for item in gateways]


@router.put("/networks/{code}/gateways/{gateway_code}", response_model=NetworkModel)
def connect_gateway(
    code: str,
    gateway_code: str,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> NetworkModel:
    with translate_errors():
        network = service.topology.connect_gateway(code, gateway_code, x_username)
    return NetworkModel.model_validate(network)


@router.delete("/networks/{code}/gateways/{gateway_code}", response_model=NetworkModel)
def disconnect_gateway(
    code: str,
    gateway_code: str,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> NetworkModel:
    with translate_errors():
        network = service.topology.disconnect_gateway(code, gateway_code, x_username)
    return NetworkModel.model_validate(network)


@router.get("/gateways/{code}/sensors", response_model=List[SensorModel])
def gateway_sensors(
    code: str, service: WeatherReport = Depends(get_weather_report)
) -> List[SensorModel]:
    with translate_errors():
        sensors = service.topology.get_gateway_sensors(code)
    return [SensorModel.model_validate(item) for item in sensors]


@router.put("/gateways/{code}/sensors/{sensor_code}", response_model=GatewayModel)
def connect_sensor(
    code: str,
    sensor_code: str,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> GatewayModel:
    with translate_errors():
        gateway = service.topology.connect_sensor(sensor_code, code, x_username)
    return GatewayModel.model_validate(gateway)


@router.delete("/gateways/{code}/sensors/{sensor_code}", response_model=GatewayModel)
def disconnect_sensor(
    code: str,
    sensor_code: str,
    x_username: Optional[str] = Header(None),
    service: WeatherReport = Depends(get_weather_report),
) -> GatewayModel:
    with translate_errors():
        gateway = service.topology.disconnect_sensor(sensor_code, code, x_username)
    return GatewayModel.model_validate(gateway)
