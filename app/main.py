from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from app.entities import router as entities_router
from logging_config import configure_logging
from services.weather_report import build_default_weather_report


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    service = build_default_weather_report()
    try:
        yield
    finally:
        service.shutdown()
        build_default_weather_report.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Weather Report",
        description="Measurement imports and network, gateway and sensor reports.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(entities_router)
    return app

app = create_app()
