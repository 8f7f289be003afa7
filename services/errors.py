"""Errors raised by the weather report services."""

from __future__ import annotations


class WeatherReportError(Exception):
    """Base error carrying a stable numeric code."""

    NOT_FOUND = 100
    INVALID_INPUT_DATA = 200
    ID_ALREADY_IN_USE = 300
    UNAUTHORIZED = 400

    error_code: int = 0

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ElementNotFoundError(WeatherReportError):
    error_code = WeatherReportError.NOT_FOUND


class InvalidInputDataError(WeatherReportError):
    error_code = WeatherReportError.INVALID_INPUT_DATA


class IdAlreadyInUseError(WeatherReportError):
    error_code = WeatherReportError.ID_ALREADY_IN_USE


class UnauthorizedError(WeatherReportError):
    """The username is unknown or does not belong to a maintainer."""

    error_code = WeatherReportError.UNAUTHORIZED
