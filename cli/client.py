from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig

REPORT_KINDS = ("network", "gateway", "sensor")


class ApiClient:
    """Thin HTTP client for the weather report service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=30.0)

    def close(self) -> None:
        self._client.close()

    def upload_file(self, path: Path) -> str:
        if not path.is_file():
            raise typer.BadParameter(f"Path {path} is not a file.")

        try:
            with path.open("rb") as handle:
                response = self._client.post(
                    "/imports",
                    files={"file": (path.name, handle, "text/csv")},
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        import_id = response.json().get("import_id")
        if not isinstance(import_id, str):
            raise typer.BadParameter("Unexpected response payload when uploading file.")
        return import_id

    def get_result(self, import_id: str) -> Dict[str, Any]:
        try:
            response = self._client.get(f"/imports/{import_id}")
            if response.status_code == 404:
                raise typer.BadParameter(f"Import {import_id} was not found.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def poll_result(self, import_id: str, interval: float, timeout: float) -> Dict[str, Any]:
        deadline = time.monotonic() + timeout
        last_payload: Dict[str, Any] | None = None
        while time.monotonic() <= deadline:
            last_payload = self.get_result(import_id)
            if last_payload.get("status") not in {"uploaded", "processing"}:
                return last_payload
            time.sleep(interval)
        typer.secho(
            (
                f"Timed out waiting for import {import_id}. "
                f"Last status: {last_payload.get('status') if last_payload else 'unknown'}"
            ),
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    def get_report(
        self,
        kind: str,
        code: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        if kind not in REPORT_KINDS:
            raise typer.BadParameter(f"Unknown report kind {kind!r}.")
        params = {
            name: value
            for name, value in (("start_date", start_date), ("end_date", end_date))
            if value is not None
        }
        try:
            response = self._client.get(f"/{kind}s/{code}/report", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        try:
            detail = exc.response.json().get("detail")
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
