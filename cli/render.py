from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_REPORT_FIELDS = {
    "network": ("most_active_gateways", "least_active_gateways", "gateways_load_ratio", "granularity"),
    "gateway": (
        "most_active_sensors",
        "least_active_sensors",
        "sensors_load_ratio",
        "outlier_sensors",
        "battery_charge",
    ),
    "sensor": (
        "mean",
        "variance",
        "std_dev",
        "minimum_measured_value",
        "maximum_measured_value",
    ),
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {_format_value(value)}")


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(item) for item in value) or "-"
    if isinstance(value, dict):
        return ", ".join(f"{key}={item:.3f}" for key, item in value.items()) or "-"
    if value is None:
        return "-"
    return str(value)


def render_result(payload: Dict[str, Any]) -> None:
    echo_heading("Import Result")
    echo_key_values(
        [
            ("import_id", payload.get("import_id")),
            ("filename", payload.get("filename")),
            ("status", payload.get("status")),
            ("uploaded_at", payload.get("uploaded_at")),
            ("processed_at", payload.get("processed_at")),
            ("processing_ms", payload.get("processing_ms")),
            ("imported_count", payload.get("imported_count")),
        ]
    )

    errors = payload.get("errors") or []
    typer.echo()
    echo_heading("Errors")
    if errors:
        for error in errors:
            typer.echo(f"  - row {error.get('row_number')}: {error.get('reason')}")
    else:
        typer.echo("No errors recorded.")


def render_report(kind: str, payload: Dict[str, Any]) -> None:
    echo_heading(f"{kind.capitalize()} Report {payload.get('code')}")
    echo_key_values(
        [
            ("start_date", payload.get("start_date")),
            ("end_date", payload.get("end_date")),
            ("number_of_measurements", payload.get("number_of_measurements")),
        ]
        + [(field, payload.get(field)) for field in _REPORT_FIELDS[kind]]
    )

    outliers: List[Dict[str, Any]] = payload.get("outliers") or []
    if outliers:
        typer.echo()
        echo_heading("Outliers")
        for outlier in outliers:
            typer.echo(f"  - {outlier.get('timestamp')}: {outlier.get('value')}")

    typer.echo()
    echo_heading("Histogram")
    histogram = payload.get("histogram") or []
    if not histogram:
        typer.echo("No measurements in range.")
    for bucket in histogram:
        closing = "]" if bucket.get("is_last") else ")"
        typer.echo(f"  [{bucket.get('start')}, {bucket.get('end')}{closing}: {bucket.get('count')}")
