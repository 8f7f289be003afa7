from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_report, render_result


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the weather report service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
report_app = typer.Typer(help="Show network, gateway and sensor reports.")
app.add_typer(report_app, name="report")


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between status checks when waiting for an import.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Maximum seconds to wait when polling for results.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        poll_interval=poll_interval,
        poll_timeout=timeout,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("upload")
def upload_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to CSV file."),
    wait: bool = typer.Option(
        False,
        "--wait/--no-wait",
        help="Wait for the import to finish and display the result.",
    ),
) -> None:
    """Upload a measurements CSV for asynchronous import."""
    state = _get_state(ctx)
    typer.echo(f"Uploading {file} to {state.config.base_url} ...")
    import_id = state.client.upload_file(file)
    typer.secho(f"Upload accepted. import_id={import_id}", fg=typer.colors.GREEN)

    if not wait:
        return

    interval = state.config.poll_interval
    poll_timeout = state.config.poll_timeout
    typer.echo(f"Waiting for import (interval={interval}s, timeout={poll_timeout}s)...")
    result = state.client.poll_result(import_id, interval=interval, timeout=poll_timeout)
    typer.echo()
    render_result(result)


@app.command("import-result")
def import_result_command(
    ctx: typer.Context,
    import_id: str = typer.Argument(..., help="Identifier returned from the upload command."),
) -> None:
    """Fetch the status and row errors of an import."""
    state = _get_state(ctx)
    render_result(state.client.get_result(import_id))


def _show_report(
    ctx: typer.Context, kind: str, code: str, start: Optional[str], end: Optional[str]
) -> None:
    state = _get_state(ctx)
    render_report(kind, state.client.get_report(kind, code, start, end))


_START = typer.Option(None, "--start", help="Inclusive start, 'yyyy-MM-dd HH:mm:ss'.")
_END = typer.Option(None, "--end", help="Inclusive end, 'yyyy-MM-dd HH:mm:ss'.")


@report_app.command("network")
def network_report_command(
    ctx: typer.Context,
    code: str = typer.Argument(..., help="Network code, e.g. NET_01."),
    start: Optional[str] = _START,
    end: Optional[str] = _END,
) -> None:
    """Gateway activity and hourly or daily measurement counts."""
    _show_report(ctx, "network", code, start, end)


@report_app.command("gateway")
def gateway_report_command(
    ctx: typer.Context,
    code: str = typer.Argument(..., help="Gateway code, e.g. GW_0001."),
    start: Optional[str] = _START,
    end: Optional[str] = _END,
) -> None:
    """Sensor activity, outlier sensors and inter-arrival times."""
    _show_report(ctx, "gateway", code, start, end)


@report_app.command("sensor")
def sensor_report_command(
    ctx: typer.Context,
    code: str = typer.Argument(..., help="Sensor code, e.g. S_000001."),
    start: Optional[str] = _START,
    end: Optional[str] = _END,
) -> None:
    """Value statistics, outliers and value distribution."""
    _show_report(ctx, "sensor", code, start, end)
