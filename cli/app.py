from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_devices, render_insights, render_readings, render_status


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the soil temperature monitor service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Monitor API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the connection status and latest temperature."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("scan")
def scan_command(ctx: typer.Context) -> None:
    """Scan for nearby sensors."""
    state = _get_state(ctx)
    typer.echo("Scanning for devices...")
    render_devices(state.client.scan())


@app.command("connect")
def connect_command(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Address reported by the scan command."),
) -> None:
    """Connect to a sensor and start recording its readings."""
    state = _get_state(ctx)
    typer.echo(f"Connecting to {address} ...")
    payload = state.client.connect(address)
    typer.secho(payload.get("detail", "Connected."), fg=typer.colors.GREEN)


@app.command("disconnect")
def disconnect_command(ctx: typer.Context) -> None:
    """Disconnect from the current sensor."""
    state = _get_state(ctx)
    payload = state.client.disconnect()
    typer.echo(payload.get("detail", "Disconnected."))


@app.command("command")
def command_command(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Command text, e.g. BUZZER_ON or BUZZER_OFF."),
) -> None:
    """Send a raw command to the connected sensor."""
    state = _get_state(ctx)
    state.client.send_command(text)
    typer.secho(f"Sent {text}", fg=typer.colors.GREEN)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(20, "--limit", "-n", min=1, help="Number of recent readings."),
) -> None:
    """List recent readings."""
    state = _get_state(ctx)
    render_readings(state.client.get_readings(limit=limit))


@app.command("add")
def add_command(
    ctx: typer.Context,
    temperature: float = typer.Argument(..., help="Temperature in degrees Celsius."),
) -> None:
    """Record a manually measured temperature."""
    state = _get_state(ctx)
    reading = state.client.add_reading(temperature)
    typer.secho(
        f"Recorded {reading.get('temperature')} °C at {reading.get('timestamp')}",
        fg=typer.colors.GREEN,
    )


@app.command("clear")
def clear_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete all stored readings."""
    state = _get_state(ctx)
    if not yes:
        typer.confirm("Delete all stored readings?", abort=True)
    state.client.clear_readings()
    typer.echo("Reading history cleared.")


@app.command("insights")
def insights_command(ctx: typer.Context) -> None:
    """Show soil health, alerts and crop recommendations."""
    state = _get_state(ctx)
    render_insights(state.client.get_insights())
