from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_temperature(value: Any) -> str:
    if value is None:
        return "--"
    return f"{float(value):.2f} °C"


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Session Status")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("detail", payload.get("detail")),
            ("device", payload.get("device_address") or "none"),
            ("temperature", _format_temperature(payload.get("current_temperature"))),
            ("readings", payload.get("reading_count")),
        ]
    )
    if payload.get("error"):
        typer.secho(f"error: {payload['error']}", fg=typer.colors.RED)


def render_devices(devices: List[Dict[str, Any]]) -> None:
    echo_heading("Devices")
    if not devices:
        typer.echo("No devices found. Make sure the sensor is powered on.")
        return
    for device in devices:
        name = device.get("name") or "Unknown Device"
        rssi = device.get("rssi")
        suffix = f" ({rssi} dBm)" if rssi is not None else ""
        typer.echo(f"  - {device.get('address')}  {name}{suffix}")


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading("Readings")
    echo_key_values(
        [
            ("current", _format_temperature(payload.get("current_temperature"))),
            ("count", payload.get("count")),
        ]
    )
    readings = payload.get("readings") or []
    if not readings:
        typer.echo("No readings recorded.")
        return
    for reading in readings:
        typer.echo(f"  {reading.get('timestamp')}  {_format_temperature(reading.get('temperature'))}")


def render_insights(payload: Dict[str, Any]) -> None:
    echo_heading("Soil Insights")
    echo_key_values(
        [
            ("soil_temperature", _format_temperature(payload.get("soil_temperature"))),
            ("ambient_temperature", _format_temperature(payload.get("ambient_temperature"))),
            ("trend_per_day", f"{payload.get('trend_per_day', 0.0):+.2f} °C/day"),
            ("health_score", f"{payload.get('health_score', 0.0):.0f}/100"),
        ]
    )

    message = payload.get("message") or ""
    if payload.get("is_alert"):
        typer.secho(message, fg=typer.colors.RED, bold=True)
    else:
        typer.echo(message)

    typer.echo()
    echo_heading("Last 24 Hours")
    echo_key_values(
        [
            ("average", _format_temperature(payload.get("average_24h"))),
            ("highest", _format_temperature(payload.get("high_24h"))),
            ("lowest", _format_temperature(payload.get("low_24h"))),
        ]
    )

    typer.echo()
    echo_heading("Crop Recommendations")
    crops = payload.get("recommended_crops") or []
    if crops:
        for crop in crops:
            typer.echo(f"  - {crop}")
    else:
        typer.echo("No crops match the current soil temperature range.")
    typer.echo(f"planting_window: {payload.get('planting_window')}")

    forecast = payload.get("forecast") or []
    if forecast:
        typer.echo()
        echo_heading("Forecast")
        for day in forecast:
            typer.echo(
                f"  {day.get('day')}: {day.get('condition')} "
                f"{day.get('min_temp_c')}-{day.get('max_temp_c')} °C"
            )
