from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

LOCATION_PLACEHOLDER = "Location not available"


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_fill(value: Any) -> str:
    if value is None:
        return "-"
    return f"{float(value):.1f}%"


def _location_text(payload: Dict[str, Any]) -> str:
    location = payload.get("location") or {}
    return location.get("address") or LOCATION_PLACEHOLDER


def render_outcome(payload: Dict[str, Any]) -> None:
    echo_heading("Reading Outcome")
    echo_key_values(
        [
            ("sensor_id", payload.get("sensor_id")),
            ("status", payload.get("status")),
            ("evaluated_at", payload.get("evaluated_at")),
        ]
    )
    if payload.get("status") == "unresolved":
        typer.secho("No bin is registered for this sensor.", fg=typer.colors.YELLOW)
        return

    echo_key_values(
        [
            ("bin_id", payload.get("bin_id")),
            ("fill", _format_fill(payload.get("fill_percentage"))),
            ("state", payload.get("state")),
            ("notified", payload.get("notified")),
        ]
    )


def render_bin(payload: Dict[str, Any]) -> None:
    echo_heading(f"Bin {payload.get('name')}")
    echo_key_values(
        [
            ("bin_id", payload.get("bin_id")),
            ("sensor_id", payload.get("sensor_id")),
            ("fill", _format_fill(payload.get("current_fill_percentage"))),
            ("threshold", _format_fill(payload.get("threshold"))),
            ("state", payload.get("state")),
            ("last_alert_time", payload.get("last_alert_time")),
            ("location", _location_text(payload)),
        ]
    )

    recipients = payload.get("recipients") or []
    typer.echo()
    echo_heading("Recipients")
    if recipients:
        for recipient in recipients:
            typer.echo(f"  - {recipient.get('name')}: {recipient.get('email') or 'no email'}")
    else:
        typer.echo("No recipients assigned.")


def render_bins(bins: Iterable[Dict[str, Any]]) -> None:
    items = list(bins)
    echo_heading("Bins")
    if not items:
        typer.echo("No bins found.")
        return
    for payload in items:
        line = (
            f"  - {payload.get('bin_id')} {payload.get('name')}: "
            f"{_format_fill(payload.get('current_fill_percentage'))} "
            f"({_location_text(payload)})"
        )
        if payload.get("is_full"):
            typer.secho(line, fg=typer.colors.RED)
        else:
            typer.secho(line, fg=typer.colors.GREEN)
