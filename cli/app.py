from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_bin, render_bins, render_outcome


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the smart bin monitor service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


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
        help="Monitor API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("reading")
def reading_command(
    ctx: typer.Context,
    sensor_id: str = typer.Argument(..., help="Identifier of the reporting sensor."),
    distance: float = typer.Argument(..., help="Measured distance to the fill surface."),
) -> None:
    """Send a distance reading and show how the bin was evaluated."""
    state = _get_state(ctx)
    typer.echo(f"Sending reading {sensor_id}={distance} to {state.config.base_url} ...")
    payload = state.client.send_reading(sensor_id, distance)
    render_outcome(payload)


@app.command("bins")
def bins_command(
    ctx: typer.Context,
    full: bool = typer.Option(
        False,
        "--full/--all",
        help="Only list bins at or above their threshold.",
    ),
) -> None:
    """List bins, fullest first."""
    state = _get_state(ctx)
    render_bins(state.client.list_bins(full=full))


@app.command("bin")
def bin_command(
    ctx: typer.Context,
    bin_id: str = typer.Argument(..., help="Identifier of the bin."),
) -> None:
    """Show fill level, alert state and recipients for a bin."""
    state = _get_state(ctx)
    render_bin(state.client.get_bin(bin_id))
