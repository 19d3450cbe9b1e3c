from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn
from pydantic import TypeAdapter, ValidationError

from app.schemas import Reading
from cli.render import render_batch
from logging_config import configure_logging
from services.api_client import build_default_client
from services.processor import build_default_pipeline
from services.relay import RelayState, build_default_relay

_readings_adapter = TypeAdapter(List[Reading])

app = typer.Typer(
    help="Utilities for running the field telemetry relay and engine.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (defaults to LOG_LEVEL env or INFO).",
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging(log_level.upper() if log_level else None)


@app.command("serve")
def serve_command(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(5000, "--port", help="Port to listen on."),
) -> None:
    """Serve the ingestion API that runs the processing pipeline."""
    uvicorn.run("app.main:app", host=host, port=port, log_config=None)


@app.command("relay")
def relay_command(
    poll_interval: float = typer.Option(
        1.0,
        "--poll-interval",
        min=0.1,
        help="Seconds the queue I/O loop waits for events per iteration.",
    ),
) -> None:
    """Consume the readings queue and forward each message to the ingestion API."""
    client = build_default_client()
    relay = build_default_relay(client)
    try:
        if not relay.start():
            typer.secho(
                "Relay failed to start; see logs for details.",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        typer.secho(f"Relay consuming from {relay.queue_name}.", fg=typer.colors.GREEN)
        try:
            relay.serve_forever(poll_interval=poll_interval)
        except KeyboardInterrupt:
            typer.echo("Interrupted, shutting down.")
        lost_connection = relay.state is RelayState.idle
    finally:
        relay.stop()
        client.close()
    if lost_connection:
        raise typer.Exit(code=1)


def _load_readings(path: Path) -> List[Reading]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc.msg}") from exc
    if isinstance(payload, dict):
        payload = [payload]
    try:
        return _readings_adapter.validate_python(payload)
    except ValidationError as exc:
        raise typer.BadParameter(f"{path} does not contain valid readings: {exc}") from exc


@app.command("process")
def process_command(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="JSON file with one reading or a list of readings.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw batch result as JSON."),
) -> None:
    """Run readings from a file through the processing pipeline locally."""
    readings = _load_readings(file)
    pipeline = build_default_pipeline()
    try:
        result = pipeline.process_batch(readings)
    finally:
        pipeline.shutdown()
        build_default_pipeline.cache_clear()

    payload = result.model_dump(mode="json", by_alias=True)
    if as_json:
        typer.echo(json.dumps(payload, indent=2))
    else:
        render_batch(payload)
    if result.failed:
        raise typer.Exit(code=1)


@app.command("alerts-evaluate")
def alerts_evaluate_command() -> None:
    """Ask the API to raise alerts once (schedule hourly)."""
    client = build_default_client()
    try:
        ok = client.create_alerts()
    finally:
        client.close()
    _report("Alert creation", ok)


@app.command("alerts-deactivate")
def alerts_deactivate_command() -> None:
    """Ask the API to deactivate stale alerts once (schedule daily)."""
    client = build_default_client()
    try:
        ok = client.deactivate_alerts()
    finally:
        client.close()
    _report("Alert deactivation", ok)


def _report(label: str, ok: bool) -> None:
    # Failures are reported but never fail the scheduled job.
    if ok:
        typer.secho(f"{label} requested.", fg=typer.colors.GREEN)
    else:
        typer.secho(f"{label} failed; see logs for details.", fg=typer.colors.YELLOW, err=True)
