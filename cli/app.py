from __future__ import annotations

from datetime import datetime
from typing import Optional

import typer

from cli.render import render_pairs, render_summary
from logging_config import configure_logging
from services.errors import ForwarderError
from services.forwarder import ForwarderService, build_forwarder, configured_pairs
from settings import ConfigurationError, Settings, get_settings, parse_timestamp

app = typer.Typer(
    help="Forward Smart Citizen sensor readings to Azure Event Hubs.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _parse_optional_timestamp(value: Optional[str], option: str) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint=option) from exc


def _load_settings(
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    rollup: Optional[str] = None,
    workers: Optional[int] = None,
) -> Settings:
    start = _parse_optional_timestamp(from_date, "--from")
    end = _parse_optional_timestamp(to_date, "--to")
    try:
        return get_settings().with_overrides(
            from_date=start,
            to_date=end,
            rollup=rollup,
            fetch_workers=workers,
        )
    except ConfigurationError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


@app.callback()
def main() -> None:
    """Entry point for the CLI."""


@app.command("run")
def run_command(
    from_date: Optional[str] = typer.Option(
        None, "--from", help="Start of the UTC window (ISO-8601, defaults to SCK_FROM_DATE)."
    ),
    to_date: Optional[str] = typer.Option(
        None, "--to", help="End of the UTC window (ISO-8601, defaults to SCK_TO_DATE)."
    ),
    rollup: Optional[str] = typer.Option(
        None, "--rollup", help="Server-side aggregation granularity, e.g. 1s or 1m."
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Number of concurrent fetches."
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run/--send",
        help="Pack into in-memory batches instead of sending to Event Hubs.",
    ),
) -> None:
    """Fetch readings for every configured pair and forward them in batches."""
    settings = _load_settings(from_date, to_date, rollup, workers)
    configure_logging(settings.log_level)

    try:
        forwarder: ForwarderService = build_forwarder(settings, dry_run=dry_run)
    except ConfigurationError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    try:
        summary = forwarder.run()
    except ForwarderError as exc:
        typer.secho(f"Run failed during {exc.stage}: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    finally:
        forwarder.close()

    render_summary(summary)


@app.command("pairs")
def pairs_command() -> None:
    """List configured device/sensor pairs and the request window."""
    settings = _load_settings()
    render_pairs(settings, configured_pairs(settings))
