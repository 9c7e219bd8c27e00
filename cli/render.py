from __future__ import annotations

from typing import Any, Iterable, Sequence

import typer

from models.records import format_timestamp
from models.schemas import RunSummary
from settings import Settings


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_summary(summary: RunSummary) -> None:
    echo_heading("Run Summary")
    echo_key_values(
        [
            ("mode", "dry-run" if summary.dry_run else "eventhub"),
            ("pairs", summary.pair_count),
            ("records_sent", summary.record_count),
            ("batches_sent", summary.batch_count),
            ("started_at", summary.started_at.isoformat()),
            ("finished_at", summary.finished_at.isoformat()),
            ("elapsed_minutes", f"{summary.elapsed_ms / 60000:.2f}"),
        ]
    )


def render_pairs(settings: Settings, pairs: Sequence[tuple[str, int, str, int]]) -> None:
    echo_heading("Request Window")
    echo_key_values(
        [
            ("from", format_timestamp(settings.from_date)),
            ("to", format_timestamp(settings.to_date)),
            ("rollup", settings.rollup),
        ]
    )
    typer.echo()
    echo_heading(f"Pairs ({len(pairs)})")
    for device, device_id, sensor, sensor_id in pairs:
        typer.echo(f"  - {device} ({device_id}) / {sensor} ({sensor_id})")
