"""Domain models shared across services."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as round-trippable ISO-8601 UTC with a ``Z`` suffix."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass(frozen=True, slots=True)
class SensorRecord:
    """A single (device, sensor, timestamp, value) observation."""

    device: str
    device_id: int
    sensor: str
    sensor_id: int
    timestamp: datetime
    value: float


def serialize_record(record: SensorRecord) -> str:
    """Encode a record as the JSON message body sent to the ingestion sink.

    The sensor reading is keyed by the lower-cased sensor name, e.g.
    ``{"deviceId": "VDK09", "timestamp": "...", "temperature": 21.5}``.
    Non-finite values raise ``ValueError``; they have no JSON encoding.
    """
    payload = {
        "deviceId": record.device,
        "timestamp": format_timestamp(record.timestamp),
        record.sensor.lower(): record.value,
    }
    return json.dumps(payload, separators=(",", ":"), allow_nan=False)
