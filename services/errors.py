"""Failures that abort a forwarding run."""

from __future__ import annotations

from typing import Optional


class ForwarderError(Exception):
    """Base class for unrecoverable pipeline failures."""

    stage = "run"


class FetchError(ForwarderError):
    """The readings API call for a device/sensor pair failed or returned an unusable body."""

    stage = "fetch"

    def __init__(self, device: str, sensor: str, reason: str) -> None:
        super().__init__(f"Fetching {sensor} readings for device {device} failed: {reason}")
        self.device = device
        self.sensor = sensor
        self.reason = reason


class OversizedRecordError(ForwarderError):
    """A single record does not fit even in an empty batch."""

    stage = "pack"

    def __init__(self, payload: str, batch_number: int) -> None:
        super().__init__(
            f"Record of {len(payload.encode('utf-8'))} bytes does not fit an empty batch "
            f"(batch {batch_number})."
        )
        self.payload = payload
        self.batch_number = batch_number


class SendError(ForwarderError):
    """The ingestion sink failed to create or transmit a batch."""

    stage = "send"

    def __init__(self, reason: str, batch_number: Optional[int] = None) -> None:
        message = reason if batch_number is None else f"Batch {batch_number}: {reason}"
        super().__init__(message)
        self.reason = reason
        self.batch_number = batch_number
