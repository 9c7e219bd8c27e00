"""Pydantic schemas for the readings API and run reporting."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, List, Tuple

from pydantic import BaseModel, Field, field_validator

FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]


class ReadingsResponse(BaseModel):
    """Body returned by ``GET /devices/{id}/readings``.

    Only ``readings`` is consumed; the API's other fields are ignored. Each
    reading must be an ISO-8601 string paired with a finite JSON number.
    """

    readings: List[Tuple[datetime, FiniteFloat]]

    @field_validator("readings", mode="before")
    @classmethod
    def _reject_coercible_values(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        for index, reading in enumerate(value):
            if not isinstance(reading, (list, tuple)) or len(reading) != 2:
                continue
            timestamp, number = reading
            if not isinstance(timestamp, str):
                raise ValueError(f"reading {index}: timestamp must be an ISO-8601 string")
            # bool is an int subclass; JSON true/false is not a reading.
            if isinstance(number, bool) or not isinstance(number, (int, float)):
                raise ValueError(f"reading {index}: value must be a number")
        return value

    @field_validator("readings")
    @classmethod
    def _normalize_to_utc(
        cls, value: List[Tuple[datetime, float]]
    ) -> List[Tuple[datetime, float]]:
        normalized: List[Tuple[datetime, float]] = []
        for timestamp, reading in value:
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            normalized.append((timestamp.astimezone(timezone.utc), reading))
        return normalized


class RunSummary(BaseModel):
    """Outcome of one forwarding run."""

    pair_count: int = Field(..., ge=0)
    record_count: int = Field(..., ge=0)
    batch_count: int = Field(..., ge=0)
    started_at: datetime
    finished_at: datetime
    elapsed_ms: int = Field(..., ge=0, description="Wall-clock duration of the run.")
    dry_run: bool = False
