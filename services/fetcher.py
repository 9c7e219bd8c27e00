"""HTTP client for the Smart Citizen readings API."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

import httpx
from pydantic import ValidationError

from models.records import SensorRecord, format_timestamp
from models.schemas import ReadingsResponse
from services.errors import FetchError

logger = logging.getLogger(__name__)


class ReadingFetcher:
    """Fetches one rolled-up reading series per (device, sensor) call."""

    def __init__(
        self,
        base_url: str,
        rollup: str,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rollup = rollup
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def __enter__(self) -> "ReadingFetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch(
        self,
        device: str,
        device_id: int,
        sensor: str,
        sensor_id: int,
        from_time: datetime,
        to_time: datetime,
    ) -> List[SensorRecord]:
        context = {"stage": "fetch", "device": device, "sensor": sensor}
        params = {
            "sensor_id": str(sensor_id),
            "rollup": self.rollup,
            "from": format_timestamp(from_time),
            "to": format_timestamp(to_time),
        }
        try:
            response = self._client.get(f"/devices/{device_id}/readings", params=params)
            response.raise_for_status()
            body = ReadingsResponse.model_validate_json(response.content)
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                device, sensor, f"status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(device, sensor, str(exc) or type(exc).__name__) from exc
        except ValidationError as exc:
            raise FetchError(
                device, sensor, f"unexpected response body ({exc.error_count()} errors)"
            ) from exc

        if not body.readings:
            logger.warning("No readings returned", extra=context)
            return []

        records = [
            SensorRecord(
                device=device,
                device_id=device_id,
                sensor=sensor,
                sensor_id=sensor_id,
                timestamp=timestamp,
                value=value,
            )
            for timestamp, value in body.readings
        ]
        logger.debug("Fetched readings", extra={**context, "record_count": len(records)})
        return records
