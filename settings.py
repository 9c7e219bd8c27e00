from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, Mapping, Optional


_API_BASE_URL_ENV = "SCK_API_BASE_URL"
_DEVICES_ENV = "SCK_DEVICES"
_SENSORS_ENV = "SCK_SENSORS"
_FROM_DATE_ENV = "SCK_FROM_DATE"
_TO_DATE_ENV = "SCK_TO_DATE"
_ROLLUP_ENV = "SCK_ROLLUP"
_HTTP_TIMEOUT_ENV = "SCK_HTTP_TIMEOUT"
_WORKER_COUNT_ENV = "FETCH_WORKER_COUNT"
_CONNECTION_STRING_ENV = "EVENTHUB_CONNECTION_STRING"
_EVENTHUB_NAME_ENV = "EVENTHUB_NAME"
_DRY_RUN_BATCH_BYTES_ENV = "DRY_RUN_BATCH_BYTES"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_API_BASE_URL = "https://api.smartcitizen.me/v0"
DEFAULT_DEVICES = "VDK09=12613,VDK05=12611"
# Every sensor the Smart Citizen kits report, by name. Any subset may be
# selected through SCK_SENSORS; the defaults leave out TVOC, BATTERY, PM1_0
# and PM10_0.
SENSOR_CATALOG = (
    "TVOC=113,ECO2=112,LIGHT=14,BATTERY=10,NOISE=53,PRESSURE=58,"
    "PM1_0=89,PM2_5=87,PM10_0=88,HUMIDITY=56,TEMPERATURE=55"
)
DEFAULT_SENSORS = (
    "ECO2=112,LIGHT=14,NOISE=53,PRESSURE=58,PM2_5=87,HUMIDITY=56,TEMPERATURE=55"
)
DEFAULT_FROM_DATE = "2021-07-01T00:00:00Z"
DEFAULT_TO_DATE = "2021-10-01T00:00:00Z"
DEFAULT_ROLLUP = "1s"
DEFAULT_BATCH_BYTES = 1024 * 1024


class ConfigurationError(ValueError):
    """Raised when environment configuration cannot be turned into Settings."""


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    devices: Mapping[str, int]
    sensors: Mapping[str, int]
    from_date: datetime
    to_date: datetime
    rollup: str
    http_timeout: float
    fetch_workers: int
    eventhub_connection_string: Optional[str]
    eventhub_name: Optional[str]
    dry_run_batch_bytes: int
    log_level: str

    def with_overrides(
        self,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        rollup: Optional[str] = None,
        fetch_workers: Optional[int] = None,
    ) -> "Settings":
        """Return a copy with command-line overrides applied and re-validated."""
        updated = replace(
            self,
            from_date=self.from_date if from_date is None else _as_utc(from_date),
            to_date=self.to_date if to_date is None else _as_utc(to_date),
            rollup=self.rollup if not rollup else rollup.strip(),
            fetch_workers=self.fetch_workers if not fetch_workers or fetch_workers < 1 else fetch_workers,
        )
        _validate_window(updated.from_date, updated.to_date)
        return updated

    def require_eventhub(self) -> tuple[str, str]:
        if not self.eventhub_connection_string or not self.eventhub_name:
            raise ConfigurationError(
                f"{_CONNECTION_STRING_ENV} and {_EVENTHUB_NAME_ENV} must be set to send to Event Hubs."
            )
        return self.eventhub_connection_string, self.eventhub_name


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError(f"Invalid timestamp format: {value!r}") from exc

    return _as_utc(parsed)


def parse_identifier_table(raw: str, label: str) -> Mapping[str, int]:
    """Parse ``NAME=ID,NAME=ID`` into an ordered name to id mapping.

    Names must be unique and non-empty, ids unique positive integers.
    """
    table: Dict[str, int] = {}
    for chunk in raw.split(","):
        entry = chunk.strip()
        if not entry:
            continue
        name, sep, raw_id = entry.partition("=")
        name = name.strip()
        raw_id = raw_id.strip()
        if not sep or not name or not raw_id:
            raise ConfigurationError(f"Invalid {label} entry {entry!r}; expected NAME=ID.")
        try:
            identifier = int(raw_id)
        except ValueError as exc:
            raise ConfigurationError(f"{label} {name!r} has a non-numeric id {raw_id!r}.") from exc
        if identifier <= 0:
            raise ConfigurationError(f"{label} {name!r} must have a positive id.")
        if name in table:
            raise ConfigurationError(f"Duplicate {label} name {name!r}.")
        if identifier in table.values():
            raise ConfigurationError(f"Duplicate {label} id {identifier}.")
        table[name] = identifier

    if not table:
        raise ConfigurationError(f"At least one {label} must be configured.")
    return MappingProxyType(table)


def _read_date(name: str, default: str) -> datetime:
    raw = _read_str_env(name, default)
    try:
        return parse_timestamp(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name}: {exc}") from exc


def _validate_window(from_date: datetime, to_date: datetime) -> None:
    if from_date > to_date:
        raise ConfigurationError(
            f"Start of window {from_date.isoformat()} is after its end {to_date.isoformat()}."
        )


@lru_cache
def get_settings() -> Settings:
    from_date = _read_date(_FROM_DATE_ENV, DEFAULT_FROM_DATE)
    to_date = _read_date(_TO_DATE_ENV, DEFAULT_TO_DATE)
    _validate_window(from_date, to_date)
    return Settings(
        api_base_url=_read_str_env(_API_BASE_URL_ENV, DEFAULT_API_BASE_URL).rstrip("/"),
        devices=parse_identifier_table(_read_str_env(_DEVICES_ENV, DEFAULT_DEVICES), "device"),
        sensors=parse_identifier_table(_read_str_env(_SENSORS_ENV, DEFAULT_SENSORS), "sensor"),
        from_date=from_date,
        to_date=to_date,
        rollup=_read_str_env(_ROLLUP_ENV, DEFAULT_ROLLUP),
        http_timeout=_read_positive_float(_HTTP_TIMEOUT_ENV, 60.0),
        fetch_workers=_read_positive_int(_WORKER_COUNT_ENV, 1),
        eventhub_connection_string=_read_optional_env(_CONNECTION_STRING_ENV, None),
        eventhub_name=_read_optional_env(_EVENTHUB_NAME_ENV, None),
        dry_run_batch_bytes=_read_positive_int(_DRY_RUN_BATCH_BYTES_ENV, DEFAULT_BATCH_BYTES),
        log_level=_read_log_level("INFO"),
    )
