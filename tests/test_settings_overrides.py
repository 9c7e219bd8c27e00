from __future__ import annotations

from datetime import datetime, timezone

import pytest

from settings import (
    DEFAULT_SENSORS,
    SENSOR_CATALOG,
    ConfigurationError,
    get_settings,
    parse_identifier_table,
)


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults_match_reference_run() -> None:
    settings = get_settings()

    assert settings.api_base_url == "https://api.smartcitizen.me/v0"
    assert dict(settings.devices) == {"VDK09": 12613, "VDK05": 12611}
    assert list(settings.sensors) == [
        "ECO2",
        "LIGHT",
        "NOISE",
        "PRESSURE",
        "PM2_5",
        "HUMIDITY",
        "TEMPERATURE",
    ]
    assert settings.from_date == datetime(2021, 7, 1, tzinfo=timezone.utc)
    assert settings.to_date == datetime(2021, 10, 1, tzinfo=timezone.utc)
    assert settings.rollup == "1s"
    assert settings.fetch_workers == 1


def test_environment_overrides_apply(monkeypatch) -> None:
    monkeypatch.setenv("SCK_API_BASE_URL", "http://localhost:9000/v0/")
    monkeypatch.setenv("SCK_DEVICES", "LAB=1")
    monkeypatch.setenv("SCK_SENSORS", " NOISE = 53 , TVOC=113 ")
    monkeypatch.setenv("SCK_FROM_DATE", "2022-01-01T00:00:00Z")
    monkeypatch.setenv("SCK_TO_DATE", "2022-01-02")
    monkeypatch.setenv("SCK_ROLLUP", "1m")
    monkeypatch.setenv("FETCH_WORKER_COUNT", "3")
    monkeypatch.setenv("EVENTHUB_CONNECTION_STRING", "Endpoint=sb://example/;")
    monkeypatch.setenv("EVENTHUB_NAME", "readings")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.api_base_url == "http://localhost:9000/v0"
    assert dict(settings.devices) == {"LAB": 1}
    assert dict(settings.sensors) == {"NOISE": 53, "TVOC": 113}
    assert settings.to_date == datetime(2022, 1, 2, tzinfo=timezone.utc)
    assert settings.rollup == "1m"
    assert settings.fetch_workers == 3
    assert settings.require_eventhub() == ("Endpoint=sb://example/;", "readings")
    assert settings.log_level == "DEBUG"


def test_invalid_worker_count_falls_back_to_default(monkeypatch) -> None:
    monkeypatch.setenv("FETCH_WORKER_COUNT", "zero")

    assert get_settings().fetch_workers == 1


@pytest.mark.parametrize(
    "raw",
    ["", "VDK09", "VDK09=abc", "VDK09=-1", "A=1,A=2", "A=1,B=1", "=5"],
)
def test_identifier_table_validation(raw: str) -> None:
    with pytest.raises(ConfigurationError):
        parse_identifier_table(raw, "device")


def test_identifier_table_is_read_only() -> None:
    table = parse_identifier_table("A=1", "device")

    with pytest.raises(TypeError):
        table["B"] = 2  # type: ignore[index]


def test_inverted_window_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("SCK_FROM_DATE", "2021-10-01T00:00:00Z")
    monkeypatch.setenv("SCK_TO_DATE", "2021-07-01T00:00:00Z")

    with pytest.raises(ConfigurationError):
        get_settings()


def test_unparseable_date_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("SCK_FROM_DATE", "first of July")

    with pytest.raises(ConfigurationError):
        get_settings()


def test_with_overrides_revalidates_window() -> None:
    settings = get_settings()
    updated = settings.with_overrides(rollup="10s", fetch_workers=2)

    assert updated.rollup == "10s"
    assert updated.fetch_workers == 2
    assert settings.rollup == "1s"

    with pytest.raises(ConfigurationError):
        settings.with_overrides(to_date=datetime(2020, 1, 1))


def test_require_eventhub_without_credentials(monkeypatch) -> None:
    monkeypatch.delenv("EVENTHUB_CONNECTION_STRING", raising=False)
    monkeypatch.delenv("EVENTHUB_NAME", raising=False)

    with pytest.raises(ConfigurationError):
        get_settings().require_eventhub()


def test_default_sensors_are_drawn_from_catalog() -> None:
    catalog = parse_identifier_table(SENSOR_CATALOG, "sensor")
    defaults = parse_identifier_table(DEFAULT_SENSORS, "sensor")

    assert all(catalog[name] == sensor_id for name, sensor_id in defaults.items())
    assert set(catalog) - set(defaults) == {"TVOC", "BATTERY", "PM1_0", "PM10_0"}
