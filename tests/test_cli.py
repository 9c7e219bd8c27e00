from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import pytest
from typer.testing import CliRunner

from cli.app import app
from models.schemas import RunSummary
from services.errors import FetchError, SendError
from settings import get_settings


class StubForwarder:
    def __init__(self, summary: Optional[RunSummary] = None, error: Optional[Exception] = None) -> None:
        self.summary = summary
        self.error = error
        self.run_calls = 0
        self.closed = False

    def run(self) -> RunSummary:
        self.run_calls += 1
        if self.error is not None:
            raise self.error
        assert self.summary is not None
        return self.summary

    def close(self) -> None:
        self.closed = True


def _summary(dry_run: bool = True) -> RunSummary:
    return RunSummary(
        pair_count=14,
        record_count=1200,
        batch_count=3,
        started_at=datetime(2021, 10, 2, tzinfo=timezone.utc),
        finished_at=datetime(2021, 10, 2, 0, 1, tzinfo=timezone.utc),
        elapsed_ms=60000,
        dry_run=dry_run,
    )


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    monkeypatch.setattr("cli.app.configure_logging", lambda level=None: None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _install_stub(monkeypatch, stub: StubForwarder) -> List[tuple]:
    calls: List[tuple] = []

    def factory(settings, dry_run: bool = False):
        calls.append((settings, dry_run))
        return stub

    monkeypatch.setattr("cli.app.build_forwarder", factory)
    return calls


def test_run_dry_run_renders_summary(monkeypatch, runner: CliRunner) -> None:
    stub = StubForwarder(summary=_summary())
    calls = _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["run", "--dry-run"])

    assert result.exit_code == 0
    assert "Run Summary" in result.stdout
    assert "records_sent: 1200" in result.stdout
    assert "batches_sent: 3" in result.stdout
    assert "elapsed_minutes: 1.00" in result.stdout
    assert calls[0][1] is True
    assert stub.closed is True


def test_run_applies_window_and_worker_overrides(monkeypatch, runner: CliRunner) -> None:
    stub = StubForwarder(summary=_summary(dry_run=False))
    calls = _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app,
        [
            "run",
            "--from",
            "2021-08-01T00:00:00Z",
            "--to",
            "2021-08-02T00:00:00Z",
            "--rollup",
            "1m",
            "--workers",
            "4",
        ],
    )

    assert result.exit_code == 0
    settings, dry_run = calls[0]
    assert dry_run is False
    assert settings.from_date == datetime(2021, 8, 1, tzinfo=timezone.utc)
    assert settings.to_date == datetime(2021, 8, 2, tzinfo=timezone.utc)
    assert settings.rollup == "1m"
    assert settings.fetch_workers == 4


@pytest.mark.parametrize(
    "error",
    [FetchError("VDK09", "NOISE", "status 503"), SendError("throttled", batch_number=2)],
)
def test_run_failure_exits_non_zero_and_closes(monkeypatch, runner: CliRunner, error: Exception) -> None:
    stub = StubForwarder(error=error)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["run", "--dry-run"])

    assert result.exit_code == 1
    assert stub.run_calls == 1
    assert stub.closed is True
    assert "Run Summary" not in result.stdout


def test_run_rejects_inverted_window(monkeypatch, runner: CliRunner) -> None:
    stub = StubForwarder(summary=_summary())
    calls = _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["run", "--from", "2022-01-01", "--to", "2021-01-01"])

    assert result.exit_code == 1
    assert calls == []


def test_run_rejects_unparseable_timestamp(runner: CliRunner) -> None:
    result = runner.invoke(app, ["run", "--from", "yesterday"])

    assert result.exit_code == 2


def test_pairs_lists_configured_combinations(monkeypatch, runner: CliRunner) -> None:
    monkeypatch.setenv("SCK_DEVICES", "VDK09=12613,VDK05=12611")
    monkeypatch.setenv("SCK_SENSORS", "NOISE=53,LIGHT=14")

    result = runner.invoke(app, ["pairs"])

    assert result.exit_code == 0
    assert "Pairs (4)" in result.stdout
    assert "VDK09 (12613) / NOISE (53)" in result.stdout
    assert "VDK05 (12611) / LIGHT (14)" in result.stdout
    assert "from: 2021-07-01T00:00:00.000000Z" in result.stdout


def test_pairs_reports_invalid_configuration(monkeypatch, runner: CliRunner) -> None:
    monkeypatch.setenv("SCK_DEVICES", "VDK09=not-a-number")

    result = runner.invoke(app, ["pairs"])

    assert result.exit_code == 1
