"""Run orchestration: fetch every pair, order the records, forward them in batches."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, List, Tuple

from models.records import SensorRecord
from models.schemas import RunSummary
from services.aggregator import Aggregator
from services.errors import FetchError, ForwarderError
from services.fetcher import ReadingFetcher
from services.packer import BatchPacker
from settings import Settings
from sinks.base import IngestionSink
from sinks.eventhub import EventHubSink
from sinks.memory import MemorySink

logger = logging.getLogger(__name__)

Pair = Tuple[str, int, str, int]


def configured_pairs(settings: Settings) -> List[Pair]:
    """Device-major list of every configured (device, sensor) combination."""
    return [
        (device, device_id, sensor, sensor_id)
        for device, device_id in settings.devices.items()
        for sensor, sensor_id in settings.sensors.items()
    ]


class ForwarderService:
    """Coordinates the fetcher, aggregator and packer for a single run."""

    def __init__(
        self,
        settings: Settings,
        fetcher: ReadingFetcher,
        sink: IngestionSink,
        aggregator: Aggregator,
        dry_run: bool = False,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher
        self.sink = sink
        self.aggregator = aggregator
        self.dry_run = dry_run

    def run(self) -> RunSummary:
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()
        pairs = configured_pairs(self.settings)

        try:
            sequences = self._fetch_all(pairs)
            records = self.aggregator.aggregate(sequences)
            summary = self.aggregator.summarize(records)
            logger.info(
                "Readings fetched and ordered",
                extra={"stage": "fetch", "record_count": summary.row_count},
            )

            packer = BatchPacker(self.sink)
            sent = packer.pack_and_send(records)
        except ForwarderError as exc:
            logger.error(
                "Run aborted",
                extra={
                    "stage": exc.stage,
                    "elapsed_ms": int((time.perf_counter() - start_time) * 1000),
                    "reason": str(exc),
                },
            )
            raise

        elapsed = time.perf_counter() - start_time
        elapsed_ms = int(elapsed * 1000)
        logger.info(
            "Run finished in %.2f minutes",
            elapsed / 60,
            extra={"record_count": sent, "batch_count": packer.batches_sent, "elapsed_ms": elapsed_ms},
        )
        return RunSummary(
            pair_count=len(pairs),
            record_count=sent,
            batch_count=packer.batches_sent,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            elapsed_ms=elapsed_ms,
            dry_run=self.dry_run,
        )

    def _fetch_pair(self, pair: Pair) -> List[SensorRecord]:
        device, device_id, sensor, sensor_id = pair
        try:
            return self.fetcher.fetch(
                device,
                device_id,
                sensor,
                sensor_id,
                self.settings.from_date,
                self.settings.to_date,
            )
        except FetchError as exc:
            logger.error(
                "Fetch failed",
                extra={"stage": "fetch", "device": device, "sensor": sensor, "reason": exc.reason},
            )
            raise

    def _fetch_all(self, pairs: List[Pair]) -> List[List[SensorRecord]]:
        workers = min(self.settings.fetch_workers, len(pairs)) or 1
        if workers == 1:
            return [self._fetch_pair(pair) for pair in pairs]

        # map() yields in submission order, keeping the merge deterministic.
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self._fetch_pair, pairs))

    def close(self) -> None:
        """Release the HTTP client and the sink connection."""
        try:
            self.fetcher.close()
        finally:
            self.sink.close()


def build_sink(settings: Settings, dry_run: bool = False) -> IngestionSink:
    if dry_run:
        return MemorySink(max_batch_bytes=settings.dry_run_batch_bytes, name="dry-run")
    connection_string, eventhub_name = settings.require_eventhub()
    return EventHubSink.from_connection_string(connection_string, eventhub_name)


def build_forwarder(
    settings: Settings,
    dry_run: bool = False,
    sink_factory: Callable[[Settings, bool], IngestionSink] = build_sink,
) -> ForwarderService:
    """Factory that wires the forwarder with its HTTP fetcher and sink."""
    sink = sink_factory(settings, dry_run)
    fetcher = ReadingFetcher(
        base_url=settings.api_base_url,
        rollup=settings.rollup,
        timeout=settings.http_timeout,
    )
    return ForwarderService(
        settings=settings,
        fetcher=fetcher,
        sink=sink,
        aggregator=Aggregator(),
        dry_run=dry_run,
    )
