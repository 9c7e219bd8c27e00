"""Merging and ordering of fetched sensor records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from itertools import chain
from typing import Dict, Iterable, List, Optional

from models.records import SensorRecord


@dataclass
class AggregationSummary:
    """Counts describing an ordered record sequence."""

    row_count: int = 0
    first_timestamp: Optional[datetime] = None
    last_timestamp: Optional[datetime] = None
    per_sensor_count: Dict[str, int] = field(default_factory=dict)


def _timestamp_key(record: SensorRecord) -> datetime:
    return record.timestamp


class Aggregator:
    """Pure ordering component that can be unit tested in isolation."""

    def aggregate(self, sequences: Iterable[Iterable[SensorRecord]]) -> List[SensorRecord]:
        """Flatten ``sequences`` and order the result by ascending timestamp.

        ``sorted`` is stable, so records sharing a timestamp keep the order in
        which they were encountered across ``sequences``.
        """
        return sorted(chain.from_iterable(sequences), key=_timestamp_key)

    def summarize(self, records: Iterable[SensorRecord]) -> AggregationSummary:
        summary = AggregationSummary()

        for record in records:
            summary.row_count += 1
            if summary.first_timestamp is None or record.timestamp < summary.first_timestamp:
                summary.first_timestamp = record.timestamp
            if summary.last_timestamp is None or record.timestamp > summary.last_timestamp:
                summary.last_timestamp = record.timestamp

            summary.per_sensor_count[record.sensor] = (
                summary.per_sensor_count.get(record.sensor, 0) + 1
            )

        return summary
