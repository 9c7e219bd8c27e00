"""Greedy packing of ordered records into size-bounded batches."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

from models.records import SensorRecord, serialize_record
from services.errors import OversizedRecordError, SendError
from sinks.base import IngestionSink

logger = logging.getLogger(__name__)


class BatchPacker:
    """Fills sink batches in record order and sends each one as it is sealed.

    Batch size limits belong to the sink: a batch is full when ``try_append``
    rejects a payload. A packer is strictly sequential and not reentrant.

    Durability: a failed send aborts the run and every record not yet sent is
    lost; there is no checkpoint to resume from.
    """

    def __init__(
        self,
        sink: IngestionSink,
        serializer: Callable[[SensorRecord], str] = serialize_record,
    ) -> None:
        self.sink = sink
        self.serializer = serializer
        self.batches_sent = 0
        self._batch: Optional[Any] = None
        self._batch_records = 0
        self._records_sent = 0

    def pack_and_send(self, records: Iterable[SensorRecord]) -> int:
        """Send every record exactly once, in order, and return how many were sent."""
        self.batches_sent = 0
        self._records_sent = 0
        self._batch = None
        self._batch_records = 0

        for record in records:
            payload = self.serializer(record)
            if self._batch is None:
                self._open_batch()
            if self.sink.try_append(self._batch, payload):
                self._batch_records += 1
                continue

            if self._batch_records == 0:
                self._reject_oversized(payload)

            self._seal_and_send()
            self._open_batch()
            if not self.sink.try_append(self._batch, payload):
                self._reject_oversized(payload)
            self._batch_records = 1

        if self._batch is not None and self._batch_records:
            self._seal_and_send()

        logger.info(
            "Packing finished",
            extra={
                "stage": "pack",
                "record_count": self._records_sent,
                "batch_count": self.batches_sent,
            },
        )
        return self._records_sent

    @property
    def _batch_number(self) -> int:
        return self.batches_sent + 1

    def _open_batch(self) -> None:
        try:
            self._batch = self.sink.create_batch()
        except SendError as exc:
            logger.error(
                "Batch creation failed",
                extra={"stage": "send", "batch_number": self._batch_number, "reason": exc.reason},
            )
            raise SendError(exc.reason, batch_number=self._batch_number) from exc
        self._batch_records = 0

    def _seal_and_send(self) -> None:
        batch_number = self._batch_number
        try:
            self.sink.send(self._batch)
        except SendError as exc:
            logger.error(
                "Batch send failed",
                extra={
                    "stage": "send",
                    "batch_number": batch_number,
                    "record_count": self._batch_records,
                    "reason": exc.reason,
                },
            )
            raise SendError(exc.reason, batch_number=batch_number) from exc

        self.batches_sent += 1
        self._records_sent += self._batch_records
        logger.debug(
            "Batch sent",
            extra={"stage": "send", "batch_number": batch_number, "record_count": self._batch_records},
        )
        self._batch = None
        self._batch_records = 0

    def _reject_oversized(self, payload: str) -> None:
        batch_number = self._batch_number
        logger.error(
            "Record does not fit an empty batch",
            extra={"stage": "pack", "batch_number": batch_number},
        )
        raise OversizedRecordError(payload, batch_number=batch_number)
