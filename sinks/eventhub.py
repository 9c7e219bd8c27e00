"""Azure Event Hubs ingestion sink."""

from __future__ import annotations

import logging
from typing import Optional

from azure.eventhub import EventData, EventDataBatch, EventHubProducerClient
from azure.eventhub.exceptions import EventHubError

from services.errors import SendError

logger = logging.getLogger(__name__)


class EventHubSink:
    """Adapts ``EventHubProducerClient`` to the ingestion sink contract.

    The batch size budget is enforced by ``EventDataBatch.add``, which raises
    ``ValueError`` once the batch is full; that is reported as a rejected
    append rather than an error.
    """

    def __init__(self, producer: EventHubProducerClient, name: Optional[str] = None) -> None:
        self._producer = producer
        self.name = name or producer.eventhub_name
        self._closed = False

    @classmethod
    def from_connection_string(cls, connection_string: str, eventhub_name: str) -> "EventHubSink":
        producer = EventHubProducerClient.from_connection_string(
            conn_str=connection_string,
            eventhub_name=eventhub_name,
        )
        return cls(producer, name=eventhub_name)

    def __enter__(self) -> "EventHubSink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def create_batch(self) -> EventDataBatch:
        try:
            return self._producer.create_batch()
        except EventHubError as exc:
            raise SendError(f"Could not create a batch on {self.name!r}: {exc}") from exc

    def try_append(self, batch: EventDataBatch, payload: str) -> bool:
        try:
            batch.add(EventData(payload))
        except ValueError:
            return False
        return True

    def send(self, batch: EventDataBatch) -> None:
        try:
            self._producer.send_batch(batch)
        except EventHubError as exc:
            raise SendError(f"Sending to {self.name!r} failed: {exc}") from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._producer.close()
        logger.info("Event Hubs producer closed", extra={"stage": "send"})
