"""Contract shared by ingestion sinks."""

from __future__ import annotations

from typing import Any, Protocol


class IngestionSink(Protocol):
    """Capability surface the batch packer relies on.

    A batch handle is opaque to callers; only the sink that created it may
    append to or send it. Implementations raise ``SendError`` when a batch
    cannot be created or transmitted.
    """

    def create_batch(self) -> Any:
        ...

    def try_append(self, batch: Any, payload: str) -> bool:
        ...

    def send(self, batch: Any) -> None:
        ...

    def close(self) -> None:
        ...
