from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import List, Optional

from services.errors import SendError


@dataclass
class MemoryBatch:
    max_bytes: int
    payloads: List[str] = field(default_factory=list)
    size_bytes: int = 0
    sent: bool = False


class MemorySink:
    """Byte-budgeted sink that keeps every sent batch in memory.

    Used for dry runs, where nothing leaves the process, and in tests.
    """

    def __init__(self, max_batch_bytes: int, name: str = "memory") -> None:
        if max_batch_bytes <= 0:
            raise ValueError("max_batch_bytes must be positive.")
        self.name = name
        self.max_batch_bytes = max_batch_bytes
        self.created_batches = 0
        self._sent: List[List[str]] = []
        self._lock = Lock()
        self.closed = False

    def __enter__(self) -> "MemorySink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def create_batch(self) -> MemoryBatch:
        with self._lock:
            if self.closed:
                raise SendError(f"Sink {self.name!r} is closed.")
            self.created_batches += 1
        return MemoryBatch(max_bytes=self.max_batch_bytes)

    def try_append(self, batch: MemoryBatch, payload: str) -> bool:
        if batch.sent:
            raise SendError("Cannot append to a batch that was already sent.")
        size = len(payload.encode("utf-8"))
        if batch.size_bytes + size > batch.max_bytes:
            return False
        batch.payloads.append(payload)
        batch.size_bytes += size
        return True

    def send(self, batch: MemoryBatch) -> None:
        with self._lock:
            if self.closed:
                raise SendError(f"Sink {self.name!r} is closed.")
            if batch.sent:
                raise SendError("Batch was already sent.")
            batch.sent = True
            self._sent.append(list(batch.payloads))

    def close(self) -> None:
        with self._lock:
            self.closed = True

    @property
    def sent_batches(self) -> List[List[str]]:
        with self._lock:
            return [list(payloads) for payloads in self._sent]

    def sent_payloads(self, batch_index: Optional[int] = None) -> List[str]:
        """Return payloads across all sent batches, or of one batch, in send order."""
        batches = self.sent_batches
        if batch_index is not None:
            return batches[batch_index]
        return [payload for payloads in batches for payload in payloads]
