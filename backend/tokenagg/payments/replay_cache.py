from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

from tokenagg.schemas.payment import PaymentRecord


class ReplayCache:
    """
    Spent payment references, owned by the application for its lifetime.

    ``reserve`` performs check-and-insert under one lock, so two requests
    racing on the same reference can never both see it as unused. A reference
    whose record is older than the replay window can be used again.
    """

    def __init__(self, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[str, PaymentRecord] = {}

    def _is_live(self, record: PaymentRecord, now: float) -> bool:
        return now - record.received_at < self.window_seconds

    def reserve(self, reference: str, proof: dict[str, Any]) -> bool:
        """Claim a reference; False when it was already used inside the window."""
        with self._lock:
            now = self._clock()
            existing = self._records.get(reference)
            if existing is not None and self._is_live(existing, now):
                return False
            self._records[reference] = PaymentRecord(
                reference=reference, received_at=now, proof=proof
            )
            return True

    def release(self, reference: str) -> None:
        with self._lock:
            self._records.pop(reference, None)

    def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, record in self._records.items()
                if now - record.received_at > self.window_seconds
            ]
            for key in expired:
                del self._records[key]
            return len(expired)

    def get(self, reference: str) -> PaymentRecord | None:
        with self._lock:
            return self._records.get(reference)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
