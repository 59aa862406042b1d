"""Thread-safe in-memory counters for the upload server."""

from __future__ import annotations

import threading
from collections import Counter


class UploadMetrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections_opened = 0
        self._connections_closed = 0
        self._requests_by_method: Counter[str] = Counter()
        self._uploads_accepted = 0
        self._uploads_rejected = 0
        self._bytes_stored = 0

    def connection_opened(self) -> None:
        with self._lock:
            self._connections_opened += 1

    def connection_closed(self) -> None:
        with self._lock:
            self._connections_closed += 1

    def record_request(self, method: str) -> None:
        with self._lock:
            self._requests_by_method[method or "-"] += 1

    def record_upload(self, *, success: bool, size_bytes: int = 0) -> None:
        with self._lock:
            if success:
                self._uploads_accepted += 1
                self._bytes_stored += size_bytes
            else:
                self._uploads_rejected += 1

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            return {
                "connections_opened": self._connections_opened,
                "connections_active": self._connections_opened - self._connections_closed,
                "requests_by_method": dict(self._requests_by_method),
                "uploads_accepted": self._uploads_accepted,
                "uploads_rejected": self._uploads_rejected,
                "bytes_stored": self._bytes_stored,
            }
