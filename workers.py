"""Unbounded thread-per-connection workers for accepted client sockets."""

from __future__ import annotations

import itertools
import logging
import socket
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

ClientAddress = tuple[str, int]
ClientHandler = Callable[[socket.socket, ClientAddress], None]


class ConnectionWorkers:
    """Runs each accepted connection on its own daemon thread.

    There is no cap on concurrent connections and no ordering between them.
    """

    def __init__(self, handler: ClientHandler) -> None:
        self._handler = handler
        self._counter = itertools.count()
        self._active_jobs = 0
        self._active_lock = threading.Lock()
        self._drain_condition = threading.Condition(self._active_lock)

    @property
    def active_count(self) -> int:
        with self._active_lock:
            return self._active_jobs

    def submit(self, client_socket: socket.socket, address: ClientAddress) -> threading.Thread:
        with self._drain_condition:
            self._active_jobs += 1
        worker = threading.Thread(
            target=self._run,
            args=(client_socket, address),
            name=f"upload-conn-{next(self._counter)}",
            daemon=True,
        )
        try:
            worker.start()
        except RuntimeError:
            self._job_done()
            raise
        return worker

    def wait_for_drain(self, timeout: float | None = None) -> bool:
        with self._drain_condition:
            if timeout is None:
                while self._active_jobs:
                    self._drain_condition.wait(timeout=0.1)
                return True

            deadline = time.monotonic() + timeout
            while self._active_jobs:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._drain_condition.wait(timeout=min(remaining, 0.1))
            return True

    def _job_done(self) -> None:
        with self._drain_condition:
            self._active_jobs = max(0, self._active_jobs - 1)
            self._drain_condition.notify_all()

    def _run(self, client_socket: socket.socket, address: ClientAddress) -> None:
        try:
            self._handler(client_socket, address)
        except Exception:
            logger.exception("Unhandled error in connection worker for %s", address[0])
        finally:
            self._job_done()
