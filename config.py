"""Configuration constants for the LAN upload server."""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path

KIB: int = 1024
MIB: int = 1024 * KIB

HOST: str = "0.0.0.0"
PORT: int = 8080
LISTEN_BACKLOG: int = 5
ACCEPT_POLL_SECS: float = 0.2
SERVER_NAME: str = "LanUploadServer/1.0"

RECEIVE_BUFFER_BYTES: int = 16 * MIB
RECEIVE_TIMEOUT_SECS: float = 1800
READ_CHUNK_SIZE: int = 16 * KIB
MAX_HEADER_BYTES: int = 64 * KIB
MAX_REQUEST_BODY_BYTES: int = 100 * MIB
MAX_READ_RETRIES: int = 10
READ_RETRY_DELAY_SECS: float = 0.1
PROGRESS_LOG_INTERVAL_SECS: float = 0.5

MIN_UPLOAD_BYTES: int = 1 * KIB
MAX_UPLOAD_BYTES: int = 500 * MIB
MAX_FILENAME_LENGTH: int = 100

LOG_LEVEL: str = "INFO"


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Immutable settings for one server instance."""

    host: str = HOST
    port: int = PORT
    listen_backlog: int = LISTEN_BACKLOG
    receive_buffer_bytes: int = RECEIVE_BUFFER_BYTES
    receive_timeout_secs: float = RECEIVE_TIMEOUT_SECS
    read_chunk_size: int = READ_CHUNK_SIZE
    max_header_bytes: int = MAX_HEADER_BYTES
    max_request_body_bytes: int = MAX_REQUEST_BODY_BYTES
    min_upload_bytes: int = MIN_UPLOAD_BYTES
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    max_filename_length: int = MAX_FILENAME_LENGTH
    max_read_retries: int = MAX_READ_RETRIES
    read_retry_delay_secs: float = READ_RETRY_DELAY_SECS
    progress_log_interval_secs: float = PROGRESS_LOG_INTERVAL_SECS
    accept_poll_secs: float = ACCEPT_POLL_SECS
    upload_dir: Path | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError("port must be between 0 and 65535")
        positive_fields = (
            "listen_backlog",
            "receive_buffer_bytes",
            "receive_timeout_secs",
            "read_chunk_size",
            "max_header_bytes",
            "max_request_body_bytes",
            "min_upload_bytes",
            "max_upload_bytes",
            "max_filename_length",
            "max_read_retries",
            "accept_poll_secs",
        )
        for name in positive_fields:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.read_retry_delay_secs < 0:
            raise ValueError("read_retry_delay_secs cannot be negative")
        if self.min_upload_bytes > self.max_upload_bytes:
            raise ValueError("min_upload_bytes cannot exceed max_upload_bytes")

    @property
    def resolved_upload_dir(self) -> Path:
        if self.upload_dir is not None:
            return Path(self.upload_dir)
        return Path(tempfile.gettempdir())
