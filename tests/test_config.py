"""Unit tests for server configuration."""

import tempfile
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from config import ServerConfig


def test_defaults_match_documented_limits() -> None:
    config = ServerConfig()

    assert config.port == 8080
    assert config.host == "0.0.0.0"
    assert config.listen_backlog == 5
    assert config.receive_buffer_bytes == 16 * 1024 * 1024
    assert config.receive_timeout_secs == 1800
    assert config.read_chunk_size == 16 * 1024
    assert config.max_header_bytes == 64 * 1024
    assert config.max_request_body_bytes == 100 * 1024 * 1024
    assert config.min_upload_bytes == 1024
    assert config.max_upload_bytes == 500 * 1024 * 1024
    assert config.max_filename_length == 100
    assert config.max_read_retries == 10
    assert config.read_retry_delay_secs == 0.1


def test_config_is_immutable() -> None:
    config = ServerConfig()

    with pytest.raises(FrozenInstanceError):
        config.port = 9000  # type: ignore[misc]


@pytest.mark.parametrize(
    "overrides",
    [
        {"port": -1},
        {"port": 70000},
        {"read_chunk_size": 0},
        {"max_header_bytes": 0},
        {"max_read_retries": 0},
        {"read_retry_delay_secs": -0.5},
        {"min_upload_bytes": 4096, "max_upload_bytes": 1024},
    ],
)
def test_invalid_values_raise_value_error(overrides: dict) -> None:
    with pytest.raises(ValueError):
        ServerConfig(**overrides)


def test_upload_dir_defaults_to_system_temp(tmp_path: Path) -> None:
    assert ServerConfig().resolved_upload_dir == Path(tempfile.gettempdir())
    assert ServerConfig(upload_dir=tmp_path).resolved_upload_dir == tmp_path
