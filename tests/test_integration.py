"""Socket-level integration tests for the upload server."""

import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from config import MIB, ServerConfig
from server import UploadServer

CLIENT_HOST = "127.0.0.1"


class RecordingCallback:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, int, str]] = []
        self._lock = threading.Lock()

    def __call__(self, file_path: str, filename: str, size_bytes: int, mime_type: str) -> None:
        with self._lock:
            self.calls.append((file_path, filename, size_bytes, mime_type))


@pytest.fixture
def received() -> RecordingCallback:
    return RecordingCallback()


@pytest.fixture
def server(tmp_path: Path, received: RecordingCallback):
    upload_server = UploadServer(
        ServerConfig(port=0, upload_dir=tmp_path, accept_poll_secs=0.05),
        on_file_received=received,
    )
    upload_server.start()
    assert upload_server.is_running
    yield upload_server
    upload_server.stop()
    upload_server.workers.wait_for_drain(timeout=2.0)


def _send_raw(port: int, payload: bytes) -> bytes:
    with socket.create_connection((CLIENT_HOST, port), timeout=10.0) as client:
        client.sendall(payload)
        chunks = []
        while True:
            chunk = client.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def _split(raw: bytes) -> tuple[str, dict[str, str], bytes]:
    head, body = raw.split(b"\r\n\r\n", 1)
    lines = head.decode("iso-8859-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, value = line.split(":", 1)
        headers[name] = value.strip()
    return lines[0], headers, body


def _upload_request(filename: str, payload: bytes, content_type: str = "audio/mpeg") -> bytes:
    body = (
        b"--X1\r\n"
        + f'Content-Disposition: form-data; name="file"; filename="{filename}"\r\n'.encode("utf-8")
        + f"Content-Type: {content_type}\r\n\r\n".encode("utf-8")
        + payload
        + b"\r\n--X1--\r\n"
    )
    head = (
        "POST / HTTP/1.1\r\n"
        "Host: localhost\r\n"
        "Content-Type: multipart/form-data; boundary=X1\r\n"
        f"Content-Length: {len(body)}\r\n\r\n"
    ).encode("utf-8")
    return head + body


def test_get_serves_upload_page(server: UploadServer) -> None:
    raw = _send_raw(server.port, b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")

    status_line, headers, body = _split(raw)

    assert status_line == "HTTP/1.1 200 OK"
    assert headers["Content-Type"] == "text/html; charset=utf-8"
    assert int(headers["Content-Length"]) == len(body)
    assert headers["Connection"] == "close"
    assert b"<form" in body


def test_options_returns_cors_preflight(server: UploadServer) -> None:
    raw = _send_raw(server.port, b"OPTIONS / HTTP/1.1\r\nHost: localhost\r\n\r\n")

    status_line, headers, body = _split(raw)

    assert status_line == "HTTP/1.1 200 OK"
    assert headers["Access-Control-Allow-Origin"] == "*"
    assert headers["Content-Length"] == "0"
    assert body == b""


def test_upload_stores_file_and_fires_callback(
    server: UploadServer, received: RecordingCallback, tmp_path: Path
) -> None:
    payload = b"ID3" + b"\x00" * (3 * MIB - 3)

    raw = _send_raw(server.port, _upload_request("song.mp3", payload))

    status_line, headers, body = _split(raw)
    assert status_line == "HTTP/1.1 200 OK"
    assert int(headers["Content-Length"]) == len(body)
    assert b"song.mp3" in body
    assert received.calls == [(str(tmp_path / "song.mp3"), "song.mp3", 3 * MIB, "audio/mpeg")]
    assert (tmp_path / "song.mp3").read_bytes() == payload
    assert server.metrics.snapshot()["uploads_accepted"] == 1


def test_control_characters_in_filename_still_get_a_reply(
    server: UploadServer, received: RecordingCallback, tmp_path: Path
) -> None:
    payload = b"ID3" + b"\x00" * 4096

    raw = _send_raw(server.port, _upload_request("a\x00b.mp3", payload))

    status_line, headers, body = _split(raw)
    assert status_line == "HTTP/1.1 200 OK"
    assert int(headers["Content-Length"]) == len(body)
    assert b"a_b.mp3" in body
    assert (tmp_path / "a_b.mp3").read_bytes() == payload
    assert [call[1] for call in received.calls] == ["a_b.mp3"]


def test_non_multipart_post_is_rejected(server: UploadServer, received: RecordingCallback) -> None:
    request = (
        b"POST / HTTP/1.1\r\nHost: localhost\r\nContent-Type: text/plain\r\n"
        b"Content-Length: 5\r\n\r\nhello"
    )

    status_line, _headers, body = _split(_send_raw(server.port, request))

    assert status_line == "HTTP/1.1 400 Bad Request"
    assert b"need multipart/form-data request" in body
    assert received.calls == []


def test_non_audio_upload_is_rejected(server: UploadServer, received: RecordingCallback) -> None:
    raw = _send_raw(server.port, _upload_request("notes.txt", b"x" * 4096, content_type="text/plain"))

    status_line, _headers, body = _split(raw)

    assert status_line == "HTTP/1.1 400 Bad Request"
    assert b"unsupported file type" in body
    assert received.calls == []


def test_unsupported_method_is_bad_request(server: UploadServer) -> None:
    status_line, _headers, body = _split(_send_raw(server.port, b"PUT / HTTP/1.1\r\nHost: localhost\r\n\r\n"))

    assert status_line == "HTTP/1.1 400 Bad Request"
    assert b"unsupported HTTP method: PUT" in body


def test_empty_connection_does_not_stop_server(server: UploadServer) -> None:
    with socket.create_connection((CLIENT_HOST, server.port), timeout=2.0):
        pass

    raw = _send_raw(server.port, b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")

    assert raw.startswith(b"HTTP/1.1 200 OK")


def test_concurrent_requests_are_served(server: UploadServer) -> None:
    payload = b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n"

    with ThreadPoolExecutor(max_workers=10) as executor:
        futures = [executor.submit(_send_raw, server.port, payload) for _ in range(10)]
        responses = [future.result() for future in futures]

    assert all(response.startswith(b"HTTP/1.1 200 OK") for response in responses)


def test_concurrent_same_name_uploads_leave_one_payload(server: UploadServer, tmp_path: Path) -> None:
    first = b"ID3" + b"\x01" * (64 * 1024)
    second = b"ID3" + b"\x02" * (64 * 1024)

    with ThreadPoolExecutor(max_workers=2) as executor:
        futures = [
            executor.submit(_send_raw, server.port, _upload_request("a/b.mp3", payload))
            for payload in (first, second)
        ]
        responses = [future.result() for future in futures]

    assert all(response.startswith(b"HTTP/1.1 200 OK") for response in responses)
    assert (tmp_path / "a_b.mp3").read_bytes() in {first, second}


def test_bind_failure_leaves_server_stopped(tmp_path: Path) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
        occupied.bind(("0.0.0.0", 0))
        occupied.listen(1)
        port = occupied.getsockname()[1]

        upload_server = UploadServer(ServerConfig(port=port, upload_dir=tmp_path))
        address = upload_server.start()

        assert isinstance(address, str) and address
        assert upload_server.is_running is False


def test_stop_closes_listener(tmp_path: Path) -> None:
    upload_server = UploadServer(ServerConfig(port=0, upload_dir=tmp_path, accept_poll_secs=0.05))
    upload_server.start()
    port = upload_server.port

    upload_server.stop()

    assert upload_server.is_running is False
    with pytest.raises(OSError):
        socket.create_connection((CLIENT_HOST, port), timeout=1.0).close()
