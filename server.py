"""Upload server entry point and connection lifecycle orchestration."""

from __future__ import annotations

import argparse
import json
import logging
import socket
import threading
import time
from pathlib import Path

from config import LOG_LEVEL, PORT, ServerConfig
from handlers.upload_handlers import handle_get, handle_options, handle_post, handle_unsupported
from metrics import UploadMetrics
from request import ParsedRequest
from response import render_error
from socket_handler import read_request, write_response
from upload_sink import UploadCallback, UploadSink
from utils import get_local_ip_address
from workers import ClientAddress, ConnectionWorkers

logger = logging.getLogger(__name__)


class UploadServer:
    """Accepts browser uploads over plain TCP, one request per connection."""

    def __init__(
        self,
        config: ServerConfig | None = None,
        on_file_received: UploadCallback | None = None,
    ) -> None:
        self.config = config or ServerConfig()
        self.host = self.config.host
        self.port = self.config.port
        self.metrics = UploadMetrics()
        self.sink = UploadSink(self.config, on_file_received)
        self.workers = ConnectionWorkers(self._handle_client)

        self._server_socket: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> str:
        """Bind, listen and accept in the background; return the address to advertise.

        Bind or listen failures leave the server stopped but still return the
        best-effort local address.
        """
        advertised = get_local_ip_address()
        logger.info("Advertising address %s", advertised)
        if self._running:
            return advertised

        try:
            server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as exc:
            logger.error("Failed to create server socket: %s", exc)
            return advertised

        self._set_option(server_socket, socket.SO_REUSEADDR, 1, "SO_REUSEADDR")
        self._set_option(server_socket, socket.SO_RCVBUF, self.config.receive_buffer_bytes, "SO_RCVBUF")

        try:
            server_socket.bind((self.host, self.port))
            server_socket.listen(self.config.listen_backlog)
        except OSError as exc:
            logger.error("Failed to bind/listen on %s:%d: %s", self.host, self.port, exc)
            server_socket.close()
            return advertised

        server_socket.settimeout(self.config.accept_poll_secs)
        self.port = server_socket.getsockname()[1]
        self._server_socket = server_socket
        self._running = True
        self._accept_thread = threading.Thread(
            target=self._accept_loop,
            args=(server_socket,),
            name="upload-accept",
            daemon=True,
        )
        self._accept_thread.start()
        logger.info("Upload server listening on %s:%d", self.host, self.port)
        return advertised

    def stop(self) -> None:
        """Close the listening socket; in-flight connections run to completion."""
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None
        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(timeout=2.0)
            self._accept_thread = None
        logger.info("Upload server stopped: %s", json.dumps(self.metrics.snapshot(), sort_keys=True))

    def _set_option(self, sock: socket.socket, option: int, value: int, name: str) -> None:
        try:
            sock.setsockopt(socket.SOL_SOCKET, option, value)
        except OSError as exc:
            logger.warning("Failed to set %s, using system default: %s", name, exc)

    def _accept_loop(self, server_socket: socket.socket) -> None:
        while self._running:
            try:
                client_socket, address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._running:
                    logger.error("Failed to accept connection: %s", exc)
                break

            try:
                self.workers.submit(client_socket, address)
            except RuntimeError as exc:
                logger.error("Could not start worker for %s: %s", address[0], exc)
                client_socket.close()

    def _configure_connection(self, client_socket: socket.socket) -> None:
        self._set_option(client_socket, socket.SO_RCVBUF, self.config.receive_buffer_bytes, "client SO_RCVBUF")
        try:
            actual = client_socket.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)
        except OSError:
            pass
        else:
            logger.debug("Client receive buffer is %d bytes", actual)
        try:
            client_socket.settimeout(self.config.receive_timeout_secs)
        except OSError as exc:
            logger.warning("Failed to set receive timeout: %s", exc)

    def _handle_client(self, client_socket: socket.socket, address: ClientAddress) -> None:
        with client_socket:
            self.metrics.connection_opened()
            started_at = time.perf_counter()
            logger.info("Connection from %s:%d", address[0], address[1])
            try:
                self._configure_connection(client_socket)
                request = read_request(client_socket, self.config)
                payload = self._dispatch(request)
                bytes_sent = write_response(client_socket, payload)
                logger.info(
                    "client=%s method=%s bytes_in=%d bytes_out=%d duration_ms=%.2f",
                    address[0],
                    request.method or "-",
                    len(request.body),
                    bytes_sent,
                    (time.perf_counter() - started_at) * 1000,
                )
            finally:
                self.metrics.connection_closed()
                logger.info("Connection from %s:%d closed", address[0], address[1])

    def _dispatch(self, request: ParsedRequest) -> bytes:
        if request.is_empty:
            logger.warning("Empty request header, sending error response")
            return render_error("invalid request format")
        if not request.method:
            logger.warning("Request line carries no method")
            return render_error("invalid HTTP request format")

        self.metrics.record_request(request.method)
        logger.info("Handling %s %s", request.method, request.path)
        if request.method == "GET":
            return handle_get(request)
        if request.method == "POST":
            return handle_post(request, self.sink, self.metrics)
        if request.method == "OPTIONS":
            return handle_options(request)
        return handle_unsupported(request)


def _log_received_file(file_path: str, filename: str, size_bytes: int, mime_type: str) -> None:
    logger.info("Received %s (%d bytes, %s) at %s", filename, size_bytes, mime_type, file_path)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Receive audio uploads from browsers on the LAN")
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--upload-dir", type=Path, default=None)
    parser.add_argument("--log-level", default=LOG_LEVEL, choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args()


if __name__ == "__main__":
    args = _parse_args()
    logging.basicConfig(level=args.log_level)
    server = UploadServer(
        ServerConfig(port=args.port, upload_dir=args.upload_dir),
        on_file_received=_log_received_file,
    )
    address = server.start()
    if not server.is_running:
        raise SystemExit(1)
    logger.info("Open http://%s:%d/ in a browser to upload files", address, server.port)
    try:
        while server.is_running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        server.stop()
        server.workers.wait_for_drain(timeout=5.0)
