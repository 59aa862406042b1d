"""Low-level socket read/write utilities."""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass

from config import ServerConfig
from request import (
    DEFAULT_REQUEST_HEAD,
    METHOD_KEY,
    PATH_KEY,
    ParsedRequest,
    build_request,
    declared_length,
    is_chunked,
    parse_request_head,
)
from utils import hex_preview

logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"


@dataclass(slots=True)
class RequestHead:
    text: str
    body_start: bytes
    complete: bool
    # Set when the first chunk could not be read as HTTP at all.
    unparsable: bool = False


def split_request_head(chunk: bytes) -> RequestHead:
    """Split the first received chunk into header text and leading body bytes."""
    try:
        text = chunk.decode("utf-8")
    except UnicodeDecodeError:
        text = None

    if text is not None:
        if "\r\n\r\n" not in text:
            return RequestHead(text=text, body_start=b"", complete=False)
        header_end = chunk.find(HEADER_TERMINATOR) + len(HEADER_TERMINATOR)
        head_text = text[: text.index("\r\n\r\n") + 4]
        return RequestHead(text=head_text, body_start=chunk[header_end:], complete=True)

    logger.debug("First chunk is not valid UTF-8, searching for header terminator in raw bytes")
    terminator_index = chunk.find(HEADER_TERMINATOR)
    if terminator_index == -1:
        logger.warning("Could not recognise an HTTP request, treating it as GET /")
        return RequestHead(text="", body_start=chunk, complete=True, unparsable=True)

    header_end = terminator_index + len(HEADER_TERMINATOR)
    try:
        head_text = chunk[:header_end].decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Header bytes are not valid UTF-8, using default GET head")
        head_text = DEFAULT_REQUEST_HEAD
    return RequestHead(text=head_text, body_start=chunk[header_end:], complete=True)


def _receive(client_socket: socket.socket, size: int) -> bytes | None:
    """Receive once, returning None when the peer is gone or the socket failed."""
    try:
        chunk = client_socket.recv(size)
    except OSError as exc:
        logger.info("Error reading request or connection closed: %s", exc)
        return None
    if not chunk:
        return None
    return chunk


def _finish_head(client_socket: socket.socket, head: RequestHead, config: ServerConfig) -> RequestHead:
    """Keep reading until the header terminator shows up or the peer stops sending.

    Capture also ends once ``max_header_bytes`` have been buffered without a
    terminator.
    """
    buffer = bytearray(head.text.encode("utf-8"))
    while len(buffer) < config.max_header_bytes:
        chunk = _receive(client_socket, config.read_chunk_size)
        if chunk is None:
            break
        buffer.extend(chunk)
        terminator_index = buffer.find(HEADER_TERMINATOR)
        if terminator_index != -1:
            return _head_from_buffer(buffer, terminator_index + len(HEADER_TERMINATOR))
        if len(buffer) >= config.max_header_bytes:
            logger.warning("Header section exceeded %d bytes, ending header capture", config.max_header_bytes)
            break
        try:
            chunk.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Header continuation is not valid UTF-8, ending header capture")
            break

    text = bytes(buffer).decode("utf-8", errors="replace")
    if text and not text.endswith("\r\n\r\n"):
        text += "\r\n\r\n"
    return RequestHead(text=text, body_start=b"", complete=True)


def _head_from_buffer(buffer: bytearray, header_end: int) -> RequestHead:
    try:
        head_text = bytes(buffer[:header_end]).decode("utf-8")
    except UnicodeDecodeError:
        head_text = DEFAULT_REQUEST_HEAD
    return RequestHead(text=head_text, body_start=bytes(buffer[header_end:]), complete=True)


def read_request(client_socket: socket.socket, config: ServerConfig) -> ParsedRequest:
    """Read exactly one request from a connection.

    Header problems never raise: an unusable request comes back as an empty
    ``ParsedRequest``. A body shorter than its Content-Length is returned as is.
    """
    first_chunk = _receive(client_socket, config.read_chunk_size)
    if first_chunk is None:
        return ParsedRequest.empty()

    logger.debug("Received first %d bytes: %s", min(100, len(first_chunk)), hex_preview(first_chunk))

    head = split_request_head(first_chunk)
    if head.unparsable:
        headers = {METHOD_KEY: "GET", PATH_KEY: "/", "Host": "localhost"}
        return build_request(headers, head.body_start)
    if not head.complete:
        head = _finish_head(client_socket, head, config)

    headers = parse_request_head(head.text)
    content_length = declared_length(headers)
    chunked = is_chunked(headers)
    if content_length:
        logger.debug("Content-Length: %d", content_length)
    if chunked:
        logger.warning("Chunked transfer encoding is not supported, body will not be decoded")

    body = head.body_start
    if headers.get(METHOD_KEY) == "POST" and content_length > 0 and not chunked:
        body = _read_body(client_socket, config, content_length, head.body_start)

    logger.info("Request read: %d header fields, %d body bytes", len(headers), len(body))
    return build_request(headers, body)


def _read_body(
    client_socket: socket.socket,
    config: ServerConfig,
    content_length: int,
    initial: bytes,
) -> bytes:
    expected = min(content_length, config.max_request_body_bytes)
    if content_length > config.max_request_body_bytes:
        logger.warning(
            "Request body of %d bytes exceeds limit, reading at most %d bytes",
            content_length,
            config.max_request_body_bytes,
        )
    logger.info("POST body: Content-Length %d, already received %d", content_length, len(initial))

    body = bytearray(initial)
    started_at = time.monotonic()
    last_progress_at = started_at
    retries = 0

    while len(body) < expected:
        try:
            chunk = client_socket.recv(min(config.read_chunk_size, expected - len(body)))
        except (BlockingIOError, InterruptedError):
            retries += 1
            logger.info("No data available yet, retry %d/%d", retries, config.max_read_retries)
            if retries >= config.max_read_retries:
                logger.warning("Giving up on request body after %d retries", retries)
                break
            time.sleep(config.read_retry_delay_secs)
            continue
        except TimeoutError:
            logger.warning("Timed out waiting for request body bytes")
            break
        except OSError as exc:
            logger.warning("Error reading request body: %s", exc)
            break

        if not chunk:
            logger.info("Peer closed the connection while sending the body")
            break

        retries = 0
        body.extend(chunk)

        now = time.monotonic()
        if now - last_progress_at >= config.progress_log_interval_secs:
            elapsed = now - started_at
            logger.info(
                "Received %.1f%% (%d/%d bytes), %.2f KB/s",
                len(body) / expected * 100.0,
                len(body),
                expected,
                len(body) / elapsed / 1024 if elapsed > 0 else 0.0,
            )
            last_progress_at = now

    if len(body) < expected:
        logger.warning("Request body incomplete: received %d/%d bytes", len(body), expected)
    else:
        total_time = time.monotonic() - started_at
        logger.info(
            "Body received: %d bytes in %.1f s, %.2f KB/s",
            len(body),
            total_time,
            len(body) / (total_time if total_time > 0 else 0.1) / 1024,
        )
    return bytes(body)


def write_response(client_socket: socket.socket, payload: bytes) -> int:
    """Send a complete response with a single best-effort send call."""
    try:
        sent = client_socket.send(payload)
    except OSError as exc:
        logger.warning("Failed to send response: %s", exc)
        return 0
    if sent < len(payload):
        logger.warning("Partial response sent: %d/%d bytes", sent, len(payload))
    else:
        logger.debug("Sent %d response bytes", sent)
    return sent
