"""HTTP request model and header parser."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_HEAD = "GET / HTTP/1.1\r\nHost: localhost\r\n\r\n"

METHOD_KEY = "Method"
PATH_KEY = "Path"
VERSION_KEY = "Version"


@dataclass(frozen=True, slots=True)
class ParsedRequest:
    """One request read off a connection.

    ``headers`` keeps header names exactly as received and also carries the
    request line under the reserved ``Method``, ``Path`` and ``Version`` keys.
    An empty ``headers`` map means nothing usable arrived on the socket.
    """

    method: str = ""
    path: str = "/"
    http_version: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    declared_content_length: int = 0
    chunked: bool = False

    @classmethod
    def empty(cls) -> "ParsedRequest":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.headers

    @property
    def content_type(self) -> str | None:
        return self.headers.get("Content-Type")


def parse_request_head(head: str) -> dict[str, str]:
    """Parse a raw header section into a case-preserving header map."""
    if "HTTP/" not in head:
        logger.debug("Header section has no HTTP version token, assuming GET /")
        head = DEFAULT_REQUEST_HEAD

    lines = head.split("\r\n")
    headers: dict[str, str] = {}
    for line in lines[1:]:
        if not line or ":" not in line:
            continue
        name, value = line.split(":", 1)
        headers[name.strip()] = value.strip()

    request_line = lines[0] if lines else ""
    if not request_line:
        headers[METHOD_KEY] = "GET"
        headers[PATH_KEY] = "/"
        return headers

    parts = request_line.split(" ")
    headers[METHOD_KEY] = parts[0]
    headers[PATH_KEY] = parts[1] if len(parts) >= 2 else "/"
    if len(parts) >= 3:
        headers[VERSION_KEY] = parts[2]
    return headers


def declared_length(headers: dict[str, str]) -> int:
    raw_value = headers.get("Content-Length")
    if raw_value is None:
        return 0
    try:
        return max(0, int(raw_value))
    except ValueError:
        logger.warning("Ignoring unparsable Content-Length %r", raw_value)
        return 0


def is_chunked(headers: dict[str, str]) -> bool:
    return "chunked" in headers.get("Transfer-Encoding", "").lower()


def build_request(headers: dict[str, str], body: bytes) -> ParsedRequest:
    return ParsedRequest(
        method=headers.get(METHOD_KEY, ""),
        path=headers.get(PATH_KEY, "/"),
        http_version=headers.get(VERSION_KEY, ""),
        headers=headers,
        body=body,
        declared_content_length=declared_length(headers),
        chunked=is_chunked(headers),
    )
