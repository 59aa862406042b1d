"""HTTP response model, serializer and the upload server's canned responses."""

from dataclasses import dataclass, field
from email.utils import formatdate

import pages
from config import SERVER_NAME
from utils import format_size

HTML_CONTENT_TYPE = "text/html; charset=utf-8"

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    400: "Bad Request",
}


@dataclass(slots=True)
class HTTPResponse:
    status_code: int
    reason_phrase: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.1 wire format bytes."""
        reason = self.reason_phrase or REASON_PHRASES.get(self.status_code, "Unknown")
        normalized_headers = dict(self.headers)
        normalized_headers.setdefault(
            "Date",
            formatdate(timeval=None, localtime=False, usegmt=True),
        )
        normalized_headers.setdefault("Server", SERVER_NAME)
        if self.body:
            normalized_headers.setdefault("Content-Type", HTML_CONTENT_TYPE)
        normalized_headers["Content-Length"] = str(len(self.body))
        normalized_headers["Connection"] = "close"

        header_lines = [f"HTTP/1.1 {self.status_code} {reason}"]
        header_lines.extend(f"{key}: {value}" for key, value in normalized_headers.items())
        head = "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"
        return head + self.body


def render_upload_page() -> bytes:
    return HTTPResponse(status_code=200, body=pages.upload_page()).to_bytes()


def render_success(filename: str, size: int) -> bytes:
    return HTTPResponse(status_code=200, body=pages.success_page(filename, format_size(size))).to_bytes()


def render_error(message: str) -> bytes:
    return HTTPResponse(status_code=400, body=pages.error_page(message)).to_bytes()


def render_cors_preflight() -> bytes:
    return HTTPResponse(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        },
    ).to_bytes()
