"""Single-part multipart/form-data extraction over raw body bytes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from config import MIB
from utils import hex_preview

logger = logging.getLogger(__name__)

PART_HEADER_TERMINATOR = b"\r\n\r\n"
DEFAULT_PART_CONTENT_TYPE = "application/octet-stream"
TRUNCATED_PAYLOAD_LIMIT = 1 * MIB
TRUNCATED_TAIL_BYTES = 4


@dataclass(frozen=True, slots=True)
class MultipartPart:
    filename: str
    declared_content_type: str
    payload: bytes


def find_subsequence(data: bytes, needle: bytes, start: int = 0, end: int | None = None) -> int:
    """Return the index of ``needle`` in ``data[start:end]`` or -1."""
    if not needle:
        return -1
    if end is None:
        end = len(data)
    if start < 0 or start >= end:
        return -1
    return data.find(needle, start, end)


def parse_boundary(content_type: str) -> str | None:
    """Pull the boundary token out of a Content-Type header value."""
    marker = "boundary="
    index = content_type.find(marker)
    if index == -1:
        return None
    value = content_type[index + len(marker) :].split(";", 1)[0]
    value = value.strip().strip('"')
    return value or None


def boundary_candidates(boundary: str) -> list[bytes]:
    token = boundary.encode("utf-8")
    return [b"--" + token, token, b"\r\n--" + token, b"\n--" + token]


def _locate_first_boundary(body: bytes, boundary: str) -> tuple[int, bytes] | None:
    """Find whichever opening boundary form occurs first in the body."""
    found: tuple[int, bytes] | None = None
    for candidate in boundary_candidates(boundary):
        index = find_subsequence(body, candidate)
        if index == -1:
            continue
        if found is None or index < found[0]:
            found = (index, candidate)
    return found


def _filename_from_headers(part_headers: str) -> str | None:
    if "filename=" not in part_headers:
        return None
    start = part_headers.find('filename="')
    if start == -1:
        return "unknown"
    start += len('filename="')
    end = part_headers.find('"', start)
    if end == -1:
        return "unknown"
    return part_headers[start:end]


def _content_type_from_headers(part_headers: str) -> str:
    for line in part_headers.split("\r\n"):
        name, separator, value = line.partition(":")
        if separator and name.strip().lower() == "content-type":
            return value.strip() or DEFAULT_PART_CONTENT_TYPE
    return DEFAULT_PART_CONTENT_TYPE


def _payload_end(body: bytes, boundary: str, content_start: int) -> int:
    token = boundary.encode("utf-8")

    final_index = find_subsequence(body, b"--" + token + b"--", content_start)
    if final_index != -1:
        logger.debug("Found closing boundary at %d", final_index)
        if body[final_index - 2 : final_index] == b"\r\n" and final_index - 2 >= content_start:
            return final_index - 2
        return final_index

    next_index = find_subsequence(body, b"\r\n--" + token, content_start)
    if next_index != -1:
        logger.debug("Found next boundary at %d", next_index)
        return next_index

    remaining = len(body) - content_start
    if remaining > TRUNCATED_PAYLOAD_LIMIT:
        logger.warning(
            "No closing boundary found, keeping the first %d of %d payload bytes",
            TRUNCATED_PAYLOAD_LIMIT,
            remaining,
        )
        return content_start + TRUNCATED_PAYLOAD_LIMIT
    logger.warning("No closing boundary found, dropping the last %d bytes", TRUNCATED_TAIL_BYTES)
    return len(body) - TRUNCATED_TAIL_BYTES


def extract_first_part(body: bytes, boundary: str) -> MultipartPart | None:
    """Extract the first file part of a multipart body.

    The opening boundary may appear as ``--B``, bare ``B``, ``\\r\\n--B`` or
    ``\\n--B``. The payload ends at the closing boundary ``--B--`` if present,
    else at the next ``\\r\\n--B``. Without either the transfer is treated as
    truncated: more than 1 MiB of remainder is cut to its first 1 MiB, a
    smaller remainder loses its last 4 bytes. Returns None when the boundary,
    the part header terminator or the filename is missing.
    """
    if not boundary or len(body) <= len(boundary) + 10:
        logger.warning("Body of %d bytes is too small to hold a multipart part", len(body))
        return None

    logger.debug("Multipart body, boundary=%s, first bytes: %s", boundary, hex_preview(body))

    located = _locate_first_boundary(body, boundary)
    if located is None:
        logger.warning("No boundary marker found in body")
        return None
    boundary_index, matched = located
    logger.debug("Boundary form %r found at %d", matched, boundary_index)

    headers_start = boundary_index + len(matched)
    headers_end = find_subsequence(body, PART_HEADER_TERMINATOR, headers_start)
    if headers_end == -1:
        logger.warning("Part header terminator not found")
        return None

    try:
        part_headers = body[headers_start:headers_end].decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Part headers are not valid UTF-8")
        return None
    logger.debug("Part headers: %s", part_headers.strip())

    filename = _filename_from_headers(part_headers)
    if filename is None:
        logger.warning("Part headers carry no filename")
        return None
    content_type = _content_type_from_headers(part_headers)

    content_start = headers_end + len(PART_HEADER_TERMINATOR)
    if content_start >= len(body):
        logger.warning("Part payload starts past the end of the body")
        return None

    content_end = _payload_end(body, boundary, content_start)
    if content_end <= content_start:
        logger.warning("Empty payload range %d..%d", content_start, content_end)
        return None

    payload = body[content_start:content_end]
    logger.info("Extracted %s (%s), %d bytes", filename, content_type, len(payload))
    return MultipartPart(filename=filename, declared_content_type=content_type, payload=payload)
