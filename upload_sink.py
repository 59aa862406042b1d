"""Validation and temp-file storage for extracted uploads."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from config import MIB, ServerConfig
from multipart import MultipartPart

logger = logging.getLogger(__name__)

UploadCallback = Callable[[str, str, int, str], None]

DEFAULT_MIME_TYPE = "application/octet-stream"
MIME_BY_EXTENSION: dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/x-m4a",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "ogg": "audio/ogg",
}
SUPPORTED_AUDIO_TYPES = frozenset(
    {
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/x-wav",
        "audio/aac",
        "audio/x-m4a",
        "audio/mp4",
        "audio/flac",
        "audio/ogg",
    }
)
UNSAFE_FILENAME_CHARS = '/\\:*?"<>|'
_UNSAFE_FILENAME_TABLE = {ord(char): "_" for char in UNSAFE_FILENAME_CHARS}
# Control characters, NUL included.
_UNSAFE_FILENAME_TABLE.update({code: "_" for code in (*range(32), 127)})
ELLIPSIS = "..."
SMALL_MP3_WARNING_BYTES = 1 * MIB


@dataclass(frozen=True, slots=True)
class UploadResult:
    success: bool
    message: str
    filename: str = ""
    temp_file_path: Path | None = None
    size_bytes: int = 0
    mime_type: str = ""

    @classmethod
    def failure(cls, message: str, *, filename: str = "", size_bytes: int = 0) -> "UploadResult":
        return cls(success=False, message=message, filename=filename, size_bytes=size_bytes)


def file_extension(filename: str) -> str:
    _stem, dot, extension = filename.rpartition(".")
    return extension if dot else ""


def guess_mime_type(filename: str) -> str:
    return MIME_BY_EXTENSION.get(file_extension(filename).lower(), DEFAULT_MIME_TYPE)


def has_audio_extension(filename: str) -> bool:
    return file_extension(filename).lower() in MIME_BY_EXTENSION


def sanitize_filename(filename: str, max_length: int) -> str:
    """Replace filesystem-unsafe characters and cap the length, keeping the extension."""
    clean = filename.translate(_UNSAFE_FILENAME_TABLE)
    if len(clean) <= max_length:
        return clean

    extension = file_extension(clean)
    tail = ELLIPSIS + extension
    head_length = max_length - len(tail)
    if head_length <= 0:
        return clean[:max_length]
    return clean[:head_length] + tail


def looks_like_audio(header: bytes) -> bool:
    """ID3 tag or MPEG frame sync at the start of the data."""
    if header[:3] == b"ID3":
        return True
    return len(header) >= 2 and header[0] == 0xFF and (header[1] & 0xE0) == 0xE0


class UploadSink:
    """Checks an extracted part, stores it in the upload directory and reports it."""

    def __init__(self, config: ServerConfig, on_file_received: UploadCallback | None = None) -> None:
        self.config = config
        self.upload_dir = config.resolved_upload_dir
        self._on_file_received = on_file_received

    def accept(self, part: MultipartPart) -> UploadResult:
        """Validate and store one part.

        A stored upload is reported (result and callback) under its sanitized
        name, the same name it has on disk.
        """
        filename = part.filename
        size = len(part.payload)

        if size < self.config.min_upload_bytes:
            logger.warning("Upload %s is too small (%d bytes), probably incomplete", filename, size)
            return UploadResult.failure(
                "uploaded file is too small or incomplete", filename=filename, size_bytes=size
            )

        if size > self.config.max_upload_bytes:
            logger.warning(
                "Upload %s is too large: %d bytes, limit %d", filename, size, self.config.max_upload_bytes
            )
            return UploadResult.failure(
                f"file too large, maximum allowed is {self.config.max_upload_bytes // MIB}MB",
                filename=filename,
                size_bytes=size,
            )

        mime_type = self._resolve_mime_type(part)
        if mime_type not in SUPPORTED_AUDIO_TYPES:
            if not has_audio_extension(filename):
                logger.warning("Rejecting %s with unsupported type %s", filename, mime_type)
                return UploadResult.failure(
                    "unsupported file type, only audio files are accepted",
                    filename=filename,
                    size_bytes=size,
                )
            logger.info("Type %s not recognised but %s has an audio extension", mime_type, filename)

        self._log_integrity_hints(part, mime_type)

        safe_name = sanitize_filename(filename, self.config.max_filename_length)
        if safe_name in {"", ".", ".."}:
            safe_name = "unknown"
        target = self.upload_dir / safe_name
        try:
            if target.exists():
                logger.info("Replacing existing temp file %s", target)
                target.unlink(missing_ok=True)
            target.write_bytes(part.payload)
        except (OSError, ValueError) as exc:
            logger.error("Failed to save %s to %s: %s", filename, target, exc)
            try:
                target.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove partial file %s", target)
            return UploadResult.failure(f"failed to save file: {exc}", filename=filename, size_bytes=size)

        logger.info("Saved %s (%d bytes, %s) to %s", filename, size, mime_type, target)
        self._notify(target, safe_name, size, mime_type)
        return UploadResult(
            success=True,
            message="upload complete",
            filename=safe_name,
            temp_file_path=target,
            size_bytes=size,
            mime_type=mime_type,
        )

    def _resolve_mime_type(self, part: MultipartPart) -> str:
        mime_type = guess_mime_type(part.filename)
        if mime_type == DEFAULT_MIME_TYPE:
            declared = part.declared_content_type.split(";", 1)[0].strip().lower()
            if declared:
                return declared
        return mime_type

    def _log_integrity_hints(self, part: MultipartPart, mime_type: str) -> None:
        if looks_like_audio(part.payload[:4]):
            logger.debug("Audio signature check passed for %s", part.filename)
        else:
            logger.info("Audio signature check failed for %s, accepting anyway", part.filename)
            declared = part.declared_content_type.lower()
            if "mpeg" in declared or "mp3" in declared:
                logger.warning("Content of %s does not match its declared type %s", part.filename, declared)
        if mime_type == "audio/mpeg" and len(part.payload) < SMALL_MP3_WARNING_BYTES:
            logger.warning("MP3 upload %s is under 1 MB and may be incomplete", part.filename)

    def _notify(self, path: Path, filename: str, size: int, mime_type: str) -> None:
        if self._on_file_received is None:
            return
        try:
            self._on_file_received(str(path), filename, size, mime_type)
        except Exception:
            logger.exception("Upload callback failed for %s", filename)
