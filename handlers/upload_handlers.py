"""Per-method request handlers for the upload endpoint."""

from __future__ import annotations

import logging

from metrics import UploadMetrics
from multipart import extract_first_part, parse_boundary
from request import ParsedRequest
from response import render_cors_preflight, render_error, render_success, render_upload_page
from upload_sink import UploadResult, UploadSink

logger = logging.getLogger(__name__)


def handle_get(request: ParsedRequest) -> bytes:
    _ = request
    return render_upload_page()


def handle_options(request: ParsedRequest) -> bytes:
    _ = request
    return render_cors_preflight()


def handle_unsupported(request: ParsedRequest) -> bytes:
    logger.warning("Unsupported HTTP method: %s", request.method)
    return render_error(f"unsupported HTTP method: {request.method}")


def process_upload(request: ParsedRequest, sink: UploadSink) -> UploadResult:
    """Run a POST body through boundary checks, extraction and the sink."""
    content_type = request.content_type
    if content_type is None or not content_type.startswith("multipart/form-data"):
        logger.warning("Not a multipart/form-data request: %r", content_type)
        return UploadResult.failure("need multipart/form-data request")

    boundary = parse_boundary(content_type)
    if boundary is None:
        logger.warning("No boundary parameter in %r", content_type)
        return UploadResult.failure("boundary parameter not found")
    logger.debug("Form boundary: %s", boundary)

    if not request.body:
        logger.warning("Request body is empty")
        return UploadResult.failure("request body is empty")

    part = extract_first_part(request.body, boundary)
    if part is None:
        return UploadResult.failure("failed to parse uploaded file data")

    return sink.accept(part)


def handle_post(request: ParsedRequest, sink: UploadSink, metrics: UploadMetrics | None = None) -> bytes:
    result = process_upload(request, sink)
    if metrics is not None:
        metrics.record_upload(success=result.success, size_bytes=result.size_bytes)
    if not result.success:
        return render_error(result.message)
    return render_success(result.filename, result.size_bytes)
