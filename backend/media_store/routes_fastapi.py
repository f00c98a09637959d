"""
Media API Routes

Provides, per category (image, audio):
- POST /v1/{category}          - Upload raw body or multipart
- GET  /v1/{category}/{name}   - Fetch a stored file

Errors are raised as MediaHostError subclasses and rendered by the
application-level exception handler.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .errors import MediaHostError, PayloadTooLargeError
from .ingest import IngestPipeline, extract_multipart

logger = logging.getLogger(__name__)


def link_payload(link: str) -> dict:
    return {"data": {"link": link}}


async def media_error_handler(request: Request, exc: MediaHostError) -> PlainTextResponse:
    """Render a domain error as plain text with its status code."""
    if exc.status_code >= 500:
        logger.error(f"[MediaAPI] {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"[MediaAPI] {request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return PlainTextResponse(exc.message, status_code=exc.status_code)


# Room for boundaries and part headers on top of the payload limit
MULTIPART_OVERHEAD = 64 * 1024
MAX_MULTIPART_PARTS = 100


def too_large(limit: int) -> PayloadTooLargeError:
    return PayloadTooLargeError(f"Payload exceeds the {limit} byte limit.")


async def read_body(request: Request, limit: int) -> bytes:
    """Read the request stream, stopping as soon as it passes ``limit``."""
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise too_large(limit)
        chunks.append(chunk)
    return b"".join(chunks)


def replay(body: bytes):
    """ASGI receive callable that hands back an already-read body."""
    sent = False

    async def receive():
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return receive


async def read_upload(request: Request, limit: int, multipart_mode: str = "concat") -> bytes:
    """
    Extract the upload payload from a raw body or a multipart form.

    Multipart bodies are read under ``limit`` plus a fixed allowance for
    the form framing before they are parsed, so a chunked request without
    a Content-Length is still bounded.

    Raises:
        PayloadTooLargeError: declared or actual size over ``limit``
    """
    content_type = request.headers.get("content-type", "")
    is_multipart = content_type.startswith("multipart/form-data")
    body_limit = limit + MULTIPART_OVERHEAD if is_multipart else limit

    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > body_limit:
        raise too_large(limit)

    body = await read_body(request, body_limit)
    if not is_multipart:
        return body

    form = await Request(request.scope, replay(body)).form(
        max_files=MAX_MULTIPART_PARTS, max_fields=MAX_MULTIPART_PARTS
    )
    try:
        return await extract_multipart(form.multi_items(), multipart_mode, limit=limit)
    finally:
        await form.close()


def create_media_router(
    pipeline: IngestPipeline,
    max_size: int,
    multipart_mode: str = "concat",
) -> APIRouter:
    """Build upload and fetch routes for one category."""
    category = pipeline.category.value
    router = APIRouter(prefix=f"/v1/{category}", tags=[category.capitalize()])

    @router.post("")
    async def upload_media(request: Request):
        """
        Store an uploaded file.

        Example:
            POST /v1/image   (body: PNG bytes)
            -> {"data": {"link": "https://host/v1/image/<uuid>.png"}}
        """
        data = await read_upload(request, max_size, multipart_mode)
        asset = await pipeline.ingest(data)
        return JSONResponse(content=link_payload(pipeline.link_for(asset.name)))

    @router.get("/{name}")
    async def fetch_media(name: str):
        """Return a stored file with its sniffed content type."""
        asset = await pipeline.load(name)
        return Response(content=asset.data, media_type=asset.kind.mime_type)

    return router
