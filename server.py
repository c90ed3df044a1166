"""
server.py — JSON HTTP API in front of the analysis pipeline.

Endpoints:
  POST   /analyze        → analyse an uploaded photo, return items + links
  POST   /analyze/retry  → re-run the pipeline on the client's last photo
  DELETE /analyze        → reset the client's session (late results discarded)
  GET    /health         → plain-text health check (for uptime monitors / nginx)

Upload either the raw image as the request body (Content-Type: image/jpeg …)
or multipart/form-data with an "image" field. Clients identify themselves
with an optional X-Client-Id header; each id has its own session. Requests
without one are independent: nothing is kept, so they cannot be retried.

Errors:
  400 empty upload · 404 nothing to retry · 409 superseded by a newer upload
  413 image too large · 502 vision stage failed ({"error", "retry": bool})
"""
from __future__ import annotations

import logging
from typing import Optional

from aiohttp import web

import config
from image_analyzer import AnalysisError
from session import AnalysisSession, SupersededError, drop_session, get_session

logger = logging.getLogger(__name__)

ANONYMOUS_CLIENT_ID = "anonymous"

_READ_CHUNK = 64 * 1024


def _client_id(request: web.Request) -> Optional[str]:
    return request.headers.get("X-Client-Id", "").strip() or None


def _session_for(client_id: Optional[str]) -> AnalysisSession:
    # Requests without an id get a private session each, never a shared one
    if client_id is None:
        return AnalysisSession(ANONYMOUS_CLIENT_ID)
    return get_session(client_id)


def _media_type(value: Optional[str]) -> Optional[str]:
    if not value or value.split(";")[0].strip().lower() == "application/octet-stream":
        return None   # let the analyzer sniff it
    return value


def _too_large(actual_size: int) -> web.HTTPRequestEntityTooLarge:
    return web.HTTPRequestEntityTooLarge(max_size=config.MAX_IMAGE_BYTES, actual_size=actual_size)


async def _read_image(request: web.Request) -> tuple[bytes, Optional[str]]:
    """Return (image_bytes, media_type) from a raw or multipart upload."""
    if request.content_type.startswith("multipart/"):
        reader = await request.multipart()
        async for part in reader:
            if part.name == "image":
                data = bytearray()
                while True:
                    chunk = await part.read_chunk(_READ_CHUNK)
                    if not chunk:
                        break
                    data.extend(chunk)
                    if len(data) > config.MAX_IMAGE_BYTES:
                        raise _too_large(len(data))
                return bytes(data), _media_type(part.headers.get("Content-Type"))
        return b"", None

    data = await request.read()
    return data, _media_type(request.content_type)


async def _run(request: web.Request, retry: bool = False) -> web.Response:
    client_id = _client_id(request)
    session   = _session_for(client_id)
    steps: list[str] = []

    try:
        if retry:
            result = await session.retry(on_progress=steps.append)
        else:
            image_bytes, media_type = await _read_image(request)
            if not image_bytes:
                raise web.HTTPBadRequest(text="No image uploaded.", content_type="text/plain")
            if len(image_bytes) > config.MAX_IMAGE_BYTES:
                raise _too_large(len(image_bytes))
            result = await session.submit(image_bytes, media_type, on_progress=steps.append)
    except LookupError:
        raise web.HTTPNotFound(text="Nothing to retry — upload a photo first.", content_type="text/plain")
    except SupersededError:
        return web.json_response({"error": "Superseded by a newer request."}, status=409)
    except AnalysisError as exc:
        logger.error("[%s] Analysis failed: %s", session.client_id, exc.message)
        return web.json_response({"error": exc.message, "retry": exc.retryable}, status=502)

    logger.info("[%s] Analysis done — %d item(s)", session.client_id, len(result.items))
    return web.json_response({**result.to_dict(), "steps": steps})


# ── Request handlers ───────────────────────────────────────────────────────────

async def handle_analyze(request: web.Request) -> web.Response:
    return await _run(request)


async def handle_retry(request: web.Request) -> web.Response:
    return await _run(request, retry=True)


async def handle_reset(request: web.Request) -> web.Response:
    client_id = _client_id(request)
    if client_id is not None:
        drop_session(client_id)
    return web.Response(status=204)


async def handle_health(request: web.Request) -> web.Response:
    return web.Response(text="OK", content_type="text/plain")


# ── App factory ────────────────────────────────────────────────────────────────

def build_web_app() -> web.Application:
    # Headroom over MAX_IMAGE_BYTES for multipart framing
    app = web.Application(client_max_size=config.MAX_IMAGE_BYTES + 64 * 1024)
    app.router.add_get("/health",         handle_health)
    app.router.add_post("/analyze",       handle_analyze)
    app.router.add_post("/analyze/retry", handle_retry)
    app.router.add_delete("/analyze",     handle_reset)
    return app


async def start_server() -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    app    = build_web_app()
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, config.SERVER_HOST, config.SERVER_PORT)
    await site.start()
    logger.info("Outfit analysis API listening on %s:%d", config.SERVER_HOST, config.SERVER_PORT)
    return runner
