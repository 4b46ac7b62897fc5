"""
Proxy Routes - Backend Request Forwarding
==========================================

Handlers mounted under the gated /api router. Each one relays the request
to the same path on the backend through the tunnel client.

Security Model:
---------------
1. The auth gate has already validated the client's bearer secret
2. The client's Authorization header is never copied to the backend call
3. The tunnel client injects its own bearer secret for the backend

Endpoints:
----------
- GET  /files, POST /files/mkdir: Directory listing and creation
- GET  /file: File contents
- POST /chat (SSE), GET /chat/status, POST /chat/model
- POST /terminal (SSE), GET /terminal/status, POST /terminal/reconnect (SSE)
- GET  /terminal/test: Diagnostic probe report
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from ..diagnostics import DiagnosticProbe
from ..tunnel import (
    ForwardError,
    ForwardErrorKind,
    ForwardOptions,
    ForwardResponse,
    TunnelClient,
)

logger = logging.getLogger(__name__)

# Applied to every call except long-lived streams
DEFAULT_TIMEOUT_MS = 10000
NO_TIMEOUT = 0

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

files_router = APIRouter()
file_router = APIRouter()
chat_router = APIRouter()
terminal_router = APIRouter()


# ============================================================================
# Dependencies
# ============================================================================

def get_tunnel_client(request: Request) -> TunnelClient:
    """
    Get the tunnel client from app state.

    Raises:
        HTTPException: If the client was not initialized
    """
    client = getattr(request.app.state, "tunnel_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Tunnel client not initialized",
        )
    return client


# ============================================================================
# Response Translation
# ============================================================================

def forward_error_response(error: ForwardError, path: str) -> JSONResponse:
    """
    Translate an unreachable backend into an upstream-failure response.

    Timeouts become 504; every other failure becomes 502.
    """
    logger.error(
        "Backend unreachable",
        extra={"path": path, "kind": error.kind.value, "error": error.message},
    )
    if error.kind is ForwardErrorKind.TIMEOUT:
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={"error": "Server timed out"},
        )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": "Failed to connect to server"},
    )


def passthrough_response(result: ForwardResponse) -> JSONResponse:
    """
    Return the backend's JSON body with the backend's status.

    A non-JSON error body is wrapped as ``{"error": <text>}``; a non-JSON
    success body means the backend misbehaved and yields 502.
    """
    try:
        data = result.json()
    except ValueError:
        if result.ok:
            logger.error("Backend returned a non-JSON body", extra={"status_code": result.status_code})
            return JSONResponse(
                status_code=status.HTTP_502_BAD_GATEWAY,
                content={"error": "Invalid response from server"},
            )
        text = result.text.strip()
        data = {"error": text or f"Server error {result.status_code}"}
    return JSONResponse(status_code=result.status_code, content=data)


async def stream_response(result: ForwardResponse) -> Response:
    """
    Pass a backend SSE stream through to the client.

    Error statuses are read in full and returned as JSON instead.
    """
    if not result.ok:
        await result.aread()
        return passthrough_response(result)

    return StreamingResponse(
        result.aiter_bytes(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(result.aclose),
    )


def missing_param(name: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"{name} query parameter is required"},
    )


async def relay_json(
    request: Request,
    path: str,
    method: str = "GET",
    params: Optional[Dict[str, str]] = None,
) -> Response:
    """Forward a request and pass the JSON answer back unchanged."""
    options = ForwardOptions(method=method, params=params)
    if method != "GET":
        options.headers = {"Content-Type": "application/json"}
        options.body = await request.body()

    result = await get_tunnel_client(request).forward(path, options, DEFAULT_TIMEOUT_MS)
    if isinstance(result, ForwardError):
        return forward_error_response(result, path)
    return passthrough_response(result)


async def relay_stream(request: Request, path: str, timeout_ms: float) -> Response:
    """Forward a POST whose successful answer is an SSE stream."""
    options = ForwardOptions(
        method="POST",
        headers={"Content-Type": "application/json"},
        body=await request.body(),
        stream=True,
    )
    result = await get_tunnel_client(request).forward(path, options, timeout_ms)
    if isinstance(result, ForwardError):
        return forward_error_response(result, path)
    return await stream_response(result)


# ============================================================================
# Files
# ============================================================================

@files_router.get("")
async def list_files(request: Request, path: str = ""):
    return await relay_json(request, "/api/files", params={"path": path})


@files_router.post("/mkdir")
async def make_directory(request: Request):
    return await relay_json(request, "/api/files/mkdir", method="POST")


@file_router.get("")
async def read_file(request: Request, path: str = ""):
    if not path:
        return missing_param("path")
    return await relay_json(request, "/api/file", params={"path": path})


# ============================================================================
# Chat
# ============================================================================

@chat_router.post("")
async def chat(request: Request):
    """
    Relay a chat message. The backend answers with an SSE stream that can
    run for minutes, so no timeout applies.
    """
    return await relay_stream(request, "/api/chat", NO_TIMEOUT)


@chat_router.get("/status")
async def chat_status(request: Request, sessionId: Optional[str] = None):
    if not sessionId:
        return missing_param("sessionId")
    return await relay_json(request, "/api/chat/status", params={"sessionId": sessionId})


@chat_router.post("/model")
async def chat_model(request: Request):
    return await relay_json(request, "/api/chat/model", method="POST")


# ============================================================================
# Terminal
# ============================================================================

@terminal_router.post("")
async def terminal_exec(request: Request):
    """Run a command on the backend; the timeout covers the response headers only."""
    return await relay_stream(request, "/api/terminal", DEFAULT_TIMEOUT_MS)


@terminal_router.get("/status")
async def terminal_status(request: Request, commandId: Optional[str] = None):
    if not commandId:
        return missing_param("commandId")
    return await relay_json(request, "/api/terminal/status", params={"commandId": commandId})


@terminal_router.post("/reconnect")
async def terminal_reconnect(request: Request):
    return await relay_stream(request, "/api/terminal/reconnect", NO_TIMEOUT)


@terminal_router.get("/test")
async def terminal_test(request: Request):
    """
    Run the diagnostic probe against the backend.

    Always answers 200; per-step failures are described in the report.
    """
    client = get_tunnel_client(request)
    report = await DiagnosticProbe(client, client.config).run_probe()
    return JSONResponse(
        content=report.model_dump(),
        headers={"Cache-Control": "no-store"},
    )
