"""
Proxy Package
=============

Authenticated /api endpoints that forward validated requests from the
frontend to the backend server through the tunnel.

Main Components:
----------------
- routes.py: forwarding handlers for files, file, chat and terminal

Security Features:
------------------
- Shared-secret gate applied to every route in ``api_router``
- Inbound Authorization header never forwarded
- Tunnel credential injected by the tunnel client

Usage:
------
    from gateway.app.proxy import api_router
    app.include_router(api_router)
"""

from fastapi import APIRouter, Depends

from ..auth import require_shared_secret
from .routes import chat_router, file_router, files_router, terminal_router

api_router = APIRouter(
    prefix="/api", dependencies=[Depends(require_shared_secret)]
)
api_router.include_router(files_router, prefix="/files", tags=["Files"])
api_router.include_router(file_router, prefix="/file", tags=["Files"])
api_router.include_router(chat_router, prefix="/chat", tags=["Chat"])
api_router.include_router(terminal_router, prefix="/terminal", tags=["Terminal"])

__all__ = ["api_router"]
