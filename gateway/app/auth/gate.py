"""
Shared-Secret Auth Gate
=======================

FastAPI dependency that protects the /api router. A request passes only when
it carries ``Authorization: Bearer <GATEWAY_SHARED_SECRET>``; anything else is
answered immediately and the route handler never runs.

An unset secret never opens the gate: every request is rejected until the
gateway is configured.
"""

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request, status

logger = logging.getLogger(__name__)

# Rejections must not be cached by intermediaries.
REJECTION_HEADERS = {
    "WWW-Authenticate": "Bearer",
    "Cache-Control": "no-store",
}


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Extract Bearer token from Authorization header.

    Args:
        authorization: Authorization header value

    Returns:
        Extracted token string

    Raises:
        HTTPException: If header is missing or not in Bearer format
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers=REJECTION_HEADERS,
        )

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers=REJECTION_HEADERS,
        )

    return token


def tokens_match(token: str, expected: str) -> bool:
    return secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


async def require_shared_secret(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> None:
    """
    Dependency that ensures requests include the gateway shared secret.

    Raises:
        HTTPException: 500 if no secret is configured, 401 on a missing or
                       mismatched credential
    """
    expected = getattr(request.app.state.settings, "GATEWAY_SHARED_SECRET", None)
    if not expected:
        logger.error("Rejecting request: GATEWAY_SHARED_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfigured: no GATEWAY_SHARED_SECRET",
            headers={"Cache-Control": "no-store"},
        )

    token = extract_bearer_token(authorization)
    if not tokens_match(token, expected):
        logger.warning(
            "Rejected request with invalid token",
            extra={"path": request.url.path, "method": request.method},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers=REJECTION_HEADERS,
        )
