"""
Auth Gate Tests
===============

Tests for gateway/app/auth/gate.py

Test Coverage:
--------------
1. Correct bearer secret reaches the handler unmodified
2. Missing, malformed or wrong credentials are rejected with 401
3. Rejected requests never invoke the handler
4. Rejections are not cacheable
5. Unset secret fails closed
"""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.testclient import TestClient

from gateway.app.auth import extract_bearer_token, require_shared_secret


SECRET = "abc123"


def build_gated_app(secret):
    """App with one gated route that records every invocation."""
    calls = []
    app = FastAPI()
    app.state.settings = SimpleNamespace(GATEWAY_SHARED_SECRET=secret)

    router = APIRouter(prefix="/api", dependencies=[Depends(require_shared_secret)])

    @router.post("/files")
    async def record(request: Request):
        body = await request.body()
        calls.append({"headers": dict(request.headers), "body": body})
        return {"received": True}

    app.include_router(router)
    return app, calls


@pytest.fixture
def gated():
    app, calls = build_gated_app(SECRET)
    return TestClient(app), calls


# ============================================================================
# Gate Behaviour
# ============================================================================

def test_correct_secret_passes_gate(gated):
    client, calls = gated

    response = client.post(
        "/api/files",
        headers={"Authorization": "Bearer abc123", "X-Trace": "t-1"},
        content=b'{"path": "src"}',
    )

    assert response.status_code == status.HTTP_200_OK
    assert len(calls) == 1
    assert calls[0]["headers"]["x-trace"] == "t-1"
    assert calls[0]["body"] == b'{"path": "src"}'


def test_wrong_secret_rejected(gated):
    client, calls = gated

    response = client.post("/api/files", headers={"Authorization": "Bearer wrong"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Invalid token"
    assert calls == []


def test_missing_header_rejected(gated):
    client, calls = gated

    response = client.post("/api/files")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert calls == []


@pytest.mark.parametrize(
    "header",
    ["Basic dXNlcjpwYXNz", "abc123", "Bearer", "Bearer ", "Token abc123"],
)
def test_malformed_header_rejected(gated, header):
    client, calls = gated

    response = client.post("/api/files", headers={"Authorization": header})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert calls == []


def test_secret_prefix_does_not_match(gated):
    client, calls = gated

    response = client.post("/api/files", headers={"Authorization": "Bearer abc1234"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert calls == []


def test_rejection_is_not_cacheable(gated):
    client, _ = gated

    response = client.post("/api/files", headers={"Authorization": "Bearer wrong"})

    assert response.headers["cache-control"] == "no-store"
    assert response.headers["www-authenticate"] == "Bearer"


def test_rejected_before_body_validation(gated):
    client, calls = gated

    response = client.post("/api/files", content=b"not json at all")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert calls == []


@pytest.mark.parametrize("secret", ["", None])
def test_unset_secret_fails_closed(secret):
    app, calls = build_gated_app(secret)
    client = TestClient(app)

    for headers in ({}, {"Authorization": "Bearer "}, {"Authorization": "Bearer anything"}):
        response = client.post("/api/files", headers=headers)
        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "GATEWAY_SHARED_SECRET" in response.json()["detail"]
        assert response.headers["cache-control"] == "no-store"

    assert calls == []


# ============================================================================
# Direct Dependency Tests
# ============================================================================

def make_request(secret):
    request = Mock()
    request.app.state.settings = SimpleNamespace(GATEWAY_SHARED_SECRET=secret)
    request.url.path = "/api/chat"
    request.method = "POST"
    return request


@pytest.mark.asyncio
async def test_dependency_returns_none_on_match():
    assert await require_shared_secret(make_request(SECRET), "Bearer abc123") is None


@pytest.mark.asyncio
async def test_dependency_raises_on_mismatch():
    with pytest.raises(HTTPException) as exc_info:
        await require_shared_secret(make_request(SECRET), "Bearer nope")

    assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_dependency_handles_non_ascii_token():
    with pytest.raises(HTTPException) as exc_info:
        await require_shared_secret(make_request(SECRET), "Bearer ünïcode")

    assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED


def test_extract_bearer_token_is_case_insensitive_on_scheme():
    assert extract_bearer_token("bearer abc123") == "abc123"
    assert extract_bearer_token("BEARER abc123") == "abc123"


def test_extract_bearer_token_rejects_missing():
    with pytest.raises(HTTPException) as exc_info:
        extract_bearer_token(None)

    assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
