"""
Application Factory Tests
=========================

Tests for gateway/app/main.py: health endpoint, routing and startup
configuration checks.
"""

from datetime import datetime

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from gateway.app.config import ConfigurationError, Settings
from gateway.app.main import create_app
from gateway.app.tunnel import TunnelClient


@pytest.fixture
def settings():
    return Settings(
        TUNNEL_URL="http://backend:3020",
        TUNNEL_SHARED_SECRET="tunnel-secret",
        GATEWAY_SHARED_SECRET="abc123",
    )


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings))


# ============================================================================
# Health
# ============================================================================

@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "Bearer abc123"}, {"Authorization": "garbage"}],
)
def test_health_needs_no_credential(client, headers):
    response = client.get("/health", headers=headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "ok"
    datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))


def test_health_with_lifespan(settings):
    with TestClient(create_app(settings)) as client:
        response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK


def test_root_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["endpoints"]["health"] == "/health"


def test_unknown_api_path_not_served(client):
    response = client.get("/api/unknown", headers={"Authorization": "Bearer abc123"})

    assert response.status_code == status.HTTP_404_NOT_FOUND


# ============================================================================
# Startup Configuration
# ============================================================================

def test_app_state_holds_config_and_client(settings):
    app = create_app(settings)

    assert app.state.settings is settings
    assert isinstance(app.state.tunnel_client, TunnelClient)
    assert app.state.tunnel_client.config.base_url == "http://backend:3020"
    assert app.state.tunnel_client.config.shared_secret == "tunnel-secret"


def test_missing_gateway_secret_fails_fast():
    settings = Settings(TUNNEL_URL="http://backend:3020", TUNNEL_SHARED_SECRET="tunnel-secret")

    with pytest.raises(ConfigurationError) as exc_info:
        create_app(settings)

    assert "GATEWAY_SHARED_SECRET" in str(exc_info.value)


def test_missing_tunnel_secret_fails_fast():
    settings = Settings(TUNNEL_URL="http://backend:3020", GATEWAY_SHARED_SECRET="abc123")

    with pytest.raises(ConfigurationError) as exc_info:
        create_app(settings)

    assert "TUNNEL_SHARED_SECRET" in str(exc_info.value)


def test_create_app_loads_settings_from_environment(monkeypatch):
    from gateway.app.config import get_settings

    monkeypatch.setenv("TUNNEL_URL", "http://env-backend:4000")
    monkeypatch.setenv("TUNNEL_SHARED_SECRET", "env-tunnel")
    monkeypatch.setenv("GATEWAY_SHARED_SECRET", "env-gateway")
    get_settings.cache_clear()
    try:
        app = create_app()
        assert app.state.tunnel_client.config.base_url == "http://env-backend:4000"
        response = TestClient(app).get("/api/files", headers={"Authorization": "Bearer abc123"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
    finally:
        get_settings.cache_clear()
