import pytest
from fastapi.testclient import TestClient

from app.core.config import PROJECT_NAME
from app.main import app


@pytest.fixture
def client():
    return TestClient(app)


def test_health_endpoint(client):
    """Health answers without touching the database."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "app_name": PROJECT_NAME}


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/v1/does-not-exist")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "http_error"
    assert body["request_id"]
