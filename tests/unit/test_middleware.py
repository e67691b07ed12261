"""Tests for request middleware: API key, body size limit and headers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from convo_pipeline.config import Settings
from convo_pipeline.core.middleware import cors_origins_from_env, setup_middleware


def make_client(**settings_overrides) -> TestClient:
    app = FastAPI()
    setup_middleware(app, Settings(**settings_overrides))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/pipeline/batch")
    async def batch():
        return {"processed": 0}

    return TestClient(app)


class TestApiKey:
    def test_public_path_needs_no_key(self):
        client = make_client(api_key="secret")
        assert client.get("/health").status_code == 200

    def test_missing_key(self):
        client = make_client(api_key="secret")
        response = client.post("/pipeline/batch")
        assert response.status_code == 401
        assert "X-API-Key" in response.json()["detail"]

    def test_wrong_key(self):
        client = make_client(api_key="secret")
        response = client.post("/pipeline/batch", headers={"X-API-Key": "nope"})
        assert response.status_code == 403

    def test_valid_key(self):
        client = make_client(api_key="secret")
        response = client.post("/pipeline/batch", headers={"X-API-Key": "secret"})
        assert response.status_code == 200


def test_body_too_large():
    client = make_client(max_request_body_size=10)
    response = client.post("/pipeline/batch", content=b"x" * 100)
    assert response.status_code == 413


@pytest.mark.parametrize("request_id", ["req-123", None])
def test_response_headers(request_id):
    client = make_client()
    headers = {"X-Request-ID": request_id} if request_id else {}

    response = client.get("/health", headers=headers)

    assert response.headers["X-API-Version"]
    assert "X-Response-Time-Ms" in response.headers
    if request_id:
        assert response.headers["X-Request-ID"] == request_id


def test_cors_origins_from_env(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example ,")
    assert cors_origins_from_env() == ["https://a.example", "https://b.example"]
