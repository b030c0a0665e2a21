from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.core.app_factory import create_app


@pytest.fixture
def client(make_settings) -> TestClient:
    app = create_app(make_settings(burst=100))

    @app.get("/api/v1/books/broken")
    def broken_endpoint():
        raise RuntimeError("catalogue backend exploded")

    return TestClient(app, raise_server_exceptions=False)


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health/live", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health/live")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None


def test_request_id_on_error_responses(client: TestClient):
    resp = client.get("/missing", headers={"X-Request-ID": "req-404"})

    assert resp.status_code == 404
    assert resp.headers.get("X-Request-ID") == "req-404"


def test_request_id_on_unhandled_exception(client: TestClient, caplog):
    caplog.set_level("ERROR", logger="app.core.exception_handlers")

    resp = client.get("/api/v1/books/broken", headers={"X-Request-ID": "req-500"})

    assert resp.status_code == 500
    assert resp.json()["code"] == 500
    assert "exploded" not in resp.text
    assert resp.headers.get("X-Request-ID") == "req-500"

    logged = [r for r in caplog.records if r.getMessage() == "unhandled_exception"]
    assert len(logged) == 1
    assert logged[0].request_id == "req-500"
